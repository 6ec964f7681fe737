"""
订单路由（员工/后厨侧）
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee, OrderStatus
from guestpass.models.schemas import OrderResponse, OrderDetailResponse, OrderAdvance, OrderStats
from guestpass.services.ledger_service import OrderService
from guestpass.security.auth import get_current_user, require_kitchen_staff, require_manager
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/orders", tags=["订单管理"])


@router.get("", response_model=List[OrderResponse])
def list_orders(
    property_id: int,
    status: Optional[OrderStatus] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_kitchen_staff)
):
    """获取物业订单列表（最新的在前）"""
    return OrderService(db).list_for_property(property_id, status)


@router.get("/stats", response_model=OrderStats)
def get_order_stats(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """今日订单统计"""
    return OrderService(db).stats(property_id)


@router.get("/{order_id}", response_model=OrderDetailResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取订单详情（含状态历史）"""
    order = OrderService(db).get(order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="订单不存在")
    return order


@router.post("/{order_id}/advance", response_model=OrderDetailResponse)
def advance_order(
    order_id: int,
    data: OrderAdvance,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_kitchen_staff)
):
    """推进订单状态"""
    try:
        return OrderService(db).advance(order_id, data.status, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)
