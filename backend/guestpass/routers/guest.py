"""
客人自助路由（扫码进入，无需登录）
凭证放在 X-Guest-Token 请求头；房间/餐桌只由凭证决定
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.schemas import (
    OrderCreate, ServiceRequestCreate, CreatedEntryResponse, LedgerEntrySummary, GuestMenuResponse
)
from guestpass.services.gateway_service import GatewayService
from guestpass.security.guest import get_guest_token
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/guest", tags=["客人自助"])


@router.get("/me")
def describe_scope(
    token: str = Depends(get_guest_token),
    db: Session = Depends(get_db)
):
    """凭证对应的物业与房间/餐桌"""
    try:
        return GatewayService(db).describe(token)
    except ValueError as e:
        raise to_http_exception(e)


@router.get("/menu", response_model=GuestMenuResponse)
def get_menu(
    token: str = Depends(get_guest_token),
    db: Session = Depends(get_db)
):
    """凭证所属物业的菜单（仅上架菜品）"""
    try:
        return GatewayService(db).handle_get_menu(token)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/orders", response_model=CreatedEntryResponse)
def create_order(
    data: OrderCreate,
    token: str = Depends(get_guest_token),
    db: Session = Depends(get_db)
):
    """客人下单"""
    try:
        order = GatewayService(db).handle_create_order(token, data)
    except ValueError as e:
        raise to_http_exception(e)
    return CreatedEntryResponse(id=order.id, status=order.status.value)


@router.post("/service-requests", response_model=CreatedEntryResponse)
def create_service_request(
    data: ServiceRequestCreate,
    token: str = Depends(get_guest_token),
    db: Session = Depends(get_db)
):
    """客人提交服务请求"""
    try:
        request = GatewayService(db).handle_create_service_request(token, data)
    except ValueError as e:
        raise to_http_exception(e)
    return CreatedEntryResponse(id=request.id, status=request.status.value)


@router.get("/entries", response_model=List[LedgerEntrySummary])
def list_my_entries(
    token: str = Depends(get_guest_token),
    db: Session = Depends(get_db)
):
    """我的订单与服务请求"""
    try:
        return GatewayService(db).handle_list_mine(token)
    except ValueError as e:
        raise to_http_exception(e)
