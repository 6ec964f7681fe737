"""
服务请求路由（员工侧）
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee, ServiceRequestStatus
from guestpass.models.schemas import (
    ServiceRequestResponse, ServiceRequestDetailResponse, ServiceRequestAdvance
)
from guestpass.services.ledger_service import ServiceRequestService
from guestpass.security.auth import get_current_user, require_housekeeping_staff
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/service-requests", tags=["客房服务"])


@router.get("", response_model=List[ServiceRequestResponse])
def list_service_requests(
    property_id: int,
    status: Optional[ServiceRequestStatus] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_housekeeping_staff)
):
    """获取物业服务请求列表（最新的在前）"""
    return ServiceRequestService(db).list_for_property(property_id, status)


@router.get("/{request_id}", response_model=ServiceRequestDetailResponse)
def get_service_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取服务请求详情（含状态历史）"""
    request = ServiceRequestService(db).get(request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="服务请求不存在")
    return request


@router.post("/{request_id}/advance", response_model=ServiceRequestDetailResponse)
def advance_service_request(
    request_id: int,
    data: ServiceRequestAdvance,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_housekeeping_staff)
):
    """推进服务请求状态"""
    try:
        return ServiceRequestService(db).advance(request_id, data.status, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)
