"""
入住向导路由
每一步对应一个接口，顺序错误返回 400，房间被占返回 409（前台改选房间）
"""
from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee
from guestpass.models.schemas import (
    CheckInStart, IdentityVerification, PurposeCapture, RoomAssignment,
    CheckInTokenOptions, CheckInTokenResponse, BookingResponse
)
from guestpass.services.checkin_service import CheckInService
from guestpass.security.auth import get_current_user, require_front_desk
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/checkin", tags=["入住管理"])


@router.post("", response_model=BookingResponse)
def start_checkin(
    data: CheckInStart,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 1：确认入住名单"""
    try:
        return CheckInService(db).start(data.property_id, data.guests, created_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取入住登记"""
    booking = CheckInService(db).get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="入住登记不存在")
    return booking


@router.post("/{booking_id}/identity", response_model=BookingResponse)
def verify_identity(
    booking_id: int,
    data: IdentityVerification,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 2：证件核验"""
    try:
        return CheckInService(db).verify_identity(booking_id, data)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/purpose", response_model=BookingResponse)
def capture_purpose(
    booking_id: int,
    data: PurposeCapture,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 3：到访目的与离店日期"""
    try:
        return CheckInService(db).capture_purpose(booking_id, data)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/room", response_model=BookingResponse)
def assign_room(
    booking_id: int,
    data: RoomAssignment,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 4：分配房间"""
    try:
        return CheckInService(db).assign_room(booking_id, data.room_id, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/token", response_model=CheckInTokenResponse)
def issue_token(
    booking_id: int,
    data: Optional[CheckInTokenOptions] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 5：签发房间凭证（二维码内容）"""
    ttl = timedelta(seconds=data.ttl_seconds) if data and data.ttl_seconds else None
    service = CheckInService(db)
    try:
        issued = service.issue_token(booking_id, ttl, issued_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)
    booking = service.get_booking(booking_id)
    return CheckInTokenResponse(
        token=issued.token,
        expires_at=issued.expires_at,
        booking_id=booking.id,
        room_id=booking.room_id,
    )


@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_checkin(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """步骤 6：完成入住"""
    try:
        return CheckInService(db).complete(booking_id, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/checkout", response_model=BookingResponse)
def check_out(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """退房：撤销凭证并释放房间"""
    try:
        return CheckInService(db).check_out(booking_id, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)
