"""
房态路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee, RoomStatus
from guestpass.models.schemas import RoomResponse, RoomAssign, RoomAdvance
from guestpass.services.room_service import RoomService
from guestpass.security.auth import get_current_user, require_front_desk, require_housekeeping_staff
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/rooms", tags=["房态管理"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(
    property_id: Optional[int] = None,
    status: Optional[RoomStatus] = None,
    floor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房间列表"""
    return RoomService(db).get_rooms(property_id, status, floor)


@router.get("/status-summary")
def get_status_summary(
    property_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房态统计"""
    return RoomService(db).get_status_summary(property_id)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房间详情"""
    room = RoomService(db).get_room(room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="房间不存在")
    return room


@router.post("/{room_id}/assign", response_model=RoomResponse)
def assign_room(
    room_id: int,
    data: RoomAssign,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """分配房间（available -> reserved）"""
    try:
        return RoomService(db).assign(room_id, data.booking_id, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{room_id}/advance", response_model=RoomResponse)
def advance_room(
    room_id: int,
    data: RoomAdvance,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_housekeeping_staff)
):
    """按期望状态推进房态"""
    try:
        return RoomService(db).advance(
            room_id, data.expected_status, data.new_status,
            booking_id=data.booking_id, changed_by=current_user.id
        )
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{room_id}/release", response_model=RoomResponse)
def release_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """释放房间"""
    try:
        return RoomService(db).release(room_id, changed_by=current_user.id)
    except ValueError as e:
        raise to_http_exception(e)
