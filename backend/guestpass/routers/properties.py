"""
物业初始化路由（物业、房间、餐桌）
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee
from guestpass.models.schemas import (
    PropertyCreate, PropertyResponse, RoomCreate, RoomResponse, TableCreate, TableResponse
)
from guestpass.services.property_service import PropertyService
from guestpass.services.room_service import RoomService
from guestpass.security.auth import get_current_user, require_manager
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/properties", tags=["物业管理"])


@router.get("", response_model=List[PropertyResponse])
def list_properties(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取物业列表"""
    return PropertyService(db).get_properties()


@router.post("", response_model=PropertyResponse)
def create_property(
    data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """创建物业"""
    return PropertyService(db).create_property(data)


@router.post("/{property_id}/rooms", response_model=RoomResponse)
def create_room(
    property_id: int,
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """创建房间"""
    try:
        return RoomService(db).create_room(property_id, data)
    except ValueError as e:
        raise to_http_exception(e)


@router.get("/{property_id}/tables", response_model=List[TableResponse])
def list_tables(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取餐桌列表"""
    service = PropertyService(db)
    if not service.get_property(property_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="物业不存在")
    return service.get_tables(property_id)


@router.post("/{property_id}/tables", response_model=TableResponse)
def create_table(
    property_id: int,
    data: TableCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """创建餐桌"""
    try:
        return PropertyService(db).create_table(property_id, data)
    except ValueError as e:
        raise to_http_exception(e)
