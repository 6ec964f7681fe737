"""
菜单管理路由（员工侧）
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee
from guestpass.models.schemas import MenuItemCreate, MenuItemUpdate, MenuItemResponse
from guestpass.services.menu_service import MenuService
from guestpass.security.auth import get_current_user, require_manager
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/properties/{property_id}/menu", tags=["菜单管理"])


@router.get("", response_model=List[MenuItemResponse])
def list_menu_items(
    property_id: int,
    include_unavailable: bool = Query(True),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取菜品列表（含下架菜品）"""
    return MenuService(db).list_items(property_id, include_unavailable=include_unavailable)


@router.post("", response_model=MenuItemResponse)
def create_menu_item(
    property_id: int,
    data: MenuItemCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """新增菜品"""
    try:
        return MenuService(db).create_item(property_id, data)
    except ValueError as e:
        raise to_http_exception(e)


@router.put("/{item_id}", response_model=MenuItemResponse)
def update_menu_item(
    property_id: int,
    item_id: int,
    data: MenuItemUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """修改菜品（价格、上下架等）"""
    try:
        return MenuService(db).update_item(property_id, item_id, data)
    except ValueError as e:
        raise to_http_exception(e)


@router.delete("/{item_id}")
def delete_menu_item(
    property_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """删除菜品"""
    try:
        MenuService(db).delete_item(property_id, item_id)
    except ValueError as e:
        raise to_http_exception(e)
    return {"message": "菜品已删除"}
