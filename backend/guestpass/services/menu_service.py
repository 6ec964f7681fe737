"""
菜单服务 - 物业点餐目录的维护与查询
客人侧只看到上架菜品；下单时的单价一律取自这里
"""
from collections import OrderedDict
from typing import Dict, Iterable, List
import logging

from sqlalchemy.orm import Session

from guestpass.models.ontology import MenuItem, Property
from guestpass.models.schemas import MenuItemCreate, MenuItemUpdate
from guestpass.services.errors import EntryNotFound

logger = logging.getLogger(__name__)


class MenuService:
    """菜单服务"""

    def __init__(self, db: Session):
        self.db = db

    # ============== 查询 ==============

    def list_items(self, property_id: int, include_unavailable: bool = True) -> List[MenuItem]:
        """物业的全部菜品，按分类、排序号、名称排列"""
        query = self.db.query(MenuItem).filter(MenuItem.property_id == property_id)
        if not include_unavailable:
            query = query.filter(MenuItem.is_available.is_(True))
        return query.order_by(MenuItem.category, MenuItem.sort_order, MenuItem.name).all()

    def get_item(self, property_id: int, item_id: int) -> MenuItem:
        item = self.db.query(MenuItem).filter(
            MenuItem.id == item_id,
            MenuItem.property_id == property_id
        ).first()
        if not item:
            raise EntryNotFound("菜品不存在")
        return item

    def public_menu(self, property_id: int) -> Dict[str, List[MenuItem]]:
        """客人可见的菜单：仅上架菜品，按分类分组"""
        grouped: Dict[str, List[MenuItem]] = OrderedDict()
        for item in self.list_items(property_id, include_unavailable=False):
            grouped.setdefault(item.category, []).append(item)
        return grouped

    def available_items(self, property_id: int, item_ids: Iterable[int]) -> Dict[int, MenuItem]:
        """按 ID 取本物业的上架菜品；不存在、跨物业或已下架的 ID 不在结果中"""
        ids = set(item_ids)
        if not ids:
            return {}
        items = self.db.query(MenuItem).filter(
            MenuItem.property_id == property_id,
            MenuItem.id.in_(ids),
            MenuItem.is_available.is_(True)
        ).all()
        return {item.id: item for item in items}

    # ============== 维护 ==============

    def create_item(self, property_id: int, data: MenuItemCreate) -> MenuItem:
        if not self.db.query(Property).filter(Property.id == property_id).first():
            raise EntryNotFound("物业不存在")

        item = MenuItem(property_id=property_id, **data.model_dump())
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Menu item {item.id} '{item.name}' created for property {property_id}")
        return item

    def update_item(self, property_id: int, item_id: int, data: MenuItemUpdate) -> MenuItem:
        """部分更新；未提供的字段保持不变"""
        item = self.get_item(property_id, item_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "description":
                continue
            setattr(item, field, value)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Menu item {item.id} updated: {sorted(changes)}")
        return item

    def delete_item(self, property_id: int, item_id: int) -> None:
        """删除菜品；历史订单保存的是下单时的快照，不受影响"""
        item = self.get_item(property_id, item_id)
        self.db.delete(item)
        self.db.commit()
        logger.info(f"Menu item {item_id} deleted from property {property_id}")
