"""
物业服务 - 物业与餐桌的初始化（房间由房态服务创建）
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from guestpass.models.ontology import Property, RestaurantTable
from guestpass.models.schemas import PropertyCreate, TableCreate
from guestpass.services.errors import EntryNotFound

logger = logging.getLogger(__name__)


class PropertyService:
    """物业服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_property(self, property_id: int) -> Optional[Property]:
        return self.db.query(Property).filter(Property.id == property_id).first()

    def get_properties(self) -> List[Property]:
        return self.db.query(Property).order_by(Property.id).all()

    def create_property(self, data: PropertyCreate) -> Property:
        """创建物业"""
        prop = Property(name=data.name)
        self.db.add(prop)
        self.db.commit()
        self.db.refresh(prop)
        logger.info(f"Property {prop.id} '{prop.name}' created")
        return prop

    def get_tables(self, property_id: int) -> List[RestaurantTable]:
        return self.db.query(RestaurantTable).filter(
            RestaurantTable.property_id == property_id
        ).order_by(RestaurantTable.table_number).all()

    def create_table(self, property_id: int, data: TableCreate) -> RestaurantTable:
        """创建餐桌"""
        if not self.get_property(property_id):
            raise EntryNotFound("物业不存在")

        exists = self.db.query(RestaurantTable).filter(
            RestaurantTable.property_id == property_id,
            RestaurantTable.table_number == data.table_number
        ).first()
        if exists:
            raise ValueError(f"桌号 {data.table_number} 已存在")

        table = RestaurantTable(property_id=property_id, table_number=data.table_number)
        self.db.add(table)
        self.db.commit()
        self.db.refresh(table)
        return table
