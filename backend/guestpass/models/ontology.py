"""
本体对象定义 (Ontology Objects)
物业、房间、餐桌、入住登记、访问凭证、订单与服务请求
状态字段全部为封闭枚举，在每个转换边界校验
"""
from datetime import datetime, UTC
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, ForeignKey, Text,
    Enum as SQLEnum, Boolean, Numeric, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from guestpass.database import Base


def utcnow() -> datetime:
    """当前 UTC 时间（naive，与 SQLite 存储保持一致）"""
    return datetime.now(UTC).replace(tzinfo=None)


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举"""
    AVAILABLE = "available"        # 空闲可分配
    RESERVED = "reserved"          # 已分配，待入住
    OCCUPIED = "occupied"          # 入住中
    MAINTENANCE = "maintenance"    # 维修中


class ScopeKind(str, Enum):
    """访问凭证作用范围"""
    ROOM = "room"
    TABLE = "table"


class BookingStatus(str, Enum):
    """入住登记状态"""
    PENDING = "pending"            # 办理中
    VERIFIED = "verified"          # 已核验入住
    COMPLETED = "completed"        # 已退房


class CheckInStep(str, Enum):
    """入住流程进度（按顺序推进）"""
    ROSTER_REVIEWED = "roster_reviewed"
    IDENTITY_VERIFIED = "identity_verified"
    PURPOSE_CAPTURED = "purpose_captured"
    ROOM_ASSIGNED = "room_assigned"
    TOKEN_ISSUED = "token_issued"
    COMPLETED = "completed"


class VisitPurpose(str, Enum):
    """到访目的"""
    BUSINESS = "business"
    LEISURE = "leisure"
    CONFERENCE = "conference"
    WEDDING = "wedding"
    FAMILY = "family"
    OTHER = "other"


class OrderStatus(str, Enum):
    """餐饮订单状态"""
    PENDING = "pending"            # 待接单
    PREPARING = "preparing"        # 制作中
    READY = "ready"                # 待送达
    DELIVERED = "delivered"        # 已送达
    CANCELLED = "cancelled"        # 已取消


class ServiceRequestStatus(str, Enum):
    """服务请求状态"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ServiceCategory(str, Enum):
    """服务请求类别"""
    HOUSEKEEPING = "housekeeping"  # 客房清洁
    MAINTENANCE = "maintenance"    # 维修
    CONCIERGE = "concierge"        # 礼宾
    ESSENTIALS = "essentials"      # 日用品补充
    EMERGENCY = "emergency"        # 紧急
    OTHER = "other"


class EmployeeRole(str, Enum):
    """员工角色"""
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台
    KITCHEN = "kitchen"            # 厨房
    HOUSEKEEPER = "housekeeper"    # 客房服务


# ============== 本体对象定义 ==============

class Property(Base):
    """
    物业对象 - 酒店/餐厅实体
    创建后不可变，拥有房间与餐桌
    """
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # 链接
    rooms = relationship("Room", back_populates="property")
    tables = relationship("RestaurantTable", back_populates="property")
    menu_items = relationship("MenuItem", back_populates="property")


class Room(Base):
    """
    房间对象
    occupant_booking_id 非空 当且仅当 status ∈ {reserved, occupied}
    仅由房态服务通过条件更新修改
    """
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("property_id", "room_number", name="uq_room_number"),)

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    room_number = Column(String(10), nullable=False)           # 房间号
    floor = Column(Integer, nullable=False)                    # 楼层
    status = Column(SQLEnum(RoomStatus), nullable=False, default=RoomStatus.AVAILABLE)
    occupant_booking_id = Column(Integer, nullable=True)       # 弱引用，不建外键
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # 链接
    property = relationship("Property", back_populates="rooms")


class RestaurantTable(Base):
    """餐桌对象 - 堂食扫码点餐的作用范围"""
    __tablename__ = "restaurant_tables"
    __table_args__ = (UniqueConstraint("property_id", "table_number", name="uq_table_number"),)

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    table_number = Column(Integer, nullable=False)             # 桌号
    created_at = Column(DateTime, default=utcnow)

    property = relationship("Property", back_populates="tables")


class MenuItem(Base):
    """
    菜品对象 - 物业的点餐目录
    下单时按菜品 ID 取服务端价格；订单内保存下单时的名称与单价快照
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=False, default="General")  # 菜单分组
    sort_order = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)       # 下架后客人不可见、不可下单
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    property = relationship("Property", back_populates="menu_items")


class Booking(Base):
    """
    入住登记对象 - 一次住宿
    由入住流程创建；凭证签发后信息不可再修改，换房需新建登记
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    guests = Column(JSON, nullable=False, default=list)        # 入住人名单
    purpose = Column(SQLEnum(VisitPurpose), nullable=True)     # 到访目的
    check_out_date = Column(Date, nullable=True)               # 预计离店日期
    identity_verified = Column(Boolean, default=False)         # 证件是否核验
    identity_reference = Column(String(100))                   # 核验方返回的参考号
    checkin_step = Column(SQLEnum(CheckInStep), nullable=False, default=CheckInStep.ROSTER_REVIEWED)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime)
    created_by = Column(Integer, ForeignKey("employees.id"))

    # 链接
    room = relationship("Room", foreign_keys=[room_id])


class TokenIssuance(Base):
    """
    访问凭证签发记录
    以凭证哈希为主键，校验时单行查找；记录只会被撤销，不会被修改
    """
    __tablename__ = "token_issuances"

    token_hash = Column(String(64), primary_key=True)          # sha256(凭证)
    property_id = Column(Integer, nullable=False)
    scope_kind = Column(SQLEnum(ScopeKind), nullable=False)
    scope_id = Column(Integer, nullable=False)
    session_ref = Column(String(64), nullable=False, index=True)
    booking_id = Column(Integer, nullable=True, index=True)    # 房间凭证对应的登记（弱引用）
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    issued_by = Column(Integer, nullable=True)


class Order(Base):
    """
    餐饮订单对象
    status 为最新状态记录的缓存，与状态记录在同一事务内写入
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    scope_kind = Column(SQLEnum(ScopeKind), nullable=False)
    scope_id = Column(Integer, nullable=False)
    items = Column(JSON, nullable=False)                       # 明细: menu_item_id, name, unit_price, quantity
    total_amount = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, default="")
    customer_name = Column(String(100), default="Guest")
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    created_at = Column(DateTime, default=utcnow, index=True)

    history = relationship(
        "OrderStatusEntry", back_populates="order",
        order_by="OrderStatusEntry.id"
    )


class OrderStatusEntry(Base):
    """订单状态记录（只追加）"""
    __tablename__ = "order_status_entries"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(SQLEnum(OrderStatus), nullable=False)
    changed_at = Column(DateTime, default=utcnow)
    changed_by = Column(Integer, nullable=True)                # 员工 ID，客人创建时为空

    order = relationship("Order", back_populates="history")


class ServiceRequest(Base):
    """客房服务请求对象（清洁/维修/礼宾等）"""
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    category = Column(SQLEnum(ServiceCategory), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(SQLEnum(ServiceRequestStatus), nullable=False, default=ServiceRequestStatus.PENDING)
    created_at = Column(DateTime, default=utcnow, index=True)

    history = relationship(
        "ServiceRequestStatusEntry", back_populates="request",
        order_by="ServiceRequestStatusEntry.id"
    )


class ServiceRequestStatusEntry(Base):
    """服务请求状态记录（只追加）"""
    __tablename__ = "service_request_status_entries"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=False, index=True)
    status = Column(SQLEnum(ServiceRequestStatus), nullable=False)
    changed_at = Column(DateTime, default=utcnow)
    changed_by = Column(Integer, nullable=True)

    request = relationship("ServiceRequest", back_populates="history")


class Employee(Base):
    """
    员工对象 - 仅用于员工侧接口的身份识别
    """
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    password_hash = Column(String(255), nullable=False)        # 密码哈希
    name = Column(String(100), nullable=False)                 # 姓名
    role = Column(SQLEnum(EmployeeRole), nullable=False)
    is_active = Column(Boolean, default=True)                  # 是否启用
    created_at = Column(DateTime, default=utcnow)
