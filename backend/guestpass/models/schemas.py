"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Dict, Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator
from guestpass.models.ontology import (
    RoomStatus, ScopeKind, BookingStatus, CheckInStep, VisitPurpose,
    OrderStatus, ServiceRequestStatus, ServiceCategory, EmployeeRole
)


# ============== 认证 Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class EmployeeResponse(BaseModel):
    id: int
    username: str
    name: str
    role: EmployeeRole
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee: EmployeeResponse


# ============== 物业 Schemas ==============

class PropertyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class PropertyResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=10)
    floor: int


class RoomResponse(BaseModel):
    id: int
    property_id: int
    room_number: str
    floor: int
    status: RoomStatus
    occupant_booking_id: Optional[int] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class TableCreate(BaseModel):
    table_number: int = Field(..., ge=1)


class TableResponse(BaseModel):
    id: int
    property_id: int
    table_number: int
    model_config = ConfigDict(from_attributes=True)


# ============== 房态 Schemas ==============

class RoomAssign(BaseModel):
    booking_id: int


class RoomAdvance(BaseModel):
    expected_status: RoomStatus
    new_status: RoomStatus
    booking_id: Optional[int] = None


# ============== 访问凭证 Schemas ==============

class TokenIssueRequest(BaseModel):
    property_id: int
    scope_kind: ScopeKind
    scope_id: int
    session_ref: str = Field(..., min_length=1, max_length=64)
    ttl_seconds: int = Field(..., gt=0)


class TokenIssueResponse(BaseModel):
    token: str
    expires_at: datetime


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)


class TokenScopeResponse(BaseModel):
    property_id: int
    scope_kind: ScopeKind
    scope_id: int
    session_ref: str
    expires_at: datetime


class TableSessionResponse(TokenIssueResponse):
    session_ref: str
    table_id: int


# ============== 入住流程 Schemas ==============

class GuestRosterItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    id_type: Optional[str] = Field(None, max_length=20)
    id_number: Optional[str] = Field(None, max_length=50)
    is_primary: bool = False


class CheckInStart(BaseModel):
    property_id: int
    guests: List[GuestRosterItem] = Field(..., min_length=1)


class IdentityVerification(BaseModel):
    document_type: str = Field(..., min_length=1, max_length=20)
    document_number: str = Field(..., min_length=1, max_length=50)


class PurposeCapture(BaseModel):
    purpose: VisitPurpose
    check_out_date: date


class RoomAssignment(BaseModel):
    room_id: int


class CheckInTokenOptions(BaseModel):
    ttl_seconds: Optional[int] = Field(None, gt=0)


class BookingResponse(BaseModel):
    id: int
    property_id: int
    room_id: Optional[int] = None
    guests: List[GuestRosterItem]
    purpose: Optional[VisitPurpose] = None
    check_out_date: Optional[date] = None
    identity_verified: bool
    checkin_step: CheckInStep
    status: BookingStatus
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CheckInTokenResponse(TokenIssueResponse):
    booking_id: int
    room_id: int


# ============== 菜单 Schemas ==============

class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    category: str = Field("General", min_length=1, max_length=50)
    sort_order: int = 0
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    """部分更新，未提供的字段保持不变"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    sort_order: Optional[int] = None
    is_available: Optional[bool] = None


class MenuItemResponse(BaseModel):
    id: int
    property_id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    sort_order: int
    is_available: bool
    model_config = ConfigDict(from_attributes=True)


class GuestMenuResponse(BaseModel):
    """客人扫码看到的菜单，按分组排列"""
    property_name: str
    scope_kind: ScopeKind
    scope_label: str
    menu: Dict[str, List[MenuItemResponse]]


# ============== 订单 Schemas ==============

class OrderLineItem(BaseModel):
    """
    订单明细
    下单时只认 menu_item_id 与数量；名称和单价由服务端按菜单填入，客户端传入的值不生效
    """
    menu_item_id: int
    name: str = Field("", max_length=100)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(..., ge=1)
    special_notes: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """
    客人下单请求
    作用范围只取自访问凭证；请求体里的 room/table 字段一律忽略
    """
    items: List[OrderLineItem] = Field(..., min_length=1)
    total_amount: Decimal
    special_instructions: str = Field("", max_length=500)
    customer_name: str = Field("Guest", max_length=100)
    model_config = ConfigDict(extra="ignore")


class OrderAdvance(BaseModel):
    status: OrderStatus


class StatusEntryResponse(BaseModel):
    status: str
    changed_at: datetime
    changed_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v):
        return getattr(v, "value", v)


class OrderResponse(BaseModel):
    id: int
    property_id: int
    scope_kind: ScopeKind
    scope_id: int
    items: List[OrderLineItem]
    total_amount: Decimal
    special_instructions: Optional[str] = ""
    customer_name: Optional[str] = "Guest"
    status: OrderStatus
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrderDetailResponse(OrderResponse):
    history: List[StatusEntryResponse] = []


class OrderStats(BaseModel):
    total_orders: int
    pending_orders: int
    preparing_orders: int
    ready_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue: Decimal
    avg_order_value: Decimal


# ============== 服务请求 Schemas ==============

class ServiceRequestCreate(BaseModel):
    category: ServiceCategory
    description: str = Field(..., max_length=1000)
    model_config = ConfigDict(extra="ignore")

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("服务内容不能为空")
        return v.strip()


class ServiceRequestAdvance(BaseModel):
    status: ServiceRequestStatus


class ServiceRequestResponse(BaseModel):
    id: int
    property_id: int
    room_id: int
    category: ServiceCategory
    description: str
    status: ServiceRequestStatus
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ServiceRequestDetailResponse(ServiceRequestResponse):
    history: List[StatusEntryResponse] = []


# ============== 客人视图 Schemas ==============

class LedgerEntrySummary(BaseModel):
    """客人"我的订单/请求"列表项"""
    kind: Literal["order", "service_request"]
    id: int
    status: str
    created_at: datetime
    summary: str
    total_amount: Optional[Decimal] = None
    category: Optional[ServiceCategory] = None


class CreatedEntryResponse(BaseModel):
    id: int
    status: str
