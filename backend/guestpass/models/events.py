"""
领域事件定义 (Domain Events)
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 房态
    ROOM_STATUS_CHANGED = "room.status_changed"
    ROOM_RELEASED_WITH_OPEN_ENTRIES = "room.released_with_open_entries"

    # 访问凭证
    TOKEN_ISSUED = "token.issued"
    TOKEN_REVOKED = "token.revoked"

    # 入住
    GUEST_CHECKED_IN = "guest.checked_in"
    GUEST_CHECKED_OUT = "guest.checked_out"

    # 订单与服务请求
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    SERVICE_REQUEST_CREATED = "service_request.created"
    SERVICE_REQUEST_STATUS_CHANGED = "service_request.status_changed"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class RoomStatusChangedData(BaseEventData):
    """房间状态变更事件数据"""
    room_id: int = 0
    room_number: str = ""
    old_status: str = ""
    new_status: str = ""
    booking_id: Optional[int] = None
    changed_by: Optional[int] = None


@dataclass
class RoomReleasedWithOpenEntriesData(BaseEventData):
    """退房时仍有未完成订单/请求"""
    room_id: int = 0
    room_number: str = ""
    open_orders: int = 0
    open_requests: int = 0


@dataclass
class TokenIssuedData(BaseEventData):
    """凭证签发事件数据（不含凭证原文）"""
    token_fingerprint: str = ""
    property_id: int = 0
    scope_kind: str = ""
    scope_id: int = 0
    session_ref: str = ""
    expires_at: str = ""


@dataclass
class TokenRevokedData(BaseEventData):
    token_fingerprint: str = ""
    scope_kind: str = ""
    session_ref: str = ""


@dataclass
class GuestCheckedInData(BaseEventData):
    """客人入住事件数据"""
    booking_id: int = 0
    property_id: int = 0
    room_id: int = 0
    room_number: str = ""
    guest_count: int = 0
    check_out_date: str = ""


@dataclass
class GuestCheckedOutData(BaseEventData):
    booking_id: int = 0
    room_id: Optional[int] = None
    revoked_tokens: int = 0


@dataclass
class LedgerEntryCreatedData(BaseEventData):
    """订单/服务请求创建事件数据"""
    entry_id: int = 0
    property_id: int = 0
    scope_kind: str = ""
    scope_id: int = 0
    summary: str = ""


@dataclass
class LedgerStatusChangedData(BaseEventData):
    entry_id: int = 0
    old_status: str = ""
    new_status: str = ""
    changed_by: Optional[int] = None
