"""
访问凭证服务 - 客人二维码背后的能力凭证
凭证只绑定 {物业, 房间或餐桌, 登记/会话}，不绑定任何客人身份：持有即授权
凭证原文只返回给调用方一次，数据库仅保存其 sha256
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
import hashlib
import logging
import re
import secrets

from sqlalchemy.orm import Session

from guestpass.config import settings
from guestpass.models.ontology import (
    TokenIssuance, ScopeKind, Room, RestaurantTable, Booking, BookingStatus, utcnow
)
from guestpass.models.events import EventType, TokenIssuedData, TokenRevokedData
from guestpass.services.event_bus import event_bus, Event
from guestpass.services.errors import InvalidScope, TokenMalformed, TokenRevoked, TokenExpired

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
# secrets.token_urlsafe(32) 生成 43 个 base64url 字符
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{43}$")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def fingerprint(token: str) -> str:
    """日志与事件中使用的凭证指纹"""
    return hash_token(token)[:12]


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenScope:
    """凭证校验通过后的作用范围描述"""
    property_id: int
    scope_kind: ScopeKind
    scope_id: int
    session_ref: str
    expires_at: datetime


class TokenService:
    """访问凭证服务"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = None,
                 event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._now = clock or utcnow
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 签发 ==============

    def issue(self, property_id: int, scope_kind: ScopeKind, scope_id: int,
              session_ref: str, ttl: timedelta, issued_by: Optional[int] = None,
              commit: bool = True) -> IssuedToken:
        """
        签发凭证
        - 房间/餐桌必须属于该物业，否则 InvalidScope
        - 房间凭证的 session_ref 必须是该物业下的登记 ID
        """
        if ttl <= timedelta(0):
            raise ValueError("凭证有效期必须大于 0")
        scope_kind = ScopeKind(scope_kind)

        booking_id = self._resolve_scope(property_id, scope_kind, scope_id, session_ref)

        token = secrets.token_urlsafe(TOKEN_BYTES)
        issued_at = self._now()
        record = TokenIssuance(
            token_hash=hash_token(token),
            property_id=property_id,
            scope_kind=scope_kind,
            scope_id=scope_id,
            session_ref=str(session_ref),
            booking_id=booking_id,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
            issued_by=issued_by,
        )
        self.db.add(record)
        if commit:
            self.db.commit()
        else:
            self.db.flush()

        logger.info(
            f"Token {fingerprint(token)} issued for {scope_kind.value}:{scope_id} "
            f"(property {property_id}, session {session_ref}) until {record.expires_at.isoformat()}"
        )
        self._publish_event(Event(
            event_type=EventType.TOKEN_ISSUED,
            timestamp=datetime.now(),
            data=TokenIssuedData(
                token_fingerprint=fingerprint(token),
                property_id=property_id,
                scope_kind=scope_kind.value,
                scope_id=scope_id,
                session_ref=str(session_ref),
                expires_at=record.expires_at.isoformat(),
            ).to_dict(),
            source="token_service"
        ))
        return IssuedToken(token=token, expires_at=record.expires_at)

    def start_table_session(self, property_id: int, table_id: int,
                            issued_by: Optional[int] = None) -> tuple:
        """开始堂食会话：为餐桌签发新会话凭证，返回 (IssuedToken, session_ref)"""
        session_ref = f"table-{secrets.token_hex(8)}"
        issued = self.issue(
            property_id, ScopeKind.TABLE, table_id, session_ref,
            timedelta(hours=settings.TABLE_SESSION_TTL_HOURS), issued_by=issued_by
        )
        return issued, session_ref

    def _resolve_scope(self, property_id: int, scope_kind: ScopeKind,
                       scope_id: int, session_ref: str) -> Optional[int]:
        if scope_kind == ScopeKind.TABLE:
            table = self.db.query(RestaurantTable).filter(
                RestaurantTable.id == scope_id,
                RestaurantTable.property_id == property_id
            ).first()
            if not table:
                raise InvalidScope("餐桌不存在")
            return None

        room = self.db.query(Room).filter(
            Room.id == scope_id,
            Room.property_id == property_id
        ).first()
        if not room:
            raise InvalidScope("房间不存在")

        try:
            booking_id = int(session_ref)
        except (TypeError, ValueError):
            raise InvalidScope("房间凭证必须关联入住登记")
        booking = self.db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.property_id == property_id
        ).first()
        if not booking:
            raise InvalidScope("入住登记不存在")
        return booking.id

    # ============== 校验 ==============

    def validate(self, token: str) -> TokenScope:
        """
        校验凭证（只读，每次加载客人页面都会调用）
        时间判断在调用时实时计算：now >= expires_at 即过期
        """
        if not isinstance(token, str) or not _TOKEN_PATTERN.match(token):
            raise TokenMalformed()

        record = self.db.query(TokenIssuance).filter(
            TokenIssuance.token_hash == hash_token(token)
        ).first()
        if record is None:
            raise TokenMalformed()
        if record.revoked_at is not None:
            raise TokenRevoked()
        if self._now() >= record.expires_at:
            raise TokenExpired()

        if record.scope_kind == ScopeKind.ROOM:
            booking = self.db.query(Booking).filter(Booking.id == record.booking_id).first()
            if booking is None or booking.status == BookingStatus.COMPLETED:
                raise TokenRevoked("入住登记已结束")

        return TokenScope(
            property_id=record.property_id,
            scope_kind=record.scope_kind,
            scope_id=record.scope_id,
            session_ref=record.session_ref,
            expires_at=record.expires_at,
        )

    # ============== 撤销 ==============

    def revoke(self, token: str) -> None:
        """撤销凭证（幂等，未知凭证同样视为成功）"""
        if not isinstance(token, str) or not _TOKEN_PATTERN.match(token):
            return
        updated = self.db.query(TokenIssuance).filter(
            TokenIssuance.token_hash == hash_token(token),
            TokenIssuance.revoked_at.is_(None)
        ).update({TokenIssuance.revoked_at: self._now()}, synchronize_session=False)
        self.db.commit()

        if updated:
            logger.info(f"Token {fingerprint(token)} revoked")
            self._publish_event(Event(
                event_type=EventType.TOKEN_REVOKED,
                timestamp=datetime.now(),
                data=TokenRevokedData(token_fingerprint=fingerprint(token)).to_dict(),
                source="token_service"
            ))

    def revoke_for_session(self, scope_kind: ScopeKind, session_ref: str,
                           commit: bool = True) -> int:
        """撤销某次住宿/堂食会话下的全部有效凭证，返回撤销数量"""
        updated = self.db.query(TokenIssuance).filter(
            TokenIssuance.scope_kind == ScopeKind(scope_kind),
            TokenIssuance.session_ref == str(session_ref),
            TokenIssuance.revoked_at.is_(None)
        ).update({TokenIssuance.revoked_at: self._now()}, synchronize_session=False)
        if commit:
            self.db.commit()

        if updated:
            logger.info(f"Revoked {updated} token(s) for {ScopeKind(scope_kind).value} session {session_ref}")
            self._publish_event(Event(
                event_type=EventType.TOKEN_REVOKED,
                timestamp=datetime.now(),
                data=TokenRevokedData(
                    scope_kind=ScopeKind(scope_kind).value,
                    session_ref=str(session_ref)
                ).to_dict(),
                source="token_service"
            ))
        return updated
