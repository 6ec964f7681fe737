"""
入住服务 - 本体操作层
管理 Booking 对象（一次住宿）的入住向导：
名单确认 -> 证件核验 -> 到访目的/离店日期 -> 分配房间 -> 签发房间凭证 -> 完成
步骤必须按顺序执行；签发凭证失败时先释放房间再抛出错误，不留下无凭证的预留房
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Protocol
import logging

from sqlalchemy.orm import Session

from guestpass.config import settings
from guestpass.models.ontology import (
    Booking, BookingStatus, CheckInStep, Property, Room, RoomStatus, ScopeKind, utcnow
)
from guestpass.models.schemas import GuestRosterItem, IdentityVerification, PurposeCapture
from guestpass.models.events import EventType, GuestCheckedInData, GuestCheckedOutData
from guestpass.services.event_bus import event_bus, Event
from guestpass.services.errors import CheckInStepError, EntryNotFound, InvalidScope, RoomNotAvailable
from guestpass.services.room_service import RoomService
from guestpass.services.token_service import TokenService, IssuedToken

logger = logging.getLogger(__name__)


# ============== 证件核验 ==============

@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    reference: str = ""
    reason: str = ""


class IdentityVerifier(Protocol):
    """证件核验协作方（公安接口、OCR 等），本服务只记录结果"""

    def verify(self, booking: Booking, document: IdentityVerification) -> VerificationResult:
        ...


class FrontDeskVerifier:
    """前台人工核验：员工当面查看证件后确认，只检查证件号与名单一致"""

    def verify(self, booking: Booking, document: IdentityVerification) -> VerificationResult:
        numbers = {g.get("id_number") for g in booking.guests or [] if g.get("id_number")}
        if numbers and document.document_number not in numbers:
            return VerificationResult(False, reason="证件号与入住名单不一致")
        return VerificationResult(True, reference=f"{document.document_type}-{document.document_number[-4:]}")


class CheckInService:
    """入住服务"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = None,
                 identity_verifier: IdentityVerifier = None,
                 token_service: TokenService = None,
                 event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._now = clock or utcnow
        self.identity_verifier = identity_verifier or FrontDeskVerifier()
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.room_service = RoomService(db, event_publisher=self._publish_event)
        self.token_service = token_service or TokenService(
            db, clock=self._now, event_publisher=self._publish_event
        )

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """获取入住登记"""
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    # ============== 步骤 1：名单确认 ==============

    def start(self, property_id: int, guests: List[GuestRosterItem],
              created_by: Optional[int] = None) -> Booking:
        """确认入住名单，创建入住登记（pending）"""
        if not self.db.query(Property).filter(Property.id == property_id).first():
            raise EntryNotFound("物业不存在")
        if not guests:
            raise CheckInStepError("入住名单不能为空")

        roster = []
        for guest in guests:
            if not guest.name or not guest.name.strip():
                raise CheckInStepError("入住人姓名不能为空")
            roster.append(guest.model_dump())
        if not any(g["is_primary"] for g in roster):
            roster[0]["is_primary"] = True

        booking = Booking(
            property_id=property_id,
            guests=roster,
            checkin_step=CheckInStep.ROSTER_REVIEWED,
            status=BookingStatus.PENDING,
            created_by=created_by,
        )
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"Booking {booking.id} started with {len(roster)} guest(s)")
        return booking

    # ============== 步骤 2：证件核验 ==============

    def verify_identity(self, booking_id: int, document: IdentityVerification) -> Booking:
        """证件核验，委托给注入的核验方"""
        booking = self._require_step(booking_id, CheckInStep.ROSTER_REVIEWED)

        result = self.identity_verifier.verify(booking, document)
        if not result.verified:
            logger.warning(f"Identity verification failed for booking {booking_id}: {result.reason}")
            raise CheckInStepError(result.reason or "证件核验未通过")

        booking.identity_verified = True
        booking.identity_reference = result.reference
        booking.checkin_step = CheckInStep.IDENTITY_VERIFIED
        self.db.commit()
        self.db.refresh(booking)
        return booking

    # ============== 步骤 3：到访目的 ==============

    def capture_purpose(self, booking_id: int, data: PurposeCapture) -> Booking:
        """记录到访目的和离店日期，分配房间前可重复提交"""
        booking = self._require_step(
            booking_id, CheckInStep.IDENTITY_VERIFIED, CheckInStep.PURPOSE_CAPTURED
        )
        if data.check_out_date <= self._now().date():
            raise CheckInStepError("离店日期必须晚于今天")

        booking.purpose = data.purpose
        booking.check_out_date = data.check_out_date
        booking.checkin_step = CheckInStep.PURPOSE_CAPTURED
        self.db.commit()
        self.db.refresh(booking)
        return booking

    # ============== 步骤 4：分配房间 ==============

    def assign_room(self, booking_id: int, room_id: int, changed_by: Optional[int] = None) -> Booking:
        """
        分配房间
        RoomNotAvailable 原样抛出，登记停留在当前步骤，前台可改选其他房间
        """
        booking = self._require_step(booking_id, CheckInStep.PURPOSE_CAPTURED)
        room = self.db.query(Room).filter(
            Room.id == room_id, Room.property_id == booking.property_id
        ).first()
        if not room:
            raise InvalidScope("房间不属于该物业")

        self.room_service.assign(room_id, booking.id, changed_by=changed_by, commit=False)
        booking.room_id = room_id
        booking.checkin_step = CheckInStep.ROOM_ASSIGNED
        self.db.commit()
        self.db.refresh(booking)
        return booking

    # ============== 步骤 5：签发凭证 ==============

    def issue_token(self, booking_id: int, ttl: Optional[timedelta] = None,
                    issued_by: Optional[int] = None) -> IssuedToken:
        """
        签发房间凭证，有效期不超过离店日的退房时刻
        任何失败都先释放房间、回退到分配房间前，再抛出原错误
        """
        booking = self._require_step(booking_id, CheckInStep.ROOM_ASSIGNED)
        room_id = booking.room_id

        try:
            self._require_room_held(booking)
            ttl = self._bounded_ttl(booking, ttl)
            issued = self.token_service.issue(
                booking.property_id, ScopeKind.ROOM, room_id, str(booking.id), ttl,
                issued_by=issued_by, commit=False
            )
            booking.checkin_step = CheckInStep.TOKEN_ISSUED
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning(f"Token issuance failed for booking {booking_id}, releasing room {room_id}")
            self.room_service.release(room_id, changed_by=issued_by, commit=False, booking_id=booking_id)
            booking = self.get_booking(booking_id)
            booking.room_id = None
            booking.checkin_step = CheckInStep.PURPOSE_CAPTURED
            self.db.commit()
            raise

        return issued

    def _require_room_held(self, booking: Booking) -> None:
        """分配后房间可能已被员工释放并转给其他登记"""
        room = self.db.query(Room).filter(Room.id == booking.room_id).populate_existing().first()
        if room is None or room.status != RoomStatus.RESERVED or room.occupant_booking_id != booking.id:
            raise RoomNotAvailable(f"房间已不再为登记 {booking.id} 保留，请重新分配房间")

    def _bounded_ttl(self, booking: Booking, ttl: Optional[timedelta]) -> timedelta:
        deadline = datetime.combine(booking.check_out_date, time(hour=settings.CHECKOUT_HOUR))
        remaining = deadline - self._now()
        if remaining <= timedelta(0):
            raise CheckInStepError("已过离店时间，无法签发凭证")
        if ttl is None:
            ttl = timedelta(hours=settings.GUEST_TOKEN_DEFAULT_TTL_HOURS)
        return min(ttl, remaining)

    # ============== 步骤 6：完成 ==============

    def complete(self, booking_id: int, changed_by: Optional[int] = None) -> Booking:
        """完成入住：登记标记为 verified，房间 reserved -> occupied"""
        booking = self._require_step(booking_id, CheckInStep.TOKEN_ISSUED)

        room = self.room_service.advance(
            booking.room_id, RoomStatus.RESERVED, RoomStatus.OCCUPIED,
            booking_id=booking.id, changed_by=changed_by, commit=False
        )
        booking.status = BookingStatus.VERIFIED
        booking.checkin_step = CheckInStep.COMPLETED
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.id} checked in to room {room.room_number}")
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_IN,
            timestamp=datetime.now(),
            data=GuestCheckedInData(
                booking_id=booking.id,
                property_id=booking.property_id,
                room_id=room.id,
                room_number=room.room_number,
                guest_count=len(booking.guests or []),
                check_out_date=booking.check_out_date.isoformat(),
            ).to_dict(),
            source="checkin_service"
        ))
        return booking

    # ============== 退房 ==============

    def check_out(self, booking_id: int, changed_by: Optional[int] = None) -> Booking:
        """
        退房（或取消未完成的入住）
        撤销该登记下全部凭证、释放房间、登记标记为 completed
        """
        booking = self.get_booking(booking_id)
        if not booking:
            raise EntryNotFound("入住登记不存在")
        if booking.status == BookingStatus.COMPLETED:
            raise CheckInStepError("该登记已退房")
        if booking.room_id is None:
            raise CheckInStepError("该登记尚未分配房间")

        room_id = booking.room_id
        revoked = self.token_service.revoke_for_session(ScopeKind.ROOM, str(booking.id), commit=False)
        self.room_service.release(room_id, changed_by=changed_by, commit=False, booking_id=booking.id)
        booking.status = BookingStatus.COMPLETED
        booking.completed_at = self._now()
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.id} checked out, {revoked} token(s) revoked")
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_OUT,
            timestamp=datetime.now(),
            data=GuestCheckedOutData(
                booking_id=booking.id,
                room_id=room_id,
                revoked_tokens=revoked,
            ).to_dict(),
            source="checkin_service"
        ))
        return booking

    # ============== 内部方法 ==============

    def _require_step(self, booking_id: int, *allowed: CheckInStep) -> Booking:
        booking = self.get_booking(booking_id)
        if not booking:
            raise EntryNotFound("入住登记不存在")
        if booking.checkin_step not in allowed:
            raise CheckInStepError(
                f"入住步骤顺序错误：当前为 {booking.checkin_step.value}，"
                f"需要 {'/'.join(s.value for s in allowed)}"
            )
        return booking
