"""
房态服务 - 房间状态机的唯一写入方
所有状态变更都是以"期望当前状态"为条件的单条 UPDATE（乐观并发控制），
并发写入中落败的一方收到 InvalidTransition / RoomNotAvailable，不会静默覆盖
"""
from typing import List, Optional, Callable, Dict
from datetime import datetime
import logging

from sqlalchemy.orm import Session

from guestpass.core.state_machine import StateMachine, StateTransition, state_machine_engine
from guestpass.models.ontology import Room, RoomStatus, Property, ScopeKind, utcnow
from guestpass.models.schemas import RoomCreate
from guestpass.models.events import EventType, RoomStatusChangedData, RoomReleasedWithOpenEntriesData
from guestpass.services.event_bus import event_bus, Event
from guestpass.services.errors import (
    EntryNotFound, InvalidTransition, RoomNotAvailable, RoomOccupied
)
from guestpass.services.ledger_service import count_open_entries
from guestpass.services.token_service import TokenService

logger = logging.getLogger(__name__)


ROOM_STATE_MACHINE = StateMachine(
    entity="Room",
    states=[s.value for s in RoomStatus],
    transitions=[
        StateTransition("available", "reserved", "assign"),
        StateTransition("reserved", "occupied", "check_in"),
        StateTransition("reserved", "available", "release"),
        StateTransition("occupied", "available", "check_out"),
        StateTransition("available", "maintenance", "start_maintenance"),
        StateTransition("maintenance", "available", "finish_maintenance"),
    ],
    initial_state=RoomStatus.AVAILABLE.value,
)
state_machine_engine.register(ROOM_STATE_MACHINE)

# 有住客（occupant_booking_id 非空）的状态
OCCUPIED_STATES = (RoomStatus.RESERVED, RoomStatus.OCCUPIED)


class RoomService:
    """房态服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 查询 ==============

    def get_room(self, room_id: int) -> Optional[Room]:
        """获取单个房间"""
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_rooms(self, property_id: Optional[int] = None, status: Optional[RoomStatus] = None,
                  floor: Optional[int] = None) -> List[Room]:
        """获取房间列表"""
        query = self.db.query(Room)

        if property_id is not None:
            query = query.filter(Room.property_id == property_id)
        if status is not None:
            query = query.filter(Room.status == status)
        if floor is not None:
            query = query.filter(Room.floor == floor)

        return query.order_by(Room.floor, Room.room_number).all()

    def get_status_summary(self, property_id: Optional[int] = None) -> Dict[str, int]:
        """获取房态统计"""
        rooms = self.get_rooms(property_id=property_id)
        summary = {'total': len(rooms)}
        for status in RoomStatus:
            summary[status.value] = 0
        for room in rooms:
            summary[room.status.value] += 1
        return summary

    def create_room(self, property_id: int, data: RoomCreate) -> Room:
        """创建房间（物业初始化时），初始状态为 available"""
        if not self.db.query(Property).filter(Property.id == property_id).first():
            raise EntryNotFound("物业不存在")

        exists = self.db.query(Room).filter(
            Room.property_id == property_id,
            Room.room_number == data.room_number
        ).first()
        if exists:
            raise ValueError(f"房间号 '{data.room_number}' 已存在")

        room = Room(
            property_id=property_id,
            room_number=data.room_number,
            floor=data.floor,
            status=RoomStatus.AVAILABLE,
        )
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        return room

    # ============== 状态转换 ==============

    def assign(self, room_id: int, booking_id: int, changed_by: Optional[int] = None,
               commit: bool = True) -> Room:
        """分配房间：available -> reserved，并记录住客登记"""
        room = self._require_room(room_id)

        updated = self._conditional_update(
            room_id, RoomStatus.AVAILABLE,
            {Room.status: RoomStatus.RESERVED, Room.occupant_booking_id: booking_id}
        )
        if not updated:
            self.db.rollback()
            logger.warning(f"Assign room {room.room_number} to booking {booking_id} lost: room not available")
            raise RoomNotAvailable(f"房间 {room.room_number} 当前不可分配，请选择其他房间")

        return self._finish(room, RoomStatus.AVAILABLE, RoomStatus.RESERVED,
                            booking_id, changed_by, commit)

    def advance(self, room_id: int, expected_status: RoomStatus, new_status: RoomStatus,
                booking_id: Optional[int] = None, changed_by: Optional[int] = None,
                commit: bool = True) -> Room:
        """
        按期望状态推进房态
        业务规则：
        - 仅允许状态机中声明的转换
        - reserved/occupied -> maintenance 拒绝（RoomOccupied），需先退房
        - 进入 reserved 必须提供登记；reserved -> occupied 登记必须一致
        - 回到 available / maintenance 时清空住客登记
        """
        expected_status = RoomStatus(expected_status)
        new_status = RoomStatus(new_status)
        room = self._require_room(room_id)

        if new_status == RoomStatus.MAINTENANCE and expected_status in OCCUPIED_STATES:
            raise RoomOccupied(f"房间 {room.room_number} 有住客，请先办理退房")

        if not ROOM_STATE_MACHINE.is_valid_transition(expected_status, new_status):
            raise InvalidTransition(
                f"房间状态不能从 {expected_status.value} 变为 {new_status.value}"
            )

        values = {Room.status: new_status}
        criteria = []
        if new_status == RoomStatus.RESERVED:
            if booking_id is None:
                raise InvalidTransition("分配房间需要入住登记")
            values[Room.occupant_booking_id] = booking_id
        elif new_status == RoomStatus.OCCUPIED:
            if booking_id is None:
                raise InvalidTransition("办理入住需要入住登记")
            criteria.append(Room.occupant_booking_id == booking_id)
        else:
            values[Room.occupant_booking_id] = None

        occupant_before = room.occupant_booking_id
        if expected_status in OCCUPIED_STATES and new_status == RoomStatus.AVAILABLE:
            self._warn_open_entries(room)

        updated = self._conditional_update(room_id, expected_status, values, criteria)
        if not updated:
            self.db.rollback()
            current = self.get_room(room_id)
            logger.warning(
                f"Room {room.room_number} transition {expected_status.value} -> {new_status.value} "
                f"rejected, current status is {current.status.value}"
            )
            if current.status == expected_status and criteria:
                raise InvalidTransition("入住登记与房间当前住客不一致")
            raise InvalidTransition(f"房间状态已变为 {current.status.value}，请刷新后重试")

        if new_status not in OCCUPIED_STATES:
            self._revoke_occupant_tokens(occupant_before)
        return self._finish(room, expected_status, new_status,
                            booking_id if booking_id is not None else occupant_before,
                            changed_by, commit)

    def release(self, room_id: int, changed_by: Optional[int] = None, commit: bool = True,
                booking_id: Optional[int] = None) -> Room:
        """
        释放房间：reserved/occupied -> available，清空住客登记并撤销该住客的房间凭证
        仍有未完成订单/服务请求时只记录警告，不阻止（员工可强制退房）
        其他状态下为空操作
        指定 booking_id 时只在该登记仍是当前住客时释放，房间已转给其他登记则不动
        """
        room = self._require_room(room_id)
        old_status = room.status
        occupant = room.occupant_booking_id

        if old_status not in OCCUPIED_STATES:
            logger.debug(f"Release room {room.room_number}: already {old_status.value}, nothing to do")
            return room
        if booking_id is not None and occupant != booking_id:
            logger.info(
                f"Release room {room.room_number} for booking {booking_id} skipped, "
                f"current occupant is booking {occupant}"
            )
            return room

        self._warn_open_entries(room)

        criteria = [Room.id == room_id, Room.status.in_(OCCUPIED_STATES)]
        if booking_id is not None:
            criteria.append(Room.occupant_booking_id == booking_id)
        updated = self.db.query(Room).filter(*criteria).update(
            {Room.status: RoomStatus.AVAILABLE, Room.occupant_booking_id: None, Room.updated_at: utcnow()},
            synchronize_session=False
        )
        if not updated:
            # 并发释放已由其他请求完成
            self.db.rollback()
            return self._require_room(room_id)

        self._revoke_occupant_tokens(occupant)
        return self._finish(room, old_status, RoomStatus.AVAILABLE, occupant, changed_by, commit)

    # ============== 内部方法 ==============

    def _require_room(self, room_id: int) -> Room:
        room = self.get_room(room_id)
        if not room:
            raise EntryNotFound("房间不存在")
        return room

    def _conditional_update(self, room_id: int, expected: RoomStatus, values: dict,
                            criteria: Optional[list] = None) -> int:
        """单条条件更新：WHERE id = :room_id AND status = :expected"""
        values = dict(values)
        values[Room.updated_at] = utcnow()
        return self.db.query(Room).filter(
            Room.id == room_id,
            Room.status == expected,
            *(criteria or [])
        ).update(values, synchronize_session=False)

    def _warn_open_entries(self, room: Room) -> None:
        open_orders, open_requests = count_open_entries(self.db, room.id)
        if not (open_orders or open_requests):
            return
        logger.warning(
            f"Releasing room {room.room_number} with {open_orders} open order(s) "
            f"and {open_requests} open service request(s)"
        )
        self._publish_event(Event(
            event_type=EventType.ROOM_RELEASED_WITH_OPEN_ENTRIES,
            timestamp=datetime.now(),
            data=RoomReleasedWithOpenEntriesData(
                room_id=room.id,
                room_number=room.room_number,
                open_orders=open_orders,
                open_requests=open_requests,
            ).to_dict(),
            source="room_service"
        ))

    def _revoke_occupant_tokens(self, booking_id: Optional[int]) -> None:
        """住客被清空后，其房间凭证随同一事务失效"""
        if booking_id is None:
            return
        TokenService(self.db, event_publisher=self._publish_event).revoke_for_session(
            ScopeKind.ROOM, str(booking_id), commit=False
        )

    def _finish(self, room: Room, old_status: RoomStatus, new_status: RoomStatus,
                booking_id: Optional[int], changed_by: Optional[int], commit: bool) -> Room:
        room_number = room.room_number
        room_id = room.id
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        self.db.refresh(room)

        logger.info(f"Room {room_number}: {old_status.value} -> {new_status.value}")
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=RoomStatusChangedData(
                room_id=room_id,
                room_number=room_number,
                old_status=old_status.value,
                new_status=new_status.value,
                booking_id=booking_id,
                changed_by=changed_by,
            ).to_dict(),
            source="room_service"
        ))
        return room
