"""
订单/服务请求台账 - 本体操作层
两套结构相同的状态机：
- 服务请求: pending -> in-progress -> completed（线性，不可跳过，不可回退）
- 餐饮订单: pending -> preparing -> ready -> delivered，未终结时可取消
状态记录只追加不删除；实体上的 status 字段是最新记录的缓存，
推进时以"当前缓存状态"为条件更新，与新记录在同一事务内提交
"""
from dataclasses import dataclass
from datetime import datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from guestpass.config import settings
from guestpass.core.state_machine import (
    StateMachine, StateTransition, linear_transitions, state_machine_engine
)
from guestpass.models.ontology import (
    Order, OrderStatus, OrderStatusEntry, ServiceRequest, ServiceRequestStatus,
    ServiceRequestStatusEntry, ScopeKind, Room, RestaurantTable, utcnow
)
from guestpass.models.schemas import OrderCreate, ServiceRequestCreate
from guestpass.models.events import EventType, LedgerEntryCreatedData, LedgerStatusChangedData
from guestpass.services.event_bus import event_bus, Event
from guestpass.services.errors import LedgerValidationError, InvalidTransition, EntryNotFound
from guestpass.services.menu_service import MenuService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


ORDER_STATE_MACHINE = StateMachine(
    entity="Order",
    states=[s.value for s in OrderStatus],
    transitions=linear_transitions(
        [OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED]
    ) + [
        StateTransition(s.value, OrderStatus.CANCELLED.value, "cancel")
        for s in (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)
    ],
    initial_state=OrderStatus.PENDING.value,
    final_states={OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value},
)

SERVICE_REQUEST_STATE_MACHINE = StateMachine(
    entity="ServiceRequest",
    states=[s.value for s in ServiceRequestStatus],
    transitions=linear_transitions(list(ServiceRequestStatus)),
    initial_state=ServiceRequestStatus.PENDING.value,
    final_states={ServiceRequestStatus.COMPLETED.value},
)

state_machine_engine.register(ORDER_STATE_MACHINE)
state_machine_engine.register(SERVICE_REQUEST_STATE_MACHINE)

OPEN_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)


@dataclass(frozen=True)
class LedgerScope:
    """订单/请求归属范围（房间或餐桌）"""
    property_id: int
    scope_kind: ScopeKind
    scope_id: int


def count_open_entries(db: Session, room_id: int) -> Tuple[int, int]:
    """统计房间下未完成的订单与服务请求数量"""
    open_orders = db.query(func.count(Order.id)).filter(
        Order.scope_kind == ScopeKind.ROOM,
        Order.scope_id == room_id,
        Order.status.in_(OPEN_ORDER_STATUSES)
    ).scalar()
    open_requests = db.query(func.count(ServiceRequest.id)).filter(
        ServiceRequest.room_id == room_id,
        ServiceRequest.status != ServiceRequestStatus.COMPLETED
    ).scalar()
    return open_orders or 0, open_requests or 0


class _StatusLedger:
    """状态推进的公共实现（订单与服务请求共用）"""

    model = None
    entry_model = None
    entry_fk = ""
    status_enum = None
    machine: StateMachine = None
    status_changed_event: EventType = None
    label = ""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def get(self, entry_id: int):
        return self.db.query(self.model).filter(self.model.id == entry_id).first()

    def advance(self, entry_id: int, to_status, changed_by: Optional[int] = None):
        """推进状态：追加一条状态记录，从不删除历史"""
        try:
            to_status = self.status_enum(to_status)
        except ValueError:
            raise InvalidTransition(f"未知的{self.label}状态: {to_status}")

        entry = self.get(entry_id)
        if not entry:
            raise EntryNotFound(f"{self.label}不存在")

        current = entry.status
        if not self.machine.is_valid_transition(current, to_status):
            raise InvalidTransition(
                f"{self.label}状态不能从 {current.value} 变为 {to_status.value}"
            )

        updated = self.db.query(self.model).filter(
            self.model.id == entry_id,
            self.model.status == current
        ).update({self.model.status: to_status}, synchronize_session=False)
        if not updated:
            self.db.rollback()
            logger.warning(f"{self.model.__name__} {entry_id} advance to {to_status.value} lost a concurrent update")
            raise InvalidTransition(f"{self.label}状态已被更新，请刷新后重试")

        self.db.add(self.entry_model(**{
            self.entry_fk: entry_id,
            "status": to_status,
            "changed_at": utcnow(),
            "changed_by": changed_by,
        }))
        self.db.commit()
        self.db.refresh(entry)

        logger.info(f"{self.model.__name__} {entry_id}: {current.value} -> {to_status.value}")
        self._publish_event(Event(
            event_type=self.status_changed_event,
            timestamp=datetime.now(),
            data=LedgerStatusChangedData(
                entry_id=entry_id,
                old_status=current.value,
                new_status=to_status.value,
                changed_by=changed_by,
            ).to_dict(),
            source="ledger_service"
        ))
        return entry

    def _record_created(self, entry, scope: LedgerScope, summary: str, event_type: EventType) -> None:
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=LedgerEntryCreatedData(
                entry_id=entry.id,
                property_id=scope.property_id,
                scope_kind=scope.scope_kind.value,
                scope_id=scope.scope_id,
                summary=summary,
            ).to_dict(),
            source="ledger_service"
        ))

    def _require_scope(self, scope: LedgerScope) -> None:
        if scope.scope_kind == ScopeKind.ROOM:
            exists = self.db.query(Room.id).filter(
                Room.id == scope.scope_id, Room.property_id == scope.property_id
            ).first()
        else:
            exists = self.db.query(RestaurantTable.id).filter(
                RestaurantTable.id == scope.scope_id,
                RestaurantTable.property_id == scope.property_id
            ).first()
        if not exists:
            raise LedgerValidationError("下单对象不存在")


class OrderService(_StatusLedger):
    """餐饮订单台账"""

    model = Order
    entry_model = OrderStatusEntry
    entry_fk = "order_id"
    status_enum = OrderStatus
    machine = ORDER_STATE_MACHINE
    status_changed_event = EventType.ORDER_STATUS_CHANGED
    label = "订单"

    def create(self, scope: LedgerScope, data: OrderCreate) -> Order:
        """
        创建订单
        名称与单价按菜品 ID 取自本物业的上架菜单，客户端提交的名称/单价不参与计算；
        |声明金额 - Σ(单价×数量)| > 0.01 即拒绝，不落任何记录
        订单与首条状态记录同一事务提交，列表中不会出现半成品订单
        """
        self._require_scope(scope)
        if not data.items:
            raise LedgerValidationError("订单明细不能为空")

        menu = MenuService(self.db).available_items(
            scope.property_id, (item.menu_item_id for item in data.items)
        )

        computed = Decimal("0")
        items = []
        for item in data.items:
            if item.quantity < 1:
                raise LedgerValidationError("明细数量不合法")
            menu_item = menu.get(item.menu_item_id)
            if menu_item is None:
                raise LedgerValidationError(f"菜品 {item.menu_item_id} 不存在或已下架")
            unit_price = Decimal(menu_item.price)
            computed += unit_price * item.quantity
            items.append({
                "menu_item_id": menu_item.id,
                "name": menu_item.name,
                "unit_price": str(unit_price.quantize(CENT, ROUND_HALF_UP)),
                "quantity": item.quantity,
                "special_notes": item.special_notes,
            })

        epsilon = Decimal(str(settings.ORDER_TOTAL_EPSILON))
        if abs(Decimal(data.total_amount) - computed) > epsilon:
            raise LedgerValidationError(
                f"订单金额不一致：声明 {data.total_amount}，明细合计 {computed.quantize(CENT, ROUND_HALF_UP)}"
            )

        created_at = utcnow()
        order = Order(
            property_id=scope.property_id,
            scope_kind=scope.scope_kind,
            scope_id=scope.scope_id,
            items=items,
            total_amount=computed.quantize(CENT, ROUND_HALF_UP),
            special_instructions=data.special_instructions or "",
            customer_name=data.customer_name or "Guest",
            status=OrderStatus.PENDING,
            created_at=created_at,
        )
        order.history.append(OrderStatusEntry(status=OrderStatus.PENDING, changed_at=created_at))
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)

        logger.info(
            f"Order {order.id} created for {scope.scope_kind.value}:{scope.scope_id}, total {order.total_amount}"
        )
        self._record_created(order, scope, f"{len(items)} item(s), total {order.total_amount}",
                             EventType.ORDER_CREATED)
        return order

    def list(self, scope: LedgerScope, status: Optional[OrderStatus] = None) -> List[Order]:
        """某房间/餐桌的订单，最新的在前"""
        query = self.db.query(Order).filter(
            Order.property_id == scope.property_id,
            Order.scope_kind == scope.scope_kind,
            Order.scope_id == scope.scope_id
        )
        if status is not None:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def list_for_property(self, property_id: int, status: Optional[OrderStatus] = None) -> List[Order]:
        """员工视图：物业下全部订单"""
        query = self.db.query(Order).filter(Order.property_id == property_id)
        if status is not None:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def stats(self, property_id: int, since: Optional[datetime] = None) -> dict:
        """订单统计（默认统计当天）"""
        if since is None:
            since = datetime.combine(utcnow().date(), time.min)
        orders = self.db.query(Order).filter(
            Order.property_id == property_id,
            Order.created_at >= since
        ).all()

        counts = {status: 0 for status in OrderStatus}
        revenue = Decimal("0")
        for order in orders:
            counts[order.status] += 1
            if order.status == OrderStatus.DELIVERED:
                revenue += Decimal(order.total_amount)

        delivered = counts[OrderStatus.DELIVERED]
        return {
            'total_orders': len(orders),
            'pending_orders': counts[OrderStatus.PENDING],
            'preparing_orders': counts[OrderStatus.PREPARING],
            'ready_orders': counts[OrderStatus.READY],
            'delivered_orders': delivered,
            'cancelled_orders': counts[OrderStatus.CANCELLED],
            'total_revenue': revenue.quantize(CENT),
            'avg_order_value': (revenue / delivered).quantize(CENT, ROUND_HALF_UP) if delivered else Decimal("0.00"),
        }


class ServiceRequestService(_StatusLedger):
    """客房服务请求台账"""

    model = ServiceRequest
    entry_model = ServiceRequestStatusEntry
    entry_fk = "request_id"
    status_enum = ServiceRequestStatus
    machine = SERVICE_REQUEST_STATE_MACHINE
    status_changed_event = EventType.SERVICE_REQUEST_STATUS_CHANGED
    label = "服务请求"

    def create(self, scope: LedgerScope, data: ServiceRequestCreate) -> ServiceRequest:
        """创建服务请求，只能归属于房间"""
        if scope.scope_kind != ScopeKind.ROOM:
            raise LedgerValidationError("服务请求只能由房间发起")
        self._require_scope(scope)
        description = (data.description or "").strip()
        if not description:
            raise LedgerValidationError("服务内容不能为空")

        created_at = utcnow()
        request = ServiceRequest(
            property_id=scope.property_id,
            room_id=scope.scope_id,
            category=data.category,
            description=description,
            status=ServiceRequestStatus.PENDING,
            created_at=created_at,
        )
        request.history.append(
            ServiceRequestStatusEntry(status=ServiceRequestStatus.PENDING, changed_at=created_at)
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        logger.info(f"Service request {request.id} ({request.category.value}) created for room {scope.scope_id}")
        self._record_created(request, scope, request.category.value, EventType.SERVICE_REQUEST_CREATED)
        return request

    def list(self, scope: LedgerScope,
             status: Optional[ServiceRequestStatus] = None) -> List[ServiceRequest]:
        """某房间的服务请求，最新的在前；餐桌范围没有服务请求"""
        if scope.scope_kind != ScopeKind.ROOM:
            return []
        query = self.db.query(ServiceRequest).filter(
            ServiceRequest.property_id == scope.property_id,
            ServiceRequest.room_id == scope.scope_id
        )
        if status is not None:
            query = query.filter(ServiceRequest.status == status)
        return query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()

    def list_for_property(self, property_id: int,
                          status: Optional[ServiceRequestStatus] = None) -> List[ServiceRequest]:
        """员工视图：物业下全部服务请求"""
        query = self.db.query(ServiceRequest).filter(ServiceRequest.property_id == property_id)
        if status is not None:
            query = query.filter(ServiceRequest.status == status)
        return query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()
