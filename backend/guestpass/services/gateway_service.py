"""
客人服务网关 - 唯一接收客人原始凭证的组件
作用范围一律取自校验后的凭证，请求体中的房间/餐桌字段不参与任何判断；
任何凭证校验失败都以同一个 Unauthorized 返回，不区分过期/撤销/格式错误
"""
from datetime import datetime
from typing import Callable, List, Union
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from guestpass.models.ontology import Order, ServiceRequest, ScopeKind, Room, RestaurantTable, Property
from guestpass.models.schemas import OrderCreate, ServiceRequestCreate, LedgerEntrySummary, MenuItemResponse
from guestpass.services.event_bus import Event
from guestpass.services.errors import TokenInvalid, Unauthorized, LedgerValidationError
from guestpass.services.ledger_service import LedgerScope, OrderService, ServiceRequestService
from guestpass.services.menu_service import MenuService
from guestpass.services.token_service import TokenService, TokenScope, fingerprint

logger = logging.getLogger(__name__)


class GatewayService:
    """客人服务网关"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = None,
                 event_publisher: Callable[[Event], None] = None):
        self.db = db
        self.token_service = TokenService(db, clock=clock, event_publisher=event_publisher)
        self.orders = OrderService(db, event_publisher=event_publisher)
        self.service_requests = ServiceRequestService(db, event_publisher=event_publisher)
        self.menu = MenuService(db)

    def authorize(self, token: str) -> TokenScope:
        """校验凭证；失败原因只写日志，不返回给调用方"""
        try:
            return self.token_service.validate(token)
        except TokenInvalid as e:
            logger.info(
                f"Guest token {fingerprint(token) if isinstance(token, str) else '-'} rejected: {e.code}"
            )
            raise Unauthorized() from None

    def describe(self, token: str) -> dict:
        """客人落地页：凭证对应的物业与房间/餐桌"""
        scope = self.authorize(token)
        prop = self.db.query(Property).filter(Property.id == scope.property_id).first()
        if scope.scope_kind == ScopeKind.ROOM:
            room = self.db.query(Room).filter(Room.id == scope.scope_id).first()
            label = room.room_number if room else ""
        else:
            table = self.db.query(RestaurantTable).filter(RestaurantTable.id == scope.scope_id).first()
            label = str(table.table_number) if table else ""
        return {
            'property_id': scope.property_id,
            'property_name': prop.name if prop else "",
            'scope_kind': scope.scope_kind,
            'scope_id': scope.scope_id,
            'scope_label': label,
            'expires_at': scope.expires_at,
        }

    def handle_get_menu(self, token: str) -> dict:
        """凭证所属物业的上架菜单，按分类分组"""
        info = self.describe(token)
        info['menu'] = {
            category: [MenuItemResponse.model_validate(item) for item in items]
            for category, items in self.menu.public_menu(info['property_id']).items()
        }
        return info

    def handle_create_order(self, token: str, payload: Union[OrderCreate, dict]) -> Order:
        """客人下单"""
        scope = self.authorize(token)
        data = self._parse(OrderCreate, payload)
        return self.orders.create(self._ledger_scope(scope), data)

    def handle_create_service_request(self, token: str,
                                      payload: Union[ServiceRequestCreate, dict]) -> ServiceRequest:
        """客人提交服务请求（仅房间凭证）"""
        scope = self.authorize(token)
        if scope.scope_kind != ScopeKind.ROOM:
            raise LedgerValidationError("服务请求只能由房间发起")
        data = self._parse(ServiceRequestCreate, payload)
        return self.service_requests.create(self._ledger_scope(scope), data)

    def handle_list_mine(self, token: str) -> List[LedgerEntrySummary]:
        """凭证范围内的订单与服务请求，按创建时间倒序合并"""
        scope = self.authorize(token)
        ledger_scope = self._ledger_scope(scope)

        entries = [
            LedgerEntrySummary(
                kind="order",
                id=order.id,
                status=order.status.value,
                created_at=order.created_at,
                summary=", ".join(f"{item['name'] or item['menu_item_id']} x{item['quantity']}"
                                  for item in order.items),
                total_amount=order.total_amount,
            )
            for order in self.orders.list(ledger_scope)
        ]
        entries.extend(
            LedgerEntrySummary(
                kind="service_request",
                id=request.id,
                status=request.status.value,
                created_at=request.created_at,
                summary=request.description,
                category=request.category,
            )
            for request in self.service_requests.list(ledger_scope)
        )
        entries.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return entries

    @staticmethod
    def _ledger_scope(scope: TokenScope) -> LedgerScope:
        return LedgerScope(
            property_id=scope.property_id,
            scope_kind=scope.scope_kind,
            scope_id=scope.scope_id,
        )

    @staticmethod
    def _parse(model, payload):
        if isinstance(payload, model):
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise LedgerValidationError(f"请求数据不合法: {e.errors()[0]['msg']}") from None
