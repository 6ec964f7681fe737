# Services
from guestpass.services.token_service import TokenService
from guestpass.services.room_service import RoomService
from guestpass.services.ledger_service import OrderService, ServiceRequestService
from guestpass.services.checkin_service import CheckInService
from guestpass.services.gateway_service import GatewayService
from guestpass.services.property_service import PropertyService
from guestpass.services.menu_service import MenuService

__all__ = [
    'TokenService', 'RoomService', 'OrderService', 'ServiceRequestService',
    'CheckInService', 'GatewayService', 'PropertyService', 'MenuService'
]
