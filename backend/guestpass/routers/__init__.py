# API Routers
from guestpass.routers import auth, properties, menu, tokens, rooms, checkin, tables, orders, service_requests, guest

__all__ = ['auth', 'properties', 'menu', 'tokens', 'rooms', 'checkin', 'tables', 'orders', 'service_requests', 'guest']
