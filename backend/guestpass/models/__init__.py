# Ontology Models
from guestpass.models.ontology import (
    Property, Room, RestaurantTable, MenuItem, Booking, TokenIssuance,
    Order, OrderStatusEntry, ServiceRequest, ServiceRequestStatusEntry, Employee
)

__all__ = [
    'Property', 'Room', 'RestaurantTable', 'MenuItem', 'Booking', 'TokenIssuance',
    'Order', 'OrderStatusEntry', 'ServiceRequest', 'ServiceRequestStatusEntry', 'Employee'
]
