from .catalog import Equipment, AddOn, Package, MaintenanceLog
from .bookings import Customer, Booking, BookingItem, InspectionChecklist, EquipmentLine, AddOnLine
from .archive import PastBooking, PastBookingItem

__all__ = [
    'Equipment', 'AddOn', 'Package', 'MaintenanceLog',
    'Customer', 'Booking', 'BookingItem', 'InspectionChecklist',
    'EquipmentLine', 'AddOnLine',
    'PastBooking', 'PastBookingItem',
]
