from .fleet import Vehicle, Customer
from .rentals import Rental, Payment
from .reservations import Reservation
from .expenses import VehicleExpense
from .consignments import ConsignmentRecord, ConsignmentDeduction, ExternalPayment

__all__ = [
    'Vehicle', 'Customer',
    'Rental', 'Payment',
    'Reservation',
    'VehicleExpense',
    'ConsignmentRecord', 'ConsignmentDeduction', 'ExternalPayment',
]
