from .org import Base, Department, User, Customer, Product
from .service_request import ServiceRequest, RequestCost, CustomRequestStatus
from .inventory import SparePart, RequestPart
from .activity import RequestActivity
from .notification import Notification

__all__ = [
    'Base', 'Department', 'User', 'Customer', 'Product',
    'ServiceRequest', 'RequestCost', 'CustomRequestStatus',
    'SparePart', 'RequestPart', 'RequestActivity', 'Notification',
]
