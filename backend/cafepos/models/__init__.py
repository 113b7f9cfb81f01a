from .auth import AdminUser, Session
from .access_codes import AccessCode
from .menu import MenuItem
from .orders import Order, OrderLine
from .security import SecurityEvent

__all__ = [
    'AdminUser', 'Session',
    'AccessCode',
    'MenuItem',
    'Order', 'OrderLine',
    'SecurityEvent',
]
