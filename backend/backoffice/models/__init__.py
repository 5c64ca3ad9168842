from .auth import User, SessionToken
from .customers import Customer
from .vendors import Vendor

__all__ = [
    'User', 'SessionToken',
    'Customer',
    'Vendor',
]
