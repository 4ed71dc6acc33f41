from .catalog import Product, Transaction, TRANSACTION_TYPES, SALE, RETURN, PURCHASE
from .auth import User, SessionToken
from .security import SecurityEvent

__all__ = [
    'Product', 'Transaction', 'TRANSACTION_TYPES', 'SALE', 'RETURN', 'PURCHASE',
    'User', 'SessionToken',
    'SecurityEvent',
]
