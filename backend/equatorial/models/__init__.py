from .auth import User, SessionToken, ROLES
from .catalog import Product
from .customers import Customer
from .inventory import InventoryTransaction
from .pos import POSTransaction, POSTransactionItem
from .orders import Order, OrderItem
from .audit import ActivityLog
from .settings import StoreSetting, DocumentSequence, CurrencyRate

__all__ = [
    'User', 'SessionToken', 'ROLES',
    'Product',
    'Customer',
    'InventoryTransaction',
    'POSTransaction', 'POSTransactionItem',
    'Order', 'OrderItem',
    'ActivityLog',
    'StoreSetting', 'DocumentSequence', 'CurrencyRate',
]
