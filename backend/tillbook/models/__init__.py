from .catalog import Product, UNITS_OF_MEASURE
from .customers import Customer, CustomerTransaction
from .sales import (
    Sale, SaleItem,
    PAYMENT_CASH, PAYMENT_MOBILE_MONEY, PAYMENT_CREDIT, PAYMENT_METHODS,
    STATUS_PAID, STATUS_CREDIT, STATUS_PARTIAL,
)
from .sequences import ReceiptSequence
from .employees import Employee, EMPLOYEE_ROLES
from .activity import ActivityLog
from .sync import SyncQueueEntry, SYNC_PENDING, SYNC_SYNCED, SYNC_FAILED
from .settings import ShopSettings, CURRENCIES, LANGUAGES

__all__ = [
    'Product', 'UNITS_OF_MEASURE',
    'Customer', 'CustomerTransaction',
    'Sale', 'SaleItem',
    'PAYMENT_CASH', 'PAYMENT_MOBILE_MONEY', 'PAYMENT_CREDIT', 'PAYMENT_METHODS',
    'STATUS_PAID', 'STATUS_CREDIT', 'STATUS_PARTIAL',
    'ReceiptSequence',
    'Employee', 'EMPLOYEE_ROLES',
    'ActivityLog',
    'SyncQueueEntry', 'SYNC_PENDING', 'SYNC_SYNCED', 'SYNC_FAILED',
    'ShopSettings', 'CURRENCIES', 'LANGUAGES',
]
