from .tenancy import Organization, Store
from .products import Product
from .inventory import StockRecord, LedgerEntry, LedgerEntryType, IncomingOrder, IncomingOrderStatus
from .displays import Display, DisplayStatus
from .staff import StaffMember, StaffPointTransaction, PointType
from .customers import Customer, PurchaseIntent, PurchaseIntentStatus, Conversion
from .holds import ProductHold, HoldStatus

__all__ = [
    'Organization', 'Store',
    'Product',
    'StockRecord', 'LedgerEntry', 'LedgerEntryType', 'IncomingOrder', 'IncomingOrderStatus',
    'Display', 'DisplayStatus',
    'StaffMember', 'StaffPointTransaction', 'PointType',
    'Customer', 'PurchaseIntent', 'PurchaseIntentStatus', 'Conversion',
    'ProductHold', 'HoldStatus',
]
