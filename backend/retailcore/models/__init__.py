from .shifts import Shift
from .sales import Sale, SaleLine
from .settlement import SettlementPayment
from .purchasing import PurchaseOrder, PurchaseOrderLine
from .inventory import StockMutation
from .documents import DocumentSequence

__all__ = [
    'Shift',
    'Sale', 'SaleLine',
    'SettlementPayment',
    'PurchaseOrder', 'PurchaseOrderLine',
    'StockMutation',
    'DocumentSequence',
]
