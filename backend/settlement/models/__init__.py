from .catalog import Category, Product, InventoryRecord, StockMovement
from .customers import Customer
from .sales import Sale, SaleLine, SaleReturnRecord, SaleReturnRecordItem
from .policies import ReturnPolicy
from .returns import ReturnTransaction, ReturnTransactionLine
from .settlements import ExchangeSlip, ExchangeSlipItem, CustomerOverpayment, OverpaymentUsage
from .barcodes import UnitBarcode
from .sequences import DocumentSequence

__all__ = [
    'Category', 'Product', 'InventoryRecord', 'StockMovement',
    'Customer',
    'Sale', 'SaleLine', 'SaleReturnRecord', 'SaleReturnRecordItem',
    'ReturnPolicy',
    'ReturnTransaction', 'ReturnTransactionLine',
    'ExchangeSlip', 'ExchangeSlipItem', 'CustomerOverpayment', 'OverpaymentUsage',
    'UnitBarcode',
    'DocumentSequence',
]
