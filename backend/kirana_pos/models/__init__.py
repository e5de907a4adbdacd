from .catalog import Product
from .sales import Sale, SaleItem
from .stock import StockMovement
from .held_bills import HeldBill
from .documents import InvoiceCounter, FinalizeAttempt
from .settings import ShopSettings, SETTINGS_ROW_ID

__all__ = [
    'Product',
    'Sale', 'SaleItem',
    'StockMovement',
    'HeldBill',
    'InvoiceCounter', 'FinalizeAttempt',
    'ShopSettings', 'SETTINGS_ROW_ID',
]
