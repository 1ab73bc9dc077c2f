from .products import Product, StockMovement
from .inventory import InventoryAdjustment
from .purchasing import Provider, OrderBuy, DetailOrderBuy
from .registers import CashSession
from .sales import Sale, SaleLine

__all__ = [
    'Product', 'StockMovement',
    'InventoryAdjustment',
    'Provider', 'OrderBuy', 'DetailOrderBuy',
    'CashSession',
    'Sale', 'SaleLine',
]
