from .catalog import Product, Customer, Supplier
from .inventory import InventoryBatch
from .documents import Sale, SaleItem, StockIn, StockInItem, LandedCost, DocumentRevision, DocumentSequence
from .payments import Payment

__all__ = [
    'Product', 'Customer', 'Supplier',
    'InventoryBatch',
    'Sale', 'SaleItem', 'StockIn', 'StockInItem', 'LandedCost',
    'DocumentRevision', 'DocumentSequence',
    'Payment',
]
