from .auth import User, UserProfile, SessionToken
from .documents import Document, DocumentHistory, DocumentFile
from .inventory import Warehouse, ProductCategory, Product, StockBalance, StockMovement

__all__ = [
    'User', 'UserProfile', 'SessionToken',
    'Document', 'DocumentHistory', 'DocumentFile',
    'Warehouse', 'ProductCategory', 'Product', 'StockBalance', 'StockMovement',
]
