from .tenancy import Business, BusinessPolicy, Shop
from .auth import User
from .customers import Customer, WalletTransaction
from .catalog import Product, ShopProduct
from .purchases import Purchase, PurchaseItem, Payment
from .documents import Refund, Waybill, DocumentSequence, AuditEvent
from .imports import ImportBatch

__all__ = [
    'Business', 'BusinessPolicy', 'Shop',
    'User',
    'Customer', 'WalletTransaction',
    'Product', 'ShopProduct',
    'Purchase', 'PurchaseItem', 'Payment',
    'Refund', 'Waybill', 'DocumentSequence', 'AuditEvent',
    'ImportBatch',
]
