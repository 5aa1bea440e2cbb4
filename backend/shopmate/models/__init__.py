from .auth import User, RefreshToken, ROLE_ADMIN, ROLE_USER, ROLES
from .inventory import InventoryItem, PurchaseRecord

__all__ = [
    'User', 'RefreshToken', 'ROLE_ADMIN', 'ROLE_USER', 'ROLES',
    'InventoryItem', 'PurchaseRecord',
]
