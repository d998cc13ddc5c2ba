# storefront/api/deps.py
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.product_client import ProductClient
from storefront.utils.settings import CART_LOCKS_ENABLED


def get_product_client() -> ProductClient:
    return ProductClient()


def get_lock_service() -> LockService | None:
    if not CART_LOCKS_ENABLED:
        return None
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()
