# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Sends order/payment notifications through Celery.
    Enqueue failures are logged and never undo the committed change.
    """

    def send_order_notification(self, user_id: int, order_id: int):
        try:
            send_order_notification_task.delay(user_id, order_id)
        except Exception as e:
            logger.warning(f"Could not enqueue order notification for order {order_id}: {e}")

    def send_payment_notification(self, user_id: int, order_id: int, payment_status: str):
        try:
            send_payment_notification_task.delay(user_id, order_id, payment_status)
        except Exception as e:
            logger.warning(f"Could not enqueue payment notification for order {order_id}: {e}")


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int):
    """
    Celery task, a real deployment would send email/push here.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} created, awaiting payment")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_payment_notification_task")
def send_payment_notification_task(user_id: int, order_id: int, payment_status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} payment {payment_status}")
    return {
        "user_id": user_id,
        "order_id": order_id,
        "payment_status": payment_status,
        "status": "sent",
    }
