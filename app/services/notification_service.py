# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień o płatności.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_payment_notification(user_id: str, order_id: str, payment_status: str):
        """
        Powiadomienie o zmianie statusu platnosci (completed / failed).
        Błąd brokera nie cofa już zapisanej płatności.
        """
        try:
            send_payment_notification_task.delay(user_id, order_id, payment_status)
        except Exception as e:
            logger.error(f"Could not queue payment notification for order {order_id}: {e}")


@celery_app.task(name="app.services.notification_service.send_payment_notification_task")
def send_payment_notification_task(user_id: str, order_id: str, payment_status: str):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: payment for order {order_id} is {payment_status}")

    return {"user_id": user_id, "order_id": order_id, "payment_status": payment_status, "status": "sent"}
