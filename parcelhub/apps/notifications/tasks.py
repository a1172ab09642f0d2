from celery import shared_task

from .services import send_order_notifications


@shared_task(ignore_result=True)
def send_order_notifications_task(order_id):
    return send_order_notifications(order_id)
