from fastapi import Request
from storefront.notifications.worker import NotificationWorker


def get_notification_worker(request: Request) -> NotificationWorker:
    return request.app.state.notification_worker
