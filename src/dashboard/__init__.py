from src.dashboard.controller import QueueController
from src.dashboard.notifications import Notification, NotificationCenter, NotificationType

__all__ = [
    "QueueController",
    "NotificationCenter",
    "Notification",
    "NotificationType",
]
