from familynotify.models.change_event import ChangeEvent
from familynotify.models.delivery_log import DeliveryLogEntry
from familynotify.models.notification_cursor import NotificationCursor
from familynotify.models.notification_preference import NotificationPreference
from familynotify.models.push_token import PushToken
from familynotify.models.task_reminder import TaskReminder

__all__ = [
    "ChangeEvent",
    "DeliveryLogEntry",
    "NotificationCursor",
    "NotificationPreference",
    "PushToken",
    "TaskReminder",
]
