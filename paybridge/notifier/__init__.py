from .engine import CallbackNotifier
from .payload import build_callback_params
from .retry import RetryPolicy
from .worker import DeliveryJob, NotificationWorker

__all__ = [
    "CallbackNotifier",
    "RetryPolicy",
    "DeliveryJob",
    "NotificationWorker",
    "build_callback_params",
]
