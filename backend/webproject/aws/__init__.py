from .errors import AwsErrorResult, classify_client_error, is_not_found
from .queue import QueueMessage, UploadQueue
from .storage import ObjectStore
from .topic import NotificationTopic

__all__ = [
    "AwsErrorResult",
    "NotificationTopic",
    "ObjectStore",
    "QueueMessage",
    "UploadQueue",
    "classify_client_error",
    "is_not_found",
]
