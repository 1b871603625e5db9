"""Classification of AWS SDK errors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from botocore.exceptions import ClientError


class AwsErrorCode(Enum):
    NOT_FOUND = "NoSuchKey"
    NOT_FOUND_404 = "404"
    NO_SUCH_BUCKET = "NoSuchBucket"
    NOT_FOUND_SNS = "NotFound"
    TIMEOUT = "RequestTimeout"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    THROTTLING = "Throttling"
    SLOW_DOWN = "SlowDown"
    UNKNOWN = "Unknown"


_NOT_FOUND = {
    AwsErrorCode.NOT_FOUND.value,
    AwsErrorCode.NOT_FOUND_404.value,
    AwsErrorCode.NOT_FOUND_SNS.value,
}
_RETRYABLE = {
    AwsErrorCode.TIMEOUT.value,
    AwsErrorCode.SERVICE_UNAVAILABLE.value,
    AwsErrorCode.THROTTLING.value,
    AwsErrorCode.SLOW_DOWN.value,
}


@dataclass
class AwsErrorResult:
    error_code: str
    error_message: str
    is_not_found: bool
    is_retryable: bool


def classify_client_error(e: ClientError) -> AwsErrorResult:
    """
    Classify a ClientError into not-found / retryable / other.

    NoSuchBucket is deliberately not a not-found: a missing bucket is a
    configuration problem, not a missing object.
    """
    error = e.response.get("Error", {}) if isinstance(e.response, dict) else {}
    error_code = str(error.get("Code", AwsErrorCode.UNKNOWN.value))
    error_message = str(error.get("Message", str(e)))
    return AwsErrorResult(
        error_code=error_code,
        error_message=error_message,
        is_not_found=error_code in _NOT_FOUND,
        is_retryable=error_code in _RETRYABLE,
    )


def is_not_found(e: Exception) -> bool:
    return isinstance(e, ClientError) and classify_client_error(e).is_not_found
