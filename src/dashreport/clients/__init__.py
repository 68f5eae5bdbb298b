from dashreport.clients.base import (
    BaseHTTPClient,
    PermanentHTTPError,
    RetryableHTTPError,
    is_retryable_status,
)

__all__ = ["BaseHTTPClient", "PermanentHTTPError", "RetryableHTTPError", "is_retryable_status"]
