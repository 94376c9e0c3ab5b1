"""Remote platform collaborators: client interface, media pipeline, rate limiting."""

from .base import (
    CheckpointRequiredError,
    RemoteClient,
    RemoteClientError,
    RemoteRateLimitError,
    TwoFactorInfo,
    TwoFactorMode,
    TwoFactorRequiredError,
)
from .media import HttpMediaPipeline, MediaPipeline
from .rate_limit import SendRateLimiter

__all__ = [
    "CheckpointRequiredError",
    "HttpMediaPipeline",
    "MediaPipeline",
    "RemoteClient",
    "RemoteClientError",
    "RemoteRateLimitError",
    "SendRateLimiter",
    "TwoFactorInfo",
    "TwoFactorMode",
    "TwoFactorRequiredError",
]
