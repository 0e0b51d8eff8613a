"""Exception types and user-facing error translation."""

from __future__ import annotations

import concurrent.futures
from enum import Enum

RATE_LIMIT_MARKERS = (
    "rate limit",
    "429",
    "quota exceeded",
    "too many requests",
    "resource exhausted",
    "resource_exhausted",
)

NOT_AVAILABLE_MESSAGE = (
    "Semantic search is not available. Keyword search still works normally."
)


class DocSearchError(Exception):
    """Base class for engine errors."""


class EmbeddingError(DocSearchError):
    """The embedding backend failed to produce vectors."""


class RateLimitError(EmbeddingError):
    """The embedding backend rejected the call because of rate limiting."""


class SnapshotError(DocSearchError):
    """A vector index snapshot could not be written or read."""


class RegistryError(DocSearchError):
    """The document registry could not complete an operation."""


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    QUOTA = "quota"
    GENERIC = "generic"


_MESSAGES = {
    ErrorKind.NOT_CONFIGURED: NOT_AVAILABLE_MESSAGE,
    ErrorKind.RATE_LIMITED: (
        "The search service is temporarily busy due to high demand. "
        "Please try again in a few minutes. Your documents are still searchable by keyword."
    ),
    ErrorKind.NETWORK: (
        "Network connection issue. Please check your internet connection and try again."
    ),
    ErrorKind.TIMEOUT: (
        "The search service took too long to respond. "
        "Please try again in a moment. Your documents are still searchable by keyword."
    ),
    ErrorKind.CONFIGURATION: "Search service configuration issue. Please contact support.",
    ErrorKind.QUOTA: "Search service quota exceeded. Please try again later or contact support.",
    ErrorKind.GENERIC: (
        "Unable to process your documents for search. "
        "Please try again or contact support if the issue persists."
    ),
}

RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.NETWORK, ErrorKind.TIMEOUT})


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a backend exception onto the coarse categories users see."""
    if is_rate_limit_error(exc):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (TimeoutError, concurrent.futures.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionError):
        return ErrorKind.NETWORK

    message = str(exc).lower()
    if "api key" in message or "authentication" in message:
        return ErrorKind.CONFIGURATION
    if "timeout" in message or "timed out" in message:
        return ErrorKind.TIMEOUT
    if "network" in message:
        return ErrorKind.NETWORK
    if "quota" in message or "billing" in message:
        return ErrorKind.QUOTA
    return ErrorKind.GENERIC


def friendly_message(kind: ErrorKind | BaseException) -> str:
    if not isinstance(kind, ErrorKind):
        kind = classify_error(kind)
    return _MESSAGES[kind]


def is_retryable(kind: ErrorKind) -> bool:
    return kind in RETRYABLE_KINDS
