"""
Failure normalization for the transform client.
Classifies adapter and transport failures for cascade control and observability.
"""
from enum import Enum
from typing import Any


class FailureType(str, Enum):
    """Failure taxonomy surfaced by GenerationClient."""

    ROUTE_NOT_IMPLEMENTED = "route_not_implemented"  # 404/405 on native route, cascade recovers
    NO_IMAGE_IN_RESPONSE = "no_image_in_response"  # 2xx without recognizable image
    UPSTREAM_ERROR = "upstream_error"  # non-2xx or explicit error envelope
    TRANSPORT_ERROR = "transport_error"  # connect/read failure, timeout, oversized body
    CREDENTIAL_REQUIRED = "credential_required"  # managed key not tied to a billable project
    EXHAUSTED_FALLBACK = "exhausted_fallback"  # every applicable adapter returned NotFound


# Statuses meaning "this endpoint does not implement the native route at all"
ROUTE_MISSING_STATUSES = frozenset({404, 405})

# Managed path: statuses and messages meaning the credential must be (re)selected
CREDENTIAL_STATUSES = frozenset({401, 403})
CREDENTIAL_MESSAGES = (
    "requested entity was not found",
    "api key not valid",
    "permission_denied",
    "billing",
)


def is_route_missing(http_status: int | None) -> bool:
    return http_status in ROUTE_MISSING_STATUSES


def classify_failure(
    http_status: int | None,
    detail: dict[str, Any],
    message: str = "",
    *,
    managed: bool = False,
) -> FailureType:
    """
    Classify failure from HTTP status, normalized upstream detail and message.
    `managed` marks the implicit-credential path, the only one that can require a credential.
    """
    text = " ".join(
        str(part) for part in (message, detail.get("error_message"), detail.get("error_status")) if part
    ).lower()

    if managed:
        if http_status in CREDENTIAL_STATUSES:
            return FailureType.CREDENTIAL_REQUIRED
        if any(marker in text for marker in CREDENTIAL_MESSAGES):
            return FailureType.CREDENTIAL_REQUIRED
    elif is_route_missing(http_status):
        return FailureType.ROUTE_NOT_IMPLEMENTED

    if http_status is not None and not 200 <= http_status < 300:
        return FailureType.UPSTREAM_ERROR

    if detail.get("error_message") or detail.get("block_reason"):
        return FailureType.UPSTREAM_ERROR

    if http_status is not None:
        # 2xx without error envelope: the body simply held no image
        return FailureType.NO_IMAGE_IN_RESPONSE

    return FailureType.TRANSPORT_ERROR
