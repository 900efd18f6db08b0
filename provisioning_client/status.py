from typing import Any, Optional

from loguru import logger
from provisioning_client.models import (
    FAILED_STATUS,
    PENDING_STATUSES,
    TARGET_STATUSES,
    OperationPhase,
    StatusSnapshot,
)

GENERIC_FAILURE_MESSAGE = "Remote operation failed without an error message"


def classify(
    raw_status: str,
    message: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> StatusSnapshot:
    """Maps a raw remote status onto pending, succeeded or failed.

    Statuses outside the known vocabulary count as pending so that new
    remote states never break a wait loop.
    """
    if raw_status == FAILED_STATUS:
        return StatusSnapshot(
            phase=OperationPhase.failed,
            raw_status=raw_status,
            message=message if message and message.strip() else GENERIC_FAILURE_MESSAGE,
        )

    if raw_status in TARGET_STATUSES:
        return StatusSnapshot(
            phase=OperationPhase.succeeded,
            raw_status=raw_status,
            message=message,
            payload=payload,
        )

    if raw_status not in PENDING_STATUSES:
        logger.debug(f"Unrecognized status {raw_status!r}, treating as pending")

    return StatusSnapshot(
        phase=OperationPhase.pending, raw_status=raw_status, message=message
    )
