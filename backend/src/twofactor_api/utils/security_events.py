"""Security event logging for two-factor operations.

Events go to a dedicated ``security`` logger so they can be routed to a
separate sink for monitoring and compliance. Secrets, tokens and backup
codes are never part of an event.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID


class SecurityEventType(str, Enum):
    """Types of security events that are logged."""

    # Enrollment
    TWO_FACTOR_SETUP_STARTED = "two_factor_setup_started"
    TWO_FACTOR_ENABLED = "two_factor_enabled"
    TWO_FACTOR_ENABLE_FAILED = "two_factor_enable_failed"
    TWO_FACTOR_DISABLED = "two_factor_disabled"
    TWO_FACTOR_ADMIN_DISABLED = "two_factor_admin_disabled"
    PROVISIONING_DEGRADED = "provisioning_degraded"
    TWO_FACTOR_RESET_REQUESTED = "two_factor_reset_requested"

    # Verification
    VERIFICATION_SUCCESS = "two_factor_verification_success"
    VERIFICATION_FAILED = "two_factor_verification_failed"
    VERIFICATION_LOCKED = "two_factor_verification_locked"
    LOCKOUT_TRIGGERED = "two_factor_lockout_triggered"
    BACKUP_CODE_USED = "backup_code_used"

    # Credentials
    PASSWORD_CHECK_FAILED = "password_check_failed"
    BACKUP_CODES_REGENERATED = "backup_codes_regenerated"


# Dedicated security logger
security_logger = logging.getLogger("security")


def log_security_event(
    event_type: SecurityEventType,
    user_id: UUID | str | None = None,
    target_user_id: UUID | str | None = None,
    ip_address: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log a security event.

    Args:
        event_type: The type of security event
        user_id: The ID of the user performing the action
        target_user_id: The ID of the user being affected (for admin actions)
        ip_address: The client IP address
        details: Additional event-specific details
        success: Whether the operation succeeded
    """
    event_data: dict[str, Any] = {
        "event_type": event_type.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "success": success,
        "actor": {
            "user_id": str(user_id) if user_id else None,
            "ip_address": ip_address,
        },
    }

    if target_user_id:
        event_data["target"] = {"user_id": str(target_user_id)}

    if details:
        event_data["details"] = details

    if success:
        security_logger.info(
            f"Security event: {event_type.value}",
            extra={"security_event": event_data},
        )
    else:
        security_logger.warning(
            f"Security event (failed): {event_type.value}",
            extra={"security_event": event_data},
        )
