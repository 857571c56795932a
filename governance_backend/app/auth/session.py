"""Stateless wallet sessions.

A wallet is signed in while the ledger holds a valid signature for its address
created within the session window. Nothing is minted or remembered between
requests: every call re-derives the identity from the ledger.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from governance_backend.app.auth.ledger import SignatureLedger
from governance_backend.app.config import get_settings
from governance_backend.app.observability.logging import hash_subject

logger = logging.getLogger(__name__)

USER_ADDRESS_HEADER = "X-User-Address"
ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
SESSION_DURATION = timedelta(hours=24)

_default_ledger: Optional[SignatureLedger] = None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    address: str


def get_ledger() -> SignatureLedger:
    global _default_ledger
    if _default_ledger is None:
        _default_ledger = SignatureLedger()
    return _default_ledger


def session_duration() -> timedelta:
    hours = get_settings().auth_session_duration_hours
    return timedelta(hours=hours) if hours else SESSION_DURATION


def is_valid_address(value: Optional[str]) -> bool:
    return isinstance(value, str) and ADDRESS_PATTERN.fullmatch(value) is not None


def authenticate(
    claimed_address_header: Optional[str],
    *,
    ledger: Optional[SignatureLedger] = None,
    now: Optional[datetime] = None,
    duration: Optional[timedelta] = None,
) -> Optional[AuthenticatedIdentity]:
    """Resolve the claimed address to an identity, or None.

    Malformed addresses are denied before the ledger is touched. Ledger errors
    deny as well. Callers must not distinguish between the reasons.
    """
    if not is_valid_address(claimed_address_header):
        logger.info("[AUTH] denied", extra={"reason": "malformed_address"})
        return None

    claimed = claimed_address_header.lower()
    subject = hash_subject("wallet", claimed)
    current = now or datetime.now(timezone.utc)
    since = current - (duration or session_duration())

    try:
        stored = (ledger or get_ledger()).find_recent_valid(claimed, since)
    except Exception as exc:
        logger.warning(
            "[AUTH] ledger lookup failed",
            extra={"subject": subject, "error_type": type(exc).__name__},
        )
        return None

    if stored is None:
        logger.info("[AUTH] denied", extra={"subject": subject, "reason": "no_recent_signature"})
        return None

    logger.info("[AUTH] authenticated", extra={"subject": subject})
    return AuthenticatedIdentity(address=stored)


__all__ = [
    "ADDRESS_PATTERN",
    "AuthenticatedIdentity",
    "SESSION_DURATION",
    "USER_ADDRESS_HEADER",
    "authenticate",
    "get_ledger",
    "is_valid_address",
    "session_duration",
]
