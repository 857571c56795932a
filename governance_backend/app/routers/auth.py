"""Wallet sign-in endpoints: typed-data verification and session introspection."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from governance_backend.app.auth.ledger import SignatureLedger, SignatureRecord
from governance_backend.app.auth.session import AuthenticatedIdentity
from governance_backend.app.auth.typed_data import chain_id_text, parse_message
from governance_backend.app.auth.verifier import verify
from governance_backend.app.config import get_settings
from governance_backend.app.deps.identity import ledger_dependency, require_identity
from governance_backend.app.observability.logging import hash_subject, preview
from governance_backend.app.reliability.errors import ApiError
from governance_backend.app.utils.request_helpers import read_json_object

router = APIRouter(prefix="/api", tags=["auth"])
logger = logging.getLogger(__name__)

VERIFY_PARAMETERS = ("domain", "types", "message", "signature", "address")


def _missing_parameters(body: Dict[str, Any]) -> Dict[str, bool]:
    return {name: not body.get(name) for name in VERIFY_PARAMETERS}


def _build_record(body: Dict[str, Any], primary_type: str) -> SignatureRecord:
    message = parse_message(primary_type, body["message"])
    return SignatureRecord(
        address=str(body["address"]),
        chain_id=chain_id_text(message.chain_id),
        nonce=message.nonce_text,
        issued_at=message.issued_text,
        message=message.to_storage_dict(),
        signature=str(body["signature"]),
        is_valid=True,
    )


def _store_signature(ledger: SignatureLedger, body: Dict[str, Any], primary_type: str) -> bool:
    """Best-effort audit insert; the verification result stands either way."""
    subject = hash_subject("wallet", str(body.get("address")))
    try:
        ledger.insert(_build_record(body, primary_type))
    except Exception as exc:
        logger.error(
            "[VERIFY] signature not persisted",
            extra={"subject": subject, "error_type": type(exc).__name__},
        )
        return False
    logger.info("[VERIFY] signature persisted", extra={"subject": subject})
    return True


@router.post("/verify")
async def verify_signature(
    request: Request,
    ledger: SignatureLedger = Depends(ledger_dependency),
) -> Dict[str, Any]:
    """Verify a sign-in signature and record it in the ledger."""
    settings = get_settings()
    body = await read_json_object(request, settings.max_body_bytes)

    missing = _missing_parameters(body)
    if any(missing.values()):
        logger.info("[VERIFY] missing parameters", extra={"missing": [k for k, v in missing.items() if v]})
        raise ApiError(400, "missing_parameters", "Missing parameters", details=missing)

    address = str(body["address"])
    primary_type = settings.sign_in_primary_type
    logger.info(
        "[VERIFY] request",
        extra={
            "subject": hash_subject("wallet", address),
            "signature_preview": preview(body["signature"]),
        },
    )

    is_valid = await asyncio.to_thread(
        verify,
        body["domain"],
        body["types"],
        body["message"],
        body["signature"],
        address,
        primary_type=primary_type,
    )
    logger.info("[VERIFY] result", extra={"subject": hash_subject("wallet", address), "is_valid": is_valid})

    if not is_valid:
        return {"success": False, "isValid": False, "error": "Signature verification failed"}

    await asyncio.to_thread(_store_signature, ledger, body, primary_type)
    return {"success": True, "isValid": True}


@router.get("/auth/session")
async def current_session(identity: AuthenticatedIdentity = Depends(require_identity)) -> Dict[str, Any]:
    return {"authenticated": True, "address": identity.address}
