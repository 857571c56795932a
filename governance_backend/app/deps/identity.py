from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from governance_backend.app.auth.ledger import SignatureLedger
from governance_backend.app.auth.session import (
    USER_ADDRESS_HEADER,
    AuthenticatedIdentity,
    authenticate,
    get_ledger,
)
from governance_backend.app.reliability.errors import not_authenticated


def ledger_dependency() -> SignatureLedger:
    return get_ledger()


def identity_dependency(
    request: Request,
    ledger: SignatureLedger = Depends(ledger_dependency),
) -> Optional[AuthenticatedIdentity]:
    identity = authenticate(request.headers.get(USER_ADDRESS_HEADER), ledger=ledger)
    request.state.identity = identity
    return identity


def require_identity(
    identity: Optional[AuthenticatedIdentity] = Depends(identity_dependency),
) -> AuthenticatedIdentity:
    if identity is None:
        raise not_authenticated()
    return identity
