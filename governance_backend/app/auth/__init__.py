from .session import AuthenticatedIdentity, USER_ADDRESS_HEADER, authenticate
from .ledger import SignatureLedger, SignatureRecord
from .verifier import verify

__all__ = [
    "AuthenticatedIdentity",
    "USER_ADDRESS_HEADER",
    "authenticate",
    "SignatureLedger",
    "SignatureRecord",
    "verify",
]
