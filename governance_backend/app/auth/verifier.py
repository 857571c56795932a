from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from eth_account import Account
from eth_account.messages import encode_typed_data

from governance_backend.app.auth.typed_data import (
    DOMAIN_TYPE_NAME,
    SignInMessage,
    TypedDataDomain,
    declared_primary_type,
    parse_message,
    parse_types,
    referenced_types,
)

DEFAULT_PRIMARY_TYPE = "SignIn"


def _domain_model(domain: Union[TypedDataDomain, Mapping[str, Any]]) -> TypedDataDomain:
    if isinstance(domain, TypedDataDomain):
        return domain
    return TypedDataDomain.model_validate(dict(domain))


def build_typed_data(
    domain: Union[TypedDataDomain, Mapping[str, Any]],
    types: Mapping[str, Any],
    message: Union[SignInMessage, Mapping[str, Any]],
    *,
    primary_type: str = DEFAULT_PRIMARY_TYPE,
) -> Dict[str, Any]:
    """Assemble the full EIP-712 document that gets hashed.

    The domain type is always derived from the domain fields actually present,
    only the primary type and the structs it references are hashed, and every
    chainId is widened to an exact int.
    """
    domain_obj = _domain_model(domain)
    parsed_types = parse_types(dict(types))
    struct_types = {
        name: [field.model_dump() for field in parsed_types[name]]
        for name in referenced_types(parsed_types, primary_type)
        if name != DOMAIN_TYPE_NAME
    }
    message_obj = parse_message(primary_type, message)
    return {
        "types": {DOMAIN_TYPE_NAME: domain_obj.domain_type_fields(), **struct_types},
        "primaryType": primary_type,
        "domain": domain_obj.to_signing_dict(),
        "message": message_obj.to_signing_dict(),
    }


def recover_signer(typed_data: Dict[str, Any], signature: Union[str, bytes]) -> str:
    signable = encode_typed_data(full_message=typed_data)
    return Account.recover_message(signable, signature=signature)


def verify(
    domain: Union[TypedDataDomain, Mapping[str, Any]],
    types: Mapping[str, Any],
    message: Union[SignInMessage, Mapping[str, Any]],
    signature: Union[str, bytes],
    claimed_address: str,
    *,
    primary_type: Optional[str] = None,
) -> bool:
    """Return True when ``signature`` over the typed data was produced by ``claimed_address``.

    Never raises. Missing domain fields, an undeclared primary type, malformed
    signatures and unrecoverable payloads all come back as False, the same
    value a signature from the wrong key produces. Callers log; this does not.
    """
    expected_type = primary_type or DEFAULT_PRIMARY_TYPE
    try:
        domain_obj = _domain_model(domain)
        if domain_obj.missing_required():
            return False
        if not isinstance(types, Mapping) or declared_primary_type(dict(types)) != expected_type:
            return False
        if not isinstance(claimed_address, str) or not claimed_address:
            return False
        typed_data = build_typed_data(domain_obj, types, message, primary_type=expected_type)
        recovered = recover_signer(typed_data, signature)
        return recovered.lower() == claimed_address.lower()
    except Exception:
        return False


__all__ = ["DEFAULT_PRIMARY_TYPE", "build_typed_data", "recover_signer", "verify"]
