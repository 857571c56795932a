"""EIP-712 typed-data request models for wallet sign-in.

The verification endpoint accepts a ``{domain, types, message}`` triple. The
models here validate that triple structurally before anything is hashed, and
resolve the message model from the declared primary type.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOMAIN_TYPE_NAME = "EIP712Domain"

# Order matters: it is the canonical EIP712Domain field order.
_DOMAIN_FIELD_TYPES = (
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
)


class TypedDataError(ValueError):
    """Raised when a typed-data payload is structurally unusable."""


def normalize_chain_id(value: Any) -> int:
    """Return the exact integer value of a chain identifier.

    Accepts ints, decimal strings and ``0x`` hex strings. Booleans and floats
    are rejected: typed-data hashing needs an exact-width integer.
    """
    if isinstance(value, bool):
        raise TypedDataError("chainId must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise TypedDataError("chainId is empty")
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text, 10)
        except ValueError as exc:
            raise TypedDataError("chainId is not numeric") from exc
    raise TypedDataError(f"unsupported chainId type: {type(value).__name__}")


def chain_id_text(value: Any) -> str:
    """Lossless text form of a chain identifier, for storage."""
    return str(normalize_chain_id(value))


class TypedDataDomain(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    version: Optional[str] = None
    chain_id: Optional[Union[int, str]] = Field(None, alias="chainId")
    verifying_contract: Optional[str] = Field(None, alias="verifyingContract")
    salt: Optional[str] = None

    @field_validator("chain_id", mode="before")
    @classmethod
    def reject_float_chain_id(cls, v: Any) -> Any:
        if isinstance(v, (bool, float)):
            raise ValueError("chainId must be an integer or numeric string")
        return v

    def missing_required(self) -> List[str]:
        missing = []
        if not self.name:
            missing.append("name")
        if not self.version:
            missing.append("version")
        if self.chain_id is None or self.chain_id == "":
            missing.append("chainId")
        return missing

    def to_signing_dict(self) -> Dict[str, Any]:
        """Domain with chainId as an exact int, camelCase keys, absent fields dropped."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        if "chainId" in data:
            data["chainId"] = normalize_chain_id(data["chainId"])
        return data

    def domain_type_fields(self) -> List[Dict[str, str]]:
        present = self.model_dump(by_alias=True, exclude_none=True)
        return [{"name": name, "type": kind} for name, kind in _DOMAIN_FIELD_TYPES if name in present]


class TypedDataField(BaseModel):
    name: str
    type: str


class SignInMessage(BaseModel):
    """Sign-in payload. Extra fields (statement, uri, address...) are kept as signed."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    chain_id: Union[int, str] = Field(alias="chainId")
    nonce: Union[str, int]
    issued: Union[str, int]

    @field_validator("chain_id", mode="before")
    @classmethod
    def reject_float_chain_id(cls, v: Any) -> Any:
        if isinstance(v, (bool, float)):
            raise ValueError("chainId must be an integer or numeric string")
        return v

    @property
    def nonce_text(self) -> str:
        return str(self.nonce)

    @property
    def issued_text(self) -> str:
        return str(self.issued)

    def to_signing_dict(self) -> Dict[str, Any]:
        # Values keep the types they were signed with; only chainId is widened.
        data = self.model_dump(by_alias=True)
        data["chainId"] = normalize_chain_id(data["chainId"])
        return data

    def to_storage_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["chainId"] = chain_id_text(data["chainId"])
        return data


# Message model per supported primary type.
PRIMARY_TYPE_MESSAGES: Dict[str, Type[SignInMessage]] = {
    "SignIn": SignInMessage,
}


def parse_types(raw: Any) -> Dict[str, List[TypedDataField]]:
    if not isinstance(raw, dict) or not raw:
        raise TypedDataError("types must be a non-empty object")
    parsed: Dict[str, List[TypedDataField]] = {}
    for type_name, fields in raw.items():
        if not isinstance(fields, list):
            raise TypedDataError(f"type {type_name!r} must be a list of fields")
        parsed[str(type_name)] = [TypedDataField.model_validate(f) for f in fields]
    return parsed


def declared_primary_type(types: Dict[str, Any]) -> Optional[str]:
    """First declared struct type, ignoring the domain type."""
    for type_name in types:
        if type_name != DOMAIN_TYPE_NAME:
            return type_name
    return None


def referenced_types(types: Dict[str, List[TypedDataField]], primary_type: str) -> List[str]:
    """``primary_type`` and every struct it reaches, in declaration order.

    Declared structs the primary type never references are not part of the
    signed hash.
    """
    reached = set()
    pending = [primary_type]
    while pending:
        name = pending.pop()
        if name in reached or name not in types:
            continue
        reached.add(name)
        # "Item[]" and "Item[3]" refer to the struct "Item".
        pending.extend(field.type.split("[", 1)[0] for field in types[name])
    return [name for name in types if name in reached]


def parse_message(primary_type: str, raw: Any) -> SignInMessage:
    model = PRIMARY_TYPE_MESSAGES.get(primary_type)
    if model is None:
        raise TypedDataError(f"unsupported primary type: {primary_type}")
    if isinstance(raw, model):
        return raw
    return model.model_validate(raw)


__all__ = [
    "DOMAIN_TYPE_NAME",
    "PRIMARY_TYPE_MESSAGES",
    "SignInMessage",
    "TypedDataDomain",
    "TypedDataError",
    "TypedDataField",
    "chain_id_text",
    "declared_primary_type",
    "normalize_chain_id",
    "parse_message",
    "parse_types",
    "referenced_types",
]
