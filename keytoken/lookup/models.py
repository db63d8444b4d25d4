"""
Lookup Data Models
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

FINGERPRINT_LENGTHS = (20, 32)


def _from_hex(value: Any) -> Any:
    if isinstance(value, str):
        return bytes.fromhex(value.replace(" ", "").replace(":", ""))
    return value


class TokenIdentity(BaseModel):
    """
    Immutable description of the physical security token.
    
    Byte fields accept hex strings, with optional space or colon
    separators.
    """
    model_config = ConfigDict(frozen=True)
    
    fingerprints: Tuple[bytes, ...] = ()
    url: Optional[str] = None
    aid: bytes
    fingerprint_sign: bytes
    
    @field_validator("fingerprints", mode="before")
    @classmethod
    def parse_fingerprints(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return tuple(_from_hex(fp) for fp in v)
        return v
    
    @field_validator("aid", "fingerprint_sign", mode="before")
    @classmethod
    def parse_hex(cls, v: Any) -> Any:
        return _from_hex(v)
    
    @field_validator("fingerprints")
    @classmethod
    def validate_fingerprints(cls, v: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
        for fp in v:
            if len(fp) not in FINGERPRINT_LENGTHS:
                raise ValueError(f"Invalid fingerprint length: {len(fp)} bytes")
        return v
    
    @field_validator("fingerprint_sign")
    @classmethod
    def validate_fingerprint_sign(cls, v: bytes) -> bytes:
        if len(v) not in FINGERPRINT_LENGTHS:
            raise ValueError(f"Invalid signing fingerprint length: {len(v)} bytes")
        return v
    
    @field_validator("url")
    @classmethod
    def blank_url_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


@dataclass(frozen=True)
class FileRef:
    """Reference to a user-selected file holding key material."""
    uri: str


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one sub-operation, as recorded in the result log."""
    operation: str
    success: bool
    message: str = ""
    
    @classmethod
    def ok(cls, operation: str, message: str = "") -> "OperationResult":
        return cls(operation=operation, success=True, message=message)
    
    @classmethod
    def error(cls, operation: str, message: str = "") -> "OperationResult":
        return cls(operation=operation, success=False, message=message)


@dataclass(frozen=True)
class KeyRetrievalResult:
    """
    Outcome of one lookup attempt.
    
    A successful result carries either key data plus the master key id
    (key not yet in the local store) or the master key id alone (key
    already known locally).
    """
    success: bool
    operation_result: OperationResult
    key_data: Optional[bytes] = None
    master_key_id: Optional[int] = None
    
    @classmethod
    def new_key(
        cls,
        operation_result: OperationResult,
        key_data: bytes,
        master_key_id: int,
    ) -> "KeyRetrievalResult":
        return cls(
            success=True,
            operation_result=operation_result,
            key_data=key_data,
            master_key_id=master_key_id,
        )
    
    @classmethod
    def known_key(
        cls,
        operation_result: OperationResult,
        master_key_id: int,
    ) -> "KeyRetrievalResult":
        return cls(
            success=True,
            operation_result=operation_result,
            master_key_id=master_key_id,
        )
    
    @classmethod
    def failure(cls, operation_result: OperationResult) -> "KeyRetrievalResult":
        return cls(success=False, operation_result=operation_result)
