"""
Result Classification

Decides whether a successful lookup leads to an import or straight to
promotion.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from keytoken.exceptions import ClassificationError
from keytoken.lookup.models import KeyRetrievalResult


class ResultKind(Enum):
    IMPORTABLE = "importable"
    PROMOTABLE = "promotable"


@dataclass(frozen=True)
class Classification:
    kind: ResultKind
    master_key_id: int
    key_data: Optional[bytes] = None


def classify_result(result: KeyRetrievalResult) -> Classification:
    """
    Classify a successful lookup result.
    
    - key data and master key id: the key is new, offer an import
    - master key id only: the key is already known, promote it
    
    Raises:
        ClassificationError: If the result is not successful or carries
            no master key id
    """
    if not result.success:
        raise ClassificationError("Only successful results can be classified")
    
    if result.key_data is not None and result.master_key_id is not None:
        return Classification(
            kind=ResultKind.IMPORTABLE,
            master_key_id=result.master_key_id,
            key_data=result.key_data,
        )
    
    if result.master_key_id is not None:
        return Classification(
            kind=ResultKind.PROMOTABLE,
            master_key_id=result.master_key_id,
        )
    
    raise ClassificationError(
        f"Successful {result.operation_result.operation} result carries no master key id"
    )
