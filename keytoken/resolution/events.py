"""
Completion Events

Every asynchronous step reports back to the workflow as one of these
events. Each carries the search epoch it was dispatched in so results
from a superseded round can be told apart.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from keytoken.lookup.models import KeyRetrievalResult, OperationResult
from keytoken.lookup.sources import LookupSourceId


class OperationKind(Enum):
    IMPORT = "import"
    PROMOTE = "promote"
    TOKEN_RESET = "token_reset"


@dataclass(frozen=True)
class LookupCompleted:
    source_id: LookupSourceId
    epoch: int
    result: KeyRetrievalResult


@dataclass(frozen=True)
class OperationCompleted:
    kind: OperationKind
    epoch: int
    result: OperationResult


@dataclass(frozen=True)
class PermissionResolved:
    granted: bool


CompletionEvent = Union[LookupCompleted, OperationCompleted, PermissionResolved]
