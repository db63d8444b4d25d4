"""
Resolution Package

Resolves a security token's public key through the fallback chain of
lookup sources, then imports it and promotes it onto the token.
"""

from .classification import Classification, ResultKind, classify_result
from .events import (
    CompletionEvent,
    LookupCompleted,
    OperationCompleted,
    OperationKind,
    PermissionResolved,
)
from .operations import CryptoOperations, run_operation
from .permissions import PermissionGate, PermissionProvider
from .result_log import LogEntry, LogSnapshot, ResultLog
from .search import (
    SEARCH_ORDER,
    RunLookup,
    SearchAction,
    SearchCoordinator,
    SearchExhausted,
    SearchState,
)
from .view import ActionRequest, StatusLine, WorkflowView
from .workflow import ResolutionWorkflow, WorkflowState

__all__ = [
    "Classification",
    "ResultKind",
    "classify_result",
    "CompletionEvent",
    "LookupCompleted",
    "OperationCompleted",
    "OperationKind",
    "PermissionResolved",
    "CryptoOperations",
    "run_operation",
    "PermissionGate",
    "PermissionProvider",
    "LogEntry",
    "LogSnapshot",
    "ResultLog",
    "SEARCH_ORDER",
    "RunLookup",
    "SearchAction",
    "SearchCoordinator",
    "SearchExhausted",
    "SearchState",
    "ActionRequest",
    "StatusLine",
    "WorkflowView",
    "ResolutionWorkflow",
    "WorkflowState",
]
