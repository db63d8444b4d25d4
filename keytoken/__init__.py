"""
Keytoken

Resolves the public key bound to a security token, imports it into the
local key store and promotes it onto the token.
"""

from .config import Settings, configure_logging, get_settings
from .exceptions import (
    ClassificationError,
    ContractViolation,
    IllegalTransition,
    ImportFailure,
    OperationFailure,
    PromoteFailure,
    ResolutionError,
    SourceLookupFailure,
    TokenResetFailure,
    UnknownSourceError,
)
from .lookup import (
    FileRef,
    KeyRetrievalResult,
    LookupSource,
    LookupSourceId,
    LookupSources,
    OperationResult,
    TokenIdentity,
)
from .resolution import (
    ActionRequest,
    CryptoOperations,
    PermissionProvider,
    ResolutionWorkflow,
    StatusLine,
    WorkflowState,
    WorkflowView,
)

__version__ = "1.0.0"

__all__ = [
    "Settings",
    "configure_logging",
    "get_settings",
    "ClassificationError",
    "ContractViolation",
    "IllegalTransition",
    "ImportFailure",
    "OperationFailure",
    "PromoteFailure",
    "ResolutionError",
    "SourceLookupFailure",
    "TokenResetFailure",
    "UnknownSourceError",
    "FileRef",
    "KeyRetrievalResult",
    "LookupSource",
    "LookupSourceId",
    "LookupSources",
    "OperationResult",
    "TokenIdentity",
    "ActionRequest",
    "CryptoOperations",
    "PermissionProvider",
    "ResolutionWorkflow",
    "StatusLine",
    "WorkflowState",
    "WorkflowView",
]
