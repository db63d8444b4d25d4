"""
Lookup Package

Typed contract for the key lookup mechanisms consulted while
resolving a security token's public key.
"""

from .models import FileRef, KeyRetrievalResult, OperationResult, TokenIdentity
from .sources import (
    ContentFileLookup,
    KeyserverLookup,
    LocalStoreLookup,
    LookupRequest,
    LookupSource,
    LookupSourceId,
    LookupSources,
    UrlFetchLookup,
    build_request,
    run_lookup,
)

__all__ = [
    "FileRef",
    "KeyRetrievalResult",
    "OperationResult",
    "TokenIdentity",
    "ContentFileLookup",
    "KeyserverLookup",
    "LocalStoreLookup",
    "LookupRequest",
    "LookupSource",
    "LookupSourceId",
    "LookupSources",
    "UrlFetchLookup",
    "build_request",
    "run_lookup",
]
