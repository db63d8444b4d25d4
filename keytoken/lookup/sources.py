"""
Lookup Sources

Contract for the asynchronous key lookup mechanisms. Each variant
receives its own request type; the mechanisms themselves are supplied
by the embedding application.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from keytoken.exceptions import ContractViolation, SourceLookupFailure, UnknownSourceError
from .models import FileRef, KeyRetrievalResult, OperationResult, TokenIdentity

logger = logging.getLogger(__name__)


class LookupSourceId(Enum):
    LOCAL_STORE = "local_store"
    URL_FETCH = "url_fetch"
    KEYSERVER = "keyserver"
    CONTENT_FILE = "content_file"


@dataclass(frozen=True)
class LocalStoreLookup:
    """Query the local key store for any of the token's fingerprints."""
    fingerprints: Tuple[bytes, ...]
    source_id: ClassVar[LookupSourceId] = LookupSourceId.LOCAL_STORE


@dataclass(frozen=True)
class UrlFetchLookup:
    """Fetch the key from the URL stored on the token."""
    url: Optional[str]
    fingerprints: Tuple[bytes, ...]
    source_id: ClassVar[LookupSourceId] = LookupSourceId.URL_FETCH


@dataclass(frozen=True)
class KeyserverLookup:
    """Query keyservers by signing fingerprint."""
    fingerprint_sign: bytes
    source_id: ClassVar[LookupSourceId] = LookupSourceId.KEYSERVER


@dataclass(frozen=True)
class ContentFileLookup:
    """Read the key from a user-selected file."""
    fingerprint_sign: bytes
    file_ref: FileRef
    source_id: ClassVar[LookupSourceId] = LookupSourceId.CONTENT_FILE


LookupRequest = Union[LocalStoreLookup, UrlFetchLookup, KeyserverLookup, ContentFileLookup]


def build_request(
    source_id: LookupSourceId,
    token: TokenIdentity,
    file_ref: Optional[FileRef] = None,
) -> LookupRequest:
    """Build the request for a source from the token's identity."""
    if source_id is LookupSourceId.LOCAL_STORE:
        return LocalStoreLookup(fingerprints=token.fingerprints)
    if source_id is LookupSourceId.URL_FETCH:
        return UrlFetchLookup(url=token.url, fingerprints=token.fingerprints)
    if source_id is LookupSourceId.KEYSERVER:
        return KeyserverLookup(fingerprint_sign=token.fingerprint_sign)
    if source_id is LookupSourceId.CONTENT_FILE:
        if file_ref is None:
            raise ContractViolation("Content file lookup requires a file reference")
        return ContentFileLookup(fingerprint_sign=token.fingerprint_sign, file_ref=file_ref)
    raise UnknownSourceError(f"Unknown lookup source: {source_id!r}")


class LookupSource(ABC):
    """
    Abstract base class for a key lookup mechanism.
    
    Implementations report an unreachable or empty source either by
    returning a failed KeyRetrievalResult or by raising
    SourceLookupFailure. Any other exception is treated as a bug.
    """
    
    source_id: ClassVar[LookupSourceId]
    
    @abstractmethod
    async def retrieve(self, request: LookupRequest) -> KeyRetrievalResult:
        """
        Look up the token's public key.
        
        Args:
            request: The request variant matching this source's id
        
        Returns:
            The lookup outcome
        """
        pass


class LookupSources:
    """Registry of the lookup mechanisms available to a workflow."""
    
    def __init__(self, sources: Iterable[LookupSource] = ()):
        self._sources: Dict[LookupSourceId, LookupSource] = {}
        for source in sources:
            self.register(source)
    
    def register(self, source: LookupSource) -> None:
        """Register a source, replacing any previous one with the same id."""
        self._sources[source.source_id] = source
    
    def get(self, source_id: LookupSourceId) -> LookupSource:
        """Get the source registered for an id."""
        source = self._sources.get(source_id)
        if source is None:
            raise UnknownSourceError(f"No lookup source registered for {source_id.value}")
        return source
    
    def missing(self) -> List[LookupSourceId]:
        """List the source ids with no registered implementation."""
        return [sid for sid in LookupSourceId if sid not in self._sources]
    
    def __contains__(self, source_id: LookupSourceId) -> bool:
        return source_id in self._sources


async def run_lookup(
    sources: LookupSources,
    request: LookupRequest,
    timeout: float,
) -> KeyRetrievalResult:
    """
    Run one lookup, converting recoverable failures into a failed result.
    
    Args:
        sources: Registry to resolve the request's source from
        request: Lookup request
        timeout: Upper bound in seconds for the source call
    
    Returns:
        KeyRetrievalResult from the source, or a failed result on
        SourceLookupFailure or timeout
    
    Raises:
        UnknownSourceError: If no source is registered for the request
        ContractViolation: If the source returned something other than
            a KeyRetrievalResult
    """
    source_id = request.source_id
    source = sources.get(source_id)
    
    try:
        result = await asyncio.wait_for(source.retrieve(request), timeout)
    except SourceLookupFailure as e:
        logger.warning("Lookup via %s failed: %s", source_id.value, e)
        return KeyRetrievalResult.failure(OperationResult.error(source_id.value, str(e)))
    except asyncio.TimeoutError:
        logger.warning("Lookup via %s timed out after %.1fs", source_id.value, timeout)
        return KeyRetrievalResult.failure(
            OperationResult.error(source_id.value, f"Timed out after {timeout}s")
        )
    
    if not isinstance(result, KeyRetrievalResult):
        raise ContractViolation(
            f"Lookup source {source_id.value} returned {type(result).__name__}"
        )
    return result
