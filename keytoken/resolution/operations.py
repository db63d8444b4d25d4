"""
Crypto Operations Contract

Import, promote and token reset are performed by the embedding
application. Failures come back as failed OperationResults.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable

from keytoken.exceptions import ContractViolation, OperationFailure
from keytoken.lookup.models import OperationResult
from .events import OperationKind

logger = logging.getLogger(__name__)


class CryptoOperations(ABC):
    """Abstract base class for the key import and token operations."""
    
    @abstractmethod
    async def import_key(self, key_data: bytes) -> OperationResult:
        """
        Import a public key into the local key store.
        
        Args:
            key_data: Raw key material returned by a lookup source
        
        Returns:
            Outcome of the import
        """
        pass
    
    @abstractmethod
    async def promote_key(self, master_key_id: int, aid: bytes) -> OperationResult:
        """
        Bind a locally known key to the security token.
        
        Args:
            master_key_id: Id of the key in the local store
            aid: Application identifier of the token
        
        Returns:
            Outcome of the promotion
        """
        pass
    
    @abstractmethod
    async def reset_token(self) -> OperationResult:
        """Reset the security token."""
        pass


async def run_operation(
    kind: OperationKind,
    call: Awaitable[OperationResult],
    timeout: float,
) -> OperationResult:
    """
    Await a crypto operation, converting recoverable failures.
    
    Raises:
        ContractViolation: If the operation returned something other
            than an OperationResult
    """
    try:
        result = await asyncio.wait_for(call, timeout)
    except OperationFailure as e:
        logger.warning("Operation %s failed: %s", kind.value, e)
        return OperationResult.error(kind.value, str(e))
    except asyncio.TimeoutError:
        logger.warning("Operation %s timed out after %.1fs", kind.value, timeout)
        return OperationResult.error(kind.value, f"Timed out after {timeout}s")
    
    if not isinstance(result, OperationResult):
        raise ContractViolation(
            f"Operation {kind.value} returned {type(result).__name__}"
        )
    return result
