"""
Permission Gate

File-based lookups need storage read permission. A selection made
without permission is held here until the permission request is
answered.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from keytoken.lookup.models import FileRef

logger = logging.getLogger(__name__)


class PermissionProvider(ABC):
    
    @abstractmethod
    def check_read_permission(self, file_ref: FileRef) -> bool:
        """Check whether the file can be read right now."""
        pass
    
    @abstractmethod
    async def request_permission(self) -> bool:
        """
        Ask the user for storage read permission.
        
        Returns:
            True if permission was granted
        """
        pass


class PermissionGate:
    """Holds at most one file selection awaiting a permission decision."""
    
    def __init__(self, provider: PermissionProvider):
        self._provider = provider
        self._pending: Optional[FileRef] = None
    
    @property
    def provider(self) -> PermissionProvider:
        return self._provider
    
    @property
    def pending(self) -> Optional[FileRef]:
        return self._pending
    
    def admit(self, file_ref: FileRef) -> bool:
        """
        Check permission for a selected file.
        
        Returns:
            True if the file may be read now. Otherwise the reference
            is held as the pending selection, replacing any earlier one.
            A readable selection also supersedes the pending one.
        """
        if self._provider.check_read_permission(file_ref):
            if self._pending is not None:
                logger.info("Superseding pending file selection %s", self._pending.uri)
                self._pending = None
            return True
        
        if self._pending is not None:
            logger.info("Replacing pending file selection %s", self._pending.uri)
        self._pending = file_ref
        return False
    
    def grant(self) -> Optional[FileRef]:
        """Release the pending selection after permission was granted."""
        file_ref = self._pending
        self._pending = None
        return file_ref
    
    def deny(self) -> None:
        """Drop the pending selection."""
        if self._pending is not None:
            logger.debug("Discarding file selection %s", self._pending.uri)
        self._pending = None
