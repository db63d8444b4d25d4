"""
Result Log

Append-only record of every sub-operation outcome in a workflow run.
"""

import logging
from datetime import datetime, timezone
from typing import Iterator, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from keytoken.lookup.models import OperationResult

logger = logging.getLogger(__name__)


class LogEntry(BaseModel):
    """One recorded outcome."""
    model_config = ConfigDict(frozen=True)
    
    operation: str
    success: bool
    message: str = ""
    indent: int = 0
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LogSnapshot(BaseModel):
    """Immutable export of the result log for display."""
    model_config = ConfigDict(frozen=True)
    
    success: bool = True
    entries: Tuple[LogEntry, ...] = ()
    
    @property
    def failures(self) -> Tuple[LogEntry, ...]:
        return tuple(e for e in self.entries if not e.success)


class ResultLog:
    """
    Ordered, append-only sequence of operation outcomes.
    
    Entries are never removed during a run; readers only ever see
    snapshots.
    """
    
    def __init__(self):
        self._entries: List[LogEntry] = []
    
    def add(self, result: OperationResult, indent: int = 0) -> LogEntry:
        """Append an operation outcome."""
        entry = LogEntry(
            operation=result.operation,
            success=result.success,
            message=result.message,
            indent=indent,
        )
        self._entries.append(entry)
        logger.debug(
            "Logged %s: %s", entry.operation, "ok" if entry.success else "error"
        )
        return entry
    
    def snapshot(self) -> LogSnapshot:
        """Export the current entries for display."""
        return LogSnapshot(entries=tuple(self._entries))
    
    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)
    
    def __len__(self) -> int:
        return len(self._entries)
    
    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))
