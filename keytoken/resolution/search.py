"""
Search Coordination

Fallback order over the lookup sources:
local store → token URL → keyserver.

The first source not yet attempted is queried next. Once all three
have been attempted, the user is offered a retry or a manual file load.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Tuple, Union

from keytoken.exceptions import UnknownSourceError
from keytoken.lookup.sources import LookupSourceId
from .view import StatusLine

logger = logging.getLogger(__name__)

SEARCH_ORDER: Tuple[LookupSourceId, ...] = (
    LookupSourceId.LOCAL_STORE,
    LookupSourceId.URL_FETCH,
    LookupSourceId.KEYSERVER,
)

STATUS_LINES: Dict[LookupSourceId, StatusLine] = {
    LookupSourceId.LOCAL_STORE: StatusLine.SEARCH_LOCAL,
    LookupSourceId.URL_FETCH: StatusLine.SEARCH_URL,
    LookupSourceId.KEYSERVER: StatusLine.SEARCH_KEYSERVER,
    LookupSourceId.CONTENT_FILE: StatusLine.SEARCH_CONTENT_FILE,
}

_FLAGS: Dict[LookupSourceId, str] = {
    LookupSourceId.LOCAL_STORE: "searched_local",
    LookupSourceId.URL_FETCH: "searched_url",
    LookupSourceId.KEYSERVER: "searched_keyserver",
}


@dataclass(frozen=True)
class SearchState:
    """
    Which fallback sources have been attempted in the current round.
    
    Flags only go from False to True. reset() clears all of them and
    starts a new epoch.
    """
    searched_local: bool = False
    searched_url: bool = False
    searched_keyserver: bool = False
    epoch: int = 0
    
    def attempted(self, source_id: LookupSourceId) -> bool:
        flag = _FLAGS.get(source_id)
        if flag is None:
            return False
        return getattr(self, flag)
    
    @property
    def exhausted(self) -> bool:
        return self.searched_local and self.searched_url and self.searched_keyserver
    
    def mark_attempted(self, source_id: LookupSourceId) -> "SearchState":
        """
        Record a completed lookup.
        
        Content file lookups run outside the fallback chain and leave
        the state unchanged.
        """
        if not isinstance(source_id, LookupSourceId):
            raise UnknownSourceError(f"Unknown lookup source: {source_id!r}")
        if source_id is LookupSourceId.CONTENT_FILE:
            return self
        return replace(self, **{_FLAGS[source_id]: True})
    
    def reset(self) -> "SearchState":
        return SearchState(epoch=self.epoch + 1)


@dataclass(frozen=True)
class RunLookup:
    source_id: LookupSourceId
    
    @property
    def status_line(self) -> StatusLine:
        return STATUS_LINES[self.source_id]


@dataclass(frozen=True)
class SearchExhausted:
    pass


SearchAction = Union[RunLookup, SearchExhausted]


class SearchCoordinator:
    """Picks the next lookup for a search state."""
    
    def __init__(self, order: Tuple[LookupSourceId, ...] = SEARCH_ORDER):
        for source_id in order:
            if source_id not in _FLAGS:
                raise ValueError(f"{source_id.value} cannot be part of the fallback order")
        self._order = tuple(order)
    
    @property
    def order(self) -> Tuple[LookupSourceId, ...]:
        return self._order
    
    def advance(self, state: SearchState) -> SearchAction:
        for source_id in self._order:
            if not state.attempted(source_id):
                logger.debug("Next source: %s (epoch %d)", source_id.value, state.epoch)
                return RunLookup(source_id)
        
        logger.info("All lookup sources attempted (epoch %d)", state.epoch)
        return SearchExhausted()
