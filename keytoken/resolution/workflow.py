"""
Resolution Workflow

Finds the public key for a security token, imports it if it is new,
and promotes it onto the token.

State Machine:

INIT → SEARCHING → IMPORTABLE → IMPORTING → PROMOTING → DONE
           ↓                        ↓            ↓
    EXHAUSTED_MANUAL          IMPORT_FAILED  PROMOTE_FAILED

SEARCHING → PROMOTABLE → PROMOTING (key already known locally)
Any state → INIT → SEARCHING (on retry)

All methods must be called from the event loop thread. Lookups and
crypto operations run as tasks and report back through handle().
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from keytoken.config import Settings, get_settings
from keytoken.exceptions import ContractViolation, IllegalTransition, UnknownSourceError
from keytoken.lookup.models import FileRef, KeyRetrievalResult, OperationResult, TokenIdentity
from keytoken.lookup.sources import LookupRequest, LookupSourceId, LookupSources, build_request, run_lookup
from .classification import ResultKind, classify_result
from .events import (
    CompletionEvent,
    LookupCompleted,
    OperationCompleted,
    OperationKind,
    PermissionResolved,
)
from .operations import CryptoOperations, run_operation
from .permissions import PermissionGate, PermissionProvider
from .result_log import LogSnapshot, ResultLog
from .search import RunLookup, SearchCoordinator, SearchState, STATUS_LINES
from .view import ActionRequest, StatusLine, WorkflowView

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    INIT = "init"
    SEARCHING = "searching"
    EXHAUSTED_MANUAL = "exhausted_manual"
    IMPORTABLE = "importable"
    PROMOTABLE = "promotable"
    IMPORTING = "importing"
    IMPORT_FAILED = "import_failed"
    PROMOTING = "promoting"
    PROMOTE_FAILED = "promote_failed"
    DONE = "done"


# INIT is reachable from every state through retry.
VALID_TRANSITIONS: Dict[WorkflowState, Set[WorkflowState]] = {
    WorkflowState.INIT: {WorkflowState.SEARCHING, WorkflowState.EXHAUSTED_MANUAL},
    WorkflowState.SEARCHING: {
        WorkflowState.SEARCHING,
        WorkflowState.IMPORTABLE,
        WorkflowState.PROMOTABLE,
        WorkflowState.EXHAUSTED_MANUAL,
    },
    WorkflowState.EXHAUSTED_MANUAL: {WorkflowState.SEARCHING, WorkflowState.EXHAUSTED_MANUAL},
    WorkflowState.IMPORTABLE: {WorkflowState.IMPORTING, WorkflowState.SEARCHING},
    WorkflowState.PROMOTABLE: {WorkflowState.PROMOTING},
    WorkflowState.IMPORTING: {WorkflowState.PROMOTING, WorkflowState.IMPORT_FAILED},
    WorkflowState.IMPORT_FAILED: {WorkflowState.IMPORTING, WorkflowState.SEARCHING},
    WorkflowState.PROMOTING: {WorkflowState.DONE, WorkflowState.PROMOTE_FAILED},
    WorkflowState.PROMOTE_FAILED: {WorkflowState.SEARCHING},
    WorkflowState.DONE: {WorkflowState.SEARCHING},
}

_STARTABLE = (WorkflowState.INIT, WorkflowState.SEARCHING, WorkflowState.EXHAUSTED_MANUAL)
_IMPORT_READY = (WorkflowState.IMPORTABLE, WorkflowState.IMPORT_FAILED)
_BUSY = (WorkflowState.IMPORTING, WorkflowState.PROMOTING, WorkflowState.PROMOTABLE)


class _DetachedView(WorkflowView):
    """Stands in while no view is attached."""
    
    def status_line_add(self, line: StatusLine) -> None:
        logger.debug("No view attached, dropping status line %s", line.value)
    
    def status_line_ok(self) -> None:
        pass
    
    def status_line_error(self) -> None:
        pass
    
    def reset_status_lines(self) -> None:
        pass
    
    def show_action(self, action: ActionRequest) -> None:
        logger.debug("No view attached, dropping action %s", action.value)
    
    def hide_action(self) -> None:
        pass
    
    def show_log(self, snapshot: LogSnapshot) -> None:
        pass
    
    def finish_and_show_key(self, master_key_id: int) -> None:
        pass


_DETACHED = _DetachedView()


class ResolutionWorkflow:
    """
    Drives key resolution for one security token.
    
    Lookup order, import and promotion are decided here; the lookups,
    the crypto operations and the permission prompt are delegated to
    the collaborators passed in.
    """
    
    def __init__(
        self,
        token: TokenIdentity,
        sources: LookupSources,
        operations: CryptoOperations,
        permissions: PermissionProvider,
        view: Optional[WorkflowView] = None,
        coordinator: Optional[SearchCoordinator] = None,
        config: Optional[Settings] = None,
    ):
        missing = sources.missing()
        if missing:
            raise UnknownSourceError(
                "No lookup source registered for: " + ", ".join(s.value for s in missing)
            )
        
        self._token = token
        self._sources = sources
        self._operations = operations
        self._gate = PermissionGate(permissions)
        self._view = view
        self._coordinator = coordinator or SearchCoordinator()
        self._config = config or get_settings()
        
        self._state = WorkflowState.INIT
        self._search = SearchState()
        self._log = ResultLog()
        self._pending_import: Optional[bytes] = None
        self._master_key_id: Optional[int] = None
        
        self._tasks: Set[asyncio.Task] = set()
        self._lookups: Dict[LookupSourceId, asyncio.Task] = {}
        self._operation: Optional[asyncio.Task] = None
        self._errors: List[BaseException] = []
    
    # ---------------------------
    # Inspection
    # ---------------------------
    @property
    def token(self) -> TokenIdentity:
        return self._token
    
    @property
    def state(self) -> WorkflowState:
        return self._state
    
    @property
    def search_state(self) -> SearchState:
        return self._search
    
    @property
    def result_log(self) -> ResultLog:
        return self._log
    
    @property
    def pending_import(self) -> Optional[bytes]:
        return self._pending_import
    
    @property
    def master_key_id(self) -> Optional[int]:
        return self._master_key_id
    
    @property
    def pending_file(self) -> Optional[FileRef]:
        return self._gate.pending
    
    @property
    def view(self) -> WorkflowView:
        return self._view or _DETACHED
    
    def set_view(self, view: Optional[WorkflowView]) -> None:
        self._view = view
    
    # ---------------------------
    # Search
    # ---------------------------
    def start(self) -> bool:
        """
        Continue the search from the first source not yet attempted.
        
        A no-op while a lookup is in flight or once a key has been
        found.
        
        Returns:
            True if the search was advanced
        """
        if self._lookups or self._state not in _STARTABLE:
            logger.debug("Start ignored in state %s", self._state.value)
            return False
        
        self._continue_search()
        return True
    
    def on_retry(self) -> None:
        """
        Forget all search progress and search again from the local store.
        
        Lookups and operations still in flight are left to finish; their
        results carry the old epoch and are dropped.
        """
        self._lookups.clear()
        self._operation = None
        
        self._search = self._search.reset()
        self._pending_import = None
        self._master_key_id = None
        self._gate.deny()
        logger.info("Retrying key search (epoch %d)", self._search.epoch)
        
        self.view.hide_action()
        self.view.reset_status_lines()
        self._transition(WorkflowState.INIT)
        self.start()
    
    def on_lookup_completed(
        self,
        source_id: LookupSourceId,
        result: KeyRetrievalResult,
        epoch: Optional[int] = None,
    ) -> None:
        """
        Process the outcome of one lookup.
        
        Args:
            source_id: Source that produced the result
            result: Lookup outcome
            epoch: Search epoch the lookup was dispatched in; results
                from an earlier epoch are dropped
        """
        if epoch is not None and epoch != self._search.epoch:
            logger.warning(
                "Dropping stale %s result from epoch %d (current %d)",
                getattr(source_id, "value", source_id), epoch, self._search.epoch,
            )
            return
        
        if self._view is None:
            logger.debug("No view attached, dropping %s result", source_id)
            return
        
        self._search = self._search.mark_attempted(source_id)
        self._log.add(result.operation_result, self._config.log_indent)
        
        if result.success:
            self._process_result(result)
        else:
            self._continue_search_after_error()
    
    def _continue_search_after_error(self) -> None:
        self.view.status_line_error()
        self._continue_search()
    
    def _continue_search(self) -> None:
        action = self._coordinator.advance(self._search)
        
        if isinstance(action, RunLookup):
            self._transition(WorkflowState.SEARCHING)
            self.view.status_line_add(action.status_line)
            self._dispatch_lookup(build_request(action.source_id, self._token))
            return
        
        self._transition(WorkflowState.EXHAUSTED_MANUAL)
        self.view.show_action(ActionRequest.SHOW_RETRY_OR_FILE)
    
    def _process_result(self, result: KeyRetrievalResult) -> None:
        classification = classify_result(result)
        self.view.status_line_ok()
        self._master_key_id = classification.master_key_id
        
        if classification.kind is ResultKind.IMPORTABLE:
            self._pending_import = classification.key_data
            self._transition(WorkflowState.IMPORTABLE)
            logger.info(
                "Found new key %016x (%d bytes), import available",
                classification.master_key_id, len(classification.key_data),
            )
            self.view.show_action(ActionRequest.SHOW_IMPORT)
            return
        
        self._transition(WorkflowState.PROMOTABLE)
        logger.info("Key %016x already known, promoting", classification.master_key_id)
        self.view.status_line_add(StatusLine.TOKEN_CHECK)
        self._promote()
    
    # ---------------------------
    # Import / promote
    # ---------------------------
    def on_click_import(self) -> bool:
        """Import the key found by the search."""
        if self._state not in _IMPORT_READY or self._pending_import is None:
            logger.warning("Import requested with nothing to import (state %s)", self._state.value)
            return False
        if self._operation is not None:
            logger.warning("Import requested while an operation is in flight")
            return False
        
        self.view.status_line_add(StatusLine.IMPORT)
        self.view.hide_action()
        self._transition(WorkflowState.IMPORTING)
        self._dispatch_operation(
            OperationKind.IMPORT, self._operations.import_key(self._pending_import)
        )
        return True
    
    def on_import_success(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        self._pending_import = None
        
        self.view.status_line_ok()
        self.view.status_line_add(StatusLine.TOKEN_PROMOTE)
        self._promote()
    
    def on_import_error(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        
        self.view.status_line_error()
        self._transition(WorkflowState.IMPORT_FAILED)
        self.view.show_action(ActionRequest.SHOW_IMPORT)
    
    def _promote(self) -> None:
        self._transition(WorkflowState.PROMOTING)
        self._dispatch_operation(
            OperationKind.PROMOTE,
            self._operations.promote_key(self._master_key_id, self._token.aid),
        )
    
    def on_promote_success(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        
        self.view.status_line_ok()
        self._transition(WorkflowState.DONE)
        self.view.show_action(ActionRequest.SHOW_VIEW_KEY)
    
    def on_promote_error(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        
        self.view.status_line_error()
        self._transition(WorkflowState.PROMOTE_FAILED)
        self.view.show_action(ActionRequest.SHOW_RETRY_OR_FILE)
    
    def on_click_view_key(self) -> bool:
        if self._state is not WorkflowState.DONE or self._master_key_id is None:
            logger.warning("View key requested before promotion finished")
            return False
        
        self.view.finish_and_show_key(self._master_key_id)
        return True
    
    # ---------------------------
    # Token reset
    # ---------------------------
    def on_click_reset_token(self) -> None:
        self.view.show_action(ActionRequest.SHOW_CONFIRM_RESET)
    
    def on_click_confirm_reset(self) -> bool:
        if self._operation is not None:
            logger.warning("Token reset requested while an operation is in flight")
            return False
        
        self._dispatch_operation(OperationKind.TOKEN_RESET, self._operations.reset_token())
        return True
    
    def on_token_reset_success(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        logger.info("Security token reset")
    
    def on_token_reset_error(self, result: OperationResult) -> None:
        self._log.add(result, self._config.log_indent)
        logger.warning("Security token reset failed: %s", result.message)
    
    # ---------------------------
    # Manual file load
    # ---------------------------
    def on_click_load_file(self) -> None:
        self.view.show_action(ActionRequest.SHOW_FILE_DIALOG)
    
    def on_file_selected(self, file_ref: FileRef) -> bool:
        """
        Look up the key in a user-selected file.
        
        Returns:
            True if the lookup was dispatched. False if it waits for a
            permission decision or the workflow is busy.
        """
        if self._lookups or self._state in _BUSY:
            logger.warning("File selected while busy (state %s)", self._state.value)
            return False
        
        if self._gate.admit(file_ref):
            self._start_loading_file(file_ref)
            return True
        
        logger.info("Read permission missing for %s, requesting", file_ref.uri)
        self.view.show_action(ActionRequest.REQUEST_PERMISSION)
        self._spawn(self._permission_task())
        return False
    
    def on_storage_permission_granted(self) -> None:
        file_ref = self._gate.grant()
        if file_ref is None:
            logger.debug("Permission granted with no pending file selection")
            return
        
        if self._lookups or self._state in _BUSY:
            logger.warning(
                "Dropping file selection %s, permission granted while busy (state %s)",
                file_ref.uri, self._state.value,
            )
            return
        
        self._start_loading_file(file_ref)
    
    def on_storage_permission_denied(self) -> None:
        self._gate.deny()
    
    def _start_loading_file(self, file_ref: FileRef) -> None:
        self.view.hide_action()
        self.view.reset_status_lines()
        self.view.status_line_add(STATUS_LINES[LookupSourceId.CONTENT_FILE])
        self._transition(WorkflowState.SEARCHING)
        self._dispatch_lookup(build_request(LookupSourceId.CONTENT_FILE, self._token, file_ref))
    
    # ---------------------------
    # Log
    # ---------------------------
    def on_click_view_log(self) -> LogSnapshot:
        snapshot = self._log.snapshot()
        self.view.show_log(snapshot)
        return snapshot
    
    # ---------------------------
    # Completion routing
    # ---------------------------
    def handle(self, event: CompletionEvent) -> None:
        """Single entry point for all asynchronous completions."""
        if isinstance(event, LookupCompleted):
            self.on_lookup_completed(event.source_id, event.result, epoch=event.epoch)
        elif isinstance(event, OperationCompleted):
            self._on_operation_completed(event)
        elif isinstance(event, PermissionResolved):
            if event.granted:
                self.on_storage_permission_granted()
            else:
                self.on_storage_permission_denied()
        else:
            raise ContractViolation(f"Unknown completion event: {type(event).__name__}")
    
    def _on_operation_completed(self, event: OperationCompleted) -> None:
        handlers: Dict[OperationKind, Tuple[Callable, Callable]] = {
            OperationKind.IMPORT: (self.on_import_success, self.on_import_error),
            OperationKind.PROMOTE: (self.on_promote_success, self.on_promote_error),
            OperationKind.TOKEN_RESET: (self.on_token_reset_success, self.on_token_reset_error),
        }
        on_success, on_error = handlers[event.kind]
        
        if event.kind is not OperationKind.TOKEN_RESET and event.epoch != self._search.epoch:
            logger.warning(
                "Dropping stale %s result from epoch %d (current %d)",
                event.kind.value, event.epoch, self._search.epoch,
            )
            return
        
        logger.info(
            "Operation %s finished: %s", event.kind.value, "ok" if event.result.success else "error"
        )
        if event.result.success:
            on_success(event.result)
        else:
            on_error(event.result)
    
    # ---------------------------
    # Tasks
    # ---------------------------
    def _dispatch_lookup(self, request: LookupRequest) -> None:
        source_id = request.source_id
        previous = self._lookups.pop(source_id, None)
        if previous is not None:
            logger.debug("Superseding in-flight %s lookup", source_id.value)
            previous.cancel()
        
        logger.info("Searching via %s", source_id.value)
        self._lookups[source_id] = self._spawn(self._lookup_task(request, self._search.epoch))
    
    async def _lookup_task(self, request: LookupRequest, epoch: int) -> None:
        result = await run_lookup(self._sources, request, self._config.lookup_timeout)
        
        if self._lookups.get(request.source_id) is asyncio.current_task():
            del self._lookups[request.source_id]
        self.handle(LookupCompleted(source_id=request.source_id, epoch=epoch, result=result))
    
    def _dispatch_operation(self, kind: OperationKind, call) -> None:
        self._operation = self._spawn(self._operation_task(kind, call, self._search.epoch))
    
    async def _operation_task(self, kind: OperationKind, call, epoch: int) -> None:
        result = await run_operation(kind, call, self._config.operation_timeout)
        
        if self._operation is asyncio.current_task():
            self._operation = None
        self.handle(OperationCompleted(kind=kind, epoch=epoch, result=result))
    
    async def _permission_task(self) -> None:
        granted = await self._gate.provider.request_permission()
        self.handle(PermissionResolved(granted=bool(granted)))
    
    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task
    
    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        
        exc = task.exception()
        if exc is not None:
            logger.error("Workflow task failed: %s", exc, exc_info=exc)
            self._errors.append(exc)
    
    async def wait_idle(self) -> None:
        """
        Wait until no lookup or operation is in flight.
        
        Raises:
            The first exception raised by a background task, such as a
            ContractViolation from a misbehaving collaborator
        """
        while self._tasks:
            await asyncio.wait(set(self._tasks))
        
        if self._errors:
            raise self._errors.pop(0)
    
    # ---------------------------
    # State
    # ---------------------------
    def _transition(self, new_state: WorkflowState) -> None:
        if new_state is not WorkflowState.INIT and new_state not in VALID_TRANSITIONS[self._state]:
            raise IllegalTransition(
                f"Cannot move from {self._state.value} to {new_state.value}"
            )
        
        if new_state is not self._state:
            logger.debug("Workflow: %s → %s", self._state.value, new_state.value)
        self._state = new_state
