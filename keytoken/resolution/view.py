"""
Workflow View Contract

The UI sink driven by the resolution workflow. Rendering is left to
the embedding application.
"""

from abc import ABC, abstractmethod
from enum import Enum

from .result_log import LogSnapshot


class StatusLine(Enum):
    SEARCH_LOCAL = "search_local"
    SEARCH_URL = "search_url"
    SEARCH_KEYSERVER = "search_keyserver"
    SEARCH_CONTENT_FILE = "search_content_file"
    IMPORT = "import"
    TOKEN_CHECK = "token_check"
    TOKEN_PROMOTE = "token_promote"


class ActionRequest(Enum):
    SHOW_IMPORT = "show_import"
    SHOW_RETRY_OR_FILE = "show_retry_or_file"
    SHOW_VIEW_KEY = "show_view_key"
    SHOW_CONFIRM_RESET = "show_confirm_reset"
    REQUEST_PERMISSION = "request_permission"
    SHOW_FILE_DIALOG = "show_file_dialog"


class WorkflowView(ABC):
    """
    Receives status lines and action requests from the workflow.
    
    Every status line added is later closed by exactly one of
    status_line_ok or status_line_error, unless the lines are reset
    first.
    """
    
    @abstractmethod
    def status_line_add(self, line: StatusLine) -> None:
        pass
    
    @abstractmethod
    def status_line_ok(self) -> None:
        pass
    
    @abstractmethod
    def status_line_error(self) -> None:
        pass
    
    @abstractmethod
    def reset_status_lines(self) -> None:
        pass
    
    @abstractmethod
    def show_action(self, action: ActionRequest) -> None:
        pass
    
    @abstractmethod
    def hide_action(self) -> None:
        pass
    
    @abstractmethod
    def show_log(self, snapshot: LogSnapshot) -> None:
        """Display the result log."""
        pass
    
    @abstractmethod
    def finish_and_show_key(self, master_key_id: int) -> None:
        """Leave the workflow and open the resolved key."""
        pass
