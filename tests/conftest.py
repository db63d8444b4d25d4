import asyncio
import os
from typing import List, Optional

import pytest

os.environ.setdefault("KEYTOKEN_LOG_LEVEL", "DEBUG")

from keytoken.config import Settings
from keytoken.lookup import (
    FileRef,
    KeyRetrievalResult,
    LookupSource,
    LookupSourceId,
    LookupSources,
    OperationResult,
    TokenIdentity,
)
from keytoken.resolution import (
    ActionRequest,
    CryptoOperations,
    PermissionProvider,
    ResolutionWorkflow,
    WorkflowView,
)

FINGERPRINT_SIGN = "aa" * 20
FINGERPRINT_DEC = "bb" * 20
MASTER_KEY_ID = 0x1234ABCD5678EF00
KEY_DATA = b"-----BEGIN PGP PUBLIC KEY BLOCK-----test"


def not_found(source_id: LookupSourceId) -> KeyRetrievalResult:
    return KeyRetrievalResult.failure(OperationResult.error(source_id.value, "no key found"))


def new_key(source_id: LookupSourceId) -> KeyRetrievalResult:
    return KeyRetrievalResult.new_key(OperationResult.ok(source_id.value), KEY_DATA, MASTER_KEY_ID)


def known_key(source_id: LookupSourceId) -> KeyRetrievalResult:
    return KeyRetrievalResult.known_key(OperationResult.ok(source_id.value), MASTER_KEY_ID)


class FakeSource(LookupSource):
    """Returns queued outcomes in order; the last one repeats."""

    def __init__(self, source_id: LookupSourceId, *outcomes):
        self.source_id = source_id
        self._outcomes = list(outcomes) or [not_found(source_id)]
        self.requests = []
        self.gate: Optional[asyncio.Event] = None

    def will_return(self, *outcomes) -> None:
        self._outcomes = list(outcomes)

    async def retrieve(self, request):
        self.requests.append(request)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if self.gate is not None:
            await self.gate.wait()
        
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeOperations(CryptoOperations):

    def __init__(self):
        self.import_result = OperationResult.ok("import")
        self.promote_result = OperationResult.ok("promote")
        self.reset_result = OperationResult.ok("token_reset")
        self.imported: List[bytes] = []
        self.promoted: List[tuple] = []
        self.resets = 0
        self.import_gate: Optional[asyncio.Event] = None

    async def import_key(self, key_data: bytes) -> OperationResult:
        self.imported.append(key_data)
        if self.import_gate is not None:
            await self.import_gate.wait()
        if isinstance(self.import_result, BaseException):
            raise self.import_result
        return self.import_result

    async def promote_key(self, master_key_id: int, aid: bytes) -> OperationResult:
        self.promoted.append((master_key_id, aid))
        if isinstance(self.promote_result, BaseException):
            raise self.promote_result
        return self.promote_result

    async def reset_token(self) -> OperationResult:
        self.resets += 1
        return self.reset_result


class FakePermissions(PermissionProvider):

    def __init__(self, allowed: bool = True):
        self.allowed = allowed
        self.requests = 0
        self._answer: Optional[asyncio.Future] = None

    def check_read_permission(self, file_ref: FileRef) -> bool:
        return self.allowed

    async def request_permission(self) -> bool:
        self.requests += 1
        self._answer = asyncio.get_running_loop().create_future()
        return await self._answer

    def answer(self, granted: bool) -> None:
        self._answer.set_result(granted)


class RecordingView(WorkflowView):

    def __init__(self):
        self.events: List[tuple] = []

    def status_line_add(self, line):
        self.events.append(("add", line))

    def status_line_ok(self):
        self.events.append(("ok",))

    def status_line_error(self):
        self.events.append(("error",))

    def reset_status_lines(self):
        self.events.append(("reset",))

    def show_action(self, action):
        self.events.append(("show", action))

    def hide_action(self):
        self.events.append(("hide",))

    def show_log(self, snapshot):
        self.events.append(("log", snapshot))

    def finish_and_show_key(self, master_key_id):
        self.events.append(("finish", master_key_id))

    @property
    def actions(self) -> List[ActionRequest]:
        return [e[1] for e in self.events if e[0] == "show"]

    @property
    def status_lines(self) -> list:
        return [e[1] for e in self.events if e[0] == "add"]


@pytest.fixture
def token():
    return TokenIdentity(
        fingerprints=[FINGERPRINT_SIGN, FINGERPRINT_DEC],
        url="https://keys.example.com/token.asc",
        aid="d2760001240102000006012345670000",
        fingerprint_sign=FINGERPRINT_SIGN,
    )


@pytest.fixture
def test_settings():
    return Settings(lookup_timeout=1.0, operation_timeout=1.0)


@pytest.fixture
def local_source():
    return FakeSource(LookupSourceId.LOCAL_STORE)


@pytest.fixture
def url_source():
    return FakeSource(LookupSourceId.URL_FETCH)


@pytest.fixture
def keyserver_source():
    return FakeSource(LookupSourceId.KEYSERVER)


@pytest.fixture
def file_source():
    return FakeSource(LookupSourceId.CONTENT_FILE)


@pytest.fixture
def sources(local_source, url_source, keyserver_source, file_source):
    return LookupSources([local_source, url_source, keyserver_source, file_source])


@pytest.fixture
def operations():
    return FakeOperations()


@pytest.fixture
def permissions():
    return FakePermissions()


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def workflow(token, sources, operations, permissions, view, test_settings):
    return ResolutionWorkflow(
        token=token,
        sources=sources,
        operations=operations,
        permissions=permissions,
        view=view,
        config=test_settings,
    )
