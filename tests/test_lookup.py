import asyncio

import pytest
from pydantic import ValidationError

from keytoken.exceptions import ContractViolation, SourceLookupFailure, UnknownSourceError
from keytoken.lookup import (
    ContentFileLookup,
    FileRef,
    KeyserverLookup,
    LocalStoreLookup,
    LookupSourceId,
    LookupSources,
    TokenIdentity,
    UrlFetchLookup,
    build_request,
    run_lookup,
)

from conftest import FINGERPRINT_SIGN, FakeSource, new_key


class TestTokenIdentity:

    def test_parses_hex(self, token):
        assert token.fingerprint_sign == bytes.fromhex(FINGERPRINT_SIGN)
        assert len(token.fingerprints) == 2
        assert token.aid.hex() == "d2760001240102000006012345670000"

    def test_accepts_separated_hex(self):
        token = TokenIdentity(
            aid="D2:76:00:01",
            fingerprint_sign=" ".join(["AA"] * 20),
        )
        assert token.aid == b"\xd2\x76\x00\x01"
        assert token.fingerprint_sign == b"\xaa" * 20
        assert token.fingerprints == ()

    def test_is_immutable(self, token):
        with pytest.raises(ValidationError):
            token.url = "https://elsewhere.example.com"

    def test_rejects_bad_fingerprint_length(self):
        with pytest.raises(ValidationError):
            TokenIdentity(aid="d276", fingerprint_sign="aa" * 20, fingerprints=["aa" * 5])

    def test_rejects_bad_signing_fingerprint(self):
        with pytest.raises(ValidationError):
            TokenIdentity(aid="d276", fingerprint_sign="abcd")

    def test_blank_url_is_none(self):
        token = TokenIdentity(aid="d276", fingerprint_sign="aa" * 20, url="  ")
        assert token.url is None


class TestBuildRequest:

    def test_local_store(self, token):
        request = build_request(LookupSourceId.LOCAL_STORE, token)
        assert request == LocalStoreLookup(fingerprints=token.fingerprints)
        assert request.source_id is LookupSourceId.LOCAL_STORE

    def test_url_fetch(self, token):
        request = build_request(LookupSourceId.URL_FETCH, token)
        assert request == UrlFetchLookup(url=token.url, fingerprints=token.fingerprints)

    def test_keyserver(self, token):
        request = build_request(LookupSourceId.KEYSERVER, token)
        assert request == KeyserverLookup(fingerprint_sign=token.fingerprint_sign)

    def test_content_file(self, token):
        request = build_request(LookupSourceId.CONTENT_FILE, token, FileRef("content://k"))
        assert request == ContentFileLookup(
            fingerprint_sign=token.fingerprint_sign, file_ref=FileRef("content://k")
        )

    def test_content_file_requires_reference(self, token):
        with pytest.raises(ContractViolation):
            build_request(LookupSourceId.CONTENT_FILE, token)

    def test_unknown_source(self, token):
        with pytest.raises(UnknownSourceError):
            build_request("ldap", token)


class TestLookupSources:

    def test_register_and_get(self):
        source = FakeSource(LookupSourceId.KEYSERVER)
        sources = LookupSources([source])
        assert sources.get(LookupSourceId.KEYSERVER) is source
        assert LookupSourceId.KEYSERVER in sources

    def test_missing(self):
        sources = LookupSources([FakeSource(LookupSourceId.LOCAL_STORE)])
        assert sources.missing() == [
            LookupSourceId.URL_FETCH,
            LookupSourceId.KEYSERVER,
            LookupSourceId.CONTENT_FILE,
        ]

    def test_get_unregistered(self):
        with pytest.raises(UnknownSourceError):
            LookupSources().get(LookupSourceId.URL_FETCH)


class TestRunLookup:

    @pytest.mark.asyncio
    async def test_returns_source_result(self, token):
        result = new_key(LookupSourceId.URL_FETCH)
        sources = LookupSources([FakeSource(LookupSourceId.URL_FETCH, result)])
        
        got = await run_lookup(sources, build_request(LookupSourceId.URL_FETCH, token), timeout=1.0)
        assert got is result

    @pytest.mark.asyncio
    async def test_lookup_failure_becomes_failed_result(self, token):
        source = FakeSource(LookupSourceId.KEYSERVER, SourceLookupFailure("keyserver unreachable"))
        sources = LookupSources([source])
        
        got = await run_lookup(sources, build_request(LookupSourceId.KEYSERVER, token), timeout=1.0)
        assert got.success is False
        assert got.operation_result.operation == "keyserver"
        assert "unreachable" in got.operation_result.message

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self, token):
        source = FakeSource(LookupSourceId.URL_FETCH)
        source.gate = asyncio.Event()
        sources = LookupSources([source])
        
        got = await run_lookup(sources, build_request(LookupSourceId.URL_FETCH, token), timeout=0.01)
        assert got.success is False
        assert "Timed out" in got.operation_result.message

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, token):
        sources = LookupSources([FakeSource(LookupSourceId.LOCAL_STORE, RuntimeError("bug"))])
        
        with pytest.raises(RuntimeError):
            await run_lookup(sources, build_request(LookupSourceId.LOCAL_STORE, token), timeout=1.0)

    @pytest.mark.asyncio
    async def test_wrong_return_type(self, token):
        sources = LookupSources([FakeSource(LookupSourceId.LOCAL_STORE, {"key": b"x"})])
        
        with pytest.raises(ContractViolation):
            await run_lookup(sources, build_request(LookupSourceId.LOCAL_STORE, token), timeout=1.0)
