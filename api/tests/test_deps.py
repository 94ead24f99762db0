import pytest

pytest.importorskip("fastapi")
from fastapi import HTTPException

from pulse.blob_store import InMemoryBlobStore, SqlBlobStore
from pulse.deps import build_store, parse_user_id, resolve_dedup_secret


def test_resolve_dedup_secret():
    assert resolve_dedup_secret("configured", dev_mode=False) == "configured"
    assert resolve_dedup_secret("", dev_mode=True)
    with pytest.raises(RuntimeError):
        resolve_dedup_secret("", dev_mode=False)


def test_build_store_backends():
    assert isinstance(build_store("memory"), InMemoryBlobStore)
    assert isinstance(build_store("sql"), SqlBlobStore)
    with pytest.raises(RuntimeError):
        build_store("redis")


def test_parse_user_id():
    assert parse_user_id("  U123 ") == "U123"
    with pytest.raises(HTTPException) as missing:
        parse_user_id(None)
    assert missing.value.status_code == 401
    with pytest.raises(HTTPException) as too_long:
        parse_user_id("U" * 129)
    assert too_long.value.status_code == 400
