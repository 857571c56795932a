import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from governance_backend.app.cache.invalidation import (
    DELETE_BATCH_SIZE,
    CacheInvalidator,
    InvalidationTarget,
)
from governance_backend.app.cache.store import ProposalCategory, index_list_key
from governance_backend.app.deps.identity import ledger_dependency
from governance_backend.app.main import app
from governance_backend.app.routers import cache as cache_router
from governance_backend.tests._signing import SIGNER

OPS = ProposalCategory.OPERATIONS
RES = ProposalCategory.RESEARCH


def _populate(redis_client):
    redis_client.set(index_list_key(OPS), json.dumps([12, 11, 10]))
    redis_client.set(index_list_key(RES), json.dumps([4, 3]))
    for i in (10, 11, 12):
        redis_client.set(f"proposal_ops_{i}", json.dumps({"status": "active"}))
    for i in (3, 4):
        redis_client.set(f"proposal_res_{i}", json.dumps({"status": "executed"}))
    redis_client.set("proposals:ops:startIndex=12:endIndex=10", "[]")
    redis_client.set("proposals:ops:startIndex=9:endIndex=0", "[]")
    redis_client.set("proposals:ops:summary", "{}")
    redis_client.set("proposals:res:startIndex=4:endIndex=3", "[]")


def test_new_proposal_extends_index_list_and_drops_first_pages(cache_store, redis_client):
    _populate(redis_client)

    result = CacheInvalidator(cache_store).register_new_proposal(InvalidationTarget.OPERATIONS, 13)

    assert json.loads(redis_client.get(index_list_key(OPS))) == [13, 12, 11, 10]
    assert redis_client.exists("proposals:ops:startIndex=12:endIndex=10") == 0
    assert redis_client.exists("proposals:ops:startIndex=9:endIndex=0") == 0
    assert redis_client.exists("proposals:ops:summary") == 1
    assert redis_client.exists("proposal_ops_12") == 1
    assert json.loads(redis_client.get(index_list_key(RES))) == [4, 3]
    assert result.deleted == 2
    assert "13" in result.message


def test_new_proposal_already_listed_is_not_duplicated(cache_store, redis_client):
    _populate(redis_client)
    CacheInvalidator(cache_store).register_new_proposal(InvalidationTarget.OPERATIONS, 11)
    assert json.loads(redis_client.get(index_list_key(OPS))) == [12, 11, 10]


def test_new_proposal_for_all_touches_both_categories(cache_store, redis_client):
    CacheInvalidator(cache_store).register_new_proposal(InvalidationTarget.ALL, 1)
    assert json.loads(redis_client.get(index_list_key(OPS))) == [1]
    assert json.loads(redis_client.get(index_list_key(RES))) == [1]


def test_targeted_invalidation_drops_snapshot_and_covering_listings(cache_store, redis_client):
    _populate(redis_client)

    result = CacheInvalidator(cache_store).invalidate_proposal(InvalidationTarget.OPERATIONS, 11)

    assert redis_client.exists("proposal_ops_11") == 0
    assert redis_client.exists("proposals:ops:startIndex=12:endIndex=10") == 0
    assert redis_client.exists("proposals:ops:startIndex=9:endIndex=0") == 1
    assert redis_client.exists("proposal_ops_10") == 1
    assert redis_client.exists("proposal_res_3") == 1
    assert result.deleted == 2


def test_full_invalidation_for_one_category(cache_store, redis_client):
    _populate(redis_client)

    result = CacheInvalidator(cache_store).invalidate_all(InvalidationTarget.RESEARCH)

    assert result.deleted == 4
    assert redis_client.exists(index_list_key(RES)) == 0
    assert redis_client.exists("proposal_res_4") == 0
    assert redis_client.exists("proposals:res:startIndex=4:endIndex=3") == 0
    assert redis_client.exists("proposal_ops_10") == 1
    assert "4 cache entries" in result.message


def test_full_invalidation_deletes_in_batches(cache_store, redis_client, monkeypatch):
    count = DELETE_BATCH_SIZE * 2 + 7
    redis_client.set(index_list_key(OPS), json.dumps(list(range(count))))
    for i in range(count):
        redis_client.set(f"proposal_ops_{i}", "{}")
    batches = []
    original = cache_store.delete_keys

    def recording_delete(keys):
        keys = list(keys)
        batches.append(len(keys))
        return original(keys)

    monkeypatch.setattr(cache_store, "delete_keys", recording_delete)
    result = CacheInvalidator(cache_store).invalidate_all(InvalidationTarget.OPERATIONS)

    assert result.deleted == count + 1
    assert max(batches) == DELETE_BATCH_SIZE
    assert sum(batches) == count + 1
    assert redis_client.keys("proposal_ops_*") == []


@pytest.fixture
def authed(signature_db):
    signature_db.add_row(SIGNER.address.lower(), datetime.now(timezone.utc))
    return {"X-User-Address": SIGNER.address}


@pytest.fixture
def client(ledger, cache_store, monkeypatch):
    monkeypatch.setattr(cache_router, "_breaker", None)
    app.dependency_overrides[ledger_dependency] = lambda: ledger
    app.dependency_overrides[cache_router.store_dependency] = lambda: cache_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_endpoint_requires_a_signed_in_wallet(client, redis_client):
    _populate(redis_client)
    resp = client.post("/api/invalidate-cache", json={"type": "all"})
    assert resp.status_code == 401
    assert resp.json()["error_code"] == "not_authenticated"
    assert redis_client.exists("proposal_ops_10") == 1


def test_endpoint_open_when_auth_disabled_outside_production(client, redis_client, monkeypatch):
    monkeypatch.setenv("INVALIDATE_REQUIRE_AUTH", "0")
    _populate(redis_client)
    resp = client.post("/api/invalidate-cache", json={"type": "research"})
    assert resp.status_code == 200
    assert resp.json()["deleted"] == 4


def test_endpoint_rejects_unknown_type(client, authed):
    resp = client.post("/api/invalidate-cache", json={"type": "governance"}, headers=authed)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "invalid_type"
    assert resp.json()["message"] == 'Invalid type parameter. Must be "operations", "research", or "all"'
    assert resp.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"


def test_endpoint_full_invalidation(client, authed, redis_client):
    _populate(redis_client)
    resp = client.post("/api/invalidate-cache", json={"type": "all"}, headers=authed)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["deleted"] == 11
    assert isinstance(body["timestamp"], int)
    assert resp.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    assert resp.headers["Pragma"] == "no-cache"
    assert resp.headers["Expires"] == "0"
    assert redis_client.keys("*") == []


def test_endpoint_targeted_invalidation(client, authed, redis_client):
    _populate(redis_client)
    resp = client.post("/api/invalidate-cache", json={"type": "operations", "targetIndex": 12}, headers=authed)
    assert resp.status_code == 200
    assert redis_client.exists("proposal_ops_12") == 0
    assert redis_client.exists("proposal_ops_11") == 1


def test_endpoint_new_proposal(client, authed, redis_client):
    _populate(redis_client)
    resp = client.post(
        "/api/invalidate-cache",
        json={"type": "research", "action": "newProposal", "newIndex": 5},
        headers=authed,
    )
    assert resp.status_code == 200
    assert json.loads(redis_client.get(index_list_key(RES))) == [5, 4, 3]


def test_new_proposal_failure_falls_back_to_full_invalidation(client, authed, redis_client, monkeypatch):
    _populate(redis_client)

    def broken(*_args, **_kwargs):
        raise RuntimeError("index list write failed")

    monkeypatch.setattr(CacheInvalidator, "register_new_proposal", broken)
    resp = client.post(
        "/api/invalidate-cache",
        json={"type": "research", "action": "newProposal", "newIndex": 5},
        headers=authed,
    )
    assert resp.status_code == 200
    assert redis_client.exists(index_list_key(RES)) == 0


def test_repeated_failures_open_the_circuit(client, authed, monkeypatch):
    monkeypatch.setenv("INVALIDATE_CIRCUIT_FAILURES", "2")
    monkeypatch.setenv("INVALIDATE_CIRCUIT_OPEN_SECONDS", "30")

    def broken(*_args, **_kwargs):
        raise RuntimeError("redis down")

    monkeypatch.setattr(CacheInvalidator, "invalidate_all", broken)
    for _ in range(2):
        resp = client.post("/api/invalidate-cache", json={"type": "all"}, headers=authed)
        assert resp.status_code == 500
        assert resp.json()["error_code"] == "invalidation_failed"
        assert "redis down" not in resp.text

    resp = client.post("/api/invalidate-cache", json={"type": "all"}, headers=authed)
    assert resp.status_code == 503
    assert resp.json()["error_code"] == "circuit_open"
    assert resp.headers["X-Circuit-State"] == "open"
    assert 1 <= int(resp.headers["Retry-After"]) <= 30


def test_refresh_endpoint_returns_report(client, authed, cache_store):
    cache_store.set_indices(OPS, [1, 2])
    cache_store.set_snapshot(OPS, 1, {"status": "completed"})
    cache_store.set_snapshot(OPS, 2, {"status": "active"})
    resp = client.post("/api/cache/refresh", headers=authed)
    assert resp.status_code == 200
    assert resp.json()["evicted"] == 1
    assert resp.json()["categories"]["operations"]["kept"] == [1]


def test_refresh_endpoint_requires_identity(client):
    assert client.post("/api/cache/refresh").status_code == 401
