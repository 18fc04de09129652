import uuid
from functools import partial

import pytest
from fastapi.testclient import TestClient

from indexcheck.db.session import SessionLocal
from indexcheck.main import app
from indexcheck.models.campaign import Campaign, ItemStatus
from indexcheck.services.checker import CheckResult
from indexcheck.workers.processor import IndexCheckJob, process_index_check
from indexcheck.workers.queue import InProcessQueue, QueueClosed


def fake_check(url, api_key, engine_id):
    if "indexed" in url:
        return CheckResult(status=ItemStatus.INDEXED, title="Indexed page", snippet="snippet")
    return CheckResult(status=ItemStatus.NOT_INDEXED, reason="No exact match found in search results")


@pytest.fixture
def client(session_factory):
    with TestClient(app) as c:
        app.state.queue.close()
        app.state.queue = InProcessQueue(
            partial(process_index_check, session_factory=SessionLocal, credentials=app.state.credentials, check=fake_check)
        )
        yield c


def _create(client, user_id, urls, name="Launch"):
    return client.post("/campaigns", json={"user_id": str(user_id), "name": name, "urls": urls})


def test_health_reports_queue_backend(client):
    assert client.get("/health").json() == {"status": "ok", "queue": "in-process"}


def test_create_campaign_normalizes_and_dedupes(client, user_id):
    r = _create(client, user_id, ["https://x.com/a/", "https://X.com/a", "bad://url"])
    assert r.status_code == 201
    body = r.json()
    assert body["stats"] == {"total": 3, "valid": 2, "unique": 1, "duplicates": 1, "errors": 1}
    assert [(e["line"], e["url"]) for e in body["errors"]] == [(3, "bad://url")]
    assert body["campaign"]["status"] == "READY"
    assert body["campaign"]["stats"]["total"] == 1

    items = client.get(f"/campaigns/{body['campaign']['id']}/items", params={"user_id": str(user_id)}).json()
    assert [i["url"] for i in items["items"]] == ["https://x.com/a"]
    assert items["items"][0]["status"] == "NOT_FETCHED"


@pytest.mark.parametrize(
    "payload,detail",
    [
        ({"name": " ", "urls": ["https://a.com"]}, "Campaign name is required"),
        ({"name": "n", "urls": []}, "At least one URL is required"),
        ({"name": "n", "urls": ["nope", "ftp://a.com"]}, "No valid URLs provided"),
    ],
)
def test_create_campaign_validation(client, user_id, payload, detail):
    r = client.post("/campaigns", json={"user_id": str(user_id), **payload})
    assert r.status_code == 400
    assert r.json()["detail"] == detail


def test_add_urls_skips_existing(client, user_id):
    cid = _create(client, user_id, ["https://a.com/one"]).json()["campaign"]["id"]
    r = client.post(
        f"/campaigns/{cid}/urls",
        json={"user_id": str(user_id), "urls": ["https://a.com/one/", "https://a.com/two", "https://a.com/two"]},
    )
    assert r.status_code == 201
    stats = r.json()["stats"]
    assert stats["added"] == 1
    assert stats["already_in_campaign"] == 1
    assert stats["duplicates_in_submission"] == 1

    again = client.post(f"/campaigns/{cid}/urls", json={"user_id": str(user_id), "urls": ["https://a.com/two"]})
    assert again.status_code == 400


def test_other_users_cannot_see_campaign(client, user_id):
    cid = _create(client, user_id, ["https://a.com"]).json()["campaign"]["id"]
    r = client.get(f"/campaigns/{cid}", params={"user_id": "00000000-0000-0000-0000-000000000000"})
    assert r.status_code == 404


def test_recheck_without_credentials_completes_with_errors(client, user_id):
    cid = _create(client, user_id, ["https://a.com/indexed", "https://a.com/missing"]).json()["campaign"]["id"]

    r = client.post(f"/campaigns/{cid}/recheck", json={"user_id": str(user_id)})
    assert r.status_code == 202
    assert r.json()["queued"] == 2
    assert app.state.queue.drain(timeout=10)

    campaign = client.get(f"/campaigns/{cid}", params={"user_id": str(user_id)}).json()
    assert campaign["status"] == "COMPLETE"
    assert campaign["stats"]["errors"] == 2


def test_full_check_cycle(client, user_id):
    r = client.put("/settings", json={"user_id": str(user_id), "api_key": "KEY", "engine_id": "CX"})
    assert r.json() == {"configured": True}

    cid = _create(client, user_id, ["https://a.com/indexed", "https://a.com/missing"]).json()["campaign"]["id"]
    client.post(f"/campaigns/{cid}/recheck", json={"user_id": str(user_id)})
    assert app.state.queue.drain(timeout=10)

    campaign = client.get(f"/campaigns/{cid}", params={"user_id": str(user_id)}).json()
    assert campaign["status"] == "COMPLETE"
    assert campaign["stats"]["indexed"] == 1
    assert campaign["stats"]["not_indexed"] == 1
    assert campaign["stats"]["progress"] == 100

    indexed = client.get(
        f"/campaigns/{cid}/items", params={"user_id": str(user_id), "status": "INDEXED"}
    ).json()["items"]
    assert [i["title"] for i in indexed] == ["Indexed page"]

    # a default recheck skips items that are already indexed
    r = client.post(f"/campaigns/{cid}/recheck", json={"user_id": str(user_id)})
    assert r.json()["queued"] == 1
    assert app.state.queue.drain(timeout=10)

    # adding a URL reopens the campaign
    client.post(f"/campaigns/{cid}/urls", json={"user_id": str(user_id), "urls": ["https://a.com/new"]})
    assert client.get(f"/campaigns/{cid}", params={"user_id": str(user_id)}).json()["status"] == "RUNNING"


def test_delete_items_and_campaign(client, user_id):
    cid = _create(client, user_id, ["https://a.com/1", "https://a.com/2"]).json()["campaign"]["id"]
    items = client.get(f"/campaigns/{cid}/items", params={"user_id": str(user_id)}).json()["items"]

    r = client.post(f"/campaigns/{cid}/items/delete", json={"user_id": str(user_id), "item_ids": [items[0]["id"]]})
    assert r.json() == {"deleted": 1}

    assert client.delete(f"/campaigns/{cid}", params={"user_id": str(user_id)}).json() == {"deleted": True}
    assert client.get(f"/campaigns/{cid}", params={"user_id": str(user_id)}).status_code == 404
    listing = client.get("/campaigns", params={"user_id": str(user_id)}).json()
    assert listing["campaigns"] == []
    assert listing["pagination"]["total"] == 0


def test_shutdown_drains_and_closes_queue(session_factory, user_id):
    with TestClient(app) as c:
        queue = app.state.queue
        cid = _create(c, user_id, ["https://a.com/x"]).json()["campaign"]["id"]
        c.post(f"/campaigns/{cid}/recheck", json={"user_id": str(user_id)})

    assert queue.pending == 0
    with pytest.raises(QueueClosed):
        queue.enqueue_index_check(IndexCheckJob(user_id=str(user_id), item_id="i", campaign_id=cid))
    with SessionLocal() as db:
        assert db.get(Campaign, uuid.UUID(cid)).status == "COMPLETE"
