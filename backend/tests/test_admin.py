import uuid

from fastapi.testclient import TestClient

from toron.models import Comment, Conversation, DebateTurn, Event, Vote

from fakes import FakeSandboxProvider


ADMIN = {"X-Admin-Key": "test-admin-key"}


def _conversation(client: TestClient, topic: str = "SQL vs NoSQL") -> str:
    resp = client.post(
        "/v1/conversations",
        json={"content": "SQL!", "debate_metadata": {"topic": topic, "user_side": "SQL", "agent_side": "NoSQL"}},
    )
    assert resp.status_code == 200
    conversation_id = resp.json()["conversation_id"]
    client.post(f"/v1/conversations/{conversation_id}/vote", json={"side": "user"})
    client.post(f"/v1/conversations/{conversation_id}/comments", json={"content": "ACID!"})
    return conversation_id


def test_admin_requires_key(client: TestClient) -> None:
    assert client.get("/v1/admin/debates").status_code == 401
    assert client.get("/v1/admin/debates", headers={"X-Admin-Key": "nope"}).status_code == 401
    assert client.delete(f"/v1/admin/debates/{uuid.uuid4()}").status_code == 401


def test_admin_lists_all_debates_with_counts(client: TestClient) -> None:
    conversation_id = _conversation(client)

    resp = client.get("/v1/admin/debates", headers=ADMIN)
    assert resp.status_code == 200
    row = next(d for d in resp.json()["debates"] if d["id"] == conversation_id)
    assert row["status"] == "running"
    assert row["vote_count"] == 1
    assert row["comment_count"] == 1
    assert row["turn_data_count"] == 0
    assert row["sandbox_id"] is not None


def test_delete_kills_running_sandbox_and_removes_children(
    client: TestClient, sandbox: FakeSandboxProvider, db
) -> None:
    conversation_id = _conversation(client)
    sandbox_id = sandbox.launched[0]

    resp = client.delete(f"/v1/admin/debates/{conversation_id}", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json() == {"deleted": True, "id": conversation_id}
    assert sandbox.killed == [sandbox_id]

    assert client.get(f"/v1/conversations/{conversation_id}").status_code == 404
    cid = uuid.UUID(conversation_id)
    for model in (Vote, Comment, DebateTurn, Event):
        assert db.query(model).filter(model.conversation_id == cid).count() == 0
    assert db.query(Conversation).filter(Conversation.id == cid).count() == 0


def test_delete_missing_debate_is_404(client: TestClient) -> None:
    assert client.delete(f"/v1/admin/debates/{uuid.uuid4()}", headers=ADMIN).status_code == 404


def test_bulk_delete(client: TestClient, sandbox: FakeSandboxProvider) -> None:
    first = _conversation(client)
    second = _conversation(client)
    keep = _conversation(client)

    resp = client.request(
        "DELETE",
        "/v1/admin/debates",
        json={"ids": [first, second, str(uuid.uuid4())]},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 2, "message": "2개 토론 삭제됨"}
    assert len(sandbox.killed) == 2
    assert client.get(f"/v1/conversations/{keep}").status_code == 200


def test_bulk_delete_requires_ids(client: TestClient) -> None:
    resp = client.request("DELETE", "/v1/admin/debates", json={"ids": []}, headers=ADMIN)
    assert resp.status_code == 400
