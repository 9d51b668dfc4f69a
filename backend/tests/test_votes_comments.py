import uuid

from fastapi.testclient import TestClient


def _conversation(client: TestClient) -> str:
    resp = client.post(
        "/v1/conversations",
        json={
            "content": "REST가 낫다",
            "debate_metadata": {"topic": "REST vs GraphQL", "user_side": "REST 찬성", "agent_side": "GraphQL 찬성"},
        },
    )
    return resp.json()["conversation_id"]


def test_votes_are_tallied_per_side(client: TestClient) -> None:
    conversation_id = _conversation(client)

    assert client.post(f"/v1/conversations/{conversation_id}/vote", json={"side": "user"}).json() == {
        "user": 1,
        "agent": 0,
    }
    client.post(f"/v1/conversations/{conversation_id}/vote", json={"side": "user"})
    resp = client.post(f"/v1/conversations/{conversation_id}/vote", json={"side": "agent"})
    assert resp.json() == {"user": 2, "agent": 1}

    assert client.get(f"/v1/conversations/{conversation_id}").json()["votes"] == {"user": 2, "agent": 1}


def test_vote_rejects_unknown_side(client: TestClient) -> None:
    conversation_id = _conversation(client)
    resp = client.post(f"/v1/conversations/{conversation_id}/vote", json={"side": "referee"})
    assert resp.status_code == 400


def test_vote_on_missing_conversation_is_404(client: TestClient) -> None:
    resp = client.post(f"/v1/conversations/{uuid.uuid4()}/vote", json={"side": "user"})
    assert resp.status_code == 404


def test_comment_defaults_and_listing(client: TestClient) -> None:
    conversation_id = _conversation(client)

    resp = client.post(f"/v1/conversations/{conversation_id}/comments", json={"content": "  캐싱은요?  "})
    assert resp.status_code == 201
    first = resp.json()
    assert first["nickname"] == "관중"
    assert first["content"] == "캐싱은요?"
    assert first["side"] is None
    assert first["is_tag_in"] is False

    client.post(
        f"/v1/conversations/{conversation_id}/comments",
        json={"content": "제가 대신 싸웁니다", "nickname": "민수", "side": "user", "is_tag_in": True},
    )

    comments = client.get(f"/v1/conversations/{conversation_id}/comments").json()["comments"]
    assert [c["content"] for c in comments] == ["캐싱은요?", "제가 대신 싸웁니다"]
    assert comments[1]["is_tag_in"] is True
    assert comments[1]["nickname"] == "민수"

    detail = client.get(f"/v1/conversations/{conversation_id}").json()
    assert [c["id"] for c in detail["comments"]] == [c["id"] for c in comments]


def test_comment_validation(client: TestClient) -> None:
    conversation_id = _conversation(client)
    assert client.post(f"/v1/conversations/{conversation_id}/comments", json={"content": " "}).status_code == 400
    resp = client.post(f"/v1/conversations/{conversation_id}/comments", json={"content": "x", "side": "both"})
    assert resp.status_code == 400
    resp = client.post(f"/v1/conversations/{uuid.uuid4()}/comments", json={"content": "x"})
    assert resp.status_code == 404
