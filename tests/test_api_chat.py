"""End-to-end tests for chat over HTTP and the realtime socket."""
import pytest
from starlette.websockets import WebSocketDisconnect


def _conversation(client, headers, api_users):
    body = {
        "taskId": "task-x",
        "taskTitle": "Ship release",
        "taskStatus": "in-progress",
        "participants": [
            {"id": api_users["alice"], "name": "Alice Nguyen", "role": "owner"},
            {"id": api_users["bob"], "name": "Bob Okafor"},
        ],
    }
    response = client.post("/api/chat/conversations", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_message_reaches_room_and_read_receipts(client, as_user, api_users):
    alice, bob = as_user("alice"), as_user("bob")
    conversation = _conversation(client, alice, api_users)
    cid = conversation["id"]

    with client.websocket_connect("/ws", headers=bob) as socket:
        socket.send_json({"event": "join_conversation", "conversationId": cid})
        assert socket.receive_json() == {"event": "joined", "data": {"conversationId": cid}}

        sent = client.post(f"/api/chat/conversations/{cid}/messages", json={"content": "hello"}, headers=alice)
        assert sent.status_code == 201
        message = sent.json()
        assert message["senderName"] == "Alice Nguyen"

        event = socket.receive_json()
        assert event["event"] == "new_message"
        assert event["data"]["id"] == message["id"]

        read = client.put(f"/api/chat/conversations/{cid}/read", headers=bob)
        assert read.json() == {"message": "Messages marked as read"}
        update = socket.receive_json()
        assert update == {"event": "conversation_update", "data": {"id": cid, "unreadCount": 0}}

    data = client.get(f"/api/chat/conversations/{cid}", headers=bob).json()
    assert data["unreadCount"] == 0
    assert sorted(data["messages"][0]["readBy"]) == sorted([api_users["alice"], api_users["bob"]])
    assert data["lastMessage"]["id"] == message["id"]


def test_leave_stops_events(client, as_user, api_users):
    alice = as_user("alice")
    cid = _conversation(client, alice, api_users)["id"]

    with client.websocket_connect("/ws", headers=alice) as socket:
        socket.send_json({"event": "join_conversation", "conversationId": cid})
        socket.receive_json()
        socket.send_json({"event": "leave_conversation", "conversationId": cid})
        assert socket.receive_json()["event"] == "left"

        client.post(f"/api/chat/conversations/{cid}/messages", json={"content": "quiet"}, headers=alice)
        socket.send_json({"event": "typing"})
        # The next frame is the protocol error, not the message
        assert socket.receive_json() == {"event": "error", "data": {"message": "Unknown event: typing"}}


def test_socket_requires_identity(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as socket:
            socket.receive_json()
    assert exc.value.code == 1008


def test_list_edit_delete(client, as_user, api_users):
    alice = as_user("alice")
    cid = _conversation(client, alice, api_users)["id"]
    message = client.post(
        f"/api/chat/conversations/{cid}/messages", json={"content": "draft"}, headers=alice
    ).json()

    listed = client.get("/api/chat/conversations", headers=as_user("bob")).json()
    assert [c["id"] for c in listed] == [cid]
    assert listed[0]["unreadCount"] == 1
    assert client.get("/api/chat/conversations", headers=as_user("carol")).json() == []

    edited = client.put(f"/api/chat/messages/{message['id']}", json={"content": "final"}, headers=alice)
    assert edited.json()["content"] == "final"

    deleted = client.delete(f"/api/chat/messages/{message['id']}", headers=alice)
    assert deleted.json() == {"message": "Message deleted successfully"}
    assert client.delete(f"/api/chat/messages/{message['id']}", headers=alice).status_code == 404


def test_conversation_validation(client, as_user):
    response = client.post(
        "/api/chat/conversations",
        json={"taskId": "t", "taskTitle": "T", "taskStatus": "paused", "participants": []},
        headers=as_user("alice"),
    )
    assert response.status_code == 400
    assert client.get("/api/chat/conversations/nope", headers=as_user("alice")).status_code == 404


def test_malformed_frame_keeps_socket_open(client, as_user, api_users):
    alice = as_user("alice")
    cid = _conversation(client, alice, api_users)["id"]

    with client.websocket_connect("/ws", headers=alice) as socket:
        socket.send_text("not json")
        assert socket.receive_json() == {"event": "error", "data": {"message": "Frames must be JSON objects"}}

        socket.send_json({"event": "join_conversation", "conversationId": cid})
        assert socket.receive_json()["event"] == "joined"
