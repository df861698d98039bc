"""
API tests for admin messaging and the engineer inbox.
"""

import asyncio
import json

from fastapi import Depends, FastAPI
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from fieldlog.api.v1.endpoints.notifications import change_stream, format_sse
from fieldlog.core import security
from fieldlog.db.session import get_db
from fieldlog.services.changes import ChangeEvent, get_change_feed


def send(client, headers, message, recipient_type="all", recipient=None):
    return client.post("/api/v1/notifications", headers=headers, json={
        "message": message, "recipient_type": recipient_type, "recipient_engineer_id": recipient,
    })


class TestSending:
    def test_engineer_cannot_send(self, client, engineer):
        _, headers = engineer
        assert send(client, headers, "hello").status_code == 403

    def test_limited_admin_can_send(self, client, make_account):
        _, headers = make_account("lim@acme.com", role="limited_admin", employee_id="LA1")
        assert send(client, headers, "hello").status_code == 201

    def test_empty_message_rejected(self, client, admin):
        _, headers = admin
        response = send(client, headers, "   ")
        assert response.status_code == 422
        assert response.json()["detail"] == "Please enter a message"

    def test_specific_needs_recipient(self, client, admin):
        _, headers = admin
        response = send(client, headers, "hi", recipient_type="specific")
        assert response.status_code == 422
        assert response.json()["detail"] == "Please select an engineer"

    def test_unknown_recipient(self, client, admin):
        _, headers = admin
        assert send(client, headers, "hi", recipient_type="specific", recipient=404).status_code == 404

    def test_broadcast_drops_recipient_and_trims(self, client, admin, engineer):
        me, headers = admin
        alice, _ = engineer
        body = send(client, headers, "  Team meeting at 3  ", recipient=alice.id).json()
        assert body["message"] == "Team meeting at 3"
        assert body["recipient_type"] == "all"
        assert body["recipient_engineer_id"] is None
        assert body["sent_by"] == me.id


class TestInbox:
    def test_visibility(self, client, admin, engineer, make_account):
        _, headers = admin
        alice, alice_headers = engineer
        bob, bob_headers = make_account("bob@acme.com", employee_id="E2")
        send(client, headers, "Everyone")
        send(client, headers, "Just Alice", recipient_type="specific", recipient=alice.id)
        send(client, headers, "Just Bob", recipient_type="specific", recipient=bob.id)

        inbox = client.get("/api/v1/notifications", headers=alice_headers).json()
        assert [n["message"] for n in inbox["items"]] == ["Just Alice", "Everyone"]
        assert inbox["unread_count"] == 2

        bob_inbox = client.get("/api/v1/notifications", headers=bob_headers).json()
        assert [n["message"] for n in bob_inbox["items"]] == ["Just Bob", "Everyone"]

    def test_mark_read_and_read_all(self, client, admin, engineer):
        _, headers = admin
        alice, alice_headers = engineer
        first = send(client, headers, "one").json()
        send(client, headers, "two", recipient_type="specific", recipient=alice.id)

        marked = client.post(f"/api/v1/notifications/{first['id']}/read", headers=alice_headers)
        assert marked.status_code == 200
        assert marked.json()["is_read"] is True
        assert client.get("/api/v1/notifications", headers=alice_headers).json()["unread_count"] == 1

        read_all = client.post("/api/v1/notifications/read-all", headers=alice_headers).json()
        assert read_all == {"status": "ok", "marked": 1}
        assert client.get("/api/v1/notifications", headers=alice_headers).json()["unread_count"] == 0

    def test_read_state_is_per_engineer(self, client, admin, engineer, make_account):
        _, headers = admin
        _, alice_headers = engineer
        _, bob_headers = make_account("bob@acme.com", employee_id="E2")
        note = send(client, headers, "Everyone").json()
        client.post(f"/api/v1/notifications/{note['id']}/read", headers=alice_headers)
        assert client.get("/api/v1/notifications", headers=bob_headers).json()["unread_count"] == 1

    def test_cannot_read_someone_elses(self, client, admin, engineer, make_account):
        _, headers = admin
        _, alice_headers = engineer
        bob, _ = make_account("bob@acme.com", employee_id="E2")
        note = send(client, headers, "Just Bob", recipient_type="specific", recipient=bob.id).json()
        assert client.post(f"/api/v1/notifications/{note['id']}/read", headers=alice_headers).status_code == 404

    def test_inbox_needs_profile(self, client, make_account):
        _, headers = make_account("nobody@acme.com", with_profile=False)
        assert client.get("/api/v1/notifications", headers=headers).json()["code"] == "profile_missing"


class TestStreamFormat:
    def test_change_event_frame(self):
        frame = format_sse(ChangeEvent(table="notifications", action="insert", row_id=5, timestamp="t"))
        assert frame.startswith("event: change\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {"table": "notifications", "action": "insert", "row_id": 5, "timestamp": "t"}


# =============================================================================
# Change stream
# =============================================================================


class FakeRequest:
    """Reports connected for a fixed number of polls, then disconnected."""

    def __init__(self, connected_polls):
        self.remaining = connected_polls

    async def is_disconnected(self):
        self.remaining -= 1
        return self.remaining < 0


class TestChangeStream:
    def test_keepalive_until_disconnect_then_unsubscribes(self):
        feed = get_change_feed()
        before = feed.subscriber_count("notifications")

        async def collect():
            return [frame async for frame in change_stream(FakeRequest(2), "E1", keepalive=0.01)]

        frames = asyncio.run(collect())
        assert frames == ["retry: 5000\n\n", ": keepalive\n\n", ": keepalive\n\n"]
        assert feed.subscriber_count("notifications") == before

    def test_published_change_is_forwarded(self):
        feed = get_change_feed()
        before = feed.subscriber_count("notifications")

        async def run():
            stream = change_stream(FakeRequest(5), "E1", keepalive=5)
            assert await stream.__anext__() == "retry: 5000\n\n"
            assert feed.subscriber_count("notifications") == before + 1
            feed.publish("notifications", "insert", 9)
            frame = await stream.__anext__()
            await stream.aclose()
            return frame

        frame = asyncio.run(run())
        assert frame.startswith("event: change\n")
        assert json.loads(frame.split("data: ", 1)[1])["row_id"] == 9
        assert feed.subscriber_count("notifications") == before

    def test_session_is_released_before_the_body_streams(self, db_engine, make_account):
        _, headers = make_account("alice@acme.com", employee_id="E1")
        TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
        state = {"open": 0}

        def tracked_get_db():
            db = TestingSession()
            state["open"] += 1
            try:
                yield db
            finally:
                db.close()
                state["open"] -= 1

        stream_app = FastAPI()

        @stream_app.get("/events")
        async def events(engineer=Depends(security.get_streaming_engineer)):
            async def body():
                yield f"{engineer.employee_id} open={state['open']}"
            return StreamingResponse(body(), media_type="text/plain")

        stream_app.dependency_overrides[get_db] = tracked_get_db
        with TestClient(stream_app) as stream_client:
            assert stream_client.get("/events", headers=headers).text == "E1 open=0"

    def test_stream_requires_profile(self, client, make_account):
        _, headers = make_account("nobody@acme.com", with_profile=False)
        response = client.get("/api/v1/notifications/stream", headers=headers)
        assert response.status_code == 403
        assert response.json()["code"] == "profile_missing"

    def test_stream_requires_token(self, client):
        assert client.get("/api/v1/notifications/stream").status_code == 401
