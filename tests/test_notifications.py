import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import make_application
from app.services import notifications


class UnreachableRedis:
    async def publish(self, channel, message):
        raise RedisConnectionError("connection refused")


def test_build_event_shape():
    application = make_application("CE1_PENDING")

    event = notifications.build_event("stage.assigned", application, stage="CE1")

    assert event["event"] == "stage.assigned"
    assert event["application_number"] == "PMC-ARC-2026-1A2B3C4D"
    assert event["status"] == "CE1_PENDING"
    assert event["data"] == {"stage": "CE1"}


@pytest.mark.asyncio
async def test_publish_sends_json_to_workflow_channel(fake_redis):
    application = make_application("REJECTED_BY_AE")

    await notifications.publish_workflow_event("application.rejected", application, remarks="Missing COA")

    channel, message = fake_redis.published[0]
    assert channel == "pmc:workflow-events"
    body = json.loads(message)
    assert body["event"] == "application.rejected"
    assert body["application_id"] == str(application.id)
    assert body["data"]["remarks"] == "Missing COA"


@pytest.mark.asyncio
async def test_publish_survives_redis_outage(monkeypatch):
    monkeypatch.setattr(notifications, "get_redis_client", lambda: UnreachableRedis())

    payload = await notifications.publish_workflow_event("payment.completed", make_application("CLERK_PENDING"))

    assert payload["event"] == "payment.completed"
