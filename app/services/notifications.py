from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError

from app.utils.redis_client import get_redis_client, redis_key


WORKFLOW_CHANNEL = redis_key("workflow-events")
logger = logging.getLogger(__name__)


def build_event(event: str, application, **data: Any) -> dict[str, Any]:
    return {
        "event": event,
        "application_id": str(application.id),
        "application_number": application.application_number,
        "status": application.status,
        "applicant_id": str(application.applicant_id),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


async def publish_workflow_event(event: str, application, **data: Any) -> dict[str, Any]:
    """Publish a notification trigger for email/SMS dispatchers.

    Called after the workflow transaction has committed; a Redis outage is
    logged and does not undo the state change.
    """
    payload = build_event(event, application, **data)
    try:
        redis = get_redis_client()
        await redis.publish(WORKFLOW_CHANNEL, json.dumps(payload, default=str))
    except (RedisError, OSError) as exc:
        logger.warning("Workflow event %s not published: %s", event, exc)
    else:
        logger.info("Published workflow event %s for %s", event, application.application_number)
    return payload
