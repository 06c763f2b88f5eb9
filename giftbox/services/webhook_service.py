import logging
from typing import Any

import httpx

from giftbox.config import settings

logger = logging.getLogger(__name__)

ORDER_STATUS_CHANGED = "order.status_changed"
MOVEMENT_RECORDED = "inventory.movement_recorded"
REORDER_ALERT_CREATED = "inventory.reorder_alert_created"


def webhook_urls() -> list[str]:
    return [u.strip() for u in settings.WEBHOOK_URLS.split(",") if u.strip()]


def send_event(event: str, data: dict[str, Any]) -> list[dict]:
    """POST ``{"event", "data"}`` to every configured URL.

    Runs from a background task after the response; delivery failures are
    logged and reported in the result, never raised.
    """
    urls = webhook_urls()
    if not urls:
        return []

    payload = {"event": event, "data": data}
    results = []
    with httpx.Client(timeout=10.0) as client:
        for url in urls:
            try:
                resp = client.post(url, json=payload)
                results.append({"url": url, "status": resp.status_code, "success": resp.is_success})
            except httpx.HTTPError as e:
                logger.error("Webhook %s failed for %s: %s", event, url, e)
                results.append({"url": url, "status": 0, "success": False, "error": str(e)})
    return results
