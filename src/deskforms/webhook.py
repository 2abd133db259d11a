from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import urlsplit

import httpx

from deskforms.utils import to_iso

logger = logging.getLogger(__name__)

TICKET_CREATED = "ticket.created"


def is_valid_webhook_url(url: str) -> bool:
    if not url:
        return False
    parsed = urlsplit(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def build_ticket_payload(
    form: Mapping[str, Any],
    ticket: Mapping[str, Any],
    submission: Mapping[str, Any],
) -> dict[str, Any]:
    return {
        "event": TICKET_CREATED,
        "form_id": form.get("id"),
        "form_name": form.get("name"),
        "form_public_url": form.get("public_url"),
        "submission_id": submission.get("id"),
        "data": submission.get("data", {}),
        "ticket": {
            "id": ticket.get("id"),
            "ticket_number": ticket.get("ticket_number"),
            "status": ticket.get("status"),
            "needs_approval": ticket.get("needs_approval"),
            "created_at": to_iso(ticket["created_at"]) if ticket.get("created_at") else None,
        },
    }


async def send_webhook(
    url: str,
    payload: dict[str, Any],
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    if not is_valid_webhook_url(url):
        return False
    event = payload.get("event")
    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        logger.info("Webhook sent successfully: %s -> %s", event, url)
        return True
    except httpx.HTTPError:
        logger.exception("Webhook failed: %s -> %s", event, url)
        return False
