from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from deskforms.config import DEFAULT_TICKET_TIMEZONE
from deskforms.errors import DeskformsError, TransportError
from deskforms.submission import SubmissionPayload
from deskforms.utils import ensure_aware

logger = logging.getLogger(__name__)

GENERIC_SUBMIT_FAILURE = "Erro ao enviar formulário. Tente novamente."


@dataclass(frozen=True)
class TicketReceipt:
    ticket_number: int
    created_at: datetime
    approval_required: bool
    ticket_id: int | None = None


def receipt_from_response(data: Any) -> TicketReceipt:
    if not isinstance(data, dict):
        raise TransportError(GENERIC_SUBMIT_FAILURE)
    try:
        ticket_number = int(data["ticket_number"])
        created_at = ensure_aware(datetime.fromisoformat(str(data["created_at"])))
        approval_required = data["approval_required"]
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(GENERIC_SUBMIT_FAILURE) from exc
    if not isinstance(approval_required, bool):
        raise TransportError(GENERIC_SUBMIT_FAILURE)
    ticket_id = data.get("ticket_id")
    return TicketReceipt(
        ticket_number=ticket_number,
        created_at=created_at,
        approval_required=approval_required,
        ticket_id=int(ticket_id) if ticket_id is not None else None,
    )


async def submit_submission(client: Any, payload: SubmissionPayload) -> TicketReceipt:
    """Send one submission to the ticket collaborator.

    Exactly one request per call; failures of any kind collapse into a single
    generic ``TransportError``.
    """
    try:
        data = await client.submit_form(payload)
    except DeskformsError as exc:
        logger.warning("Submission to %s failed: %s", payload.public_url, exc)
        raise TransportError(GENERIC_SUBMIT_FAILURE) from exc
    return receipt_from_response(data)


def ticket_date(receipt: TicketReceipt, tz_name: str = DEFAULT_TICKET_TIMEZONE) -> date:
    return receipt.created_at.astimezone(ZoneInfo(tz_name)).date()


def format_ticket_id(receipt: TicketReceipt, tz_name: str = DEFAULT_TICKET_TIMEZONE) -> str:
    day = ticket_date(receipt, tz_name)
    return f"{day:%Y%m%d}{receipt.ticket_number:03d}"


def format_ticket_label(receipt: TicketReceipt, tz_name: str = DEFAULT_TICKET_TIMEZONE) -> str:
    day = ticket_date(receipt, tz_name)
    return f"{day:%Y/%m/%d}/{receipt.ticket_number:03d}"
