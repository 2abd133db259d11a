from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from deskforms.config import Settings
from deskforms.field_types import FILE_TYPES
from deskforms.forms import FormDefinition
from deskforms.submission import FileBlob
from deskforms.utils import day_bounds, new_ulid, now_utc
from deskforms.webhook import build_ticket_payload, send_webhook

logger = logging.getLogger(__name__)

STATUS_PENDING_APPROVAL = "pending_approval"
STATUS_OPEN = "open"
DEFAULT_PRIORITY = "medium"


@dataclass(frozen=True)
class CreatedTicket:
    ticket: dict[str, Any]
    submission: dict[str, Any]
    attachments: list[dict[str, Any]]


def _display_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Sim" if value else "Não"
    return str(value)


def build_description(
    form: FormDefinition,
    text_values: Mapping[str, Any],
    uploads: Mapping[str, FileBlob],
) -> str:
    lines = []
    for field in form.fields:
        blob = uploads.get(field.id)
        if blob is not None:
            value = f"[Arquivo] {blob.name} ({blob.size / 1024:.2f} KB)"
        else:
            value = _display_value(text_values.get(field.id))
        lines.append(f"**{field.label}:** {value}")
    description = "\n\n".join(lines)
    if uploads:
        attachments = "\n".join(f"- {blob.name}" for blob in uploads.values())
        description += f"\n\n**Arquivos anexados:**\n{attachments}"
    return description


def next_ticket_number(storage: Any, settings: Settings, moment: Any) -> int:
    start, end = day_bounds(moment, settings.ticket_timezone)
    return storage.tickets.count_tickets_between(start, end) + 1


def save_attachment(
    storage: Any,
    settings: Settings,
    submission_id: int,
    field_id: str,
    blob: FileBlob,
) -> dict[str, Any]:
    file_id = new_ulid()
    destination = settings.upload_dir / file_id
    destination.write_bytes(blob.content)
    meta = {
        "id": file_id,
        "submission_id": submission_id,
        "field_id": field_id,
        "original_name": blob.name,
        "stored_path": str(destination),
        "content_type": blob.content_type or "application/octet-stream",
        "size": blob.size,
        "created_at": now_utc(),
    }
    storage.files.create_file(meta)
    return meta


def create_ticket_from_submission(
    storage: Any,
    settings: Settings,
    form: FormDefinition,
    text_values: Mapping[str, Any],
    uploads: Mapping[str, FileBlob],
) -> CreatedTicket:
    """Persist one public submission and open the ticket it produces.

    The caller has already validated ``text_values`` and ``uploads`` against
    the form definition.
    """
    data = {field.id: text_values.get(field.id) for field in form.fields if field.type not in FILE_TYPES}
    for field_id, blob in uploads.items():
        data[field_id] = blob.name

    submission = storage.submissions.create_submission(
        {"form_id": form.id, "data": data, "created_at": now_utc()}
    )
    attachments = [
        save_attachment(storage, settings, submission["id"], field_id, blob)
        for field_id, blob in uploads.items()
    ]

    needs_approval = form.approval_required
    logger.info(
        "Form %s submission %s: linked_user_id=%s linked_group_id=%s needs_approval=%s",
        form.id,
        submission["id"],
        form.linked_user_id,
        form.linked_group_id,
        needs_approval,
    )

    created_at = now_utc()
    ticket = storage.tickets.create_ticket(
        {
            "ticket_number": next_ticket_number(storage, settings, created_at),
            "title": f"Submissão: {form.name}",
            "description": build_description(form, text_values, uploads),
            "status": STATUS_PENDING_APPROVAL if needs_approval else STATUS_OPEN,
            "priority": DEFAULT_PRIORITY,
            "form_id": form.id,
            "submission_id": submission["id"],
            "needs_approval": needs_approval,
            "linked_user_id": form.linked_user_id,
            "linked_group_id": form.linked_group_id,
            "created_at": created_at,
        }
    )
    logger.info("Ticket %s created (number %s) for form %s", ticket["id"], ticket["ticket_number"], form.id)
    return CreatedTicket(ticket=ticket, submission=submission, attachments=attachments)


async def notify_ticket_created(form_record: Mapping[str, Any], created: CreatedTicket) -> bool:
    url = form_record.get("webhook_url") or ""
    if not url or not form_record.get("webhook_on_submit"):
        return False
    payload = build_ticket_payload(form_record, created.ticket, created.submission)
    return await send_webhook(url, payload)
