from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import FormData, UploadFile

from deskforms.errors import ValidationError
from deskforms.field_types import FILE_TYPES, FieldType
from deskforms.forms import FormDefinition, form_from_dict
from deskforms.renderer import raise_for_errors, validate_values
from deskforms.schema import public_form_output, public_page_output
from deskforms.submission import FORM_DATA_PART, FileBlob, file_part_name
from deskforms.tickets import CreatedTicket, create_ticket_from_submission, notify_ticket_created
from deskforms.utils import loads_json, to_iso

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_NOT_FOUND = "Formulário não encontrado"
PAGE_NOT_FOUND = "Página não encontrada"
SERVER_LIMIT_MESSAGE = "Arquivo excede o limite permitido pelo servidor"
INVALID_VALUE_MESSAGE = "Valor inválido"


def form_public_urls(storage: Any) -> dict[int, str]:
    return {form["id"]: form["public_url"] for form in storage.forms.list_forms() if form.get("public_url")}


def load_public_form(storage: Any, public_url: str) -> tuple[dict[str, Any], FormDefinition]:
    record = storage.forms.get_form_by_public_url(public_url)
    if not record:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    return record, form_from_dict(record)


async def read_upload(upload: UploadFile) -> FileBlob:
    content = await upload.read()
    return FileBlob(
        name=upload.filename or "",
        size=len(content),
        content_type=upload.content_type or "application/octet-stream",
        content=content,
    )


async def collect_uploads(form: FormDefinition, form_data: FormData) -> dict[str, FileBlob]:
    uploads: dict[str, FileBlob] = {}
    for field in form.fields:
        if field.type not in FILE_TYPES:
            continue
        upload = form_data.get(file_part_name(field.id))
        if isinstance(upload, UploadFile) and upload.filename:
            uploads[field.id] = await read_upload(upload)
    return uploads


def check_submission(
    request: Request,
    form: FormDefinition,
    text_values: dict[str, Any],
    uploads: dict[str, FileBlob],
) -> None:
    """Re-run the visitor-side rules plus the server's own upload cap.

    Raises ``ValidationError`` carrying every offending field.
    """
    settings = request.app.state.settings
    values: dict[str, Any] = {**text_values, **uploads}
    errors = validate_values(form, values)
    if settings.upload_max_bytes is not None:
        for field_id, blob in uploads.items():
            if blob.size > settings.upload_max_bytes:
                errors.setdefault(field_id, SERVER_LIMIT_MESSAGE)
    raise_for_errors(form, errors)


async def open_ticket(
    request: Request,
    record: dict[str, Any],
    form: FormDefinition,
    text_values: dict[str, Any],
    uploads: dict[str, FileBlob],
) -> CreatedTicket:
    storage = request.app.state.storage
    settings = request.app.state.settings
    created = create_ticket_from_submission(storage, settings, form, text_values, uploads)
    await notify_ticket_created(record, created)
    return created


def _coerce_text_values(form: FormDefinition, raw: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    invalid: dict[str, str] = {}
    for field in form.fields:
        if field.type in FILE_TYPES:
            continue
        value = raw.get(field.id)
        if field.type == FieldType.CHECKBOX:
            values[field.id] = bool(value)
        elif value is None or isinstance(value, str):
            values[field.id] = value
        elif isinstance(value, (bool, int, float)):
            values[field.id] = str(value)
        else:
            invalid[field.id] = INVALID_VALUE_MESSAGE
    raise_for_errors(form, invalid)
    return values


@router.get("/api/public/forms/{public_url}", tags=["api/public"])
async def api_public_form(public_url: str, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    record, _ = load_public_form(storage, public_url)
    return JSONResponse(public_form_output(record))


@router.post("/api/public/forms/{public_url}/submit", tags=["api/public"])
async def api_submit_form(public_url: str, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    record, form = load_public_form(storage, public_url)
    form_data = await request.form()

    raw_values = form_data.get(FORM_DATA_PART)
    try:
        parsed = loads_json(raw_values) if isinstance(raw_values, str) else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="form_data inválido") from exc
    if parsed is not None and not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="form_data inválido")

    try:
        text_values = _coerce_text_values(form, parsed or {})
        uploads = await collect_uploads(form, form_data)
        check_submission(request, form, text_values, uploads)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"message": exc.message, "errors": exc.errors}) from exc

    created = await open_ticket(request, record, form, text_values, uploads)
    return JSONResponse(
        {
            "ticket_id": created.ticket["id"],
            "ticket_number": created.ticket["ticket_number"],
            "created_at": to_iso(created.ticket["created_at"]),
            "approval_required": created.ticket["needs_approval"],
            "submission_id": created.submission["id"],
        },
        status_code=201,
    )


@router.get("/api/public/pages/{slug}", tags=["api/public"])
async def api_public_page(slug: str, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    page = storage.pages.get_page_by_slug(slug)
    if not page:
        raise HTTPException(status_code=404, detail=PAGE_NOT_FOUND)
    return JSONResponse(public_page_output(page, form_public_urls(storage)))
