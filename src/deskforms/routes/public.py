from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse
from markupsafe import Markup

from deskforms.errors import ValidationError
from deskforms.field_types import FILE_TYPES, FieldType
from deskforms.forms import FormDefinition
from deskforms.pages import page_from_dict, resolve_button_target
from deskforms.pipeline import TicketReceipt, format_ticket_id, format_ticket_label
from deskforms.renderer import build_widgets, initial_values
from deskforms.routes.submissions import (
    PAGE_NOT_FOUND,
    check_submission,
    collect_uploads,
    form_public_urls,
    load_public_form,
    open_ticket,
)

router = APIRouter()


def _render_form(
    request: Request,
    form: FormDefinition,
    values: dict[str, Any],
    errors: dict[str, str],
) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "form_public.html",
        {
            "form": form,
            "widgets": build_widgets(form),
            "values": values,
            "errors": errors,
        },
    )


@router.get("/f/{public_url}", response_class=HTMLResponse, tags=["public"])
async def public_form(request: Request, public_url: str) -> HTMLResponse:
    storage = request.app.state.storage
    _, form = load_public_form(storage, public_url)
    return _render_form(request, form, initial_values(form), {})


@router.post("/f/{public_url}", response_class=HTMLResponse, tags=["public"])
async def submit_form(request: Request, public_url: str) -> HTMLResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    templates = request.app.state.templates
    record, form = load_public_form(storage, public_url)
    form_data = await request.form()

    text_values: dict[str, Any] = {}
    for field in form.fields:
        if field.type in FILE_TYPES:
            continue
        if field.type == FieldType.CHECKBOX:
            text_values[field.id] = field.id in form_data
        else:
            raw = form_data.get(field.id)
            text_values[field.id] = raw if isinstance(raw, str) else ""
    uploads = await collect_uploads(form, form_data)

    try:
        check_submission(request, form, text_values, uploads)
    except ValidationError as exc:
        return _render_form(request, form, {**initial_values(form), **text_values}, exc.errors)

    created = await open_ticket(request, record, form, text_values, uploads)
    receipt = TicketReceipt(
        ticket_number=created.ticket["ticket_number"],
        created_at=created.ticket["created_at"],
        approval_required=created.ticket["needs_approval"],
        ticket_id=created.ticket["id"],
    )
    return templates.TemplateResponse(
        request,
        "submission_done.html",
        {
            "form": form,
            "receipt": receipt,
            "ticket_code": format_ticket_id(receipt, settings.ticket_timezone),
            "ticket_label": format_ticket_label(receipt, settings.ticket_timezone),
        },
    )


@router.get("/p/{slug}", response_class=HTMLResponse, tags=["public"])
async def public_page(request: Request, slug: str) -> HTMLResponse:
    storage = request.app.state.storage
    templates = request.app.state.templates
    record = storage.pages.get_page_by_slug(slug)
    if not record:
        raise HTTPException(status_code=404, detail=PAGE_NOT_FOUND)
    page = page_from_dict(record)
    public_urls = form_public_urls(storage)
    buttons = [(button, resolve_button_target(button, public_urls)) for button in page.buttons]
    return templates.TemplateResponse(
        request,
        "page_public.html",
        {"page": page, "content": Markup(page.content), "buttons": buttons},
    )


@router.get("/attachments/{file_id}", tags=["public"])
async def download_attachment(request: Request, file_id: str) -> FileResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    file_meta = storage.files.get_file(file_id)
    if not file_meta:
        raise HTTPException(status_code=404, detail="Anexo não encontrado")
    path = Path(file_meta["stored_path"]).resolve()
    if settings.upload_dir.resolve() not in path.parents:
        raise HTTPException(status_code=400, detail="Caminho de arquivo inválido")
    if not path.exists():
        raise HTTPException(status_code=404, detail="Arquivo não encontrado no servidor")
    return FileResponse(
        path,
        filename=file_meta.get("original_name") or file_id,
        media_type=file_meta.get("content_type") or "application/octet-stream",
    )
