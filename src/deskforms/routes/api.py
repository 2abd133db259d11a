from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from deskforms.auth import operator_guard
from deskforms.forms import FormDefinition
from deskforms.pages import generate_slug
from deskforms.schema import (
    form_output,
    form_record,
    page_output,
    page_record,
    parse_form_payload,
    parse_page_payload,
)
from deskforms.utils import new_public_token, now_utc

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(operator_guard)])

FORM_NOT_FOUND = "Formulário não encontrado"
PAGE_NOT_FOUND = "Página não encontrada"


async def _json_payload(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="JSON inválido") from exc


def _unique_public_url(repo: Any) -> str:
    public_url = new_public_token()
    while repo.public_url_exists(public_url):
        public_url = new_public_token()
    return public_url


def _unique_slug(storage: Any, base: str, exclude_id: int | None = None) -> str:
    slug = base
    counter = 1
    while storage.pages.slug_exists(slug, exclude_id=exclude_id):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def _check_linkage(storage: Any, form: FormDefinition) -> None:
    if form.linked_user_id is not None and not storage.directory.user_exists(form.linked_user_id):
        raise HTTPException(status_code=400, detail="Usuário vinculado não encontrado")
    if form.linked_group_id is not None and not storage.directory.group_exists(form.linked_group_id):
        raise HTTPException(status_code=400, detail="Grupo vinculado não encontrado")


async def _parse_form(request: Request) -> FormDefinition:
    form, errors = parse_form_payload(await _json_payload(request))
    if errors or form is None:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    _check_linkage(request.app.state.storage, form)
    return form


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    return JSONResponse([form_output(form) for form in storage.forms.list_forms()])


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    form = await _parse_form(request)
    now = now_utc()
    created = storage.forms.create_form(
        {
            **form_record(form),
            "public_url": _unique_public_url(storage.forms),
            "created_by": request.state.identity.user_id,
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info("Form %s created by user %s", created["id"], created["created_by"])
    return JSONResponse(form_output(created), status_code=201)


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def api_get_form(form_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    form = storage.forms.get_form(form_id)
    if not form:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    return JSONResponse(form_output(form))


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def api_update_form(form_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    if not storage.forms.get_form(form_id):
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    form = await _parse_form(request)
    updated = storage.forms.update_form(form_id, {**form_record(form), "updated_at": now_utc()})
    return JSONResponse(form_output(updated))


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def api_delete_form(form_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    if not storage.forms.delete_form(form_id):
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    logger.info("Form %s deleted", form_id)
    return JSONResponse({"deleted": True})


@router.post("/api/forms/{form_id}/public-url", tags=["api/forms"])
async def api_rotate_public_url(form_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    form = storage.forms.get_form(form_id)
    if not form:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    updated = storage.forms.update_form(
        form_id,
        {"public_url": _unique_public_url(storage.forms), "updated_at": now_utc()},
    )
    logger.info("Form %s public URL rotated", form_id)
    return JSONResponse(form_output(updated))


@router.get("/api/pages", tags=["api/pages"])
async def api_list_pages(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    return JSONResponse([page_output(page) for page in storage.pages.list_pages()])


@router.post("/api/pages", tags=["api/pages"])
async def api_create_page(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    page, errors = parse_page_payload(await _json_payload(request))
    if errors or page is None:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    now = now_utc()
    record = page_record(page)
    created = storage.pages.create_page(
        {
            **record,
            "slug": _unique_slug(storage, record["slug"]),
            "public_url": _unique_public_url(storage.pages),
            "created_by": request.state.identity.user_id,
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info("Page %s created with slug %s", created["id"], created["slug"])
    return JSONResponse(page_output(created), status_code=201)


@router.get("/api/pages/{page_id}", tags=["api/pages"])
async def api_get_page(page_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    page = storage.pages.get_page(page_id)
    if not page:
        raise HTTPException(status_code=404, detail=PAGE_NOT_FOUND)
    return JSONResponse(page_output(page))


@router.put("/api/pages/{page_id}", tags=["api/pages"])
async def api_update_page(page_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    existing = storage.pages.get_page(page_id)
    if not existing:
        raise HTTPException(status_code=404, detail=PAGE_NOT_FOUND)
    payload = await _json_payload(request)
    page, errors = parse_page_payload(payload)
    if errors or page is None:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    record = page_record(page)
    requested = generate_slug(str(payload.get("slug") or ""))
    if requested and requested != existing["slug"]:
        record["slug"] = _unique_slug(storage, requested, exclude_id=page_id)
    else:
        record["slug"] = existing["slug"]
    updated = storage.pages.update_page(page_id, {**record, "updated_at": now_utc()})
    return JSONResponse(page_output(updated))


@router.delete("/api/pages/{page_id}", tags=["api/pages"])
async def api_delete_page(page_id: int, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    if not storage.pages.delete_page(page_id):
        raise HTTPException(status_code=404, detail=PAGE_NOT_FOUND)
    return JSONResponse({"deleted": True})


@router.get("/api/users", tags=["api/directory"])
async def api_list_users(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    return JSONResponse([{"id": user["id"], "name": user["name"]} for user in storage.directory.list_users()])


@router.get("/api/groups", tags=["api/directory"])
async def api_list_groups(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    return JSONResponse([{"id": group["id"], "name": group["name"]} for group in storage.directory.list_groups()])
