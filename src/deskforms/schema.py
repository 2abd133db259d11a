from __future__ import annotations

from typing import Any, Mapping

from jsonschema import Draft7Validator

from deskforms.field_types import FieldType
from deskforms.forms import FormDefinition, form_from_dict, form_to_dict, save_problems
from deskforms.pages import ButtonSize, PageDefinition, generate_slug, page_from_dict, page_to_dict, public_form_path
from deskforms.utils import to_iso
from deskforms.webhook import is_valid_webhook_url

_NULLABLE_STRING = {"type": ["string", "null"]}
_NULLABLE_ID = {"type": ["integer", "string", "null"]}

FIELD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": ["string", "integer", "null"]},
        "type": {"type": "string"},
        "label": _NULLABLE_STRING,
        "required": {"type": ["boolean", "null"]},
        "placeholder": _NULLABLE_STRING,
        "options": {"type": ["array", "null"], "items": {"type": "string"}},
        "validation": {
            "type": ["object", "null"],
            "properties": {
                "min": {"type": ["number", "null"]},
                "max": {"type": ["number", "null"]},
                "pattern": _NULLABLE_STRING,
                "accept": _NULLABLE_STRING,
                "max_size": {"type": ["number", "null"], "exclusiveMinimum": 0},
            },
        },
    },
    "required": ["type"],
}

FORM_PAYLOAD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": _NULLABLE_STRING,
        "description": _NULLABLE_STRING,
        "fields": {"type": "array", "items": FIELD_SCHEMA},
        "linked_user_id": _NULLABLE_ID,
        "linked_group_id": _NULLABLE_ID,
        "webhook_url": _NULLABLE_STRING,
        "webhook_on_submit": {"type": ["boolean", "null"]},
    },
}

BUTTON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": ["string", "integer", "null"]},
        "label": _NULLABLE_STRING,
        "form_id": _NULLABLE_ID,
        "url": _NULLABLE_STRING,
        "style": {
            "type": ["object", "null"],
            "properties": {
                "background_color": _NULLABLE_STRING,
                "color": _NULLABLE_STRING,
                "size": {"enum": [size.value for size in ButtonSize] + [None]},
            },
        },
    },
}

PAGE_PAYLOAD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": _NULLABLE_STRING,
        "slug": _NULLABLE_STRING,
        "description": _NULLABLE_STRING,
        "content": _NULLABLE_STRING,
        "buttons": {"type": ["array", "null"], "items": BUTTON_SCHEMA},
    },
}

_KNOWN_TYPES = {item.value for item in FieldType}


def _schema_errors(validator: Draft7Validator, payload: Any) -> list[str]:
    errors = sorted(validator.iter_errors(payload), key=lambda err: list(err.path))
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.path) or "payload"
        messages.append(f"{location}: {error.message}")
    return messages


_FORM_VALIDATOR = Draft7Validator(FORM_PAYLOAD_SCHEMA)
_PAGE_VALIDATOR = Draft7Validator(PAGE_PAYLOAD_SCHEMA)


def parse_form_payload(payload: Any) -> tuple[FormDefinition | None, list[str]]:
    errors = _schema_errors(_FORM_VALIDATOR, payload)
    if errors:
        return None, errors

    raw_fields = payload.get("fields") or []
    for index, raw in enumerate(raw_fields, start=1):
        if not str(raw.get("label") or "").strip():
            errors.append(f"Campo {index}: o rótulo é obrigatório")
        if raw.get("type") not in _KNOWN_TYPES:
            errors.append(f"Campo {index}: tipo inválido ({raw.get('type')})")
    if payload.get("linked_user_id") not in (None, "") and payload.get("linked_group_id") not in (None, ""):
        errors.append("Vincule o formulário a um usuário ou a um grupo, não a ambos")
    webhook_url = str(payload.get("webhook_url") or "").strip()
    if webhook_url and not is_valid_webhook_url(webhook_url):
        errors.append("webhook_url inválida")
    if errors:
        return None, errors

    try:
        form = form_from_dict(
            {
                "name": str(payload.get("name") or "").strip(),
                "description": str(payload.get("description") or "").strip(),
                "fields": raw_fields,
                "linked_user_id": payload.get("linked_user_id"),
                "linked_group_id": payload.get("linked_group_id"),
                "webhook_url": webhook_url,
                "webhook_on_submit": payload.get("webhook_on_submit"),
            }
        )
    except (TypeError, ValueError) as exc:
        return None, [str(exc)]
    problems = save_problems(form)
    if problems:
        return None, problems
    return form, []


def parse_page_payload(payload: Any) -> tuple[PageDefinition | None, list[str]]:
    errors = _schema_errors(_PAGE_VALIDATOR, payload)
    if errors:
        return None, errors

    raw_buttons = payload.get("buttons") or []
    for index, raw in enumerate(raw_buttons, start=1):
        if raw.get("form_id") not in (None, "") and raw.get("url"):
            errors.append(f"Botão {index}: escolha um formulário ou uma URL, não ambos")
    title = str(payload.get("title") or "").strip()
    if not title:
        errors.append("O título da página é obrigatório")
    if errors:
        return None, errors

    slug = generate_slug(str(payload.get("slug") or "")) or generate_slug(title)
    if not slug:
        return None, ["O slug da página é obrigatório"]
    try:
        page = page_from_dict(
            {
                "title": title,
                "slug": slug,
                "description": str(payload.get("description") or "").strip(),
                "content": str(payload.get("content") or ""),
                "buttons": raw_buttons,
            }
        )
    except (TypeError, ValueError) as exc:
        return None, [str(exc)]
    return page, []


def form_record(form: FormDefinition) -> dict[str, Any]:
    data = form_to_dict(form)
    data.pop("id")
    data.pop("public_url")
    return data


def page_record(page: PageDefinition) -> dict[str, Any]:
    data = page_to_dict(page)
    data.pop("id")
    data.pop("public_url")
    return data


def _timestamps(item: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "created_at": to_iso(item["created_at"]) if item.get("created_at") else None,
        "updated_at": to_iso(item["updated_at"]) if item.get("updated_at") else None,
    }


def form_output(form: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": form["id"],
        "public_url": form.get("public_url"),
        "name": form.get("name", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "linked_user_id": form.get("linked_user_id"),
        "linked_group_id": form.get("linked_group_id"),
        "webhook_url": form.get("webhook_url", ""),
        "webhook_on_submit": bool(form.get("webhook_on_submit")),
        "created_by": form.get("created_by"),
        **_timestamps(form),
    }


def public_form_output(form: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": form["id"],
        "public_url": form.get("public_url"),
        "name": form.get("name", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "approval_required": bool(form.get("linked_user_id") or form.get("linked_group_id")),
    }


def page_output(page: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": page["id"],
        "public_url": page.get("public_url"),
        "slug": page.get("slug", ""),
        "title": page.get("title", ""),
        "description": page.get("description", ""),
        "content": page.get("content", ""),
        "buttons": page.get("buttons", []),
        "created_by": page.get("created_by"),
        **_timestamps(page),
    }


def public_page_output(page: Mapping[str, Any], form_public_urls: Mapping[int, str]) -> dict[str, Any]:
    buttons = []
    for button in page.get("buttons", []):
        form_id = button.get("form_id")
        public_url = form_public_urls.get(int(form_id)) if form_id is not None else None
        buttons.append({**button, "form_url": public_form_path(public_url) if public_url else None})
    return {
        "id": page["id"],
        "slug": page.get("slug", ""),
        "title": page.get("title", ""),
        "description": page.get("description", ""),
        "content": page.get("content", ""),
        "buttons": buttons,
    }
