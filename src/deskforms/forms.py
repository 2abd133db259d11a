from __future__ import annotations

from dataclasses import dataclass, field as dc_field, replace
from typing import Any, Iterable, Mapping

from deskforms.field_types import FieldType, coerce_type, describe
from deskforms.utils import generate_item_id

NEW_FIELD_LABEL = "Novo Campo"


@dataclass(frozen=True)
class FieldValidation:
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    accept: str | None = None
    max_size: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FieldValidation | None:
        if not data:
            return None
        validation = cls(
            min=_optional_number(data.get("min")),
            max=_optional_number(data.get("max")),
            pattern=_optional_text(data.get("pattern")),
            accept=_optional_text(data.get("accept")),
            max_size=_optional_number(data.get("max_size")),
        )
        return validation if validation.to_dict() else None


@dataclass(frozen=True)
class FormField:
    id: str
    type: FieldType
    label: str
    required: bool = False
    placeholder: str | None = None
    options: tuple[str, ...] | None = None
    validation: FieldValidation | None = None

    @property
    def max_size(self) -> float | None:
        return self.validation.max_size if self.validation else None


@dataclass(frozen=True)
class UserLink:
    user_id: int


@dataclass(frozen=True)
class GroupLink:
    group_id: int


Linkage = UserLink | GroupLink | None


@dataclass(frozen=True)
class FormDefinition:
    name: str = ""
    description: str = ""
    fields: tuple[FormField, ...] = dc_field(default_factory=tuple)
    linkage: Linkage = None
    id: int | None = None
    public_url: str | None = None
    webhook_url: str = ""
    webhook_on_submit: bool = False

    @property
    def linked_user_id(self) -> int | None:
        return self.linkage.user_id if isinstance(self.linkage, UserLink) else None

    @property
    def linked_group_id(self) -> int | None:
        return self.linkage.group_id if isinstance(self.linkage, GroupLink) else None

    @property
    def approval_required(self) -> bool:
        return self.linkage is not None

    def field(self, field_id: str) -> FormField | None:
        for item in self.fields:
            if item.id == field_id:
                return item
        return None


def normalize_options(values: Iterable[Any] | None) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(value) for value in values if str(value).strip())


@dataclass
class OptionsBuffer:
    """Free-text editing state for a select/radio field, one option per line.

    Only ``commit()`` output ever reaches the form definition.
    """

    text: str = ""

    @classmethod
    def from_options(cls, options: Iterable[str] | None) -> OptionsBuffer:
        return cls("\n".join(options or ()))

    def commit(self) -> tuple[str, ...]:
        return normalize_options(self.text.splitlines())


def _replace_field(form: FormDefinition, updated: FormField) -> FormDefinition:
    return replace(
        form,
        fields=tuple(updated if item.id == updated.id else item for item in form.fields),
    )


def add_field(form: FormDefinition) -> tuple[FormDefinition, FormField]:
    new_field = FormField(
        id=generate_item_id({item.id for item in form.fields}),
        type=FieldType.TEXT,
        label=NEW_FIELD_LABEL,
        required=False,
    )
    return replace(form, fields=form.fields + (new_field,)), new_field


def set_field_type(form: FormDefinition, field_id: str, new_type: FieldType | str) -> FormDefinition:
    current = form.field(field_id)
    if current is None:
        return form
    info = describe(new_type)
    if info.supports_options:
        options = current.options if current.options else info.default_options
    else:
        options = None
    return _replace_field(form, replace(current, type=info.type, options=options))


def update_field(form: FormDefinition, field_id: str, patch: Mapping[str, Any]) -> FormDefinition:
    current = form.field(field_id)
    if current is None:
        return form
    changes: dict[str, Any] = {}
    new_type = None
    for key, value in patch.items():
        if key == "type":
            new_type = value
        elif key == "options":
            changes["options"] = normalize_options(value)
        elif key == "validation":
            changes["validation"] = (
                value if value is None or isinstance(value, FieldValidation) else FieldValidation.from_dict(value)
            )
        elif key in {"label", "placeholder", "required"}:
            changes[key] = bool(value) if key == "required" else value
        else:
            raise ValueError(f"unknown field attribute: {key}")
    updated = replace(current, **changes)
    form = _replace_field(form, updated)
    if new_type is not None:
        return set_field_type(form, field_id, new_type)
    if not describe(updated.type).supports_options and updated.options is not None:
        form = _replace_field(form, replace(updated, options=None))
    return form


def remove_field(form: FormDefinition, field_id: str) -> FormDefinition:
    return replace(form, fields=tuple(item for item in form.fields if item.id != field_id))


def move_field(form: FormDefinition, field_id: str, new_index: int) -> FormDefinition:
    fields = list(form.fields)
    for index, item in enumerate(fields):
        if item.id == field_id:
            fields.insert(max(0, min(new_index, len(fields) - 1)), fields.pop(index))
            return replace(form, fields=tuple(fields))
    return form


def link_user(form: FormDefinition, user_id: int | None) -> FormDefinition:
    return replace(form, linkage=UserLink(int(user_id)) if user_id is not None else None)


def link_group(form: FormDefinition, group_id: int | None) -> FormDefinition:
    return replace(form, linkage=GroupLink(int(group_id)) if group_id is not None else None)


def unlink(form: FormDefinition) -> FormDefinition:
    return replace(form, linkage=None)


def save_problems(form: FormDefinition) -> list[str]:
    problems: list[str] = []
    if not form.name.strip():
        problems.append("O nome do formulário é obrigatório")
    if not form.fields:
        problems.append("Adicione pelo menos um campo ao formulário")
    return problems


def can_save(form: FormDefinition) -> bool:
    return not save_problems(form)


def field_to_dict(item: FormField) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": item.id,
        "type": item.type.value,
        "label": item.label,
        "required": item.required,
    }
    if item.placeholder is not None:
        data["placeholder"] = item.placeholder
    if item.options is not None:
        data["options"] = list(item.options)
    if item.validation is not None:
        data["validation"] = item.validation.to_dict()
    return data


def field_from_dict(data: Mapping[str, Any], field_id: str) -> FormField:
    field_type = coerce_type(data.get("type") or FieldType.TEXT)
    options = normalize_options(data.get("options")) if describe(field_type).supports_options else None
    placeholder = data.get("placeholder")
    return FormField(
        id=field_id,
        type=field_type,
        label=str(data.get("label") or ""),
        required=bool(data.get("required")),
        placeholder=str(placeholder) if placeholder is not None else None,
        options=options,
        validation=FieldValidation.from_dict(data.get("validation")),
    )


def fields_from_list(raw_fields: Iterable[Mapping[str, Any]]) -> tuple[FormField, ...]:
    seen: set[str] = set()
    fields: list[FormField] = []
    for raw in raw_fields:
        field_id = str(raw.get("id") or "").strip()
        if not field_id or field_id in seen:
            field_id = generate_item_id(seen)
        seen.add(field_id)
        fields.append(field_from_dict(raw, field_id))
    return tuple(fields)


def linkage_from_ids(user_id: Any, group_id: Any) -> Linkage:
    if user_id not in (None, "") and group_id not in (None, ""):
        raise ValueError("a form links to a user or to a group, not both")
    if user_id not in (None, ""):
        return UserLink(int(user_id))
    if group_id not in (None, ""):
        return GroupLink(int(group_id))
    return None


def form_to_dict(form: FormDefinition) -> dict[str, Any]:
    return {
        "id": form.id,
        "name": form.name,
        "description": form.description,
        "public_url": form.public_url,
        "linked_user_id": form.linked_user_id,
        "linked_group_id": form.linked_group_id,
        "webhook_url": form.webhook_url,
        "webhook_on_submit": form.webhook_on_submit,
        "fields": [field_to_dict(item) for item in form.fields],
    }


def form_from_dict(data: Mapping[str, Any]) -> FormDefinition:
    form_id = data.get("id")
    return FormDefinition(
        id=int(form_id) if form_id is not None else None,
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        fields=fields_from_list(data.get("fields") or []),
        linkage=linkage_from_ids(data.get("linked_user_id"), data.get("linked_group_id")),
        public_url=data.get("public_url") or None,
        webhook_url=str(data.get("webhook_url") or ""),
        webhook_on_submit=bool(data.get("webhook_on_submit")),
    )


def _optional_number(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return float(value)


def _optional_text(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value)
