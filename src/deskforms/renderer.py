from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

from deskforms.errors import ValidationError
from deskforms.field_types import FILE_TYPES, FieldType, describe
from deskforms.forms import FormDefinition, FormField, form_from_dict
from deskforms.pipeline import TicketReceipt, submit_submission
from deskforms.submission import FileBlob, SubmissionPayload

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

REQUIRED_MESSAGE = "Este campo é obrigatório"
INVALID_EMAIL_MESSAGE = "Email inválido"

DEFAULT_PLACEHOLDERS = {
    FieldType.TEXT: "Digite...",
    FieldType.EMAIL: "email@exemplo.com",
    FieldType.NUMBER: "0",
    FieldType.TEXTAREA: "Digite...",
}


def file_too_large_message(max_size: float) -> str:
    return f"Arquivo muito grande. Tamanho máximo: {max_size:g}MB"


@dataclass(frozen=True)
class FieldWidget:
    id: str
    type: str
    label: str
    input_type: str
    required: bool
    placeholder: str | None = None
    options: tuple[str, ...] = ()
    accept: str | None = None
    max_size: float | None = None


def build_widget(field: FormField) -> FieldWidget:
    info = describe(field.type)
    placeholder = None
    if info.supports_placeholder and field.placeholder:
        placeholder = field.placeholder
    elif field.type in DEFAULT_PLACEHOLDERS:
        placeholder = DEFAULT_PLACEHOLDERS[field.type]
    accept = None
    if info.supports_file_validation:
        accept = (field.validation.accept if field.validation else None) or info.default_accept
    return FieldWidget(
        id=field.id,
        type=field.type.value,
        label=field.label,
        input_type=info.input_type,
        required=field.required,
        placeholder=placeholder,
        options=field.options or (),
        accept=accept,
        max_size=field.max_size if info.supports_file_validation else None,
    )


def build_widgets(form: FormDefinition) -> list[FieldWidget]:
    return [build_widget(field) for field in form.fields]


def initial_values(form: FormDefinition) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field in form.fields:
        if field.type == FieldType.CHECKBOX:
            values[field.id] = False
        elif field.type in FILE_TYPES:
            values[field.id] = None
        else:
            values[field.id] = ""
    return values


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def check_file_selection(field: FormField, blob: FileBlob) -> str | None:
    max_size = field.max_size
    if max_size and blob.size_mb > max_size:
        return file_too_large_message(max_size)
    return None


def validate_values(form: FormDefinition, values: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field in form.fields:
        value = values.get(field.id)
        if field.type == FieldType.CHECKBOX:
            if field.required and not value:
                errors[field.id] = REQUIRED_MESSAGE
        elif field.type in FILE_TYPES:
            if isinstance(value, FileBlob):
                message = check_file_selection(field, value)
                if message:
                    errors[field.id] = message
            elif field.required:
                errors[field.id] = REQUIRED_MESSAGE
        elif field.required and _is_blank(value):
            errors[field.id] = REQUIRED_MESSAGE

        if field.type == FieldType.EMAIL and isinstance(value, str) and value:
            if not EMAIL_PATTERN.fullmatch(value):
                errors[field.id] = INVALID_EMAIL_MESSAGE
    return errors


def first_error_message(form: FormDefinition, errors: Mapping[str, str]) -> str:
    for field in form.fields:
        if field.id in errors:
            return f'Campo "{field.label}": {errors[field.id]}'
    return "Dados inválidos"


def raise_for_errors(form: FormDefinition, errors: Mapping[str, str]) -> None:
    if errors:
        raise ValidationError(first_error_message(form, errors), dict(errors))


def package_submission(form: FormDefinition, values: Mapping[str, Any]) -> SubmissionPayload:
    text_values: dict[str, Any] = {}
    files: dict[str, FileBlob] = {}
    for field in form.fields:
        value = values.get(field.id)
        if field.type in FILE_TYPES:
            if isinstance(value, FileBlob):
                files[field.id] = value
                text_values[field.id] = value.name
        else:
            text_values[field.id] = value
    return SubmissionPayload(public_url=form.public_url or "", text_values=text_values, files=files)


class PublicFormSession:
    """Value slots and errors for one visitor filling one published form."""

    def __init__(self, form: FormDefinition, approval_required: bool | None = None) -> None:
        self.form = form
        self.approval_required = form.approval_required if approval_required is None else approval_required
        self.values = initial_values(form)
        self.errors: dict[str, str] = {}
        self.submitting = False
        self.receipt: TicketReceipt | None = None
        self.closed = False

    @classmethod
    async def open(cls, client: Any, public_url: str) -> PublicFormSession:
        data = await client.get_public_form(public_url)
        # The public projection hides the linkage and only carries the flag.
        return cls(form_from_dict(data), approval_required=bool(data.get("approval_required")))

    @property
    def widgets(self) -> list[FieldWidget]:
        return build_widgets(self.form)

    def set_value(self, field_id: str, value: Any) -> None:
        if field_id not in self.values:
            return
        self.values[field_id] = value
        self.errors.pop(field_id, None)

    def select_file(self, field_id: str, blob: FileBlob | None) -> bool:
        field = self.form.field(field_id)
        if field is None or field.type not in FILE_TYPES:
            return False
        if blob is None:
            self.values[field_id] = None
            return True
        message = check_file_selection(field, blob)
        if message:
            self.errors[field_id] = message
            self.values[field_id] = None
            return False
        self.values[field_id] = blob
        self.errors.pop(field_id, None)
        return True

    def validate(self) -> bool:
        try:
            raise_for_errors(self.form, validate_values(self.form, self.values))
        except ValidationError as exc:
            self.errors = exc.errors
            return False
        self.errors = {}
        return True

    async def submit(self, client: Any) -> TicketReceipt | None:
        if self.submitting:
            return None
        if not self.validate():
            return None
        self.submitting = True
        try:
            receipt = await submit_submission(client, package_submission(self.form, self.values))
        finally:
            self.submitting = False
        if self.closed:
            return None
        self.receipt = receipt
        return receipt

    def close(self) -> None:
        self.closed = True
