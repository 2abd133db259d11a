from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"
    FILE = "file"
    IMAGE = "image"


OPTION_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO})
PLACEHOLDER_TYPES = frozenset({FieldType.TEXT, FieldType.EMAIL, FieldType.NUMBER})
FILE_TYPES = frozenset({FieldType.FILE, FieldType.IMAGE})

DEFAULT_OPTIONS = ("Opção 1", "Opção 2")


@dataclass(frozen=True)
class FieldTypeInfo:
    type: FieldType
    label: str
    input_type: str
    supports_options: bool
    supports_placeholder: bool
    supports_file_validation: bool
    default_options: tuple[str, ...]
    default_accept: str | None = None


def _info(field_type: FieldType, label: str, input_type: str, default_accept: str | None = None) -> FieldTypeInfo:
    supports_options = field_type in OPTION_TYPES
    return FieldTypeInfo(
        type=field_type,
        label=label,
        input_type=input_type,
        supports_options=supports_options,
        supports_placeholder=field_type in PLACEHOLDER_TYPES,
        supports_file_validation=field_type in FILE_TYPES,
        default_options=DEFAULT_OPTIONS if supports_options else (),
        default_accept=default_accept,
    )


_REGISTRY: dict[FieldType, FieldTypeInfo] = {
    info.type: info
    for info in (
        _info(FieldType.TEXT, "Texto", "text"),
        _info(FieldType.EMAIL, "Email", "email"),
        _info(FieldType.NUMBER, "Número", "number"),
        _info(FieldType.TEXTAREA, "Área de Texto", "textarea"),
        _info(FieldType.SELECT, "Seleção", "select"),
        _info(FieldType.CHECKBOX, "Checkbox", "checkbox"),
        _info(FieldType.RADIO, "Radio", "radio"),
        _info(FieldType.DATE, "Data", "date"),
        _info(FieldType.FILE, "Arquivo", "file"),
        _info(FieldType.IMAGE, "Imagem/Foto", "file", default_accept="image/*"),
    )
}


def coerce_type(value: FieldType | str) -> FieldType:
    # Raises ValueError for unknown kinds; callers must not pass them.
    return value if isinstance(value, FieldType) else FieldType(value)


def describe(field_type: FieldType | str) -> FieldTypeInfo:
    return _REGISTRY[coerce_type(field_type)]


def all_types() -> list[FieldTypeInfo]:
    return list(_REGISTRY.values())
