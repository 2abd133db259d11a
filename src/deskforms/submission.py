from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Any

from deskforms.utils import dumps_json

FORM_DATA_PART = "form_data"
FILE_PART_PREFIX = "file_"

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class FileBlob:
    name: str
    size: int
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size_mb(self) -> float:
        return self.size / BYTES_PER_MB


@dataclass(frozen=True)
class SubmissionPayload:
    """One public form-fill, consumed once by the ticket pipeline."""

    public_url: str
    text_values: dict[str, Any] = dc_field(default_factory=dict)
    files: dict[str, FileBlob] = dc_field(default_factory=dict)

    def multipart(self) -> tuple[dict[str, str], dict[str, tuple[str, bytes, str]]]:
        data = {FORM_DATA_PART: dumps_json(self.text_values)}
        files = {
            file_part_name(field_id): (blob.name, blob.content, blob.content_type)
            for field_id, blob in self.files.items()
        }
        return data, files


def file_part_name(field_id: str) -> str:
    return f"{FILE_PART_PREFIX}{field_id}"

