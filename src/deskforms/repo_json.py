from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from filelock import FileLock
from tinydb import Query, TinyDB
from tinydb.table import Table

from deskforms.utils import ensure_aware, parse_dt, to_iso

DATETIME_KEYS = ("created_at", "updated_at")
META_TABLE = "_meta"
SLUG_TABLE = "page_slugs"


def _next_id(db: TinyDB, table: Table) -> int:
    """Ids come from a persisted per-table counter and are never handed out twice."""
    meta = db.table(META_TABLE)
    entry = meta.get(Query().table_name == table.name)
    last_id = max(
        [int(entry["last_id"]) if entry else 0] + [int(item.get("id") or 0) for item in table.all()]
    )
    meta.upsert({"table_name": table.name, "last_id": last_id + 1}, Query().table_name == table.name)
    return last_id + 1


def _to_record(data: dict[str, Any]) -> dict[str, Any]:
    return {key: to_iso(value) if isinstance(value, datetime) else value for key, value in data.items()}


def _from_record(record: dict[str, Any]) -> dict[str, Any]:
    item = dict(record)
    for key in DATETIME_KEYS:
        if key in item:
            item[key] = parse_dt(item[key]) if item[key] else None
    return item


class JSONRepoBase:
    table_name = ""

    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterable[TinyDB]:
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db
            finally:
                db.close()

    def _all(self) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table(self.table_name).all()
        return [_from_record(item) for item in items]

    def _get(self, **criteria: Any) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table(self.table_name).get(Query().fragment(criteria))
        return _from_record(item) if item else None

    def _insert(self, data: dict[str, Any]) -> dict[str, Any]:
        with self._db() as db:
            table = db.table(self.table_name)
            record = _to_record(data)
            if "id" not in record:
                record["id"] = _next_id(db, table)
            table.insert(record)
        return _from_record(record)

    def _update(self, item_id: Any, updates: dict[str, Any]) -> dict[str, Any]:
        with self._db() as db:
            table = db.table(self.table_name)
            item = table.get(Query().id == item_id)
            if not item:
                raise KeyError(item_id)
            item = dict(item)
            item.update(_to_record(updates))
            table.update(item, Query().id == item_id)
        return _from_record(item)

    def _remove(self, item_id: Any) -> bool:
        with self._db() as db:
            removed = db.table(self.table_name).remove(Query().id == item_id)
        return bool(removed)


class JSONFormRepo(JSONRepoBase):
    table_name = "forms"

    def list_forms(self) -> list[dict[str, Any]]:
        forms = self._all()
        return sorted(forms, key=lambda x: x["updated_at"], reverse=True)

    def get_form(self, form_id: int) -> dict[str, Any] | None:
        return self._get(id=form_id)

    def get_form_by_public_url(self, public_url: str) -> dict[str, Any] | None:
        return self._get(public_url=public_url)

    def public_url_exists(self, public_url: str) -> bool:
        return self._get(public_url=public_url) is not None

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        return self._insert(form)

    def update_form(self, form_id: int, updates: dict[str, Any]) -> dict[str, Any]:
        return self._update(form_id, updates)

    def delete_form(self, form_id: int) -> bool:
        return self._remove(form_id)


class JSONPageRepo(JSONRepoBase):
    table_name = "pages"

    def list_pages(self) -> list[dict[str, Any]]:
        pages = self._all()
        return sorted(pages, key=lambda x: x["updated_at"], reverse=True)

    def get_page(self, page_id: int) -> dict[str, Any] | None:
        return self._get(id=page_id)

    def get_page_by_slug(self, slug: str) -> dict[str, Any] | None:
        return self._get(slug=slug) or self._get(public_url=slug)

    def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        """True when any page, live or deleted, has ever held ``slug``."""
        if any(item["slug"] == slug and item["id"] != exclude_id for item in self._all()):
            return True
        with self._db() as db:
            entry = db.table(SLUG_TABLE).get(Query().slug == slug)
        return entry is not None and entry["page_id"] != exclude_id

    def public_url_exists(self, public_url: str) -> bool:
        return self._get(public_url=public_url) is not None

    def create_page(self, page: dict[str, Any]) -> dict[str, Any]:
        created = self._insert(page)
        self._remember_slug(created)
        return created

    def update_page(self, page_id: int, updates: dict[str, Any]) -> dict[str, Any]:
        updated = self._update(page_id, updates)
        self._remember_slug(updated)
        return updated

    def _remember_slug(self, page: dict[str, Any]) -> None:
        with self._db() as db:
            slugs = db.table(SLUG_TABLE)
            if not slugs.contains(Query().slug == page["slug"]):
                slugs.insert({"slug": page["slug"], "page_id": page["id"], "created_at": to_iso(page["updated_at"])})

    def delete_page(self, page_id: int) -> bool:
        return self._remove(page_id)


class JSONSubmissionRepo(JSONRepoBase):
    table_name = "submissions"

    def create_submission(self, submission: dict[str, Any]) -> dict[str, Any]:
        return self._insert(submission)


class JSONFileRepo(JSONRepoBase):
    table_name = "files"

    def create_file(self, file_meta: dict[str, Any]) -> None:
        self._insert(file_meta)

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        return self._get(id=file_id)

    def list_files(self, submission_id: int) -> list[dict[str, Any]]:
        files = [item for item in self._all() if item["submission_id"] == submission_id]
        return sorted(files, key=lambda x: x["created_at"])


class JSONTicketRepo(JSONRepoBase):
    table_name = "tickets"

    def count_tickets_between(self, start: datetime, end: datetime) -> int:
        start, end = ensure_aware(start), ensure_aware(end)
        return sum(1 for item in self._all() if start <= item["created_at"] < end)

    def create_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        return self._insert(ticket)

    def get_ticket(self, ticket_id: int) -> dict[str, Any] | None:
        return self._get(id=ticket_id)


class JSONUserTable(JSONRepoBase):
    table_name = "users"


class JSONGroupTable(JSONRepoBase):
    table_name = "groups"


class JSONDirectoryRepo:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._users = JSONUserTable(path, lock)
        self._groups = JSONGroupTable(path, lock)

    def list_users(self) -> list[dict[str, Any]]:
        return sorted(self._users._all(), key=lambda x: x["name"])

    def list_groups(self) -> list[dict[str, Any]]:
        return sorted(self._groups._all(), key=lambda x: x["name"])

    def user_exists(self, user_id: int) -> bool:
        return self._users._get(id=user_id) is not None

    def group_exists(self, group_id: int) -> bool:
        return self._groups._get(id=group_id) is not None

    def create_user(self, name: str, email: str | None = None, role: str = "user") -> dict[str, Any]:
        return self._users._insert({"name": name, "email": email, "role": role})

    def create_group(self, name: str, description: str = "") -> dict[str, Any]:
        return self._groups._insert({"name": name, "description": description})


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.pages = JSONPageRepo(path, self._lock)
        self.submissions = JSONSubmissionRepo(path, self._lock)
        self.files = JSONFileRepo(path, self._lock)
        self.tickets = JSONTicketRepo(path, self._lock)
        self.directory = JSONDirectoryRepo(path, self._lock)
