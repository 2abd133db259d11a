from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, func
from sqlalchemy.orm import Session, sessionmaker

from deskforms.models import (
    Base,
    FileModel,
    FormModel,
    GroupModel,
    PageModel,
    PageSlugModel,
    SubmissionModel,
    TicketModel,
    UserModel,
)
from deskforms.utils import dumps_json, ensure_aware, loads_json


def _naive_utc(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(timezone.utc).replace(tzinfo=None)


def _aware(value: datetime | None) -> datetime | None:
    return ensure_aware(value) if value else None


def _remember_slug(session: Session, row: PageModel) -> None:
    if session.get(PageSlugModel, row.slug) is None:
        session.add(PageSlugModel(slug=row.slug, page_id=row.id, created_at=row.updated_at))


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_forms(self) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.query(FormModel).order_by(FormModel.updated_at.desc()).all()
            return [self._to_dict(row) for row in rows]

    def get_form(self, form_id: int) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def get_form_by_public_url(self, public_url: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.query(FormModel).filter(FormModel.public_url == public_url).first()
            return self._to_dict(row) if row else None

    def public_url_exists(self, public_url: str) -> bool:
        with self._Session() as session:
            return session.query(FormModel.id).filter(FormModel.public_url == public_url).first() is not None

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = FormModel(
                public_url=form["public_url"],
                name=form["name"],
                description=form.get("description", ""),
                fields_json=dumps_json(form.get("fields", [])),
                linked_user_id=form.get("linked_user_id"),
                linked_group_id=form.get("linked_group_id"),
                webhook_url=form.get("webhook_url", ""),
                webhook_on_submit=int(bool(form.get("webhook_on_submit"))),
                created_by=form.get("created_by"),
                created_at=_naive_utc(form["created_at"]),
                updated_at=_naive_utc(form["updated_at"]),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def update_form(self, form_id: int, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            for key, value in updates.items():
                if key == "fields":
                    row.fields_json = dumps_json(value)
                elif key == "webhook_on_submit":
                    row.webhook_on_submit = int(bool(value))
                elif key in {"created_at", "updated_at"}:
                    setattr(row, key, _naive_utc(value))
                else:
                    setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, form_id: int) -> bool:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "public_url": row.public_url,
            "name": row.name,
            "description": row.description or "",
            "fields": loads_json(row.fields_json) or [],
            "linked_user_id": row.linked_user_id,
            "linked_group_id": row.linked_group_id,
            "webhook_url": row.webhook_url or "",
            "webhook_on_submit": bool(row.webhook_on_submit),
            "created_by": row.created_by,
            "created_at": _aware(row.created_at),
            "updated_at": _aware(row.updated_at),
        }


class SQLitePageRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_pages(self) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.query(PageModel).order_by(PageModel.updated_at.desc()).all()
            return [self._to_dict(row) for row in rows]

    def get_page(self, page_id: int) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(PageModel, page_id)
            return self._to_dict(row) if row else None

    def get_page_by_slug(self, slug: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = (
                session.query(PageModel)
                .filter((PageModel.slug == slug) | (PageModel.public_url == slug))
                .first()
            )
            return self._to_dict(row) if row else None

    def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        """True when any page, live or deleted, has ever held ``slug``."""
        with self._Session() as session:
            live = session.query(PageModel.id).filter(PageModel.slug == slug)
            retired = session.query(PageSlugModel.page_id).filter(PageSlugModel.slug == slug)
            if exclude_id is not None:
                live = live.filter(PageModel.id != exclude_id)
                retired = retired.filter(PageSlugModel.page_id != exclude_id)
            return live.first() is not None or retired.first() is not None

    def public_url_exists(self, public_url: str) -> bool:
        with self._Session() as session:
            return session.query(PageModel.id).filter(PageModel.public_url == public_url).first() is not None

    def create_page(self, page: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = PageModel(
                public_url=page["public_url"],
                slug=page["slug"],
                title=page["title"],
                description=page.get("description", ""),
                content=page.get("content", ""),
                buttons_json=dumps_json(page.get("buttons", [])),
                created_by=page.get("created_by"),
                created_at=_naive_utc(page["created_at"]),
                updated_at=_naive_utc(page["updated_at"]),
            )
            session.add(row)
            session.flush()
            _remember_slug(session, row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def update_page(self, page_id: int, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(PageModel, page_id)
            if not row:
                raise KeyError(page_id)
            for key, value in updates.items():
                if key == "buttons":
                    row.buttons_json = dumps_json(value)
                elif key in {"created_at", "updated_at"}:
                    setattr(row, key, _naive_utc(value))
                else:
                    setattr(row, key, value)
            _remember_slug(session, row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_page(self, page_id: int) -> bool:
        with self._Session() as session:
            row = session.get(PageModel, page_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    @staticmethod
    def _to_dict(row: PageModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "public_url": row.public_url,
            "slug": row.slug,
            "title": row.title,
            "description": row.description or "",
            "content": row.content or "",
            "buttons": loads_json(row.buttons_json) or [],
            "created_by": row.created_by,
            "created_at": _aware(row.created_at),
            "updated_at": _aware(row.updated_at),
        }


class SQLiteSubmissionRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_submission(self, submission: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = SubmissionModel(
                form_id=submission["form_id"],
                data_json=dumps_json(submission["data"]),
                created_at=_naive_utc(submission["created_at"]),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    @staticmethod
    def _to_dict(row: SubmissionModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "data": loads_json(row.data_json) or {},
            "created_at": _aware(row.created_at),
        }


class SQLiteFileRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_file(self, file_meta: dict[str, Any]) -> None:
        with self._Session() as session:
            row = FileModel(
                id=file_meta["id"],
                submission_id=file_meta["submission_id"],
                field_id=file_meta["field_id"],
                original_name=file_meta["original_name"],
                stored_path=file_meta["stored_path"],
                content_type=file_meta["content_type"],
                size=file_meta["size"],
                created_at=_naive_utc(file_meta["created_at"]),
            )
            session.add(row)
            session.commit()

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FileModel, file_id)
            return self._to_dict(row) if row else None

    def list_files(self, submission_id: int) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(FileModel)
                .filter(FileModel.submission_id == submission_id)
                .order_by(FileModel.created_at)
                .all()
            )
            return [self._to_dict(row) for row in rows]

    @staticmethod
    def _to_dict(row: FileModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "submission_id": row.submission_id,
            "field_id": row.field_id,
            "original_name": row.original_name,
            "stored_path": row.stored_path,
            "content_type": row.content_type,
            "size": row.size,
            "created_at": _aware(row.created_at),
        }


class SQLiteTicketRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def count_tickets_between(self, start: datetime, end: datetime) -> int:
        with self._Session() as session:
            count = (
                session.query(func.count(TicketModel.id))
                .filter(TicketModel.created_at >= _naive_utc(start))
                .filter(TicketModel.created_at < _naive_utc(end))
                .scalar()
            )
            return int(count or 0)

    def create_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = TicketModel(
                ticket_number=ticket["ticket_number"],
                title=ticket["title"],
                description=ticket["description"],
                status=ticket["status"],
                priority=ticket["priority"],
                form_id=ticket["form_id"],
                submission_id=ticket["submission_id"],
                needs_approval=int(bool(ticket["needs_approval"])),
                linked_user_id=ticket.get("linked_user_id"),
                linked_group_id=ticket.get("linked_group_id"),
                created_at=_naive_utc(ticket["created_at"]),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def get_ticket(self, ticket_id: int) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(TicketModel, ticket_id)
            return self._to_dict(row) if row else None

    @staticmethod
    def _to_dict(row: TicketModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "ticket_number": row.ticket_number,
            "title": row.title,
            "description": row.description or "",
            "status": row.status,
            "priority": row.priority,
            "form_id": row.form_id,
            "submission_id": row.submission_id,
            "needs_approval": bool(row.needs_approval),
            "linked_user_id": row.linked_user_id,
            "linked_group_id": row.linked_group_id,
            "created_at": _aware(row.created_at),
        }


class SQLiteDirectoryRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_users(self) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.query(UserModel).order_by(UserModel.name).all()
            return [{"id": row.id, "name": row.name, "email": row.email, "role": row.role} for row in rows]

    def list_groups(self) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.query(GroupModel).order_by(GroupModel.name).all()
            return [{"id": row.id, "name": row.name, "description": row.description or ""} for row in rows]

    def user_exists(self, user_id: int) -> bool:
        with self._Session() as session:
            return session.get(UserModel, user_id) is not None

    def group_exists(self, group_id: int) -> bool:
        with self._Session() as session:
            return session.get(GroupModel, group_id) is not None

    def create_user(self, name: str, email: str | None = None, role: str = "user") -> dict[str, Any]:
        with self._Session() as session:
            row = UserModel(name=name, email=email, role=role)
            session.add(row)
            session.commit()
            session.refresh(row)
            return {"id": row.id, "name": row.name, "email": row.email, "role": row.role}

    def create_group(self, name: str, description: str = "") -> dict[str, Any]:
        with self._Session() as session:
            row = GroupModel(name=name, description=description)
            session.add(row)
            session.commit()
            session.refresh(row)
            return {"id": row.id, "name": row.name, "description": row.description or ""}


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.pages = SQLitePageRepo(self._Session)
        self.submissions = SQLiteSubmissionRepo(self._Session)
        self.files = SQLiteFileRepo(self._Session)
        self.tickets = SQLiteTicketRepo(self._Session)
        self.directory = SQLiteDirectoryRepo(self._Session)

