from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    public_url = Column(String, unique=True, index=True)
    name = Column(String)
    description = Column(Text)
    fields_json = Column(Text)
    linked_user_id = Column(Integer, nullable=True)
    linked_group_id = Column(Integer, nullable=True)
    webhook_url = Column(Text, nullable=True)
    webhook_on_submit = Column(Integer, default=0)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class PageModel(Base):
    __tablename__ = "pages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    public_url = Column(String, unique=True, index=True)
    slug = Column(String, unique=True, index=True)
    title = Column(String)
    description = Column(Text)
    content = Column(Text)
    buttons_json = Column(Text)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class SubmissionModel(Base):
    __tablename__ = "submissions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    form_id = Column(Integer, index=True)
    data_json = Column(Text)
    created_at = Column(DateTime)


class FileModel(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True)
    submission_id = Column(Integer, index=True)
    field_id = Column(String)
    original_name = Column(String)
    stored_path = Column(Text)
    content_type = Column(String)
    size = Column(Integer)
    created_at = Column(DateTime)


class TicketModel(Base):
    __tablename__ = "tickets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_number = Column(Integer)
    title = Column(String)
    description = Column(Text)
    status = Column(String)
    priority = Column(String)
    form_id = Column(Integer, index=True)
    submission_id = Column(Integer, index=True)
    needs_approval = Column(Integer, default=0)
    linked_user_id = Column(Integer, nullable=True)
    linked_group_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, index=True)


class UserModel(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String)
    email = Column(String, nullable=True)
    role = Column(String, default="user")


class GroupModel(Base):
    __tablename__ = "groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String)
    description = Column(Text, nullable=True)


class PageSlugModel(Base):
    __tablename__ = "page_slugs"

    slug = Column(String, primary_key=True)
    page_id = Column(Integer, index=True)
    created_at = Column(DateTime)
