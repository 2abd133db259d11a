from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from deskforms import forms as form_model
from deskforms import pages as page_model
from deskforms.errors import DeskformsError
from deskforms.field_types import FieldType, describe
from deskforms.forms import FormDefinition, FormField, OptionsBuffer
from deskforms.pages import ButtonAction, PageButton, PageDefinition
from deskforms.renderer import FieldWidget, build_widgets

logger = logging.getLogger(__name__)

FORMS_LISTING = "/create/forms"
PAGES_LISTING = "/create/pages"

DISCARD_PROMPT = "Tem certeza que deseja sair? As alterações não salvas serão perdidas."


@dataclass(frozen=True)
class Outcome:
    """What the view should do after a session action."""

    ok: bool
    message: str | None = None
    navigate_to: str | None = None


@dataclass(frozen=True)
class LookupItem:
    id: int
    name: str


IGNORED = Outcome(ok=False)


def _failure_message(exc: DeskformsError, fallback: str) -> str:
    return exc.detail or fallback


class FormBuilderSession:
    def __init__(self, client: Any) -> None:
        self.client = client
        self.form = FormDefinition()
        self.selected_id: str | None = None
        self.options_buffer = OptionsBuffer()
        self.users: list[LookupItem] = []
        self.groups: list[LookupItem] = []
        self.saving = False
        self.closed = False

    @property
    def selected(self) -> FormField | None:
        return self.form.field(self.selected_id) if self.selected_id else None

    @property
    def preview(self) -> list[FieldWidget]:
        return build_widgets(self.form)

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.form.name) or bool(self.form.fields)

    async def load(self, form_id: int) -> Outcome:
        try:
            data = await self.client.get_form(form_id)
            form = form_model.form_from_dict(data)
        except (DeskformsError, ValueError, TypeError) as exc:
            logger.warning("Could not load form %s: %s", form_id, exc)
            self.form = FormDefinition()
            self.select(None)
            return Outcome(ok=False, message="Erro ao carregar formulário", navigate_to=FORMS_LISTING)
        if self.closed:
            return IGNORED
        self.form = form
        self.select(None)
        return Outcome(ok=True)

    async def load_lookups(self) -> None:
        try:
            users = await self.client.list_users()
            groups = await self.client.list_groups()
        except DeskformsError:
            logger.exception("Could not load users/groups for linkage")
            return
        self.users = [LookupItem(int(item["id"]), str(item["name"])) for item in users]
        self.groups = [LookupItem(int(item["id"]), str(item["name"])) for item in groups]

    def set_name(self, name: str) -> None:
        self.form = replace(self.form, name=name)

    def set_description(self, description: str) -> None:
        self.form = replace(self.form, description=description)

    def select(self, field_id: str | None) -> None:
        self.selected_id = field_id
        field = self.selected
        self.options_buffer = OptionsBuffer.from_options(field.options if field else None)
        if field is None:
            self.selected_id = None

    def add_field(self) -> FormField:
        self.form, field = form_model.add_field(self.form)
        self.select(field.id)
        return field

    def update_field(self, field_id: str, patch: Mapping[str, Any]) -> None:
        self.form = form_model.update_field(self.form, field_id, patch)
        if field_id == self.selected_id and ("options" in patch or "type" in patch):
            self._sync_buffer()

    def set_field_type(self, field_id: str, new_type: FieldType | str) -> None:
        self.form = form_model.set_field_type(self.form, field_id, new_type)
        if field_id == self.selected_id:
            self._sync_buffer()

    def edit_options(self, text: str) -> None:
        field = self.selected
        if field is None or not describe(field.type).supports_options:
            return
        self.options_buffer = OptionsBuffer(text)
        self.form = form_model.update_field(self.form, field.id, {"options": self.options_buffer.commit()})

    def remove_field(self, field_id: str) -> None:
        self.form = form_model.remove_field(self.form, field_id)
        if field_id == self.selected_id:
            self.select(None)

    def move_field(self, field_id: str, new_index: int) -> None:
        self.form = form_model.move_field(self.form, field_id, new_index)

    def link_user(self, user_id: int | None) -> None:
        self.form = form_model.link_user(self.form, user_id)

    def link_group(self, group_id: int | None) -> None:
        self.form = form_model.link_group(self.form, group_id)

    def _sync_buffer(self) -> None:
        field = self.selected
        options = field.options if field else None
        # Keep in-progress typing (blank lines) when it already commits to the same options.
        if self.options_buffer.commit() != tuple(options or ()):
            self.options_buffer = OptionsBuffer.from_options(options)

    async def save(self) -> Outcome:
        if self.saving:
            return IGNORED
        problems = form_model.save_problems(self.form)
        if problems:
            return Outcome(ok=False, message="; ".join(problems))
        payload = form_model.form_to_dict(self.form)
        self.saving = True
        try:
            if self.form.id is not None:
                await self.client.update_form(self.form.id, payload)
                message = "Formulário atualizado com sucesso!"
            else:
                await self.client.create_form(payload)
                message = "Formulário criado com sucesso!"
        except DeskformsError as exc:
            logger.warning("Saving form failed: %s", exc)
            if self.closed:
                return IGNORED
            return Outcome(ok=False, message=_failure_message(exc, "Erro ao salvar formulário. Tente novamente."))
        finally:
            self.saving = False
        if self.closed:
            return IGNORED
        return Outcome(ok=True, message=message, navigate_to=FORMS_LISTING)

    def cancel(self, confirm: Callable[[str], bool]) -> Outcome:
        if self.has_unsaved_changes and not confirm(DISCARD_PROMPT):
            return Outcome(ok=False)
        self.form = FormDefinition()
        self.select(None)
        return Outcome(ok=True, navigate_to=FORMS_LISTING)

    def close(self) -> None:
        self.closed = True


class PageBuilderSession:
    def __init__(self, client: Any) -> None:
        self.client = client
        self.page = PageDefinition()
        self.selected_id: str | None = None
        self.forms: list[LookupItem] = []
        self.form_public_urls: dict[int, str] = {}
        self.saving = False
        self.closed = False

    @property
    def selected(self) -> PageButton | None:
        return self.page.button(self.selected_id) if self.selected_id else None

    @property
    def preview(self) -> list[tuple[PageButton, ButtonAction]]:
        return [
            (button, page_model.resolve_button_target(button, self.form_public_urls))
            for button in self.page.buttons
        ]

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.page.title) or bool(self.page.buttons)

    async def load(self, page_id: int) -> Outcome:
        try:
            data = await self.client.get_page(page_id)
            page = page_model.page_from_dict(data)
        except (DeskformsError, ValueError, TypeError) as exc:
            logger.warning("Could not load page %s: %s", page_id, exc)
            self.page = PageDefinition()
            self.selected_id = None
            return Outcome(ok=False, message="Erro ao carregar página", navigate_to=PAGES_LISTING)
        if self.closed:
            return IGNORED
        self.page = page
        self.selected_id = None
        return Outcome(ok=True)

    async def load_lookups(self) -> None:
        try:
            items = await self.client.list_forms()
        except DeskformsError:
            logger.exception("Could not load forms for page buttons")
            return
        self.forms = [LookupItem(int(item["id"]), str(item["name"])) for item in items]
        self.form_public_urls = {
            int(item["id"]): str(item["public_url"]) for item in items if item.get("public_url")
        }

    def set_title(self, title: str) -> None:
        self.page = page_model.apply_title(self.page, title)

    def set_slug(self, slug: str) -> None:
        self.page = page_model.set_slug(self.page, slug)

    def set_description(self, description: str) -> None:
        self.page = replace(self.page, description=description)

    def set_content(self, content: str) -> None:
        self.page = replace(self.page, content=content)

    def select(self, button_id: str | None) -> None:
        self.selected_id = button_id if button_id and self.page.button(button_id) else None

    def add_button(self) -> PageButton:
        self.page, button = page_model.add_button(self.page)
        self.selected_id = button.id
        return button

    def update_button(self, button_id: str, patch: Mapping[str, Any]) -> None:
        self.page = page_model.update_button(self.page, button_id, patch)

    def target_form(self, button_id: str, form_id: int | None) -> None:
        self.page = page_model.target_form(self.page, button_id, form_id)

    def target_url(self, button_id: str, url: str | None) -> None:
        self.page = page_model.target_url(self.page, button_id, url)

    def clear_target(self, button_id: str) -> None:
        self.page = page_model.clear_target(self.page, button_id)

    def remove_button(self, button_id: str) -> None:
        self.page = page_model.remove_button(self.page, button_id)
        if button_id == self.selected_id:
            self.selected_id = None

    async def save(self) -> Outcome:
        if self.saving:
            return IGNORED
        problems = page_model.save_problems(self.page)
        if problems:
            return Outcome(ok=False, message="; ".join(problems))
        payload = page_model.page_to_dict(self.page)
        self.saving = True
        try:
            if self.page.id is not None:
                await self.client.update_page(self.page.id, payload)
                message = "Página atualizada com sucesso!"
            else:
                await self.client.create_page(payload)
                message = "Página criada com sucesso!"
        except DeskformsError as exc:
            logger.warning("Saving page failed: %s", exc)
            if self.closed:
                return IGNORED
            return Outcome(ok=False, message=_failure_message(exc, "Erro ao salvar página. Tente novamente."))
        finally:
            self.saving = False
        if self.closed:
            return IGNORED
        return Outcome(ok=True, message=message, navigate_to=PAGES_LISTING)

    def cancel(self, confirm: Callable[[str], bool]) -> Outcome:
        if self.has_unsaved_changes and not confirm(DISCARD_PROMPT):
            return Outcome(ok=False)
        self.page = PageDefinition()
        self.selected_id = None
        return Outcome(ok=True, navigate_to=PAGES_LISTING)

    def close(self) -> None:
        self.closed = True
