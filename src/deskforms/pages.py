from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field as dc_field, replace
from enum import Enum
from typing import Any, Iterable, Mapping

from deskforms.utils import generate_item_id

NEW_BUTTON_LABEL = "Novo Botão"

_NON_SLUG = re.compile(r"[^a-z0-9]+")


class ButtonSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class ButtonStyle:
    background_color: str | None = None
    color: str | None = "#FFFFFF"
    size: ButtonSize = ButtonSize.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"size": self.size.value}
        if self.background_color:
            data["background_color"] = self.background_color
        if self.color:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ButtonStyle:
        if not data:
            return cls()
        return cls(
            background_color=data.get("background_color") or None,
            color=data.get("color") or None,
            size=ButtonSize(data.get("size") or ButtonSize.MEDIUM.value),
        )


@dataclass(frozen=True)
class FormTarget:
    form_id: int


@dataclass(frozen=True)
class UrlTarget:
    url: str


ButtonTarget = FormTarget | UrlTarget | None


@dataclass(frozen=True)
class PageButton:
    id: str
    label: str
    target: ButtonTarget = None
    style: ButtonStyle = dc_field(default_factory=ButtonStyle)

    @property
    def form_id(self) -> int | None:
        return self.target.form_id if isinstance(self.target, FormTarget) else None

    @property
    def url(self) -> str | None:
        return self.target.url if isinstance(self.target, UrlTarget) else None


@dataclass(frozen=True)
class PageDefinition:
    title: str = ""
    slug: str = ""
    description: str = ""
    content: str = ""
    buttons: tuple[PageButton, ...] = dc_field(default_factory=tuple)
    id: int | None = None
    public_url: str | None = None

    def button(self, button_id: str) -> PageButton | None:
        for item in self.buttons:
            if item.id == button_id:
                return item
        return None


@dataclass(frozen=True)
class ButtonAction:
    kind: str
    href: str | None = None
    new_window: bool = False

    @property
    def is_noop(self) -> bool:
        return self.kind == "none"


NO_ACTION = ButtonAction("none")


def generate_slug(title: str) -> str:
    decomposed = unicodedata.normalize("NFD", title.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_SLUG.sub("-", stripped).strip("-")


def apply_title(page: PageDefinition, title: str) -> PageDefinition:
    # An operator-entered slug is never overwritten by derivation.
    return replace(page, title=title, slug=page.slug or generate_slug(title))


def set_slug(page: PageDefinition, slug: str) -> PageDefinition:
    return replace(page, slug=slug)


def _replace_button(page: PageDefinition, updated: PageButton) -> PageDefinition:
    return replace(
        page,
        buttons=tuple(updated if item.id == updated.id else item for item in page.buttons),
    )


def add_button(page: PageDefinition) -> tuple[PageDefinition, PageButton]:
    button = PageButton(
        id=generate_item_id({item.id for item in page.buttons}),
        label=NEW_BUTTON_LABEL,
    )
    return replace(page, buttons=page.buttons + (button,)), button


def update_button(page: PageDefinition, button_id: str, patch: Mapping[str, Any]) -> PageDefinition:
    current = page.button(button_id)
    if current is None:
        return page
    changes: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "label":
            changes["label"] = str(value)
        elif key == "style":
            changes["style"] = value if isinstance(value, ButtonStyle) else ButtonStyle.from_dict(value)
        elif key == "target":
            if value is not None and not isinstance(value, (FormTarget, UrlTarget)):
                raise ValueError(f"unsupported button target: {value!r}")
            changes["target"] = value
        else:
            raise ValueError(f"unknown button attribute: {key}")
    return _replace_button(page, replace(current, **changes))


def target_form(page: PageDefinition, button_id: str, form_id: int | None) -> PageDefinition:
    target = FormTarget(int(form_id)) if form_id is not None else None
    return update_button(page, button_id, {"target": target})


def target_url(page: PageDefinition, button_id: str, url: str | None) -> PageDefinition:
    target = UrlTarget(url) if url else None
    return update_button(page, button_id, {"target": target})


def clear_target(page: PageDefinition, button_id: str) -> PageDefinition:
    return update_button(page, button_id, {"target": None})


def remove_button(page: PageDefinition, button_id: str) -> PageDefinition:
    return replace(page, buttons=tuple(item for item in page.buttons if item.id != button_id))


def public_form_path(public_url: str) -> str:
    return f"/f/{public_url}"


def resolve_button_target(button: PageButton, public_urls: Mapping[int, str]) -> ButtonAction:
    if isinstance(button.target, FormTarget):
        public_url = public_urls.get(button.target.form_id)
        if not public_url:
            return NO_ACTION
        return ButtonAction("form", public_form_path(public_url))
    if isinstance(button.target, UrlTarget):
        return ButtonAction("url", button.target.url, new_window=True)
    return NO_ACTION


def save_problems(page: PageDefinition) -> list[str]:
    problems: list[str] = []
    if not page.title.strip():
        problems.append("O título da página é obrigatório")
    if not page.slug.strip():
        problems.append("O slug da página é obrigatório")
    return problems


def can_save_page(page: PageDefinition) -> bool:
    return not save_problems(page)


def target_from_values(form_id: Any, url: Any) -> ButtonTarget:
    if form_id not in (None, "") and url:
        raise ValueError("a button targets a form or a URL, not both")
    if form_id not in (None, ""):
        return FormTarget(int(form_id))
    if url:
        return UrlTarget(str(url))
    return None


def button_to_dict(button: PageButton) -> dict[str, Any]:
    return {
        "id": button.id,
        "label": button.label,
        "form_id": button.form_id,
        "url": button.url,
        "style": button.style.to_dict(),
    }


def buttons_from_list(raw_buttons: Iterable[Mapping[str, Any]]) -> tuple[PageButton, ...]:
    seen: set[str] = set()
    buttons: list[PageButton] = []
    for raw in raw_buttons:
        button_id = str(raw.get("id") or "").strip()
        if not button_id or button_id in seen:
            button_id = generate_item_id(seen)
        seen.add(button_id)
        buttons.append(
            PageButton(
                id=button_id,
                label=str(raw.get("label") or ""),
                target=target_from_values(raw.get("form_id"), raw.get("url")),
                style=ButtonStyle.from_dict(raw.get("style")),
            )
        )
    return tuple(buttons)


def page_to_dict(page: PageDefinition) -> dict[str, Any]:
    return {
        "id": page.id,
        "title": page.title,
        "slug": page.slug,
        "description": page.description,
        "content": page.content,
        "public_url": page.public_url,
        "buttons": [button_to_dict(button) for button in page.buttons],
    }


def page_from_dict(data: Mapping[str, Any]) -> PageDefinition:
    page_id = data.get("id")
    return PageDefinition(
        id=int(page_id) if page_id is not None else None,
        title=str(data.get("title") or ""),
        slug=str(data.get("slug") or ""),
        description=str(data.get("description") or ""),
        content=str(data.get("content") or ""),
        buttons=buttons_from_list(data.get("buttons") or []),
        public_url=data.get("public_url") or None,
    )
