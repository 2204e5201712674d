"""
Menu tree model.

A backend serves one JSON document per fetch:

    {"title": "...", "description": "...", "version": "...",
     "items": [{"type": "callback", "title": "Ping", "onClick": "/ping"},
               {"type": "link", "title": "Docs", "onClick": "https://..."},
               {"title": "More", "items": [...]}]}

Older backends send the action target as a bare "path" without a
"type"; that form is read as a callback. Each item's behaviour is
resolved to a NodeKind once, here, so neither the renderer nor the
dispatcher has to look at the raw fields again.
"""

import enum
import json
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from .errors import DecodeError


class ActionKind(str, enum.Enum):
    NONE     = "none"
    CALLBACK = "callback"
    LINK     = "link"


class NodeKind(enum.Enum):
    SUBMENU  = "submenu"
    CALLBACK = "callback"
    LINK     = "link"
    INERT    = "inert"


@dataclass(frozen=True)
class ActionRequest:
    """What to do for a selected item, detached from the live tree."""
    kind: ActionKind
    target: Optional[str]
    type_name: str = ""


@dataclass(frozen=True)
class MenuItem:
    title: str
    description: Optional[str] = None
    action_kind: ActionKind = ActionKind.NONE
    action_target: Optional[str] = None
    children: Tuple["MenuItem", ...] = ()
    type_name: str = ""
    kind: NodeKind = field(init=False, compare=False)

    def __post_init__(self):
        # Children take precedence over any action declared on the node.
        if self.children:
            kind = NodeKind.SUBMENU
        elif self.action_target and self.action_kind is ActionKind.CALLBACK:
            kind = NodeKind.CALLBACK
        elif self.action_target and self.action_kind is ActionKind.LINK:
            kind = NodeKind.LINK
        else:
            kind = NodeKind.INERT
        object.__setattr__(self, "kind", kind)

    @property
    def is_submenu(self):
        return self.kind is NodeKind.SUBMENU

    @property
    def selectable(self):
        """
        Leaves with a target, or with a declared type other than "none",
        get a click handler. Inert ones among them report an error when
        selected instead of doing nothing silently.
        """
        if self.is_submenu:
            return False
        if self.action_target:
            return True
        return bool(self.type_name) and self.type_name != ActionKind.NONE.value

    def action_request(self):
        return ActionRequest(
            kind=self.action_kind,
            target=self.action_target,
            type_name=self.type_name,
        )

    @classmethod
    def from_dict(cls, data, where="item"):
        if not isinstance(data, dict):
            raise DecodeError(f"{where}: expected an object")

        title = data.get("title")
        if not isinstance(title, str):
            raise DecodeError(f"{where}: title is required")

        description = _optional_str(data, "description", where)
        type_name   = _optional_str(data, "type", where) or ""
        target      = (_optional_str(data, "onClick", where)
                       or _optional_str(data, "path", where))

        raw_children = data.get("items")
        if raw_children is None:
            raw_children = []
        if not isinstance(raw_children, list):
            raise DecodeError(f"{where}.items: expected a list")
        children = tuple(
            cls.from_dict(child, f"{where}.items[{i}]")
            for i, child in enumerate(raw_children)
        )

        if type_name:
            try:
                action_kind = ActionKind(type_name)
            except ValueError:
                action_kind = ActionKind.NONE
        elif target:
            action_kind = ActionKind.CALLBACK
        else:
            action_kind = ActionKind.NONE

        return cls(
            title=title,
            description=description,
            action_kind=action_kind,
            action_target=target,
            children=children,
            type_name=type_name,
        )


@dataclass(frozen=True)
class MenuDocument:
    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    items: Tuple[MenuItem, ...] = ()

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise DecodeError("menu document must be a JSON object")

        raw_items = data.get("items")
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise DecodeError("items: expected a list")

        return cls(
            title=_optional_str(data, "title", "menu"),
            description=_optional_str(data, "description", "menu"),
            version=_optional_str(data, "version", "menu"),
            items=tuple(
                MenuItem.from_dict(item, f"items[{i}]")
                for i, item in enumerate(raw_items)
            ),
        )

    @classmethod
    def from_json(cls, text):
        try:
            data = json.loads(text)
        except ValueError as e:
            raise DecodeError(str(e)) from e
        return cls.from_dict(data)

    def walk(self) -> Iterator[Tuple[int, MenuItem]]:
        """Depth-first (depth, item) pairs in document order."""
        stack = [(0, item) for item in reversed(self.items)]
        while stack:
            depth, item = stack.pop()
            yield depth, item
            stack.extend((depth + 1, child) for child in reversed(item.children))


def _optional_str(data, key, where):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{where}.{key}: expected a string")
    return value


# ── Layout ───────────────────────────────────────────────────────
#
# Render-agnostic list of top-level entries. None is a separator, the
# same convention rumps uses for App.menu.

SEPARATOR = None
LOADING   = "Loading…"


@dataclass(frozen=True)
class Notice:
    """Disabled informational line (menu title, status or error text)."""
    text: str
    tooltip: Optional[str] = None


@dataclass(frozen=True)
class QuitEntry:
    title: str = "Quit"
    key: str = "q"


QUIT = QuitEntry()


def menu_layout(document):
    entries = []
    if document.title:
        entries += [Notice(document.title, document.description), SEPARATOR]
    entries.extend(document.items)
    entries += [SEPARATOR, QUIT]
    return entries


def placeholder_layout(message=LOADING):
    return [Notice(message), SEPARATOR, QUIT]
