"""Document tree wrapper with browser-like helpers and recorded mutations.

The engine never holds a live browser handle. A page is captured into a
BeautifulSoup tree (see ``perception.capture_document``), discovery and
filling run against that tree, and every mutation is recorded as a
``DomOperation`` that can be replayed onto the live page afterwards.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .config import STATIC_LINE_HEIGHT, STATIC_LINE_WIDTH, VIEWPORT

logger = logging.getLogger(__name__)

NODE_ATTR = "data-aa-node"
FIELD_ID_ATTR = "data-autoanswer-id"
GROUP_ATTR = "data-autoanswer-group"

CHOICE_KINDS = frozenset({"radio", "checkbox"})

# Textarea content is the control's value, not rendered text.
_SKIPPED_TEXT_TAGS = frozenset({"script", "style", "template", "noscript", "textarea"})
_BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt", "fieldset",
        "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header",
        "hr", "legend", "li", "main", "nav", "ol", "p", "pre", "section", "table", "tbody",
        "td", "tfoot", "th", "thead", "tr", "ul",
    }
)
_WHITESPACE = re.compile(r"\s+")
_ZERO_LENGTH = re.compile(r"0+(\.0+)?(px|em|rem|%|vh|vw|pt)?")


@dataclass(frozen=True)
class ComputedStyle:
    display: str = "inline"
    visibility: str = "visible"
    opacity: float = 1.0


@dataclass(frozen=True)
class Box:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0


class Layout(Protocol):
    def style(self, node: Tag) -> ComputedStyle: ...

    def box(self, node: Tag) -> Box: ...


@dataclass
class DomEvent:
    node: Tag
    type: str
    activation: bool = False


@dataclass
class DomOperation:
    op: str
    node: Optional[str]
    name: Optional[str] = None
    value: Any = None

    def to_payload(self) -> Dict[str, Any]:
        return {"op": self.op, "node": self.node, "name": self.name, "value": self.value}


def parse_inline_style(value: Optional[str]) -> Dict[str, str]:
    declarations: Dict[str, str] = {}
    for chunk in (value or "").split(";"):
        if ":" not in chunk:
            continue
        prop, raw = chunk.split(":", 1)
        raw = raw.replace("!important", "").strip().lower()
        if prop.strip():
            declarations[prop.strip().lower()] = raw
    return declarations


def _parse_opacity(value: Any) -> float:
    if value is None or value == "":
        return 1.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 1.0


def _is_zero_length(value: Optional[str]) -> bool:
    return bool(value) and _ZERO_LENGTH.fullmatch(value.strip()) is not None


class StaticLayout:
    """Estimate style and geometry from markup alone.

    Without a rendering engine the only signals are inline styles, the
    ``hidden`` attribute and hidden inputs. Elements that are rendered get
    a one-line box stacked in document order so viewport ranking still
    has a deterministic vertical position to work with.
    """

    def __init__(self, soup: BeautifulSoup, *, line_height: int = STATIC_LINE_HEIGHT) -> None:
        self.line_height = line_height
        self._order = {id(tag): idx for idx, tag in enumerate(soup.find_all(True))}

    def style(self, node: Tag) -> ComputedStyle:
        declared = parse_inline_style(node.get("style"))
        display = declared.get("display", "")
        if not display and (node.has_attr("hidden") or _is_hidden_input(node)):
            display = "none"
        return ComputedStyle(
            display=display or "inline",
            visibility=self._inherited_visibility(node),
            opacity=_parse_opacity(declared.get("opacity")),
        )

    def box(self, node: Tag) -> Box:
        for current in self_and_ancestors(node):
            if self.style(current).display == "none":
                return Box()
        declared = parse_inline_style(node.get("style"))
        top = float(self._order.get(id(node), 0) * self.line_height)
        if _is_zero_length(declared.get("width")) or _is_zero_length(declared.get("height")):
            return Box(y=top)
        return Box(x=0.0, y=top, width=float(STATIC_LINE_WIDTH), height=float(self.line_height))

    @staticmethod
    def _inherited_visibility(node: Tag) -> str:
        for current in self_and_ancestors(node):
            declared = parse_inline_style(current.get("style")).get("visibility")
            if declared:
                return declared
        return "visible"


class SnapshotLayout:
    """Style and geometry recorded by the live-page snapshot script."""

    def __init__(self, nodes: Dict[str, Dict[str, Any]]) -> None:
        self._nodes = nodes

    def _entry(self, node: Tag) -> Optional[Dict[str, Any]]:
        key = node.get(NODE_ATTR)
        return self._nodes.get(key) if key else None

    def style(self, node: Tag) -> ComputedStyle:
        entry = self._entry(node)
        if entry is None:
            # Not stamped by the snapshot: the node was not rendered.
            return ComputedStyle(display="none")
        return ComputedStyle(
            display=str(entry.get("display") or "inline"),
            visibility=str(entry.get("visibility") or "visible"),
            opacity=_parse_opacity(entry.get("opacity")),
        )

    def box(self, node: Tag) -> Box:
        entry = self._entry(node) or {}
        rect = entry.get("rect") or {}
        return Box(
            x=float(rect.get("x") or 0.0),
            y=float(rect.get("y") or 0.0),
            width=float(rect.get("width") or 0.0),
            height=float(rect.get("height") or 0.0),
        )


class Document:
    """A parsed document plus the live-page context discovery needs."""

    def __init__(
        self,
        html: str = "",
        *,
        layout: Optional[Layout] = None,
        viewport_height: float = VIEWPORT["height"],
        focused: Union[str, Tag, None] = None,
        selection: Union[str, Tag, None] = None,
        url: Optional[str] = None,
    ) -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.layout: Layout = layout or StaticLayout(self.soup)
        self.viewport_height = viewport_height
        self.url = url
        self.focused = self._resolve(focused)
        self.selection = self._resolve(selection)
        self.events: List[DomEvent] = []
        self.operations: List[DomOperation] = []

    @classmethod
    def from_snapshot(cls, payload: Dict[str, Any]) -> "Document":
        nodes = payload.get("nodes") or {}
        document = cls(
            payload.get("html") or "",
            layout=SnapshotLayout(nodes),
            viewport_height=float(payload.get("viewportHeight") or VIEWPORT["height"]),
            url=payload.get("url"),
        )
        document._restore_control_state(nodes)
        document.focused = document.node_by_stamp(payload.get("focused"))
        document.selection = document.node_by_stamp(payload.get("selection"))
        return document

    def _restore_control_state(self, nodes: Dict[str, Dict[str, Any]]) -> None:
        # Serialized markup only carries default values; live state comes from the snapshot.
        for node in self.soup.find_all(attrs={NODE_ATTR: True}):
            entry = nodes.get(node.get(NODE_ATTR)) or {}
            if "checked" in entry:
                if entry["checked"]:
                    node["checked"] = ""
                elif node.has_attr("checked"):
                    del node["checked"]
            if isinstance(entry.get("value"), str):
                if node.name == "textarea":
                    node.string = entry["value"]
                else:
                    node["value"] = entry["value"]

    def _resolve(self, target: Union[str, Tag, None]) -> Optional[Tag]:
        if target is None or isinstance(target, Tag):
            return target
        return self.soup.select_one(target)

    @property
    def body(self) -> Tag:
        return self.soup.body or self.soup

    def html(self) -> str:
        return str(self.soup)

    def node_by_stamp(self, key: Any) -> Optional[Tag]:
        if key is None:
            return None
        return self.soup.find(attrs={NODE_ATTR: str(key)})

    def element_by_id(self, html_id: str) -> Optional[Tag]:
        return self.soup.find(attrs={"id": html_id})

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def find_by_token(self, token: str) -> Optional[Tag]:
        return self.soup.find(attrs={FIELD_ID_ATTR: token})

    def find_option(self, group_id: str, token: str) -> Optional[Tag]:
        return self.soup.find(attrs={FIELD_ID_ATTR: token, GROUP_ATTR: group_id})

    def tagged_nodes(self) -> List[Tag]:
        return self.soup.find_all(attrs={FIELD_ID_ATTR: True})

    # -- mutations -------------------------------------------------------

    def _record(self, op: str, node: Tag, *, name: Optional[str] = None, value: Any = None) -> None:
        self.operations.append(DomOperation(op=op, node=node.get(NODE_ATTR), name=name, value=value))

    def set_attribute(self, node: Tag, name: str, value: str) -> None:
        node[name] = value
        self._record("set_attr", node, name=name, value=value)

    def remove_attribute(self, node: Tag, name: str) -> None:
        if node.has_attr(name):
            del node[name]
        self._record("remove_attr", node, name=name)

    def set_value(self, node: Tag, value: str) -> None:
        if node.name == "textarea":
            node.string = value
        else:
            node["value"] = value
        self._record("value", node, value=value)

    def set_text(self, node: Tag, text: str) -> None:
        node.string = text
        self._record("text", node, value=text)

    def set_checked(self, node: Tag, checked: bool) -> None:
        if checked:
            node["checked"] = ""
        elif node.has_attr("checked"):
            del node["checked"]
        self._record("checked", node, value=checked)

    def dispatch(self, node: Tag, event_type: str) -> None:
        self.events.append(DomEvent(node=node, type=event_type))
        self._record("dispatch", node, name=event_type)

    def click(self, node: Tag) -> None:
        self.events.append(DomEvent(node=node, type="click", activation=True))
        self._record("click", node)

    def submit(self, form: Tag) -> None:
        self.events.append(DomEvent(node=form, type="submit", activation=True))
        self._record("submit", form)

    def events_for(self, node: Tag) -> List[str]:
        return [event.type for event in self.events if event.node is node]

    def drain_operations(self) -> List[DomOperation]:
        drained, self.operations = self.operations, []
        return drained


# -- tree helpers ---------------------------------------------------------


def self_and_ancestors(node: Tag) -> Iterator[Tag]:
    current: Any = node
    while isinstance(current, Tag) and not isinstance(current, BeautifulSoup):
        yield current
        current = current.parent


def closest(node: Tag, names: Iterable[str]) -> Optional[Tag]:
    """Nearest element (the node itself included) whose tag name is in ``names``."""
    wanted = frozenset(names)
    return closest_matching(node, lambda tag: tag.name in wanted)


def closest_matching(node: Tag, predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    for current in self_and_ancestors(node):
        if predicate(current):
            return current
    return None


def previous_element_sibling(node: Tag) -> Optional[Tag]:
    for sibling in node.previous_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


def parent_element(node: Tag) -> Optional[Tag]:
    parent = node.parent
    if isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup):
        return parent
    return None


def inner_text(node: Optional[Tag]) -> str:
    """Rendered-ish text of ``node`` with whitespace collapsed."""
    if node is None:
        return ""
    parts: List[str] = []
    _collect_text(node, parts)
    return _WHITESPACE.sub(" ", "".join(parts)).strip()


def _collect_text(node: Tag, parts: List[str]) -> None:
    for child in node.children:
        if isinstance(child, Tag):
            if child.name in _SKIPPED_TEXT_TAGS:
                continue
            block = child.name in _BLOCK_TAGS
            if block:
                parts.append(" ")
            _collect_text(child, parts)
            if block:
                parts.append(" ")
        elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
            parts.append(str(child))


# -- control classification ------------------------------------------------


def _is_hidden_input(node: Tag) -> bool:
    return node.name == "input" and (node.get("type") or "").lower() == "hidden"


def is_editable(node: Tag) -> bool:
    value = node.get("contenteditable")
    return value is not None and value.lower() in {"", "true"}


def choice_kind(node: Tag) -> str:
    role = (node.get("role") or "").lower()
    if role in CHOICE_KINDS:
        return role
    return (node.get("type") or "").lower()


def is_role_control(node: Tag) -> bool:
    return node.name != "input" and (node.get("role") or "").lower() in CHOICE_KINDS

