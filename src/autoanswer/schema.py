"""Discovery of fillable controls and grouped choice controls."""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

from bs4 import Tag

from .config import BLOCK_TEXT_LIMIT, PAGE_TEXT_LIMIT
from .dom import (
    FIELD_ID_ATTR,
    GROUP_ATTR,
    Document,
    choice_kind,
    closest,
    closest_matching,
    inner_text,
    is_editable,
)
from .labels import HEADING_SELECTOR, first_non_empty, resolve_label
from .models import ChoiceGroup, ChoiceOption, FieldDescriptor, Schema
from .visibility import is_choice_visible, is_visible

logger = logging.getLogger(__name__)

TEXT_INPUT_TYPES = frozenset({"text", "search", "email", "url", "password", "tel", "number"})
CHOICE_SELECTOR = "input[type=radio], input[type=checkbox]"
ROLE_CHOICE_SELECTOR = "[role=radio], [role=checkbox]"
TEXT_CANDIDATE_SELECTOR = "input, textarea, [contenteditable]"
GROUP_CONTAINERS = ("section", "div", "form", "table")
BLOCK_SELECTOR_TAGS = ("fieldset", "section", "article", "li", "div", "form", "table")

_WHITESPACE = re.compile(r"\s+")


def generate_field_id(node: Tag, index: int) -> str:
    """Pipe-joined token derived from the node's own attributes and its discovery index."""
    parts: List[str] = []
    if node.get("id"):
        parts.append(f"id:{node['id']}")
    if node.get("name"):
        parts.append(f"name:{node['name']}")
    if node.get("aria-label"):
        parts.append(f"aria:{node['aria-label']}")
    if node.get("placeholder"):
        parts.append(f"ph:{node['placeholder']}")
    parts.append(f"type:{node.get('type') or node.name}")
    parts.append(f"idx:{index}")
    return "|".join(parts)


def control_type(node: Tag) -> str:
    return (node.get("type") or node.name).lower()


def is_text_control(node: Tag) -> bool:
    if node.name == "input":
        return (node.get("type") or "text").lower() in TEXT_INPUT_TYPES
    return node.name == "textarea" or is_editable(node)


def describe_text_field(document: Document, node: Tag, index: int) -> FieldDescriptor:
    field_id = generate_field_id(node, index)
    document.set_attribute(node, FIELD_ID_ATTR, field_id)
    return FieldDescriptor(
        id=field_id,
        label=resolve_label(document, node),
        name=node.get("name") or "",
        html_id=node.get("id") or "",
        placeholder=node.get("placeholder") or "",
        type=control_type(node),
    )


def collect_text_fields(document: Document) -> List[FieldDescriptor]:
    candidates = [
        node
        for node in document.soup.select(TEXT_CANDIDATE_SELECTOR)
        if is_text_control(node) and is_visible(document, node)
    ]
    return [describe_text_field(document, node, idx) for idx, node in enumerate(candidates)]


def choice_candidates(scope: Tag) -> List[Tag]:
    seen = set()
    ordered: List[Tag] = []
    for node in scope.select(CHOICE_SELECTOR) + scope.select(ROLE_CHOICE_SELECTOR):
        if id(node) not in seen:
            seen.add(id(node))
            ordered.append(node)
    return ordered


# -- group keys -------------------------------------------------------------

GroupKeyStrategy = Callable[[Document, Tag], str]


def _name_key(document: Document, node: Tag) -> str:
    return node.get("name") or ""


def _radiogroup_key(document: Document, node: Tag) -> str:
    group = closest_matching(node, lambda tag: (tag.get("role") or "").lower() == "radiogroup")
    if group is None:
        return ""
    return group.get("aria-label") or group.get("aria-labelledby") or ""


def legend_text(document: Document, node: Tag) -> str:
    fieldset = closest(node, ("fieldset",))
    if fieldset is None:
        return ""
    return inner_text(fieldset.find("legend"))


def container_heading(document: Document, node: Tag) -> str:
    container = closest(node, GROUP_CONTAINERS) or document.body
    return inner_text(container.select_one(HEADING_SELECTOR))


def _own_label_key(document: Document, node: Tag) -> str:
    return resolve_label(document, node)


def _fallback_key(document: Document, node: Tag) -> str:
    return "group"


GROUP_KEY_STRATEGIES: Sequence[GroupKeyStrategy] = (
    _name_key,
    _radiogroup_key,
    legend_text,
    container_heading,
    _own_label_key,
    _fallback_key,
)

GROUP_QUESTION_STRATEGIES: Sequence[GroupKeyStrategy] = (
    legend_text,
    container_heading,
    _own_label_key,
)


def group_key(document: Document, node: Tag) -> str:
    return f"{choice_kind(node)}:{first_non_empty(GROUP_KEY_STRATEGIES, document, node)}"


def group_question(document: Document, node: Tag) -> str:
    return first_non_empty(GROUP_QUESTION_STRATEGIES, document, node)


def option_label(document: Document, node: Tag, position: int) -> str:
    return (
        resolve_label(document, node)
        or (node.get("aria-label") or "").strip()
        or inner_text(node)
        or node.get("value")
        or f"Option {position + 1}"
    )


def collect_choice_groups(
    document: Document, scope: Optional[Tag] = None, prefix: str = "group"
) -> List[ChoiceGroup]:
    """Group visible choice controls under ``scope`` (the whole document by default).

    Every option is stamped with its token and group id so a later
    ``build_index`` can find it again.
    """
    root = scope if scope is not None else document.soup
    grouped: Dict[str, List[Tag]] = {}
    for node in choice_candidates(root):
        if not is_choice_visible(document, node):
            continue
        grouped.setdefault(group_key(document, node), []).append(node)

    groups: List[ChoiceGroup] = []
    for key, members in grouped.items():
        kind = key.split(":", 1)[0]
        group_id = f"{prefix}:{kind}:{len(groups)}"
        options: List[ChoiceOption] = []
        for position, node in enumerate(members):
            option_id = generate_field_id(node, position)
            document.set_attribute(node, FIELD_ID_ATTR, option_id)
            document.set_attribute(node, GROUP_ATTR, group_id)
            options.append(ChoiceOption(id=option_id, label=option_label(document, node, position)))
        groups.append(
            ChoiceGroup(
                group_id=group_id,
                group_type="radio" if kind == "radio" else "checkbox",
                question=group_question(document, members[0]),
                options=options,
            )
        )
    logger.debug("Detected %d choice groups under %s", len(groups), getattr(root, "name", "document"))
    return groups


def collect_schema(document: Document) -> Schema:
    return Schema(text_fields=collect_text_fields(document), choice_groups=collect_choice_groups(document))


# -- text context -----------------------------------------------------------


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def collect_page_text(document: Document, limit: int = PAGE_TEXT_LIMIT) -> str:
    return collapse_whitespace(inner_text(document.body))[:limit]


def enclosing_block(document: Document, node: Optional[Tag]) -> Tag:
    if node is None:
        return document.body
    return closest(node, BLOCK_SELECTOR_TAGS) or document.body


def block_text(document: Document, node: Optional[Tag], limit: int = BLOCK_TEXT_LIMIT) -> str:
    return collapse_whitespace(inner_text(enclosing_block(document, node)))[:limit]
