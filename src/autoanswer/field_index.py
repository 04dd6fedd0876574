"""Reverse lookup tables over the controls tagged by the last discovery pass."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import Tag

from .dom import FIELD_ID_ATTR, GROUP_ATTR, Document, closest, inner_text, parent_element
from .labels import resolve_label
from .schema import group_question

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_key(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_ALNUM.sub(" ", str(value).lower()).strip()


@dataclass
class IndexedOption:
    node: Tag
    id: str
    label: str
    surrounding: str = ""


@dataclass
class IndexedGroup:
    group_id: str
    group_type: str
    question: str
    options: List[IndexedOption] = field(default_factory=list)


@dataclass
class FieldIndex:
    by_id: Dict[str, Tag] = field(default_factory=dict)
    by_label: Dict[str, Tag] = field(default_factory=dict)
    by_name: Dict[str, Tag] = field(default_factory=dict)
    by_html_id: Dict[str, Tag] = field(default_factory=dict)
    by_placeholder: Dict[str, Tag] = field(default_factory=dict)
    groups: Dict[str, IndexedGroup] = field(default_factory=dict)
    by_question: Dict[str, str] = field(default_factory=dict)
    by_group_name: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def claim(table: Dict, key: str, value: object) -> None:
        # First registration wins so a later duplicate cannot take over a key.
        if key and key not in table:
            table[key] = value

    def lookup_key(self, key: str) -> Optional[Tag]:
        """Resolve a free-form answer key: token, then label, name, html id, placeholder."""
        if key in self.by_id:
            return self.by_id[key]
        normalized = normalize_key(key)
        if not normalized:
            return None
        for table in (self.by_label, self.by_name, self.by_html_id, self.by_placeholder):
            if normalized in table:
                return table[normalized]
        return None

    def find_group(self, key: str) -> Optional[IndexedGroup]:
        if key in self.groups:
            return self.groups[key]
        normalized = normalize_key(key)
        group_id = self.by_question.get(normalized) or self.by_group_name.get(normalized)
        return self.groups.get(group_id) if group_id else None


def surrounding_text(node: Tag) -> str:
    return inner_text(closest(node, ("label",))) or inner_text(parent_element(node))


def _group_type(group_id: str, node: Tag) -> str:
    parts = group_id.split(":")
    if len(parts) >= 3 and parts[1] in {"radio", "checkbox"}:
        return parts[1]
    return (node.get("type") or "").lower()


def build_index(document: Document) -> FieldIndex:
    index = FieldIndex()
    for node in document.tagged_nodes():
        token = node.get(FIELD_ID_ATTR)
        label = resolve_label(document, node)
        index.by_id[token] = node
        index.claim(index.by_label, normalize_key(label), node)
        index.claim(index.by_name, normalize_key(node.get("name")), node)
        index.claim(index.by_html_id, normalize_key(node.get("id")), node)
        index.claim(index.by_placeholder, normalize_key(node.get("placeholder")), node)

        group_id = node.get(GROUP_ATTR)
        if not group_id:
            continue
        group = index.groups.get(group_id)
        if group is None:
            group = IndexedGroup(
                group_id=group_id,
                group_type=_group_type(group_id, node),
                question=group_question(document, node),
            )
            index.groups[group_id] = group
            index.claim(index.by_question, normalize_key(group.question), group_id)
            index.claim(index.by_group_name, normalize_key(node.get("name")), group_id)
        group.options.append(
            IndexedOption(node=node, id=token, label=label, surrounding=surrounding_text(node))
        )
    return index
