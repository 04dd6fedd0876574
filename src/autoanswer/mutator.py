"""Apply values and checked states to controls with the events a page expects."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List

from bs4 import Tag

from .dom import Document, choice_kind, closest, closest_matching, is_editable, is_role_control

logger = logging.getLogger(__name__)

VALUELESS_INPUTS = frozenset({"radio", "checkbox", "file", "submit", "button", "reset", "image"})


class DocumentMutator:
    """Writes into a ``Document`` and remembers which forms were touched.

    ``silent`` suppresses the ``change`` notifications that commonly
    trigger navigation or submission handlers.
    """

    def __init__(self, document: Document, *, silent: bool = False) -> None:
        self.document = document
        self.silent = silent
        self._touched: Dict[int, Tag] = {}

    @property
    def touched_forms(self) -> List[Tag]:
        return list(self._touched.values())

    def touch(self, node: Tag) -> None:
        form = closest(node, ("form",))
        if form is not None:
            self._touched.setdefault(id(form), form)

    def apply_value(self, node: Tag, value: Any) -> bool:
        text = value if isinstance(value, str) else json.dumps(value)
        if node.name == "textarea" or (node.name == "input" and choice_kind(node) not in VALUELESS_INPUTS):
            self.document.set_value(node, text)
            self.document.dispatch(node, "input")
            if not self.silent:
                self.document.dispatch(node, "change")
        elif is_editable(node):
            self.document.set_text(node, text)
            self.document.dispatch(node, "input")
        else:
            logger.debug("Skipping value for non-text control <%s>", node.name)
            return False
        self.touch(node)
        return True

    def exclusivity_set(self, node: Tag, peers: Iterable[Tag] = ()) -> List[Tag]:
        members: Dict[int, Tag] = {}
        name = node.get("name")
        if name and not is_role_control(node):
            for candidate in self.document.soup.find_all("input", attrs={"name": name}):
                if (candidate.get("type") or "").lower() == "radio":
                    members[id(candidate)] = candidate
        else:
            group = closest_matching(node, lambda tag: (tag.get("role") or "").lower() == "radiogroup")
            if group is not None:
                for candidate in group.find_all(attrs={"role": "radio"}):
                    members[id(candidate)] = candidate
        for peer in peers:
            members.setdefault(id(peer), peer)
        members.pop(id(node), None)
        return list(members.values())

    def apply_checked(self, node: Tag, exclusive: bool = False, peers: Iterable[Tag] = ()) -> None:
        if exclusive or choice_kind(node) == "radio":
            # Clear siblings before selecting so two options are never checked at once.
            for sibling in self.exclusivity_set(node, peers):
                if sibling.has_attr("role"):
                    self.document.set_attribute(sibling, "aria-checked", "false")
                else:
                    self.document.set_checked(sibling, False)

        if node.has_attr("role"):
            self.document.set_attribute(node, "aria-checked", "true")
            if not self.silent:
                self.document.dispatch(node, "click")
                self.document.dispatch(node, "change")
        else:
            self.document.set_checked(node, True)
            self.document.dispatch(node, "input")
            if not self.silent:
                self.document.dispatch(node, "change")
        self.touch(node)
