"""Visibility predicates for discovered controls."""

from __future__ import annotations

from bs4 import Tag

from .dom import Document, closest, parent_element


def is_visible(document: Document, node: Tag) -> bool:
    style = document.layout.style(node)
    if style.display == "none" or style.visibility == "hidden" or style.opacity == 0:
        return False
    box = document.layout.box(node)
    return box.width > 0 and box.height > 0


def is_choice_visible(document: Document, node: Tag) -> bool:
    """Choice inputs are often hidden behind styled replacements; accept a visible wrapper."""
    if is_visible(document, node):
        return True
    label = closest(node, ("label",))
    if label is not None and is_visible(document, label):
        return True
    parent = parent_element(node)
    return parent is not None and is_visible(document, parent)
