"""Label inference for discovered controls.

Each heuristic is a pure function ``(document, node) -> str`` and the
resolver walks them in priority order, returning the first non-empty
result. New heuristics slot into ``LABEL_STRATEGIES`` without touching
the others.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from bs4 import Tag

from .dom import Document, closest, inner_text, previous_element_sibling

HEADING_TAGS = ("h1", "h2", "h3", "h4", "strong", "b")
HEADING_SELECTOR = ",".join(HEADING_TAGS)
BLOCK_CONTAINERS = ("div", "section", "td", "th", "li", "p", "form")

LabelStrategy = Callable[[Document, Tag], Optional[str]]


def _attr(node: Tag, name: str) -> str:
    return (node.get(name) or "").strip()


def label_for_attribute(document: Document, node: Tag) -> str:
    html_id = node.get("id")
    if not html_id:
        return ""
    label = document.soup.find("label", attrs={"for": html_id})
    return inner_text(label) if label is not None else ""


def wrapping_label(document: Document, node: Tag) -> str:
    return inner_text(closest(node, ("label",)))


def aria_label(document: Document, node: Tag) -> str:
    return _attr(node, "aria-label")


def aria_labelledby(document: Document, node: Tag) -> str:
    refs = (node.get("aria-labelledby") or "").split()
    texts = [inner_text(document.element_by_id(ref)) for ref in refs]
    return " ".join(text for text in texts if text).strip()


def placeholder(document: Document, node: Tag) -> str:
    return _attr(node, "placeholder")


def previous_sibling_text(document: Document, node: Tag) -> str:
    return inner_text(previous_element_sibling(node))


def wrapped_caption_span(document: Document, node: Tag) -> str:
    # Component libraries put the caption in a styled span next to the input.
    label = closest(node, ("label",))
    if label is None:
        return ""
    for span in label.find_all("span"):
        text = inner_text(span)
        if text:
            return text
    return ""


def nearby_heading(document: Document, node: Tag) -> str:
    block = closest(node, BLOCK_CONTAINERS)
    if block is None:
        return ""
    return inner_text(block.select_one(HEADING_SELECTOR))


def attribute_fallback(document: Document, node: Tag) -> str:
    return node.get("name") or node.get("id") or node.name


LABEL_STRATEGIES: Sequence[LabelStrategy] = (
    label_for_attribute,
    wrapping_label,
    aria_label,
    aria_labelledby,
    placeholder,
    previous_sibling_text,
    wrapped_caption_span,
    nearby_heading,
    attribute_fallback,
)


def first_non_empty(strategies: Sequence[LabelStrategy], document: Document, node: Tag) -> str:
    for strategy in strategies:
        result = strategy(document, node)
        if result:
            return result
    return ""


def resolve_label(document: Document, node: Tag) -> str:
    return first_non_empty(LABEL_STRATEGIES, document, node)
