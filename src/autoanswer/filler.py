"""Fill engine: answer payload -> field index -> matcher -> mutator."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from bs4 import Tag
from pydantic import ValidationError

from .dom import Document
from .field_index import FieldIndex, IndexedGroup, IndexedOption, build_index, normalize_key
from .matcher import select_option
from .models import (
    AnswerItem,
    AnswerPayload,
    FillResult,
    FlatAnswers,
    OrderedAnswers,
    StructuredAnswers,
)
from .mutator import DocumentMutator

logger = logging.getLogger(__name__)


def parse_answer_payload(raw: Any) -> Optional[AnswerPayload]:
    """Classify a provider payload into one of the accepted answer shapes."""
    if isinstance(raw, (OrderedAnswers, StructuredAnswers, FlatAnswers)):
        return raw
    if isinstance(raw, list):
        items: List[AnswerItem] = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            try:
                items.append(AnswerItem.model_validate(entry))
            except ValidationError as exc:
                logger.debug("Skipping malformed answer item %r: %s", entry, exc)
        return OrderedAnswers(items=items)
    if isinstance(raw, dict):
        fields = raw.get("fields")
        choices = raw.get("choices")
        if isinstance(fields, dict) or isinstance(choices, dict):
            return StructuredAnswers(
                fields=fields if isinstance(fields, dict) else {},
                choices=choices if isinstance(choices, dict) else {},
            )
        return FlatAnswers(values=raw)
    if raw is not None:
        logger.warning("Unsupported answer payload type: %s", type(raw).__name__)
    return None


class _FillSession:
    def __init__(self, document: Document, *, silent: bool) -> None:
        self.document = document
        self.index: FieldIndex = build_index(document)
        self.mutator = DocumentMutator(document, silent=silent)
        self.filled = 0

    def apply_value(self, node: Optional[Tag], value: Any) -> bool:
        if node is None:
            return False
        if self.mutator.apply_value(node, value):
            self.filled += 1
        return True

    # -- scalar answers ------------------------------------------------------

    def _select(self, selector: str) -> Optional[Tag]:
        try:
            return self.document.select_one(selector)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Ignoring invalid selector %r: %s", selector, exc)
            return None

    def resolve_item(self, item: AnswerItem) -> Optional[Tag]:
        token = item.id or item.field_id
        if token and token in self.index.by_id:
            return self.index.by_id[token]
        if item.selector:
            node = self._select(item.selector)
            if node is not None:
                return node
        lookups = (
            (item.label, self.index.by_label),
            (item.name, self.index.by_name),
            (item.html_id or item.id_attr, self.index.by_html_id),
            (item.placeholder, self.index.by_placeholder),
        )
        for key, table in lookups:
            normalized = normalize_key(key)
            if normalized and normalized in table:
                return table[normalized]
        return None

    def fill_ordered(self, answers: OrderedAnswers) -> None:
        for item in answers.items:
            value = item.resolved_value
            if value is None:
                continue
            self.apply_value(self.resolve_item(item), value)

    def fill_mapping(self, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            if value is None:
                continue
            self.apply_value(self.index.lookup_key(key), value)

    # -- choice answers ------------------------------------------------------

    def _check(self, group: IndexedGroup, option: IndexedOption, exclusive: bool) -> None:
        peers = [other.node for other in group.options] if exclusive else []
        try:
            self.mutator.apply_checked(option.node, exclusive=exclusive, peers=peers)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to select option %s in %s: %s", option.id, group.group_id, exc)
            return
        self.filled += 1

    def fill_group(self, group: IndexedGroup, value: Any) -> None:
        values = value if isinstance(value, list) else [value]
        values = [str(entry) for entry in values if entry is not None and not isinstance(entry, (dict, list))]
        if group.group_type == "radio":
            for candidate in values:
                option = select_option(candidate, group.options)
                if option is not None:
                    self._check(group, option, exclusive=True)
                    return
            return
        chosen = set()
        for candidate in values:
            option = select_option(candidate, group.options)
            if option is None or id(option.node) in chosen:
                continue
            chosen.add(id(option.node))
            self._check(group, option, exclusive=False)

    def fill_choices(self, choices: Dict[str, Any]) -> None:
        for key, value in choices.items():
            group = self.index.find_group(key)
            if group is None:
                logger.debug("No choice group matches %r", key)
                continue
            self.fill_group(group, value)


def submit_form(document: Document, form: Tag) -> bool:
    """Click the form's submit control, or submit the form when it has none."""
    try:
        button = form.select_one("[type=submit]") or form.select_one("button, input[type=submit]")
        if button is not None:
            document.click(button)
        else:
            document.submit(form)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Auto-submit failed: %s", exc)
        return False
    return True


def fill_answers(
    document: Document,
    answers: Any,
    *,
    skip_submit: bool = False,
    auto_submit: bool = False,
) -> FillResult:
    payload = parse_answer_payload(answers)
    if payload is None:
        return FillResult()

    session = _FillSession(document, silent=skip_submit)
    if isinstance(payload, OrderedAnswers):
        session.fill_ordered(payload)
    elif isinstance(payload, StructuredAnswers):
        session.fill_choices(payload.choices)
        session.fill_mapping(payload.fields)
    else:
        session.fill_mapping(payload.values)

    submitted = False
    forms = session.mutator.touched_forms
    if auto_submit and not skip_submit and forms:
        submitted = submit_form(document, forms[0])
    return FillResult(filled=session.filled, submitted=submitted)
