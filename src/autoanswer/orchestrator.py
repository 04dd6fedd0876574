"""Capture orchestrator: pick a discovery-and-fill strategy per trigger.

Strategies run in fixed priority order (selection, viewport, focus,
full page) and the first one that fills something wins. The first three
treat any failure as "not applicable"; the full-page strategy is the
last resort and reports its failures.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

from bs4 import Tag

from .dom import FIELD_ID_ATTR, Document
from .exchange_log import ExchangeLog
from .filler import fill_answers
from .labels import resolve_label
from .models import (
    ChoiceGroup,
    ChoiceRequest,
    FillResult,
    FocusedRequest,
    ProviderRequest,
    TriggerResult,
)
from .mutator import DocumentMutator
from .provider import AnswerProvider
from .schema import (
    block_text,
    collect_choice_groups,
    collect_page_text,
    collect_schema,
    control_type,
    enclosing_block,
    generate_field_id,
    is_text_control,
)
from .visibility import is_visible

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when the answer provider rejects or fails a request."""


@dataclass
class TriggerContext:
    document: Document
    provider: AnswerProvider
    exchange_log: ExchangeLog
    auto_submit: bool = False
    skip_submit: bool = False
    include_screenshot: bool = False
    screenshot: Optional[str] = None

    async def call(self, kind: str, request: Any) -> Any:
        """Run one provider call, log the exchange and raise on failure."""
        handler = {
            "page": self.provider.answer_page,
            "focused": self.provider.answer_focused,
            "choices": self.provider.answer_choices,
        }[kind]
        started = time.perf_counter()
        try:
            response = await handler(request)
        except Exception as exc:  # noqa: BLE001
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.exchange_log.append(kind, ok=False, request=_summarize(request), error=str(exc), elapsed_ms=elapsed_ms)
            raise ProviderError(str(exc)) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("Provider %s call finished in %.0f ms (ok=%s)", kind, elapsed_ms, response.ok)
        self.exchange_log.append(
            kind,
            ok=response.ok,
            request=_summarize(request),
            response=response.model_dump(by_alias=True, exclude={"ok", "error"}),
            error=response.error,
            elapsed_ms=elapsed_ms,
        )
        if not response.ok:
            raise ProviderError(response.error or f"{kind} request failed")
        return response


def _summarize(request: Any) -> Dict[str, Any]:
    payload = request.to_wire()
    if payload.get("screenshot"):
        payload["screenshot"] = f"<{len(payload['screenshot'])} base64 chars>"
    return payload


class Strategy(ABC):
    name: str = ""
    falls_through: bool = True

    @abstractmethod
    async def run(self, context: TriggerContext) -> Optional[FillResult]:
        """Return a result on success or ``None`` when the strategy does not apply."""


class _ChoiceStrategy(Strategy):
    async def fill_groups(
        self, context: TriggerContext, groups: List[ChoiceGroup], anchor: Optional[Tag]
    ) -> Optional[FillResult]:
        request = ChoiceRequest(
            selection_text=block_text(context.document, anchor),
            groups=[group.to_descriptor() for group in groups],
        )
        response = await context.call("choices", request)
        result = fill_answers(
            context.document,
            {"choices": response.choices},
            skip_submit=context.skip_submit,
            auto_submit=context.auto_submit,
        )
        return result if result.filled > 0 else None


class SelectionStrategy(_ChoiceStrategy):
    name = "selection"

    async def run(self, context: TriggerContext) -> Optional[FillResult]:
        document = context.document
        if document.selection is None:
            return None
        block = enclosing_block(document, document.selection)
        groups = collect_choice_groups(document, scope=block, prefix="sel")
        if not groups:
            return None
        return await self.fill_groups(context, groups, document.selection)


class ViewportStrategy(_ChoiceStrategy):
    name = "viewport"

    async def run(self, context: TriggerContext) -> Optional[FillResult]:
        document = context.document
        groups = collect_choice_groups(document)
        center = document.viewport_height / 2.0
        ranked = []
        for group in groups:
            if not group.options:
                continue
            node = document.find_option(group.group_id, group.options[0].id)
            if node is None or not is_visible(document, node):
                continue
            ranked.append((abs(document.layout.box(node).center_y - center), group, node))
        if not ranked:
            return None
        _, nearest, anchor = min(ranked, key=lambda entry: entry[0])
        return await self.fill_groups(context, [nearest], anchor)


class FocusStrategy(Strategy):
    name = "focus"

    async def run(self, context: TriggerContext) -> Optional[FillResult]:
        document = context.document
        target = document.focused
        if target is None or not is_text_control(target):
            return None
        field_id = generate_field_id(target, 0)
        document.set_attribute(target, FIELD_ID_ATTR, field_id)
        request = FocusedRequest(
            id=field_id,
            label=resolve_label(document, target),
            name=target.get("name") or "",
            html_id=target.get("id") or "",
            placeholder=target.get("placeholder") or "",
            type=control_type(target),
            page_text=collect_page_text(document),
        )
        response = await context.call("focused", request)
        DocumentMutator(document, silent=context.skip_submit).apply_value(target, response.answer or "")
        return FillResult(filled=1, submitted=False)


class FullPageStrategy(Strategy):
    name = "page"
    falls_through = False

    async def run(self, context: TriggerContext) -> Optional[FillResult]:
        document = context.document
        schema = collect_schema(document)
        if schema.is_empty:
            logger.warning("No fillable inputs detected on %s", document.url or "document")
            return FillResult()

        page_text = collect_page_text(document)
        inputs = schema.inputs()
        if not schema.text_fields:
            first_group = schema.choice_groups[0]
            anchor = (
                document.find_option(first_group.group_id, first_group.options[0].id)
                if first_group.options
                else None
            )
            page_text = block_text(document, anchor) or page_text

        request = ProviderRequest(
            page_text=page_text,
            inputs=inputs,
            include_screenshot=context.include_screenshot,
            screenshot=context.screenshot if context.include_screenshot else None,
        )
        response = await context.call("page", request)
        result = fill_answers(
            document,
            response.answers,
            skip_submit=context.skip_submit,
            auto_submit=context.auto_submit,
        )
        if result.filled == 0:
            logger.warning(
                "No fields filled. Inputs detected: %s",
                [descriptor.to_wire() for descriptor in inputs],
            )
        return result


DEFAULT_STRATEGIES: Sequence[Strategy] = (
    SelectionStrategy(),
    ViewportStrategy(),
    FocusStrategy(),
    FullPageStrategy(),
)


class CaptureOrchestrator:
    """Runs one trigger at a time per document through the strategy chain."""

    def __init__(
        self,
        provider: AnswerProvider,
        *,
        auto_submit: bool = False,
        exchange_log: Optional[ExchangeLog] = None,
        strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
    ):
        self.provider = provider
        self.auto_submit = auto_submit
        self.exchange_log = exchange_log if exchange_log is not None else ExchangeLog()
        self.strategies = list(strategies)
        self._in_flight: Set[int] = set()

    async def trigger(
        self,
        document: Document,
        *,
        skip_submit: bool = False,
        include_screenshot: bool = False,
        screenshot: Optional[str] = None,
    ) -> TriggerResult:
        key = id(document)
        if key in self._in_flight:
            logger.warning("Trigger rejected: another trigger is running on this document")
            return TriggerResult(ok=False, error="busy")
        self._in_flight.add(key)
        try:
            context = TriggerContext(
                document=document,
                provider=self.provider,
                exchange_log=self.exchange_log,
                auto_submit=self.auto_submit,
                skip_submit=skip_submit,
                include_screenshot=include_screenshot,
                screenshot=screenshot,
            )
            return await self._run_strategies(context)
        finally:
            self._in_flight.discard(key)

    async def _run_strategies(self, context: TriggerContext) -> TriggerResult:
        for strategy in self.strategies:
            if strategy.falls_through:
                try:
                    result = await strategy.run(context)
                except Exception as exc:  # noqa: BLE001
                    logger.debug("Strategy %s fell through: %s", strategy.name, exc)
                    continue
                if result is None:
                    logger.debug("Strategy %s not applicable", strategy.name)
                    continue
                return TriggerResult(ok=True, strategy=strategy.name, result=result)

            try:
                result = await strategy.run(context)
            except ProviderError as exc:
                logger.warning("Strategy %s failed: %s", strategy.name, exc)
                return TriggerResult(ok=False, strategy=strategy.name, error=str(exc))
            return TriggerResult(ok=True, strategy=strategy.name, result=result or FillResult())
        return TriggerResult(ok=False, error="No strategy applied")
