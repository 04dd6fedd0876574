"""Run one autofill trigger against a live page or a static HTML document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import (
    AUTO_SUBMIT,
    DEFAULT_BROWSER,
    PAGE_QUIET_MS,
    PLAYWRIGHT_CHANNEL,
    PLAYWRIGHT_EXECUTABLE,
    VIEWPORT,
)
from .dom import Document
from .exchange_log import ExchangeLog
from .models import TriggerResult
from .orchestrator import CaptureOrchestrator
from .perception import apply_operations, capture_document, capture_screenshot
from .provider import AnswerProvider

logger = logging.getLogger(__name__)

_QUIET_SCRIPT = """
    (quietMs) => {
        const state = window.__autoanswerQuiet || (window.__autoanswerQuiet = { changedAt: performance.now() });
        if (!state.observer) {
            state.observer = new MutationObserver(() => {
                state.changedAt = performance.now();
            });
            state.observer.observe(document.documentElement, {
                subtree: true,
                childList: true,
                attributes: true,
                characterData: true,
            });
        }
        return document.readyState !== "loading" && performance.now() - state.changedAt >= quietMs;
    }
"""


async def wait_for_page_quiet(page: Page, timeout_ms: int, quiet_ms: int = PAGE_QUIET_MS) -> bool:
    """Wait until the DOM has gone ``quiet_ms`` without mutations.

    Returns False when the page never settled within ``timeout_ms``; the
    capture then proceeds with whatever is rendered.
    """
    try:
        await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
        await page.wait_for_function(_QUIET_SCRIPT, arg=quiet_ms, timeout=timeout_ms)
    except (PlaywrightTimeoutError, PlaywrightError) as exc:
        logger.debug("Page did not settle: %s", exc)
        return False
    return True


async def run_autofill(
    url: str,
    provider: AnswerProvider,
    *,
    auto_submit: bool = AUTO_SUBMIT,
    skip_submit: bool = False,
    headless: bool = False,
    browser: str = DEFAULT_BROWSER,
    include_screenshot: bool = False,
    timeout_ms: int = 15000,
    profile_dir: Optional[str] = None,
    exchange_log: Optional[ExchangeLog] = None,
) -> TriggerResult:
    orchestrator = CaptureOrchestrator(provider, auto_submit=auto_submit, exchange_log=exchange_log)
    async with async_playwright() as pw:
        context, owned_browser = await _launch_browser(pw, browser.lower(), headless, profile_dir)
        try:
            page = context.pages[0] if context.pages else await context.new_page()
            page.set_default_timeout(timeout_ms)
            logger.info("Opening %s", url)
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            await wait_for_page_quiet(page, timeout_ms)

            document = await capture_document(page)
            screenshot = await capture_screenshot(page) if include_screenshot else None
            result = await orchestrator.trigger(
                document,
                skip_submit=skip_submit,
                include_screenshot=include_screenshot,
                screenshot=screenshot,
            )
            await apply_operations(page, document)
            if result.result.submitted:
                await wait_for_page_quiet(page, timeout_ms)
            logger.info("Trigger finished: %s", result.model_dump())
            return result
        finally:
            await context.close()
            if owned_browser is not None:
                await owned_browser.close()


async def fill_html(
    html: str,
    provider: AnswerProvider,
    *,
    auto_submit: bool = AUTO_SUBMIT,
    skip_submit: bool = False,
    focused: Optional[str] = None,
    selection: Optional[str] = None,
    exchange_log: Optional[ExchangeLog] = None,
) -> Tuple[TriggerResult, str]:
    """Offline mode: run a trigger over markup with the static layout estimate."""
    document = Document(html, focused=focused, selection=selection)
    orchestrator = CaptureOrchestrator(provider, auto_submit=auto_submit, exchange_log=exchange_log)
    result = await orchestrator.trigger(document, skip_submit=skip_submit)
    return result, document.html()


async def _launch_browser(
    pw, browser_choice: str, headless: bool, profile_dir: Optional[str]
) -> Tuple[BrowserContext, Optional[Browser]]:
    launch_kwargs: Dict[str, Any] = {"headless": headless}
    if browser_choice == "chrome":
        browser_type = pw.chromium
        if PLAYWRIGHT_EXECUTABLE:
            launch_kwargs["executable_path"] = PLAYWRIGHT_EXECUTABLE
        elif PLAYWRIGHT_CHANNEL:
            launch_kwargs["channel"] = PLAYWRIGHT_CHANNEL
    else:
        browser_type = getattr(pw, browser_choice, None)
        if browser_type is None:
            raise ValueError(f"Unsupported browser engine: {browser_choice}")

    if profile_dir:
        resolved_dir = Path(profile_dir).expanduser()
        resolved_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Using %s profile directory: %s", browser_choice, resolved_dir)
        context = await browser_type.launch_persistent_context(
            user_data_dir=str(resolved_dir),
            viewport=VIEWPORT,
            reduced_motion="reduce",
            **launch_kwargs,
        )
        return context, None

    browser = await browser_type.launch(**launch_kwargs)
    context = await browser.new_context(viewport=VIEWPORT, reduced_motion="reduce")
    return context, browser
