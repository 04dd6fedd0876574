import sys
from pathlib import Path

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from autoanswer.config import PAGE_QUIET_MS
from autoanswer.exchange_log import ExchangeLog
from autoanswer.provider import StaticAnswerProvider
from autoanswer.runner import fill_html, wait_for_page_quiet

SIGNUP_HTML = """
<html><body>
<form id="signup">
  <label for="email">Email</label><input id="email" type="email">
  <label for="bio">About you</label><textarea id="bio"></textarea>
  <button type="submit">Join</button>
</form>
</body></html>
"""


@pytest.mark.asyncio
async def test_fill_html_returns_filled_markup():
    provider = StaticAnswerProvider(answers={"fields": {"Email": "ada@example.com", "About you": "Mathematician"}})
    exchange_log = ExchangeLog()

    result, html = await fill_html(SIGNUP_HTML, provider, exchange_log=exchange_log)

    assert result.ok and result.strategy == "page"
    assert result.result.filled == 2
    assert result.result.submitted is False
    assert 'value="ada@example.com"' in html
    assert "Mathematician</textarea>" in html
    assert [entry.kind for entry in exchange_log.entries()] == ["page"]


@pytest.mark.asyncio
async def test_fill_html_focus_mode_uses_focused_answer():
    provider = StaticAnswerProvider(focused_answer="Short bio")

    result, html = await fill_html(SIGNUP_HTML, provider, focused="#bio")

    assert result.strategy == "focus"
    assert "Short bio</textarea>" in html


class _SettlingPage:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def wait_for_load_state(self, state, timeout=None):
        self.calls.append(("load", state, timeout))

    async def wait_for_function(self, expression, arg=None, timeout=None):
        self.calls.append(("quiet", arg, timeout))
        if self.error is not None:
            raise self.error


@pytest.mark.asyncio
async def test_wait_for_page_quiet_passes_quiet_window_to_page():
    page = _SettlingPage()

    assert await wait_for_page_quiet(page, 5000, quiet_ms=250) is True
    assert page.calls == [("load", "domcontentloaded", 5000), ("quiet", 250, 5000)]


@pytest.mark.asyncio
async def test_wait_for_page_quiet_gives_up_on_timeout():
    page = _SettlingPage(error=PlaywrightTimeoutError("still busy"))

    assert await wait_for_page_quiet(page, 1000) is False
    assert page.calls[-1] == ("quiet", PAGE_QUIET_MS, 1000)
