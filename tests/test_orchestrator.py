import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from autoanswer.dom import Box, Document, StaticLayout
from autoanswer.exchange_log import ExchangeLog
from autoanswer.models import (
    ChoiceResponse,
    FocusedResponse,
    ProviderResponse,
)
from autoanswer.orchestrator import CaptureOrchestrator


class FakeProvider:
    """Records requests; picks the first option of every group unless told otherwise."""

    def __init__(self, *, answers=None, choices_ok=True, page_ok=True, focused_answer="Typed answer"):
        self.answers = answers
        self.choices_ok = choices_ok
        self.page_ok = page_ok
        self.focused_answer = focused_answer
        self.page_requests = []
        self.choice_requests = []
        self.focused_requests = []

    async def answer_page(self, request):
        self.page_requests.append(request)
        if not self.page_ok:
            return ProviderResponse(ok=False, error="quota exceeded")
        return ProviderResponse(ok=True, answers=self.answers)

    async def answer_focused(self, request):
        self.focused_requests.append(request)
        return FocusedResponse(ok=True, answer=self.focused_answer)

    async def answer_choices(self, request):
        self.choice_requests.append(request)
        if not self.choices_ok:
            return ChoiceResponse(ok=False, error="rejected")
        return ChoiceResponse(ok=True, choices={group.id: group.options[-1].label for group in request.groups})


class PositionedLayout(StaticLayout):
    def __init__(self, soup, positions):
        super().__init__(soup)
        self.positions = positions

    def box(self, node):
        if node.get("id") in self.positions:
            return Box(x=0, y=self.positions[node["id"]], width=100, height=20)
        return super().box(node)


TWO_QUESTIONS = """
<div id="q1"><p>First question</p>
  <label><input type="radio" id="a1" name="q1" value="x"> Left</label>
  <label><input type="radio" id="a2" name="q1" value="y"> Right</label>
</div>
<div id="q2"><p>Second question</p>
  <label><input type="radio" id="b1" name="q2" value="x"> Up</label>
  <label><input type="radio" id="b2" name="q2" value="y"> Down</label>
</div>
"""


def _checked(document, name):
    return [node["id"] for node in document.soup.find_all("input", attrs={"name": name}) if node.has_attr("checked")]


@pytest.mark.asyncio
async def test_selection_strategy_fills_groups_in_selected_block():
    provider = FakeProvider()
    document = Document(TWO_QUESTIONS, selection="#q2 p")

    result = await CaptureOrchestrator(provider).trigger(document)

    assert result.ok and result.strategy == "selection"
    assert result.result.filled == 1
    request = provider.choice_requests[0]
    assert [group.id for group in request.groups] == ["sel:radio:0"]
    assert request.selection_text.startswith("Second question")
    assert _checked(document, "q2") == ["b2"]
    assert _checked(document, "q1") == []


@pytest.mark.asyncio
async def test_viewport_strategy_picks_group_nearest_center():
    provider = FakeProvider()
    document = Document(TWO_QUESTIONS, viewport_height=900)
    document.layout = PositionedLayout(document.soup, {"a1": 40, "b1": 430})

    result = await CaptureOrchestrator(provider).trigger(document)

    assert result.strategy == "viewport"
    assert [group.id for group in provider.choice_requests[0].groups] == ["group:radio:1"]
    assert _checked(document, "q2") == ["b2"]
    assert _checked(document, "q1") == []


@pytest.mark.asyncio
async def test_focus_strategy_fills_only_focused_field():
    provider = FakeProvider()
    document = Document("<label>Name <input id='name'></label><label>City <input id='city'></label>", focused="#city")

    result = await CaptureOrchestrator(provider).trigger(document)

    assert result.strategy == "focus"
    assert result.result.filled == 1 and result.result.submitted is False
    assert provider.focused_requests[0].label == "City"
    assert document.element_by_id("city")["value"] == "Typed answer"
    assert not document.element_by_id("name").has_attr("value")


@pytest.mark.asyncio
async def test_full_page_strategy_fills_and_auto_submits():
    provider = FakeProvider(answers={"fields": {"Email": "ada@example.com"}})
    document = Document("<form><label>Email <input name='email'></label><button type='submit'>Go</button></form>")

    result = await CaptureOrchestrator(provider, auto_submit=True).trigger(document)

    assert result.ok and result.strategy == "page"
    assert result.result.filled == 1
    assert result.result.submitted is True
    assert provider.page_requests[0].inputs[0].label == "Email"


@pytest.mark.asyncio
async def test_choice_rejection_falls_through_to_full_page():
    provider = FakeProvider(choices_ok=False, answers={"fields": {"Email": "x@y.z"}})
    exchange_log = ExchangeLog()
    document = Document(
        "<label>Email <input name='email'></label>"
        "<label><input type='radio' name='r' value='1'> One</label>"
    )

    result = await CaptureOrchestrator(provider, exchange_log=exchange_log).trigger(document)

    assert result.strategy == "page"
    assert result.result.filled == 1
    assert [(entry.kind, entry.ok) for entry in exchange_log.entries()] == [("choices", False), ("page", True)]


@pytest.mark.asyncio
async def test_full_page_sends_question_block_when_only_groups_exist():
    provider = FakeProvider(choices_ok=False, answers={"choices": {"group:radio:0": "B"}})
    document = Document(
        "<p>Unrelated introduction</p>"
        "<fieldset><legend>Q1</legend>"
        "<label><input type='radio' name='q' value='a'> A</label>"
        "<label><input type='radio' name='q' value='b'> B</label>"
        "</fieldset>"
    )

    result = await CaptureOrchestrator(provider).trigger(document)

    request = provider.page_requests[0]
    assert "Unrelated" not in request.page_text
    assert request.page_text == "Q1 A B"
    assert [descriptor.id for descriptor in request.inputs] == ["group:radio:0"]
    assert result.result.filled == 1


@pytest.mark.asyncio
async def test_full_page_provider_failure_is_reported():
    provider = FakeProvider(page_ok=False)
    document = Document("<label>Email <input name='email'></label>")

    result = await CaptureOrchestrator(provider).trigger(document)

    assert result.ok is False
    assert result.strategy == "page"
    assert result.error == "quota exceeded"
    assert result.result.filled == 0


@pytest.mark.asyncio
async def test_page_without_inputs_skips_provider():
    provider = FakeProvider()
    result = await CaptureOrchestrator(provider).trigger(Document("<p>Nothing to fill</p>"))

    assert result.ok and result.strategy == "page"
    assert result.result.filled == 0
    assert provider.page_requests == []


@pytest.mark.asyncio
async def test_concurrent_trigger_on_same_document_is_rejected():
    entered = asyncio.Event()
    release = asyncio.Event()

    class SlowProvider(FakeProvider):
        async def answer_page(self, request):
            entered.set()
            await release.wait()
            return await super().answer_page(request)

    provider = SlowProvider(answers={"fields": {"Email": "a@b.c"}})
    orchestrator = CaptureOrchestrator(provider)
    document = Document("<label>Email <input name='email'></label>")

    first = asyncio.create_task(orchestrator.trigger(document))
    await entered.wait()
    second = await orchestrator.trigger(document)
    other = await orchestrator.trigger(Document("<p>Other page</p>"))
    release.set()
    first_result = await first

    assert second.ok is False and second.error == "busy"
    assert other.ok is True
    assert first_result.ok and first_result.result.filled == 1
