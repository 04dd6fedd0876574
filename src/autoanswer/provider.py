"""Answer providers: the boundary to whatever produces answers for a page."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from openai import AsyncOpenAI

from .config import GEMINI_MODEL, OPENAI_MODEL, get_google_api_key, get_openai_api_key
from .models import (
    ChoiceRequest,
    ChoiceResponse,
    FocusedRequest,
    FocusedResponse,
    ProviderRequest,
    ProviderResponse,
)

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = (
    "You generate JSON only. Do not include backticks or commentary. "
    "If unsure, leave fields blank strings."
)
TEXT_SYSTEM_PROMPT = "Return ONLY the final answer as plain text. No JSON, no code fences, no commentary."

PAGE_ANSWER_FORMAT = """Return ONLY JSON. If there are text fields, provide them under 'fields' as { key: value }. \
If there are multiple-choice groups (radio/checkbox), provide them under 'choices' as \
{ 'group:<type>:<n>': 'Option Label' } or { 'group:checkbox:<n>': ['Label A', "Label B"] }.
Example:
{
  "fields": { "<fieldId|label|name|id|placeholder>": "<answer>" },
  "choices": { "group:radio:0": "Yes", "group:checkbox:1": ["Option A", "Option C"] }
}

Return ONLY JSON. You may use either { id->answer } or an array of { id|label|name|htmlId|selector, answer }."""

JSON_MAX_TOKENS = 512
TEXT_MAX_TOKENS = 256

_FENCED = re.compile(r"^```[a-zA-Z0-9_+.#-]*\s*[\r\n]+([\s\S]*?)\s*```$")
_OPEN_FENCE = re.compile(r"^```[a-zA-Z0-9_+.#-]*\s*[\r\n]+")
_CLOSE_FENCE = re.compile(r"[\r\n]+```\s*$")
_LANGUAGE_LINE = re.compile(r"^[a-zA-Z][\w.+#-]*\s*\r?\n")


def build_page_prompt(page_text: str, inputs: List[Dict[str, Any]]) -> str:
    return (
        f"Given this webpage content:\n{page_text}\n\n"
        f"And these inputs:\n{json.dumps(inputs, indent=2)}\n\n"
        f"{PAGE_ANSWER_FORMAT}"
    )


def build_focused_prompt(page_text: str, descriptor: Dict[str, Any]) -> str:
    return (
        f"Given this webpage content (trimmed):\n{page_text}\n\n"
        f"And this input field:\n{json.dumps(descriptor, indent=2)}\n\n"
        "Write the most suitable, concise answer for this field ONLY. "
        "Return only the final answer as plain text."
    )


def build_choice_prompt(selection_text: str, groups: List[Dict[str, Any]]) -> str:
    return (
        f"Given this question block:\n{selection_text}\n\n"
        f"And these choice groups:\n{json.dumps(groups, indent=2)}\n\n"
        "Return ONLY JSON under 'choices' mapping groupId to selected option label(s). "
        "For radio: string label. For checkbox: array of labels."
    )


def extract_json_object(text: Optional[str]) -> Optional[Any]:
    """Parse JSON from model output that may be wrapped in prose or fences."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, (dict, list)):
        return parsed

    start = text.find("{")
    while start != -1:
        depth = 0
        for position in range(start, len(text)):
            char = text[position]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            if depth == 0:
                try:
                    candidate = json.loads(text[start : position + 1])
                except json.JSONDecodeError:
                    candidate = None
                if isinstance(candidate, dict):
                    return candidate
                break
        start = text.find("{", start + 1)
    return None


def sanitize_plain_text(text: Optional[str]) -> str:
    if not text:
        return ""
    cleaned = str(text).strip()
    fenced = _FENCED.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)
    cleaned = _OPEN_FENCE.sub("", cleaned)
    cleaned = _CLOSE_FENCE.sub("", cleaned)
    cleaned = _LANGUAGE_LINE.sub("", cleaned, count=1)
    return cleaned.replace("```", "").strip()


def choices_from_answers(answers: Any) -> Dict[str, Any]:
    if isinstance(answers, dict):
        nested = answers.get("choices")
        return nested if isinstance(nested, dict) else answers
    return {}


class AnswerProvider(Protocol):
    async def answer_page(self, request: ProviderRequest) -> ProviderResponse: ...

    async def answer_focused(self, request: FocusedRequest) -> FocusedResponse: ...

    async def answer_choices(self, request: ChoiceRequest) -> ChoiceResponse: ...


class _ChatAnswerProvider:
    """Prompt flow shared by the chat-model providers.

    Subclasses implement ``_chat`` as one system + user exchange returning
    the model's text; failures surface as ``ok=False`` responses.
    """

    vendor = "Model"

    async def _chat(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        screenshot: Optional[str] = None,
    ) -> str:
        raise NotImplementedError

    async def _complete_json(self, prompt: str, screenshot: Optional[str] = None) -> Any:
        raw = await self._chat(JSON_SYSTEM_PROMPT, prompt, JSON_MAX_TOKENS, screenshot)
        logger.debug("%s raw response: %s", self.vendor, raw)
        payload = extract_json_object(raw or "")
        if payload is None:
            raise ValueError(f"{self.vendor} returned no parseable JSON")
        return payload

    async def answer_page(self, request: ProviderRequest) -> ProviderResponse:
        inputs = [descriptor.to_wire() for descriptor in request.inputs]
        screenshot = request.screenshot if request.include_screenshot else None
        try:
            answers = await self._complete_json(build_page_prompt(request.page_text, inputs), screenshot)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Page answer request failed: %s", exc)
            return ProviderResponse(ok=False, error=str(exc))
        return ProviderResponse(ok=True, answers=answers)

    async def answer_focused(self, request: FocusedRequest) -> FocusedResponse:
        descriptor = request.to_wire()
        descriptor.pop("pageText", None)
        prompt = build_focused_prompt(request.page_text, descriptor)
        try:
            raw = await self._chat(TEXT_SYSTEM_PROMPT, prompt, TEXT_MAX_TOKENS)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Focused answer request failed: %s", exc)
            return FocusedResponse(ok=False, error=str(exc))
        return FocusedResponse(ok=True, answer=sanitize_plain_text(raw))

    async def answer_choices(self, request: ChoiceRequest) -> ChoiceResponse:
        groups = [group.to_wire() for group in request.groups]
        try:
            answers = await self._complete_json(build_choice_prompt(request.selection_text, groups))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Choice answer request failed: %s", exc)
            return ChoiceResponse(ok=False, error=str(exc))
        return ChoiceResponse(ok=True, choices=choices_from_answers(answers))


class OpenAIAnswerProvider(_ChatAnswerProvider):
    """Answer provider backed by OpenAI chat completions."""

    vendor = "OpenAI"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = OPENAI_MODEL,
        temperature: float = 0.2,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_env(cls, model: str = OPENAI_MODEL) -> "OpenAIAnswerProvider":
        api_key = get_openai_api_key()
        client = AsyncOpenAI(api_key=api_key) if api_key else None
        if client is None:
            logger.warning("OPENAI_API_KEY missing; provider requests will fail")
        return cls(client=client, model=model)

    async def _chat(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        screenshot: Optional[str] = None,
    ) -> str:
        if not self.client:
            raise RuntimeError("OpenAI API key is missing")
        user_content: Any = prompt
        if screenshot:
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{screenshot}"}},
            ]
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": user_content}],
            temperature=self.temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content if response.choices else ""


def _message_text(content: Any) -> str:
    # Multimodal replies arrive as a list of parts.
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text") or "")
    return "".join(parts)


class GeminiAnswerProvider(_ChatAnswerProvider):
    """Answer provider backed by Gemini through LangChain."""

    vendor = "Gemini"

    def __init__(self, llm: Optional[ChatGoogleGenerativeAI] = None, model: str = GEMINI_MODEL):
        self.llm = llm
        self.model = model

    @classmethod
    def from_env(cls, model: str = GEMINI_MODEL, temperature: float = 0.2) -> "GeminiAnswerProvider":
        api_key = get_google_api_key()
        if not api_key:
            logger.warning("GOOGLE_API_KEY missing; provider requests will fail")
            return cls(llm=None, model=model)
        llm = ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            max_output_tokens=JSON_MAX_TOKENS,
        )
        return cls(llm=llm, model=model)

    async def _chat(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        screenshot: Optional[str] = None,
    ) -> str:
        # Output length is capped on the client, not per call.
        if not self.llm:
            raise RuntimeError("Gemini API key is missing")
        user_content: Any = prompt
        if screenshot:
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": f"data:image/png;base64,{screenshot}"},
            ]
        response = await self.llm.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=user_content)])
        return _message_text(response.content)


def build_provider(name: str) -> AnswerProvider:
    """Networked provider selected by name."""
    if name == "openai":
        return OpenAIAnswerProvider.from_env()
    if name == "gemini":
        return GeminiAnswerProvider.from_env()
    raise ValueError(f"Unsupported answer provider: {name}")


class StaticAnswerProvider:
    """Serves preloaded answers; used for offline runs and tests."""

    def __init__(
        self,
        answers: Any = None,
        choices: Optional[Dict[str, Any]] = None,
        focused_answer: Optional[str] = None,
    ):
        self.answers = answers
        self.choices = choices
        self.focused_answer = focused_answer

    @classmethod
    def from_file(cls, path: str) -> "StaticAnswerProvider":
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if isinstance(data, dict) and "answers" in data:
            return cls(
                answers=data.get("answers"),
                choices=data.get("choices"),
                focused_answer=data.get("focused"),
            )
        return cls(answers=data)

    async def answer_page(self, request: ProviderRequest) -> ProviderResponse:
        if self.answers is None:
            return ProviderResponse(ok=False, error="No answers loaded")
        return ProviderResponse(ok=True, answers=self.answers)

    async def answer_focused(self, request: FocusedRequest) -> FocusedResponse:
        if self.focused_answer is None:
            return FocusedResponse(ok=False, error="No focused answer loaded")
        return FocusedResponse(ok=True, answer=self.focused_answer)

    async def answer_choices(self, request: ChoiceRequest) -> ChoiceResponse:
        if self.choices is None:
            return ChoiceResponse(ok=False, error="No choice answers loaded")
        return ChoiceResponse(ok=True, choices=self.choices)
