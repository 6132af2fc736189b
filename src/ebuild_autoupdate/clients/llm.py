"""LLM providers behind a small async contract.

Three interchangeable backends (Anthropic Claude, OpenAI-compatible chat
completions, local Ollama) implement ``LLMProvider``. Prompts are built here
so every backend sends the same instructions.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
from loguru import logger
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ebuild_autoupdate.clients.http import _log_before_sleep
from ebuild_autoupdate.errors import (
    LLMAPIKeyMissing,
    LLMConnectionFailed,
    LLMEmptyResponse,
    LLMError,
    LLMNotConfigured,
    LLMRequestFailed,
    LLMUnsupportedProvider,
)
from ebuild_autoupdate.models.analysis import SchemaAnalysis
from ebuild_autoupdate.utils.versions import clean_version_string

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ebuild_autoupdate.models.ebuild import EbuildMetadata
    from ebuild_autoupdate.settings import Settings

MAX_PROMPT_CONTENT = 4000
TRUNCATION_NOTICE = "\n... (truncated)"
EXTRACTION_MAX_TOKENS = 100
ANALYSIS_MAX_TOKENS = 1000

CLAUDE_DEFAULT_MODEL = "claude-3-haiku-20240307"
CLAUDE_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
OPENAI_BASE_URL = "https://api.openai.com/v1"
OLLAMA_DEFAULT_MODEL = "llama3"
OLLAMA_BASE_URL = "http://localhost:11434"


@runtime_checkable
class LLMProvider(Protocol):
    """What the extraction core needs from a language model."""

    @property
    def model(self) -> str: ...

    async def extract_version(self, content: str, prompt: str = "") -> str: ...

    async def analyze_content(
        self, content: str, meta: EbuildMetadata | None = None, hint: str = ""
    ) -> SchemaAnalysis: ...


def truncate_content(content: str, limit: int = MAX_PROMPT_CONTENT) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_NOTICE


def build_version_extraction_prompt(content: str, prompt: str = "", *, limit: int = MAX_PROMPT_CONTENT) -> str:
    lines = ["Extract the version number from the following content.", ""]
    if prompt:
        lines += [f"Instructions: {prompt}", ""]
    lines += [
        "Content:",
        "```",
        truncate_content(content, limit),
        "```",
        "",
        'Respond with ONLY the version number (e.g., "1.2.3" or "11.81.1"). '
        "Do not include any other text, explanation, or formatting.",
    ]
    return "\n".join(lines)


def build_schema_analysis_prompt(
    content: str,
    meta: EbuildMetadata | None = None,
    hint: str = "",
    *,
    limit: int = MAX_PROMPT_CONTENT,
) -> str:
    lines = ["Analyze the following content and suggest the best way to extract version information.", ""]
    if meta is not None:
        lines.append("Package Information:")
        facts = (("Package", meta.package), ("Current Version", meta.version), ("Homepage", meta.homepage))
        lines += [f"- {label}: {value}" for label, value in facts if value]
        lines.append("")
    if hint:
        lines += [f"User Hint: {hint}", ""]
    lines += [
        "Content:",
        "```",
        truncate_content(content, limit),
        "```",
        "",
        "Respond in JSON format with the following structure:",
        "{",
        '  "parser_type": "json" | "regex" | "html",',
        '  "path": "JSON path if parser_type is json",',
        '  "pattern": "regex pattern if parser_type is regex",',
        '  "selector": "CSS selector if parser_type is html",',
        '  "xpath": "XPath expression if parser_type is html (alternative to selector)",',
        '  "fallback_type": "fallback parser type",',
        '  "fallback_config": "fallback configuration",',
        '  "confidence": 0.0-1.0,',
        '  "reasoning": "explanation of the choice"',
        "}",
    ]
    return "\n".join(lines)


def parse_schema_analysis(text: str) -> SchemaAnalysis:
    """Read the first ``{`` ... last ``}`` span of a reply as a schema suggestion."""

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise LLMError("no valid JSON found in response")
    try:
        return SchemaAnalysis.model_validate_json(text[start : end + 1])
    except ValidationError as exc:
        raise LLMError(f"failed to parse schema analysis: {exc}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(3),
    before_sleep=_log_before_sleep,
    reraise=True,
)
async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> httpx.Response:
    return await client.post(url, json=payload, headers=dict(headers or {}), timeout=timeout)


class ChatProvider(ABC):
    """Shared prompt handling; subclasses only know their wire format."""

    endpoint: str
    timeout: float = 30.0
    content_limit: int = MAX_PROMPT_CONTENT

    def __init__(self, client: httpx.AsyncClient, model: str, base_url: str) -> None:
        self._client = client
        self._model = model
        self.base_url = base_url.rstrip("/")

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    def _payload(self, prompt: str, max_tokens: int) -> dict[str, Any]: ...

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _reply_text(self, body: dict[str, Any]) -> str: ...

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        url = f"{self.base_url}{self.endpoint}"
        try:
            response = await post_json(
                self._client, url, self._payload(prompt, max_tokens), headers=self._headers(), timeout=self.timeout
            )
        except httpx.TransportError as exc:
            raise LLMConnectionFailed(f"cannot reach {url}: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise LLMRequestFailed(response.status_code, _error_message(response))
        try:
            body = response.json()
        except ValueError as exc:
            raise LLMError(f"failed to parse response from {url}: {exc}") from exc
        text = self._reply_text(body) if isinstance(body, dict) else ""
        if not text.strip():
            raise LLMEmptyResponse(f"{type(self).__name__} returned an empty response")
        return text

    async def extract_version(self, content: str, prompt: str = "") -> str:
        reply = await self._complete(
            build_version_extraction_prompt(content, prompt, limit=self.content_limit), EXTRACTION_MAX_TOKENS
        )
        version = clean_version_string(reply)
        if not version:
            raise LLMEmptyResponse("LLM reply did not contain a version")
        logger.debug("{} extracted version {!r}", self.model, version)
        return version

    async def analyze_content(
        self, content: str, meta: EbuildMetadata | None = None, hint: str = ""
    ) -> SchemaAnalysis:
        prompt = build_schema_analysis_prompt(content, meta, hint, limit=self.content_limit)
        reply = await self._complete(prompt, ANALYSIS_MAX_TOKENS)
        return parse_schema_analysis(reply)


class ClaudeClient(ChatProvider):
    """Anthropic Messages API."""

    endpoint = "/v1/messages"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(client, model or CLAUDE_DEFAULT_MODEL, base_url or CLAUDE_BASE_URL)
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}

    def _payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {"model": self.model, "max_tokens": max_tokens, "messages": [{"role": "user", "content": prompt}]}

    def _reply_text(self, body: dict[str, Any]) -> str:
        blocks = body.get("content") or []
        return "".join(
            block.get("text", "") for block in blocks if isinstance(block, dict) and block.get("type") == "text"
        )


class OpenAIClient(ChatProvider):
    """OpenAI-compatible chat completions API."""

    endpoint = "/chat/completions"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(client, model or OPENAI_DEFAULT_MODEL, base_url or OPENAI_BASE_URL)
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": 0,
        }

    def _reply_text(self, body: dict[str, Any]) -> str:
        choices = body.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")


class OllamaClient(ChatProvider):
    """Local Ollama generate API. Needs no API key."""

    endpoint = "/api/generate"
    timeout = 120.0

    def __init__(self, client: httpx.AsyncClient, model: str | None = None, base_url: str | None = None) -> None:
        super().__init__(client, model or OLLAMA_DEFAULT_MODEL, base_url or OLLAMA_BASE_URL)

    def _headers(self) -> dict[str, str]:
        return {}

    def _payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0, "num_predict": max_tokens},
        }

    def _reply_text(self, body: dict[str, Any]) -> str:
        return str(body.get("response") or "")


def _api_key(settings: Settings, env: Mapping[str, str]) -> str:
    if not settings.llm_api_key_env:
        raise LLMNotConfigured(f"{settings.llm_provider}: api key environment variable not specified")
    api_key = env.get(settings.llm_api_key_env, "")
    if not api_key:
        raise LLMAPIKeyMissing(settings.llm_api_key_env)
    return api_key


def create_llm_provider(
    settings: Settings,
    client: httpx.AsyncClient,
    env: Mapping[str, str] | None = None,
) -> LLMProvider:
    """Provider selected by ``settings.llm_provider``."""

    env = os.environ if env is None else env
    provider: ChatProvider
    match settings.llm_provider:
        case None:
            raise LLMNotConfigured("no LLM provider configured")
        case "claude":
            provider = ClaudeClient(client, _api_key(settings, env), settings.llm_model, settings.llm_base_url)
        case "openai":
            provider = OpenAIClient(client, _api_key(settings, env), settings.llm_model, settings.llm_base_url)
        case "ollama":
            provider = OllamaClient(client, settings.llm_model, settings.llm_base_url)
        case _:
            raise LLMUnsupportedProvider(str(settings.llm_provider))
    provider.content_limit = settings.max_content_chars
    return provider
