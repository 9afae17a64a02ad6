import asyncio
import json
import re
from typing import Any, Dict, List, Optional, Protocol, Union

import httpx

from digest.core.config import (
    COMPLETION_TIMEOUT_SEC,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_MODEL,
    SUMMARY_MAX_INPUT_CHARS,
    SUMMARY_MAX_TOKENS,
    SUMMARY_STRUCTURED,
)
from digest.core.errors import SummarizationError, UpstreamError
from digest.core.logging import logger
from digest.services.http_client import request_json

Summary = Union[str, Dict[str, Any]]

SYSTEM_PROMPT = (
    "You are an expert scientific research summarizer who creates "
    "comprehensive, detailed summaries for academic and research purposes."
)

SUMMARY_SECTIONS = """\
1. **Main Purpose/Objective**: What the article aims to achieve or investigate
2. **Methodology & Approach**: How the research was conducted (if applicable)
3. **Key Findings & Results**: All important discoveries, data, and outcomes
4. **Implications & Significance**: What these findings mean for the field
5. **Limitations**: Caveats, open questions, and recommended next steps"""

TEXT_INSTRUCTIONS = (
    "Make this a detailed, informative summary that captures the full scope "
    "and depth of the article. Aim for at least 3-4 substantial paragraphs."
)

JSON_INSTRUCTIONS = """\
Respond with a single JSON object and nothing else, using these keys:
"summary" (3-4 paragraph overview), "objective", "methods", "findings",
"implications", "limitations" (strings), "key_points" (list of strings),
"follow_up_questions" (list of strings)."""

STRUCTURED_TEXT_FIELDS = (
    "summary",
    "objective",
    "methods",
    "findings",
    "implications",
    "limitations",
)
STRUCTURED_LIST_FIELDS = ("key_points", "follow_up_questions")

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class CompletionClient(Protocol):
    async def complete(self, prompt: str, max_tokens: int) -> str:
        ...


class OpenRouterClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENROUTER_MODEL,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = COMPLETION_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = OPENROUTER_API_KEY if api_key is None else api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout
        self.timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport

    async def complete(self, prompt: str, max_tokens: int) -> str:
        if not self.api_key:
            raise SummarizationError("Missing OpenRouter API key (OPENROUTER_API_KEY)")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
        }
        try:
            data = await asyncio.wait_for(
                self._post(headers, body), timeout=self.timeout_sec
            )
        except UpstreamError as exc:
            raise SummarizationError(
                f"OpenRouter request failed ({exc.status_code}): {exc.detail}"
            ) from exc
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise SummarizationError("OpenRouter request timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SummarizationError(f"OpenRouter request failed: {exc}") from exc

        content = _first_message_content(data)
        if not content or not content.strip():
            raise SummarizationError("No summary returned from OpenRouter")
        return content.strip()

    async def _post(self, headers: Dict[str, str], body: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            return await request_json(
                client,
                "POST",
                f"{self.base_url}/chat/completions",
                headers,
                json_body=body,
            )


def _first_message_content(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else None


def parse_structured_summary(raw: str) -> Optional[Dict[str, Any]]:
    """Decode a JSON summary object, tolerating a markdown code fence.

    Returns None when the text is not a JSON object with a non-empty
    ``summary``.
    """
    candidate = raw.strip()
    fenced = _JSON_FENCE.match(candidate)
    if fenced:
        candidate = fenced.group(1)
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None

    structured: Dict[str, Any] = {}
    for key in STRUCTURED_TEXT_FIELDS:
        value = data.get(key)
        structured[key] = value.strip() if isinstance(value, str) else None
    for key in STRUCTURED_LIST_FIELDS:
        value = data.get(key)
        items: List[str] = []
        if isinstance(value, list):
            items = [str(item).strip() for item in value if str(item).strip()]
        structured[key] = items
    return structured


class ArticleSummarizer:
    def __init__(
        self,
        client: CompletionClient,
        max_input_chars: int = SUMMARY_MAX_INPUT_CHARS,
        max_tokens: int = SUMMARY_MAX_TOKENS,
        structured: bool = SUMMARY_STRUCTURED,
    ) -> None:
        self.client = client
        self.max_input_chars = max_input_chars
        self.max_tokens = max_tokens
        self.structured = structured

    def build_prompt(self, text: str) -> str:
        instructions = JSON_INSTRUCTIONS if self.structured else TEXT_INSTRUCTIONS
        return (
            "Please provide a comprehensive and detailed summary of the following "
            "scientific article. Your summary should cover:\n\n"
            f"{SUMMARY_SECTIONS}\n\n"
            f"{instructions}\n\n"
            "Article to summarize:\n"
            f"{text[: self.max_input_chars]}"
        )

    async def summarize(self, text: str) -> Summary:
        if not text or not text.strip():
            raise SummarizationError("Nothing to summarize: extracted text is empty")
        if len(text) > self.max_input_chars:
            logger.info(
                f"truncating article from {len(text)} to {self.max_input_chars} chars"
            )
        raw = await self.client.complete(self.build_prompt(text), self.max_tokens)
        if not raw or not raw.strip():
            raise SummarizationError("Empty response from completion service")
        if not self.structured:
            return raw.strip()
        structured = parse_structured_summary(raw)
        if structured is None:
            logger.warning("summary was not valid JSON, keeping plain text")
            return raw.strip()
        return structured
