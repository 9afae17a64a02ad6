import asyncio
import json
import time

import httpx
import pytest
import respx

from digest.core.errors import SummarizationError
from digest.services.summarizer import (
    ArticleSummarizer,
    OpenRouterClient,
    parse_structured_summary,
)

BASE_URL = "https://openrouter.test/api/v1"
COMPLETIONS_URL = f"{BASE_URL}/chat/completions"

STRUCTURED_REPLY = {
    "summary": "Astronauts lose bone density in orbit.",
    "objective": "Measure bone loss on long missions.",
    "methods": "Scans before and after flight.",
    "findings": "Exercise slows but does not stop loss.",
    "implications": "Mars crews need countermeasures.",
    "limitations": "Seventeen participants.",
    "key_points": ["1-2% loss per month", "  ", "slow recovery"],
    "follow_up_questions": ["Does artificial gravity help?"],
}


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class RecordingClient:
    def __init__(self, reply: str = "A plain summary.") -> None:
        self.reply = reply
        self.prompts = []
        self.max_tokens = []

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        return self.reply


# =============================================================================
# OpenRouterClient
# =============================================================================


class TestOpenRouterClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_api_key_fails_at_call_time(self):
        route = respx.post(COMPLETIONS_URL)
        client = OpenRouterClient(api_key="", base_url=BASE_URL)

        with pytest.raises(SummarizationError, match="API key"):
            await client.complete("prompt", 100)

        assert not route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_chat_request(self):
        route = respx.post(COMPLETIONS_URL).mock(return_value=completion("  Done.  "))
        client = OpenRouterClient(api_key="secret", model="test/model", base_url=BASE_URL)

        content = await client.complete("Summarize this", 123)

        assert content == "Done."
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["model"] == "test/model"
        assert body["max_tokens"] == 123
        assert body["messages"][-1] == {"role": "user", "content": "Summarize this"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_content_is_an_error(self):
        respx.post(COMPLETIONS_URL).mock(return_value=completion(""))
        client = OpenRouterClient(api_key="secret", base_url=BASE_URL)

        with pytest.raises(SummarizationError, match="No summary"):
            await client.complete("prompt", 100)

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_choices_is_an_error(self):
        respx.post(COMPLETIONS_URL).mock(return_value=httpx.Response(200, json={}))
        client = OpenRouterClient(api_key="secret", base_url=BASE_URL)

        with pytest.raises(SummarizationError):
            await client.complete("prompt", 100)

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_is_wrapped(self):
        respx.post(COMPLETIONS_URL).mock(
            return_value=httpx.Response(401, text="invalid key")
        )
        client = OpenRouterClient(api_key="secret", base_url=BASE_URL)

        with pytest.raises(SummarizationError, match="401"):
            await client.complete("prompt", 100)

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_wrapped(self):
        respx.post(COMPLETIONS_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        client = OpenRouterClient(api_key="secret", base_url=BASE_URL)

        with pytest.raises(SummarizationError, match="timed out"):
            await client.complete("prompt", 100)

    @pytest.mark.asyncio
    @respx.mock
    async def test_slow_response_is_bounded_by_total_timeout(self):
        async def stalled(request):
            await asyncio.sleep(5)
            return completion("too late")

        respx.post(COMPLETIONS_URL).mock(side_effect=stalled)
        client = OpenRouterClient(api_key="secret", base_url=BASE_URL, timeout=0.2)

        started = time.monotonic()
        with pytest.raises(SummarizationError, match="timed out"):
            await client.complete("prompt", 100)

        assert time.monotonic() - started < 2.0


# =============================================================================
# ArticleSummarizer
# =============================================================================


class TestArticleSummarizer:
    @pytest.mark.asyncio
    async def test_empty_text_is_rejected(self):
        summarizer = ArticleSummarizer(RecordingClient())

        with pytest.raises(SummarizationError):
            await summarizer.summarize("   ")

    @pytest.mark.asyncio
    async def test_long_text_is_truncated_not_rejected(self):
        client = RecordingClient()
        summarizer = ArticleSummarizer(client, max_input_chars=1000, structured=False)

        await summarizer.summarize("a" * 5000)

        prompt = client.prompts[0]
        assert "a" * 1000 in prompt
        assert "a" * 1001 not in prompt

    @pytest.mark.asyncio
    async def test_prompt_requests_structured_sections(self):
        client = RecordingClient()
        summarizer = ArticleSummarizer(client, max_tokens=777, structured=False)

        await summarizer.summarize("Some article text.")

        prompt = client.prompts[0]
        for section in ("Objective", "Methodology", "Key Findings", "Implications", "Limitations"):
            assert section in prompt
        assert client.max_tokens == [777]

    @pytest.mark.asyncio
    async def test_plain_mode_returns_text(self):
        summarizer = ArticleSummarizer(RecordingClient("  Text summary. "), structured=False)

        assert await summarizer.summarize("Article.") == "Text summary."

    @pytest.mark.asyncio
    async def test_structured_reply_is_parsed(self):
        summarizer = ArticleSummarizer(RecordingClient(json.dumps(STRUCTURED_REPLY)))

        result = await summarizer.summarize("Article.")

        assert result["summary"] == STRUCTURED_REPLY["summary"]
        assert result["key_points"] == ["1-2% loss per month", "slow recovery"]
        assert result["follow_up_questions"] == ["Does artificial gravity help?"]

    @pytest.mark.asyncio
    async def test_unparseable_structured_reply_degrades_to_text(self):
        summarizer = ArticleSummarizer(RecordingClient("Here is a summary in prose."))

        assert await summarizer.summarize("Article.") == "Here is a summary in prose."

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self):
        summarizer = ArticleSummarizer(RecordingClient("   "))

        with pytest.raises(SummarizationError):
            await summarizer.summarize("Article.")

    @pytest.mark.asyncio
    @respx.mock
    async def test_end_to_end_with_openrouter(self):
        respx.post(COMPLETIONS_URL).mock(
            return_value=completion(f"```json\n{json.dumps(STRUCTURED_REPLY)}\n```")
        )
        summarizer = ArticleSummarizer(
            OpenRouterClient(api_key="secret", base_url=BASE_URL)
        )

        result = await summarizer.summarize("Article text.")

        assert result["objective"] == STRUCTURED_REPLY["objective"]


class TestParseStructuredSummary:
    def test_fenced_json(self):
        raw = "```json\n" + json.dumps({"summary": "S"}) + "\n```"

        parsed = parse_structured_summary(raw)

        assert parsed["summary"] == "S"
        assert parsed["methods"] is None
        assert parsed["key_points"] == []

    def test_object_without_summary(self):
        assert parse_structured_summary(json.dumps({"objective": "x"})) is None

    def test_json_array(self):
        assert parse_structured_summary("[1, 2]") is None
