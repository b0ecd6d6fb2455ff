from types import SimpleNamespace
from unittest import mock

import anthropic
import httpx
import pytest
import requests

from appscout.batch import KeywordResult
from appscout.exceptions import ServiceError
from appscout.generator import GENERATE_TOOL, SUGGEST_TOOL, KeywordGenerator

from .fakes import make_app, tool_response

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def rate_limited():
    return anthropic.RateLimitError(
        "rate limited", response=httpx.Response(429, request=REQUEST), body=None
    )


def bad_request():
    return anthropic.BadRequestError(
        "bad request", response=httpx.Response(400, request=REQUEST), body=None
    )


class FakeMessages:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_generator(*outcomes, **kwargs):
    messages = FakeMessages(*outcomes)
    sleeps = []
    generator = KeywordGenerator(
        SimpleNamespace(messages=messages),
        model="claude-test",
        max_tokens=500,
        temperature=0.3,
        max_retries=3,
        retry_base_seconds=1.0,
        sleep=sleeps.append,
        **kwargs,
    )
    return generator, messages, sleeps


class TestGenerate:
    def test_forced_tool_call(self):
        generator, messages, _ = make_generator(
            tool_response("generate_app_keywords", ["photo editor", " ", "ai photo"])
        )
        keywords = generator.generate(make_app(1, "Photo Studio", subtitle="Edit anything"))

        assert keywords == ["photo editor", "ai photo"]
        call = messages.calls[0]
        assert call["model"] == "claude-test"
        assert call["tools"] == [GENERATE_TOOL]
        assert call["tool_choice"] == {"type": "tool", "name": "generate_app_keywords"}
        assert call["temperature"] == 0.3
        prompt = call["messages"][0]["content"][0]["text"]
        assert "Title: Photo Studio" in prompt
        assert "Subtitle: Edit anything" in prompt

    def test_screenshots_become_image_blocks(self, settings):
        settings.APPSCOUT_SCREENSHOT_LIMIT = 2
        image = mock.Mock(content=b"\x89PNG", headers={"Content-Type": "image/png"})
        image.raise_for_status.return_value = None

        def fake_get(url, timeout):
            if "broken" in url:
                raise requests.ConnectionError("gone")
            return image

        generator, messages, _ = make_generator(
            tool_response("generate_app_keywords", ["photo editor"])
        )
        app = make_app(
            1,
            "Photo Studio",
            screenshots=["https://img/broken.png", "https://img/ok.png", "https://img/ignored.png"],
        )
        with mock.patch("appscout.generator.requests.get", side_effect=fake_get) as get:
            generator.generate(app)

        assert get.call_count == 2
        blocks = messages.calls[0]["messages"][0]["content"]
        assert [b["type"] for b in blocks] == ["text", "image"]
        assert blocks[1]["source"]["media_type"] == "image/png"
        assert blocks[1]["source"]["data"] == "iVBORw=="

    def test_missing_tool_call(self):
        response = SimpleNamespace(content=[SimpleNamespace(type="text", text="Sure!")])
        generator, _, _ = make_generator(response)
        with pytest.raises(ServiceError, match="No generate_app_keywords call"):
            generator.generate(make_app(1, "Photo Studio"))

    def test_empty_keyword_list(self):
        generator, _, _ = make_generator(tool_response("generate_app_keywords", []))
        with pytest.raises(ServiceError, match="returned no keywords"):
            generator.generate(make_app(1, "Photo Studio"))

    def test_malformed_tool_input(self):
        response = SimpleNamespace(
            content=[SimpleNamespace(type="tool_use", name="generate_app_keywords", input={"keywords": "a, b"})]
        )
        generator, _, _ = make_generator(response)
        with pytest.raises(ServiceError, match="Malformed response"):
            generator.generate(make_app(1, "Photo Studio"))


class TestRetries:
    def test_transient_errors_are_retried(self):
        generator, messages, sleeps = make_generator(
            anthropic.APIConnectionError(request=REQUEST),
            rate_limited(),
            tool_response("generate_app_keywords", ["photo editor"]),
        )
        assert generator.generate(make_app(1, "Photo Studio")) == ["photo editor"]
        assert len(messages.calls) == 3
        assert len(sleeps) == 2
        assert 1.0 <= sleeps[0] < 1.5
        assert 2.0 <= sleeps[1] < 2.5

    def test_gives_up_after_max_retries(self):
        generator, messages, sleeps = make_generator(rate_limited(), rate_limited(), rate_limited())
        with pytest.raises(ServiceError, match="Claude request failed"):
            generator.generate(make_app(1, "Photo Studio"))
        assert len(messages.calls) == 3
        assert len(sleeps) == 2

    def test_client_errors_are_not_retried(self):
        generator, messages, sleeps = make_generator(bad_request())
        with pytest.raises(ServiceError):
            generator.generate(make_app(1, "Photo Studio"))
        assert len(messages.calls) == 1
        assert sleeps == []


class TestSuggest:
    def test_prompt_includes_scores(self):
        generator, messages, _ = make_generator(
            tool_response("suggest_additional_keywords", ["portrait retouch"])
        )
        results = [
            KeywordResult("photo editor", 80, 75, "high", "very_high", "challenging"),
            KeywordResult("collage maker", 45, 30, "low", "medium", "good"),
        ]
        assert generator.suggest(make_app(1, "Photo Studio"), results) == ["portrait retouch"]

        call = messages.calls[0]
        assert call["tools"] == [SUGGEST_TOOL]
        assert call["temperature"] == 0.4
        prompt = call["messages"][0]["content"][0]["text"]
        assert '"photo editor": Traffic Score 80/100, Difficulty Score 75/100' in prompt
        assert "Recommendation: good" in prompt


def test_from_settings_leaves_retries_to_the_generator(settings):
    settings.ANTHROPIC_API_KEY = "test-key"
    settings.CLAUDE_MAX_RETRIES = 2
    generator = KeywordGenerator.from_settings()
    assert generator.client.max_retries == 0
    assert generator.max_retries == 2


def test_attempts_follow_configured_retries(settings):
    settings.CLAUDE_MAX_RETRIES = 2
    messages = FakeMessages(rate_limited(), rate_limited(), rate_limited())
    generator = KeywordGenerator(SimpleNamespace(messages=messages), sleep=lambda s: None)
    with pytest.raises(ServiceError):
        generator.generate(make_app(1, "Photo Studio"))
    assert len(messages.calls) == 2


def test_from_settings_requires_api_key(settings):
    settings.ANTHROPIC_API_KEY = ""
    with pytest.raises(ServiceError, match="ANTHROPIC_API_KEY"):
        KeywordGenerator.from_settings()
