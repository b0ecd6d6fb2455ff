"""
Claude-backed keyword generation.

Keywords are requested through a forced tool call so the answer arrives as
structured tool input rather than free text.  The client is passed in by
the caller; from_settings() builds one from ANTHROPIC_API_KEY.
"""

import base64
import logging
import random
import time

import anthropic
import requests
from django.conf import settings

from .exceptions import ServiceError
from .schemas import AppMetadata, GeneratedKeywords, validate_payload

logger = logging.getLogger(__name__)

GENERATE_TOOL = {
    "name": "generate_app_keywords",
    "description": (
        "Generates relevant search keywords for app store optimization "
        "based on app data and screenshots"
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "keywords": {
                "type": "array",
                "items": {
                    "type": "string",
                    "description": "A relevant search keyword that users would likely use to find this app",
                },
                "description": "Highly relevant keywords for app store search optimization",
            }
        },
        "required": ["keywords"],
    },
}

SUGGEST_TOOL = {
    "name": "suggest_additional_keywords",
    "description": "Suggests additional keywords based on ASO analysis results",
    "input_schema": {
        "type": "object",
        "properties": {
            "keywords": {
                "type": "array",
                "items": {
                    "type": "string",
                    "description": "A suggested keyword based on ASO analysis",
                },
                "description": "Array of 5-10 additional keyword suggestions based on ASO scores",
            }
        },
        "required": ["keywords"],
    },
}

GENERATE_TEMPLATE = """Analyze this app store data and generate the most relevant search keywords that users would likely use to find this app:

Title: {title}
Subtitle: {subtitle}

Description: {description}

I'm also providing screenshots of the app store page. Provide the most relevant search queries directly related to the app and the information in the screenshots, title, subtitle and description.
Only include exact search phrases a user would type. Exclude long tail keywords, "* app" search phrases and anything that does not match the context of all these elements.
Please create at least {min_keywords} keywords.

Use the generate_app_keywords function to return your response with the identified keywords."""

SUGGEST_TEMPLATE = """Based on this app store data and ASO analysis results, suggest additional keywords that might perform better:

App: {title}
Description: {description}

ASO Analysis Results:
{summary}

Please suggest 5-10 additional keywords that could:
1. Have better traffic/difficulty ratios
2. Target similar but less competitive terms
3. Cover related functionality or use cases
4. Appeal to the same target audience

Use the suggest_additional_keywords function to return your suggestions."""

RETRYABLE_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class KeywordGenerator:
    """Asks Claude for search keywords describing an app."""

    def __init__(
        self,
        client: anthropic.Anthropic,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        max_retries: int | None = None,
        retry_base_seconds: float | None = None,
        sleep=time.sleep,
    ):
        self.client = client
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = max_tokens or settings.CLAUDE_MAX_TOKENS
        self.temperature = settings.CLAUDE_TEMPERATURE if temperature is None else temperature
        self.max_retries = max_retries or settings.CLAUDE_MAX_RETRIES
        self.retry_base_seconds = (
            settings.CLAUDE_RETRY_BASE_SECONDS if retry_base_seconds is None else retry_base_seconds
        )
        self.sleep = sleep

    @classmethod
    def from_settings(cls) -> "KeywordGenerator":
        if not settings.ANTHROPIC_API_KEY:
            raise ServiceError("ANTHROPIC_API_KEY is not set (add it to your .env file)")
        # _create owns the retry schedule; the SDK must not retry underneath it
        return cls(anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY, max_retries=0))

    def generate(self, app: AppMetadata) -> list[str]:
        """Keywords for one app, from its text and screenshots."""
        logger.info("Generating keywords for %s", app.title)
        content = [
            {
                "type": "text",
                "text": GENERATE_TEMPLATE.format(
                    title=app.title,
                    subtitle=app.subtitle or "-",
                    description=app.description,
                    min_keywords=settings.APPSCOUT_MIN_KEYWORDS,
                ),
            }
        ]
        content.extend(self._screenshot_blocks(app.screenshots))

        keywords = self._call_tool(content, GENERATE_TOOL, temperature=self.temperature)
        logger.info("Generated %d keywords for %s", len(keywords), app.title)
        return keywords

    def suggest(self, app: AppMetadata, results) -> list[str]:
        """Follow-up keywords informed by already-scored results."""
        summary = "\n".join(
            f'"{r.keyword}": Traffic Score {r.traffic_score}/100, '
            f"Difficulty Score {r.difficulty_score}/100, Recommendation: {r.recommendation}"
            for r in results
        )
        prompt = SUGGEST_TEMPLATE.format(
            title=app.title, description=app.description, summary=summary
        )
        return self._call_tool(
            [{"type": "text", "text": prompt}], SUGGEST_TOOL, temperature=0.4
        )

    def _screenshot_blocks(self, urls: list[str]) -> list[dict]:
        blocks = []
        for url in urls[: settings.APPSCOUT_SCREENSHOT_LIMIT]:
            try:
                response = requests.get(url, timeout=settings.APPSCOUT_HTTP_TIMEOUT)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.warning("Skipping screenshot %s: %s", url, e)
                continue
            media_type = response.headers.get("Content-Type", "image/jpeg").split(";")[0]
            if not media_type.startswith("image/"):
                media_type = "image/jpeg"
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type,
                        "data": base64.b64encode(response.content).decode("ascii"),
                    },
                }
            )
        return blocks

    def _call_tool(self, content: list[dict], tool: dict, temperature: float) -> list[str]:
        response = self._create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": content}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
        )
        tool_use = next(
            (
                block
                for block in response.content
                if getattr(block, "type", None) == "tool_use" and block.name == tool["name"]
            ),
            None,
        )
        if tool_use is None:
            raise ServiceError(f"No {tool['name']} call found in Claude response")

        parsed = validate_payload(GeneratedKeywords, tool_use.input, source=tool["name"])
        if not parsed.keywords:
            raise ServiceError(f"{tool['name']} returned no keywords")
        return parsed.keywords

    def _create(self, **kwargs):
        for attempt in range(self.max_retries):
            try:
                return self.client.messages.create(**kwargs)
            except RETRYABLE_ERRORS as e:
                if attempt == self.max_retries - 1:
                    raise ServiceError("Claude request failed", details=str(e)) from e
                delay = self.retry_base_seconds * (2 ** attempt) + random.uniform(0, 0.35)
                logger.warning(
                    "Claude retry %d/%d in %.2fs: %s", attempt + 1, self.max_retries, delay, e
                )
                self.sleep(delay)
            except anthropic.APIError as e:
                raise ServiceError("Claude request failed", details=str(e)) from e
        raise ServiceError("Claude request failed")
