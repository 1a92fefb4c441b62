"""
LLM Gateway - Provider-agnostic access to the narrative generator.

Every call renders a {{placeholder}} template, asks for a single JSON object
and validates it against a JSON schema before handing it back.
"""

import json
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import jsonschema

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"

SYSTEM_PROMPT = (
    "You are the storyteller of an interactive horror game. "
    "Reply with exactly one JSON object and nothing else: "
    "no markdown fences, no commentary before or after it."
)

# Fenced blocks first, then the outermost braces
_JSON_PATTERNS = (
    re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```"),
    re.compile(r"(\{[\s\S]*\})"),
)


@dataclass
class LLMResponse:
    """Parsed and validated reply from the generator."""
    content: dict
    raw_text: str
    model: str
    usage: dict
    latency_ms: float


class LLMError(Exception):
    """A generator call that could not produce a valid reply."""

    def __init__(self, error_type: str, message: str, retryable: bool = False):
        self.error_type = error_type
        self.message = message
        self.retryable = retryable
        super().__init__(f"{error_type}: {message}")


class LLMGateway(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def run_structured(
        self,
        prompt: str,
        input_data: dict,
        schema: dict,
        options: Optional[dict] = None
    ) -> LLMResponse:
        """
        Render the prompt, call the model and return schema-valid JSON.

        Args:
            prompt: Template with {{placeholders}}
            input_data: Values for the placeholders
            schema: JSON schema the reply must satisfy
            options: Provider options such as max_tokens and temperature

        Raises:
            LLMError: no valid reply was produced
        """

    def _render_prompt(self, template: str, data: dict) -> str:
        rendered = template
        for key, value in data.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, indent=2)
            rendered = rendered.replace("{{" + key + "}}", str(value))
        return rendered

    def _validate_output(self, output: dict, schema: dict) -> None:
        jsonschema.validate(instance=output, schema=schema)


def parse_json_reply(text: str) -> dict:
    """
    Pull a JSON object out of a model reply.

    Tries the whole text, then a fenced block, then the outermost braces.
    Raises json.JSONDecodeError when none of them parse.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for pattern in _JSON_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue

    raise json.JSONDecodeError("No JSON object found in reply", text, 0)


class ClaudeGateway(LLMGateway):
    """Anthropic Messages API implementation with bounded retries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("No Anthropic API key: pass api_key or set ANTHROPIC_API_KEY")

        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        import anthropic
        self._anthropic = anthropic
        self.client = anthropic.Anthropic(api_key=self.api_key)

    def run_structured(
        self,
        prompt: str,
        input_data: dict,
        schema: dict,
        options: Optional[dict] = None
    ) -> LLMResponse:
        options = options or {}
        user_content = (
            self._render_prompt(prompt, input_data)
            + "\n\nYour reply must conform to this JSON schema:\n"
            + json.dumps(schema, indent=2)
        )

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._attempt(user_content, schema, options)
            except LLMError as e:
                last_error = e

            logger.warning("Storyteller attempt %d/%d failed: %s", attempt, self.max_retries, last_error)
            if not last_error.retryable:
                break
            if attempt < self.max_retries:
                time.sleep(self.retry_delay * attempt)

        raise last_error

    def _attempt(self, user_content: str, schema: dict, options: dict) -> LLMResponse:
        """One request. Every failure comes out as an LLMError."""
        started = time.time()
        try:
            reply = self.client.messages.create(
                model=self.model,
                max_tokens=options.get("max_tokens", 2048),
                temperature=options.get("temperature", 0.8),
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_content}],
            )
        except Exception as e:
            raise self._api_error(e) from e

        raw_text = reply.content[0].text
        try:
            content = parse_json_reply(raw_text)
        except json.JSONDecodeError as e:
            raise LLMError("parse_error", f"Reply was not JSON: {e}", retryable=True) from e

        try:
            self._validate_output(content, schema)
        except jsonschema.ValidationError as e:
            raise LLMError(
                "validation_error", f"Reply failed schema validation: {e.message}", retryable=True
            ) from e

        return LLMResponse(
            content=content,
            raw_text=raw_text,
            model=reply.model,
            usage={
                "input_tokens": reply.usage.input_tokens,
                "output_tokens": reply.usage.output_tokens,
            },
            latency_ms=(time.time() - started) * 1000,
        )

    def _api_error(self, error: Exception) -> LLMError:
        """Rate limits, timeouts, dropped connections and 5xx are worth retrying."""
        transient = (
            self._anthropic.RateLimitError,
            self._anthropic.APITimeoutError,
            self._anthropic.APIConnectionError,
            self._anthropic.InternalServerError,
        )
        text = str(error)
        retryable = isinstance(error, transient) or any(
            marker in text.lower() for marker in ("rate_limit", "timeout", "overloaded")
        )
        return LLMError("api_error", text, retryable=retryable)


class MockGateway(LLMGateway):
    """
    Canned replies for tests, matched on text in the rendered prompt.

    A reply may be a dict, or a list of dicts served in order with the last
    one repeating.
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses: dict[str, Union[dict, list]] = dict(responses or {})
        self.call_log: list[dict] = []
        self._served: dict[str, int] = {}

    def set_response(self, prompt_contains: str, response: Union[dict, list]) -> None:
        self.responses[prompt_contains] = response
        self._served.pop(prompt_contains, None)

    def run_structured(
        self,
        prompt: str,
        input_data: dict,
        schema: dict,
        options: Optional[dict] = None
    ) -> LLMResponse:
        rendered = self._render_prompt(prompt, input_data)
        self.call_log.append({
            "prompt": prompt,
            "input_data": input_data,
            "schema": schema,
            "rendered": rendered,
        })

        key = next((k for k in self.responses if k in rendered), None)
        if key is None:
            raise LLMError("no_response", f"No mock reply for prompt: {rendered[:100]}...")

        response = self._next_reply(key)
        try:
            self._validate_output(response, schema)
        except jsonschema.ValidationError as e:
            raise LLMError("validation_error", e.message) from e

        return LLMResponse(
            content=response,
            raw_text=json.dumps(response),
            model="mock",
            usage={"input_tokens": 0, "output_tokens": 0},
            latency_ms=0,
        )

    def _next_reply(self, key: str) -> dict:
        replies = self.responses[key]
        if isinstance(replies, dict):
            return replies
        index = self._served.get(key, 0)
        self._served[key] = index + 1
        return replies[min(index, len(replies) - 1)]


def load_schema(schema_name: str) -> dict:
    """Load {schema_name}.schema.json from the packaged schemas directory."""
    schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    with open(schema_path) as f:
        return json.load(f)


def create_gateway(provider: str = "claude", **kwargs) -> LLMGateway:
    """Build a gateway by provider name ('claude' or 'mock')."""
    if provider == "claude":
        return ClaudeGateway(**kwargs)
    if provider == "mock":
        return MockGateway(**kwargs)
    raise ValueError(f"Unknown provider: {provider}")
