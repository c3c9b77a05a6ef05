"""Structured Claude calls with validated tool-use output.

Every classification call declares exactly one tool and forces Claude to
use it, then validates the tool input against a pydantic model. Anything
short of a valid tool call surfaces as ClassificationError, which each
call site turns into its deterministic fallback.
"""

import logging
from typing import Any, TypeVar, cast

import anthropic
from anthropic import APIError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from changefeed.config import settings
from changefeed.services.classifier.claude_helpers import call_with_retry

logger = logging.getLogger(__name__)

TOutput = TypeVar("TOutput", bound=BaseModel)


class ClassificationError(Exception):
    """The classification service produced no usable structured output."""


class StructuredClassifier:
    """Thin wrapper around AsyncAnthropic for forced tool-use calls."""

    max_tokens: int = 4000

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or settings.anthropic_api_key
        self.model = model or settings.classifier_model
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=settings.classifier_timeout_seconds,
            )
        return self._client

    async def classify(
        self,
        *,
        system: str,
        prompt: str,
        tool: dict[str, Any],
        output_type: type[TOutput],
        operation_name: str,
    ) -> TOutput:
        """
        Run one forced tool-use call and validate the result.

        Args:
            system: System prompt
            prompt: User message
            tool: Tool definition ({name, description, input_schema})
            output_type: Pydantic model the tool input must satisfy
            operation_name: Label for logs and errors

        Returns:
            Validated output_type instance

        Raises:
            ClassificationError: On API failure after retries, missing tool
                call, or tool input that fails validation
        """
        tool_name = tool["name"]

        async def _call() -> anthropic.types.Message:
            return await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                tools=cast(Any, [tool]),
                tool_choice=cast(Any, {"type": "tool", "name": tool_name}),
                messages=[{"role": "user", "content": prompt}],
            )

        try:
            response = await call_with_retry(_call, stage=operation_name, tool_name=tool_name)
        except APIError as e:
            raise ClassificationError(f"{operation_name} failed: {e}") from e

        tool_use_block = None
        for block in response.content:
            if block.type == "tool_use" and block.name == tool_name:
                tool_use_block = block
                break

        if tool_use_block is None:
            logger.warning(f"Claude did not return a {tool_name} tool use")
            raise ClassificationError(f"{operation_name}: no {tool_name} tool use in response")

        try:
            return output_type.model_validate(tool_use_block.input)
        except PydanticValidationError as e:
            logger.warning(f"{operation_name}: invalid {tool_name} input: {e}")
            raise ClassificationError(f"{operation_name}: invalid tool input") from e


_default_classifier: StructuredClassifier | None = None


def get_classifier() -> StructuredClassifier:
    """Shared classifier instance (lazily created so settings can be overridden in tests)."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = StructuredClassifier()
    return _default_classifier
