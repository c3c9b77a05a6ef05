"""Unit tests for StructuredClassifier — Claude client fully mocked."""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from changefeed.services.classifier.base import ClassificationError, StructuredClassifier
from changefeed.services.classifier.prompts import GROUPING_TOOL, SUMMARY_TOOL
from changefeed.services.classifier.types import GroupingOutput, GroupSummary

from tests.helpers.mock_factories import make_text_message, make_tool_use_message


def _make_classifier(create: AsyncMock) -> StructuredClassifier:
    classifier = StructuredClassifier(api_key="test-key", model="test-model")
    classifier._client = MagicMock()
    classifier._client.messages.create = create
    return classifier


class TestClassify:
    """Tests for forced tool use and output validation."""

    @pytest.mark.asyncio
    async def test_returns_validated_output(self):
        create = AsyncMock(
            return_value=make_tool_use_message(
                "save_groups",
                {"groups": [{"pr_numbers": [1, 2], "reason": "Same feature"}]},
            )
        )
        classifier = _make_classifier(create)

        output = await classifier.classify(
            system="sys",
            prompt="prompt",
            tool=GROUPING_TOOL,
            output_type=GroupingOutput,
            operation_name="PR grouping",
        )

        assert output.groups[0].pr_numbers == [1, 2]
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["tool_choice"] == {"type": "tool", "name": "save_groups"}
        assert kwargs["tools"] == [GROUPING_TOOL]

    @pytest.mark.asyncio
    async def test_text_only_response_raises(self):
        classifier = _make_classifier(AsyncMock(return_value=make_text_message("Sure!")))

        with pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

    @pytest.mark.asyncio
    async def test_invalid_category_raises(self):
        create = AsyncMock(
            return_value=make_tool_use_message(
                "save_summary",
                {
                    "title": "Thing",
                    "summary": "- did a thing",
                    "category": "refactor",
                    "significance": "major",
                },
            )
        )
        classifier = _make_classifier(create)

        with pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=SUMMARY_TOOL,
                output_type=GroupSummary,
                operation_name="Group summary",
            )

    @pytest.mark.asyncio
    async def test_wrong_tool_name_raises(self):
        create = AsyncMock(return_value=make_tool_use_message("save_themes", {"themes": []}))
        classifier = _make_classifier(create)

        with pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

    @pytest.mark.asyncio
    async def test_api_error_retried_then_raised(self):
        create = AsyncMock(
            side_effect=anthropic.APIError(
                message="Overloaded",
                request=MagicMock(),
                body=None,
            )
        )
        classifier = _make_classifier(create)

        with patch(
            "changefeed.services.classifier.claude_helpers.asyncio.sleep", new=AsyncMock()
        ), pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        create = AsyncMock(
            side_effect=[
                anthropic.APIError(message="Overloaded", request=MagicMock(), body=None),
                make_tool_use_message("save_groups", {"groups": []}),
            ]
        )
        classifier = _make_classifier(create)

        with patch(
            "changefeed.services.classifier.claude_helpers.asyncio.sleep", new=AsyncMock()
        ):
            output = await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

        assert output.groups == []
        assert create.await_count == 2


def _status_error(cls: type[anthropic.APIStatusError], status_code: int) -> Exception:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return cls(
        message=f"Error code: {status_code}",
        response=httpx.Response(status_code, request=request),
        body=None,
    )


class TestRetryPolicy:
    """Which Claude failures are retried before the stage falls back."""

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self):
        create = AsyncMock(side_effect=_status_error(anthropic.BadRequestError, 400))
        classifier = _make_classifier(create)

        with patch(
            "changefeed.services.classifier.claude_helpers.asyncio.sleep", new=AsyncMock()
        ) as sleep, pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

        assert create.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_backs_off_on_schedule(self):
        create = AsyncMock(side_effect=_status_error(anthropic.RateLimitError, 429))
        classifier = _make_classifier(create)

        with patch(
            "changefeed.services.classifier.claude_helpers.asyncio.sleep", new=AsyncMock()
        ) as sleep, pytest.raises(ClassificationError):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

        assert create.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2, 4]

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        create = AsyncMock(
            side_effect=[
                _status_error(anthropic.InternalServerError, 529),
                make_tool_use_message("save_groups", {"groups": []}),
            ]
        )
        classifier = _make_classifier(create)

        with patch(
            "changefeed.services.classifier.claude_helpers.asyncio.sleep", new=AsyncMock()
        ):
            await classifier.classify(
                system="sys",
                prompt="prompt",
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )

        assert create.await_count == 2
