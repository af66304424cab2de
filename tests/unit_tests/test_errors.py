"""Unit tests for errors.py error handlers."""

import json
from unittest.mock import MagicMock
from unittest.mock import patch

import pydantic
import pytest
from fastapi import Request

from datachef_api.errors import handle_broad_exceptions
from datachef_api.errors import handle_datachef_errors
from datachef_api.errors import handle_pydantic_validation_errors
from datachef_api.errors import status_code_for
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import DataChefError
from datachef_api.exceptions import EngineExecutionError
from datachef_api.exceptions import EngineProtocolError
from datachef_api.exceptions import EngineSpawnError
from datachef_api.exceptions import ExecutionInProgressError
from datachef_api.exceptions import NotFoundError
from datachef_api.exceptions import PipeValidationError
from datachef_api.exceptions import StorageError
from datachef_api.models.validation import ValidationIssue


def _request():
    mock_request = MagicMock(spec=Request)
    mock_request.method = "POST"
    mock_request.url.path = "/api/pipes"
    return mock_request


class TestHandleBroadExceptions:
    """Tests for handle_broad_exceptions middleware."""

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_successful_request(self, mock_log):
        """Test middleware passes through successful requests."""
        mock_response = MagicMock()

        async def mock_call_next(request):
            return mock_response

        result = await handle_broad_exceptions(_request(), mock_call_next)

        assert result == mock_response
        mock_log.assert_not_called()

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_exception_returns_500(self, mock_log):
        """Test middleware catches exceptions and returns 500."""

        async def mock_call_next(request):
            raise ValueError("Test error")

        result = await handle_broad_exceptions(_request(), mock_call_next)

        assert result.status_code == 500
        assert json.loads(result.body) == {"detail": "Internal server error", "error_type": "ValueError"}
        mock_log.assert_called_once()


class TestHandlePydanticValidationErrors:
    """Tests for handle_pydantic_validation_errors handler."""

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_validation_error(self, mock_log):
        """Test handling pydantic validation errors."""

        class TestModel(pydantic.BaseModel):
            name: str
            value: int

        with pytest.raises(pydantic.ValidationError) as exc_info:
            TestModel(name=123, value="not_int")

        result = await handle_pydantic_validation_errors(_request(), exc_info.value)

        assert result.status_code == 422
        body = json.loads(result.body)
        assert len(body["detail"]) == 2
        assert {item["input"] for item in body["detail"]} == {123, "not_int"}
        mock_log.assert_called_once()


class TestHandleDataChefErrors:
    """Tests for the domain exception handler."""

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (PipeValidationError([]), 422),
            (NotFoundError("x"), 404),
            (ExecutionInProgressError("p"), 409),
            (StorageError("x"), 502),
            (EngineSpawnError("x"), 502),
            (EngineProtocolError("x"), 502),
            (EngineExecutionError(2, "boom"), 502),
            (ConfigError("x"), 503),
            (DataChefError("x"), 500),
        ],
    )
    def test_status_code_for(self, exc, expected):
        assert status_code_for(exc) == expected

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_validation_issues_are_listed(self, mock_log):
        exc = PipeValidationError([ValidationIssue(field="storagePath", message="must begin with '/'")])

        result = await handle_datachef_errors(_request(), exc)

        assert result.status_code == 422
        assert json.loads(result.body) == {
            "detail": "Pipe specification is invalid",
            "error_type": "PipeValidationError",
            "issues": [{"field": "storagePath", "message": "must begin with '/'"}],
        }

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_detail_fields_are_merged(self, mock_log):
        result = await handle_datachef_errors(_request(), ExecutionInProgressError(running_pipe_id="p-1"))

        assert result.status_code == 409
        assert json.loads(result.body) == {
            "detail": "Another pipe execution is already running",
            "error_type": "ExecutionInProgressError",
            "runningPipeId": "p-1",
        }

    @pytest.mark.asyncio
    @patch("datachef_api.errors.log_response_info")
    async def test_engine_error_message(self, mock_log):
        result = await handle_datachef_errors(_request(), EngineExecutionError(1, "  Table not found\n"))

        body = json.loads(result.body)
        assert body["detail"] == "Engine process exited with code 1: Table not found"
        assert body["exitCode"] == 1
