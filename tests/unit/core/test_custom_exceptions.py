import pytest
from fastapi import HTTPException, status

from service.core.exception_handler import common_exception_handler
from service.core.exceptions import (
    ExtractionFailedError,
    ImageProcessingError,
    InconclusiveError,
    NetworkError,
    PipelineTimeoutError,
    PredictionError,
    RejectedError,
    ServiceError,
    ServiceUnavailableError,
    ValidationError,
)
from service.core.ml.utils.metrics_recorder import MetricsRecorder


class TestServiceExceptionHierarchy:
    """Test service exception hierarchy and inheritance"""

    def test_service_error_defaults(self):
        error = ServiceError("Default status error")
        assert error.http_status == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert error.error_type == "service_error"
        assert str(error) == "Default status error"

    @pytest.mark.parametrize(
        "exception_class,expected_type",
        [
            (ValidationError, "validation_error"),
            (PredictionError, "prediction_error"),
            (ServiceUnavailableError, "service_unavailable"),
            (NetworkError, "network_error"),
            (RejectedError, "rejected"),
            (InconclusiveError, "inconclusive"),
            (ExtractionFailedError, "extraction_failed"),
            (PipelineTimeoutError, "timeout"),
            (ImageProcessingError, "image_processing_error"),
        ],
    )
    def test_exception_error_types(self, exception_class, expected_type):
        error = exception_class("Test error")
        assert error.error_type == expected_type
        assert isinstance(error, ServiceError)

    @pytest.mark.parametrize(
        "exception_class,expected_status",
        [
            (ValidationError, status.HTTP_400_BAD_REQUEST),
            (PredictionError, status.HTTP_502_BAD_GATEWAY),
            (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
            (NetworkError, status.HTTP_502_BAD_GATEWAY),
            (RejectedError, status.HTTP_502_BAD_GATEWAY),
            (InconclusiveError, status.HTTP_504_GATEWAY_TIMEOUT),
            (PipelineTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
            (ImageProcessingError, status.HTTP_400_BAD_REQUEST),
        ],
    )
    def test_exception_http_statuses(self, exception_class, expected_status):
        assert exception_class("Test error").http_status == expected_status

    @pytest.mark.parametrize("exception_class", [ServiceUnavailableError, NetworkError, RejectedError, InconclusiveError])
    def test_prediction_failures_share_a_base(self, exception_class):
        assert issubclass(exception_class, PredictionError)


class TestErrorTypeExtraction:
    """Test error type labels used in metrics and failed scores"""

    def test_service_error_type(self):
        assert MetricsRecorder(enabled=False).extract_error_type(RejectedError("x")) == "rejected"

    def test_foreign_exception_uses_class_name(self):
        assert MetricsRecorder(enabled=False).extract_error_type(ZeroDivisionError("x")) == "ZeroDivisionError"


class TestCommonExceptionHandler:
    """Test mapping of exceptions raised in route handlers"""

    @staticmethod
    def _route_raising(error):
        @common_exception_handler
        async def route():
            raise error

        return route

    @pytest.mark.asyncio
    async def test_passes_through_results(self):
        @common_exception_handler
        async def route(value):
            return {"value": value}

        assert await route(3) == {"value": 3}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (ValidationError("bad weights"), 400),
            (ServiceUnavailableError("no token"), 503),
            (InconclusiveError("still running"), 504),
            (ValueError("disabled"), 400),
            (KeyError("unknown-capability"), 404),
            (RuntimeError("boom"), 500),
        ],
    )
    async def test_status_mapping(self, error, expected_status):
        with pytest.raises(HTTPException) as exc_info:
            await self._route_raising(error)()
        assert exc_info.value.status_code == expected_status

    @pytest.mark.asyncio
    async def test_unknown_errors_hide_details(self):
        with pytest.raises(HTTPException) as exc_info:
            await self._route_raising(RuntimeError("secret internals"))()
        assert exc_info.value.detail == "Internal server error"

    @pytest.mark.asyncio
    async def test_key_error_names_resource(self):
        with pytest.raises(HTTPException) as exc_info:
            await self._route_raising(KeyError("unknown-capability"))()
        assert "unknown-capability" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_http_exception_is_reraised(self):
        with pytest.raises(HTTPException) as exc_info:
            await self._route_raising(HTTPException(418, "teapot"))()
        assert exc_info.value.status_code == 418
