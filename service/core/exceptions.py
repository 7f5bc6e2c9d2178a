from fastapi import status


class ServiceError(Exception):
    """Base exception for service errors with built-in HTTP status mapping"""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "service_error"


class ValidationError(ServiceError):
    """Input validation and configuration errors"""

    http_status: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "validation_error"


class PredictionError(ServiceError):
    """Errors talking to the remote prediction service"""

    http_status: int = status.HTTP_502_BAD_GATEWAY
    error_type: str = "prediction_error"


class ServiceUnavailableError(PredictionError):
    """Prediction capability or credential is not configured"""

    http_status: int = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type: str = "service_unavailable"


class NetworkError(PredictionError):
    """Transport-level failure reaching the prediction service (retryable)"""

    error_type: str = "network_error"


class RejectedError(PredictionError):
    """Prediction service answered non-2xx or the job ended in a failed state"""

    error_type: str = "rejected"


class InconclusiveError(PredictionError):
    """Polling budget exhausted while the job was still pending or running"""

    http_status: int = status.HTTP_504_GATEWAY_TIMEOUT
    error_type: str = "inconclusive"


class ExtractionFailedError(ServiceError):
    """Job succeeded but its output has no recognized shape"""

    error_type: str = "extraction_failed"


class PipelineTimeoutError(ServiceError):
    """Whole scoring pipeline exceeded its wall-clock budget"""

    http_status: int = status.HTTP_504_GATEWAY_TIMEOUT
    error_type: str = "timeout"


class ImageProcessingError(ServiceError):
    """Image loading and decoding errors (local structural analysis)"""

    http_status: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "image_processing_error"
