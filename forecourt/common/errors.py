"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class PolicyError(ConfigError):
    """Raised when a pricing policy carries impossible values."""

    error_code = "POLICY_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class HttpRequestError(StageError):
    """A feed or directory request that produced no usable JSON."""

    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    """Timeouts and throttling/server statuses worth another attempt."""

    error_code = "HTTP_RETRYABLE"
