from __future__ import annotations


class PipelineValidationError(ValueError):
    """Raised when pipeline input is rejected before any stage runs."""


class InvalidRange(PipelineValidationError):
    pass


class NonFiniteInput(PipelineValidationError):
    pass


class UnorderedSeries(PipelineValidationError):
    pass


class InvalidParameter(PipelineValidationError):
    pass


class UnknownScope(LookupError):
    """Raised by data sources when a scope/region has no series."""


class ConfigError(ValueError):
    pass
