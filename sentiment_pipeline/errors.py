"""
Exception hierarchy for the sentiment pipeline.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class ParseError(PipelineError, IOError):
    """Raised when an input row or label cannot be parsed."""
    pass


class InvalidInputError(PipelineError, ValueError):
    """Raised for mismatched or empty inputs."""
    pass


class ModelNotFoundError(PipelineError, FileNotFoundError):
    """Raised when no persisted model exists at the given path."""
    pass


class CorruptModelError(PipelineError):
    """Raised when a persisted model is unreadable or has the wrong version."""
    pass


class EmptyDatasetError(PipelineError):
    """Raised when evaluating on an empty dataset."""
    pass


class PipelineStateError(PipelineError):
    """Raised on an illegal orchestrator state transition."""
    pass
