"""
Pipeline error taxonomy.

Every stage failure aborts the whole run and surfaces as exactly one of these.
Only the code and the human-readable message leave the pipeline.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base error for a pipeline run."""

    code = "processing_failed"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.code, "message": self.message}


class InvalidImage(PipelineError):
    """Buffer cannot be decoded or has no readable dimensions."""

    code = "invalid_image"

    def __init__(self, message: str = "Unable to read image dimensions", **kwargs):
        super().__init__(message, stage=kwargs.pop("stage", "validate"), **kwargs)


class TooSmall(PipelineError):
    """Longest side is below the minimum."""

    code = "too_small"

    def __init__(self, longest_side: int, min_dimension: int, **kwargs):
        message = f"Image is too small. Minimum longest side is {min_dimension}px."
        super().__init__(message, stage=kwargs.pop("stage", "validate"), **kwargs)
        self.longest_side = longest_side
        self.min_dimension = min_dimension
        self.details.update({"longest_side": longest_side, "min_dimension": min_dimension})


class CompositionFailure(PipelineError):
    code = "composition_failed"

    def __init__(self, message: str = "Image processing failed.", **kwargs):
        super().__init__(message, **kwargs)


class ArchiveFailure(PipelineError):
    code = "archive_failed"

    def __init__(self, message: str = "Unable to package the exported images.", **kwargs):
        super().__init__(message, stage=kwargs.pop("stage", "archive"), **kwargs)


class ExternalCompositorFailure(PipelineError):
    """The remote compositor returned nothing usable; callers may retry or fall back."""

    code = "external_compositor_failed"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, stage=kwargs.pop("stage", "remote_composite"), **kwargs)
