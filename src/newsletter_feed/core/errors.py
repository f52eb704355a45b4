"""Pipeline error types."""

from typing import Optional


class PipelineError(Exception):
    """Base class for failures surfaced by the pipeline."""

    retryable = False


class ContractViolation(PipelineError):
    """Oracle response does not match the segmentation contract."""

    def __init__(self, message: str, raw_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text

    @property
    def raw_preview(self) -> str:
        """Truncated raw oracle text for diagnostics."""
        if not self.raw_text:
            return ""
        if len(self.raw_text) > 500:
            return f"{self.raw_text[:250]}...{self.raw_text[-250:]}"
        return self.raw_text


class OracleUnavailable(PipelineError):
    """Oracle could not be reached or did not answer in time."""

    retryable = True


class StoreError(PipelineError):
    """Persistent store rejected a read or write."""


class OracleRejected(PipelineError):
    """Oracle refused the request; retrying will not help."""
