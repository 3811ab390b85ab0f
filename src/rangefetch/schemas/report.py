"""
Run report schema.

Pydantic model for the JSON report the CLI writes with --report, covering
both successful and failed runs.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer

from rangefetch.download.models import DownloadSummary
from rangefetch.errors import RangeFetchBaseError
from rangefetch.logging import sanitize_url


class DownloadReport(BaseModel):
    """Schema for one run outcome.

    Attributes:
        url: Resource URL (query string redacted)
        status: success or failed
        output_path: Written file (None if failed)
        total_size: Resource length in bytes (None if the probe failed)
        range_count: Number of planned ranges
        stage: Pipeline stage a failure happened in
        failed_index: Range index named by the error, if any
        failed_indices: All failed range indices of the last fetch round
        error_message: Error description (truncated to 500 chars)
        error_category: transient, permanent or unknown
        duration_ms: Wall time of the run
        completed_at: Timestamp when the run ended

    Example:
        >>> report = DownloadReport.from_summary(url, summary, completed_at=now)
        >>> report.model_dump_json()
    """

    url: str = Field(..., description="Resource URL", min_length=1)
    status: Literal["success", "failed"] = Field(
        ..., description="Outcome status: success or failed"
    )
    output_path: Optional[str] = Field(
        default=None, description="Output file path (None if failed)"
    )
    total_size: Optional[int] = Field(
        default=None, description="Resource length in bytes", ge=0
    )
    range_count: Optional[int] = Field(
        default=None, description="Number of planned ranges", ge=1
    )
    stage: Optional[str] = Field(
        default=None, description="Pipeline stage where the run failed"
    )
    failed_index: Optional[int] = Field(
        default=None, description="Range index named by the error", ge=0
    )
    failed_indices: List[int] = Field(
        default_factory=list, description="Failed range indices of the last round"
    )
    error_message: Optional[str] = Field(
        default=None, description="Error description if failed"
    )
    error_category: Optional[str] = Field(
        default=None, description="Error classification"
    )
    duration_ms: float = Field(..., description="Run duration in milliseconds", ge=0)
    completed_at: datetime = Field(..., description="When the run ended")

    @field_serializer("completed_at")
    def serialize_completed_at(self, value: datetime) -> str:
        return value.isoformat()

    @classmethod
    def from_summary(
        cls, url: str, summary: DownloadSummary, completed_at: datetime
    ) -> "DownloadReport":
        return cls(
            url=sanitize_url(url),
            status="success",
            output_path=str(summary.output_path),
            total_size=summary.total_size,
            range_count=summary.range_count,
            duration_ms=summary.duration_ms,
            completed_at=completed_at,
        )

    @classmethod
    def from_error(
        cls,
        url: str,
        error: RangeFetchBaseError,
        duration_ms: float,
        completed_at: datetime,
    ) -> "DownloadReport":
        message = str(error)
        if len(message) > 500:
            message = message[:500] + "..."
        return cls(
            url=sanitize_url(url),
            status="failed",
            stage=error.stage,
            failed_index=getattr(error, "index", None),
            failed_indices=list(error.context.get("failed_indices", [])),
            error_message=message,
            error_category=error.category.value,
            duration_ms=duration_ms,
            completed_at=completed_at,
        )
