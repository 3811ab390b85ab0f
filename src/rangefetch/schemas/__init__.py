"""Pydantic schemas for rangefetch output documents."""

from rangefetch.schemas.report import DownloadReport

__all__ = ["DownloadReport"]
