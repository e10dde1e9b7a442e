# src/pack_review/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .contribution import (
    AttachTarget,
    BulkIds,
    BulkResultResponse,
    ContributionResponse,
    DuplicateFile,
    UploadReportResponse,
)
from .fork import ForkStatusResponse, ReconcileReportResponse
from .mod import ExtractedMetadataResponse, MCModInfo
from .texture import TextureResponse
from .vote import PollResultsResponse, VoteCreate, VoteResult

__all__ = [
    "AttachTarget", "BulkIds", "BulkResultResponse",
    "ContributionResponse", "DuplicateFile", "UploadReportResponse",
    "ForkStatusResponse", "ReconcileReportResponse",
    "ExtractedMetadataResponse", "MCModInfo",
    "TextureResponse",
    "PollResultsResponse", "VoteCreate", "VoteResult",
]
