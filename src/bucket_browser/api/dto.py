"""Response models for the REST endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    message: str


class MessageResponse(BaseModel):
    message: str


class ExamineFileResponse(BaseModel):
    message: str
    file: str


class HealthResponse(BaseModel):
    ok: bool = True
    cache: Literal["redis", "none"]


class FilterOptionsResponse(BaseModel):
    """Facet values offered to the client, serialized in camelCase."""

    solana_versions: list[str] = Field(
        default_factory=list, alias="solanaVersions", serialization_alias="solanaVersions"
    )
    statuses: list[str] = Field(default_factory=list)
    uploaded_by: list[str] = Field(
        default_factory=list, alias="uploadedBy", serialization_alias="uploadedBy"
    )
    nodes: list[str] = Field(default_factory=list)
    slot_ranges: list[str] = Field(
        default_factory=list, alias="slotRanges", serialization_alias="slotRanges"
    )

    model_config = {"populate_by_name": True}


class MetadataPageResponse(BaseModel):
    """
    One page of metadata records.

    Records are kept as plain dicts so absent ``node``/``slot_range`` stay
    omitted rather than serialized as null.
    """

    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
