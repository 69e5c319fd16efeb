"""Pydantic models describing the OpenCTI GraphQL payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OpenCtiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GraphQlError(OpenCtiBaseModel):
    message: str = "Unknown GraphQL error"


class PageInfo(OpenCtiBaseModel):
    has_next_page: bool = Field(default=False, alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


class CountInfo(OpenCtiBaseModel):
    global_count: int = Field(default=0, alias="globalCount")


class RelationshipConnection(OpenCtiBaseModel):
    page_info: CountInfo | None = Field(default=None, alias="pageInfo")


class IntrusionSetNode(OpenCtiBaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    aliases: list[str] | None = None
    created: datetime | None = None
    modified: datetime | None = None
    relationships: RelationshipConnection | None = Field(
        default=None, alias="stixCoreRelationships"
    )

    @field_validator("aliases", mode="before")
    @classmethod
    def _drop_null_aliases(cls, value: object) -> object:
        if isinstance(value, list):
            return [alias for alias in value if isinstance(alias, str)]
        return value

    @property
    def relationship_count(self) -> int:
        if self.relationships is None or self.relationships.page_info is None:
            return 0
        return max(self.relationships.page_info.global_count, 0)


class IntrusionSetEdge(OpenCtiBaseModel):
    node: IntrusionSetNode


class IntrusionSetConnection(OpenCtiBaseModel):
    edges: list[IntrusionSetEdge] = Field(default_factory=list[IntrusionSetEdge])
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")


class IntrusionSetsData(OpenCtiBaseModel):
    intrusion_sets: IntrusionSetConnection | None = Field(default=None, alias="intrusionSets")


class IntrusionSetsResponse(OpenCtiBaseModel):
    data: IntrusionSetsData | None = None
    errors: list[GraphQlError] | None = None


class MergeResult(OpenCtiBaseModel):
    id: str


class StixCoreObjectEdit(OpenCtiBaseModel):
    merge: MergeResult | None = None


class MergeData(OpenCtiBaseModel):
    edit: StixCoreObjectEdit | None = Field(default=None, alias="stixCoreObjectEdit")


class MergeResponse(OpenCtiBaseModel):
    data: MergeData | None = None
    errors: list[GraphQlError] | None = None
