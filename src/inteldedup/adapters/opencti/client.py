"""GraphQL client for the OpenCTI platform."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from inteldedup.adapters.http_resilience import ResilientClient
from inteldedup.config.opencti import OpenCtiConfig, get_opencti_config
from inteldedup.domain.errors import UpstreamError
from inteldedup.domain.ports.fetching import EntitySource
from inteldedup.domain.ports.merging import EntityMerger

from .schema import IntrusionSetConnection, IntrusionSetsResponse, MergeResponse
from .translator import parse_intrusion_set

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from inteldedup.config.http_resilience import ResilienceConfig
    from inteldedup.domain.model import IntelEntity

    from .schema import GraphQlError

log = getLogger(__name__)

INTRUSION_SETS_QUERY = """
query IntrusionSets($count: Int!, $cursor: ID) {
  intrusionSets(first: $count, after: $cursor, orderBy: name, orderMode: asc) {
    edges {
      node {
        id
        name
        description
        aliases
        created
        modified
        stixCoreRelationships {
          pageInfo {
            globalCount
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

MERGE_MUTATION = """
mutation MergeStixCoreObjects($id: ID!, $stixCoreObjectsIds: [String]!) {
  stixCoreObjectEdit(id: $id) {
    merge(stixCoreObjectsIds: $stixCoreObjectsIds) {
      id
    }
  }
}
"""


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _first_error_message(errors: Sequence[GraphQlError], fallback: str) -> str:
    if not errors:
        return fallback
    return errors[0].message or fallback


@dataclass(slots=True)
class OpenCtiClient:
    """Reads intrusion sets from OpenCTI and performs merges there."""

    config: OpenCtiConfig = field(default_factory=get_opencti_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def fetch_intrusion_sets(self, *, max_entities: int | None = None) -> list[IntelEntity]:
        limit = max_entities if max_entities is not None else self.config.max_entities
        if limit <= 0:
            return []
        return asyncio.run(self._fetch_intrusion_sets_async(limit=limit))

    def merge_entities(self, *, keep_entity_id: str, merge_entity_ids: Sequence[str]) -> str:
        return asyncio.run(
            self._merge_async(keep_entity_id=keep_entity_id, merge_entity_ids=merge_entity_ids)
        )

    async def _fetch_intrusion_sets_async(self, *, limit: int) -> list[IntelEntity]:
        entities: list[IntelEntity] = []
        cursor: str | None = None

        async with self.client_factory(self.config.query_resilience) as client:
            while True:
                connection = await self._request_page(client=client, cursor=cursor)
                entities.extend(parse_intrusion_set(edge.node) for edge in connection.edges)
                log.info("Fetched %s intrusion sets...", len(entities))

                if len(entities) >= limit:
                    log.info("Reached max entities limit (%s)", limit)
                    break
                if not connection.page_info.has_next_page or not connection.page_info.end_cursor:
                    break
                cursor = connection.page_info.end_cursor

        return entities[:limit]

    async def _request_page(
        self,
        *,
        client: ResilientClient,
        cursor: str | None,
    ) -> IntrusionSetConnection:
        variables: dict[str, object] = {"count": self.config.page_size, "cursor": cursor}
        payload = await self._post(
            client=client,
            body={"query": INTRUSION_SETS_QUERY, "variables": variables},
        )
        try:
            response = IntrusionSetsResponse.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamError(f"Unexpected OpenCTI response payload: {exc}") from exc

        if response.errors:
            message = _first_error_message(response.errors, "Unknown GraphQL error")
            log.error("OpenCTI GraphQL error: %s", message)
            raise UpstreamError(f"OpenCTI GraphQL error: {message}")
        if response.data is None or response.data.intrusion_sets is None:
            raise UpstreamError("Unexpected OpenCTI response payload: missing intrusionSets")
        return response.data.intrusion_sets

    async def _merge_async(self, *, keep_entity_id: str, merge_entity_ids: Sequence[str]) -> str:
        body = {
            "query": MERGE_MUTATION,
            "variables": {"id": keep_entity_id, "stixCoreObjectsIds": list(merge_entity_ids)},
        }
        async with self.client_factory(self.config.mutation_resilience) as client:
            payload = await self._post(client=client, body=body)

        try:
            response = MergeResponse.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamError(f"Unexpected OpenCTI merge payload: {exc}") from exc

        if response.errors:
            raise UpstreamError(_first_error_message(response.errors, "Merge failed in OpenCTI"))
        if response.data is None or response.data.edit is None or response.data.edit.merge is None:
            raise UpstreamError("Merge failed in OpenCTI")
        return response.data.edit.merge.id

    async def _post(self, *, client: ResilientClient, body: dict[str, object]) -> object:
        headers = {
            "Authorization": f"Bearer {self.config.api_token}",
            "Content-Type": "application/json",
        }
        try:
            response = await client.post_json(self.config.graphql_url, body, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"OpenCTI request failed: {exc}") from exc

        if response.is_error:
            raise UpstreamError(
                f"OpenCTI API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("OpenCTI returned a non-JSON response") from exc


if TYPE_CHECKING:
    _source_check: EntitySource = OpenCtiClient()
    _merger_check: EntityMerger = OpenCtiClient()
