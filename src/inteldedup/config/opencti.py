"""OpenCTI configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_int, require_env_vars
from .errors import InvalidConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy

OPENCTI_GRAPHQL_PATH = "/graphql"
OPENCTI_TIMEOUT_SECONDS = 60.0
DEFAULT_PAGE_SIZE = 500
DEFAULT_MAX_ENTITIES = 2000


@dataclass(frozen=True)
class OpenCtiConfig:
    """Holds OpenCTI API configuration values."""

    url: str
    api_token: str
    query_resilience: ResilienceConfig
    mutation_resilience: ResilienceConfig
    page_size: int = DEFAULT_PAGE_SIZE
    max_entities: int = DEFAULT_MAX_ENTITIES

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise InvalidConfigurationError(
                f"OPENCTI_PAGE_SIZE must be positive, got {self.page_size}"
            )
        if self.max_entities <= 0:
            raise InvalidConfigurationError(
                f"OPENCTI_MAX_ENTITIES must be positive, got {self.max_entities}"
            )

    @property
    def graphql_url(self) -> str:
        base = self.url.rstrip("/")
        if base.endswith(OPENCTI_GRAPHQL_PATH):
            return base
        return f"{base}{OPENCTI_GRAPHQL_PATH}"


def get_opencti_config(
    *,
    query_resilience: ResilienceConfig | None = None,
    mutation_resilience: ResilienceConfig | None = None,
) -> OpenCtiConfig:
    values = require_env_vars(("OPENCTI_URL", "OPENCTI_API_TOKEN"))
    return OpenCtiConfig(
        url=values["OPENCTI_URL"],
        api_token=values["OPENCTI_API_TOKEN"],
        page_size=optional_env_int("OPENCTI_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        max_entities=optional_env_int("OPENCTI_MAX_ENTITIES", DEFAULT_MAX_ENTITIES),
        query_resilience=query_resilience
        or ResilienceConfig(
            name="opencti-query",
            timeout_seconds=OPENCTI_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=3),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        ),
        # a merge must reach the platform at most once per attempt
        mutation_resilience=mutation_resilience
        or ResilienceConfig(
            name="opencti-mutation",
            timeout_seconds=OPENCTI_TIMEOUT_SECONDS,
            retry=NO_RETRY,
        ),
    )
