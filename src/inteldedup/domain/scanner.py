"""All-pairs duplicate detection over an in-memory list of intrusion sets.

The scan applies a cascade of name and alias rules to every unordered pair and
stops at the first rule that fires, so each pair yields at most one candidate.
It is pure: no persistence, no network. A global candidate cap bounds the
quadratic cost on large catalogues, which means a capped scan is not
exhaustive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from inteldedup.domain.model import (
    DetectionMethod,
    DuplicateCandidate,
    canonical_pair_key,
)

from .similarity import (
    alias_overlap_count,
    cosine_similarity,
    name_similarity,
    normalize_name,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from inteldedup.domain.model import IntelEntity, PairKey

log = getLogger(__name__)

EXACT_MATCH_SCORE = 1.0
ALIAS_OVERLAP_SCORE = 0.9
NAME_IN_ALIAS_SCORE = 0.95

DEFAULT_NAME_SIMILARITY_THRESHOLD = 0.8
DEFAULT_ALIAS_OVERLAP_MINIMUM = 2
DEFAULT_NAME_IN_ALIAS_THRESHOLD = 0.9
DEFAULT_MAX_CANDIDATES = 500


@dataclass(frozen=True, slots=True)
class ScanRules:
    """Thresholds for the match cascade."""

    name_similarity_threshold: float = DEFAULT_NAME_SIMILARITY_THRESHOLD
    alias_overlap_minimum: int = DEFAULT_ALIAS_OVERLAP_MINIMUM
    name_in_alias_threshold: float = DEFAULT_NAME_IN_ALIAS_THRESHOLD
    max_candidates: int = DEFAULT_MAX_CANDIDATES

    def __post_init__(self) -> None:
        if self.max_candidates < 0:
            raise ValueError("max_candidates must be non-negative")


@dataclass(frozen=True, slots=True)
class PairScore:
    score: float
    method: DetectionMethod


@runtime_checkable
class PairScorer(Protocol):
    """Second-pass scorer consulted for pairs no cascade rule matched."""

    def prepare(self, entities: Sequence[IntelEntity]) -> None: ...

    def score(self, first: IntelEntity, second: IntelEntity) -> PairScore | None: ...


type EmbedTexts = Callable[[Sequence[str]], Sequence[Sequence[float]]]


@dataclass(slots=True)
class EmbeddingPairScorer:
    """Semantic scorer over entity embeddings.

    Not enabled by default: embedding every entity is too expensive for a
    single scan invocation. ``embed`` maps texts to vectors in input order.
    """

    embed: EmbedTexts
    threshold: float = 0.85
    _vectors: dict[str, Sequence[float]] = field(
        default_factory=dict[str, "Sequence[float]"], init=False
    )

    def prepare(self, entities: Sequence[IntelEntity]) -> None:
        texts = [_embedding_text(entity) for entity in entities]
        vectors = self.embed(texts) if texts else []
        if len(vectors) != len(entities):
            raise ValueError("Embedding function returned a vector count that does not match")
        self._vectors = {entity.id: vector for entity, vector in zip(entities, vectors, strict=True)}

    def score(self, first: IntelEntity, second: IntelEntity) -> PairScore | None:
        vec_a = self._vectors.get(first.id)
        vec_b = self._vectors.get(second.id)
        if vec_a is None or vec_b is None:
            return None
        similarity = cosine_similarity(vec_a, vec_b)
        if similarity < self.threshold:
            return None
        return PairScore(score=similarity, method=DetectionMethod.SEMANTIC_SIMILARITY)


def _embedding_text(entity: IntelEntity) -> str:
    if entity.description:
        return f"{entity.name}: {entity.description}"
    return entity.name


def scan_for_duplicates(
    entities: Sequence[IntelEntity],
    *,
    rules: ScanRules | None = None,
    scorers: Sequence[PairScorer] = (),
) -> list[DuplicateCandidate]:
    """Return pending, unpersisted candidates ordered by score (highest first)."""

    active_rules = rules or ScanRules()
    candidates: list[DuplicateCandidate] = []
    seen_pairs: set[PairKey] = set()
    normalized_names = [normalize_name(entity.name) for entity in entities]

    for scorer in scorers:
        scorer.prepare(entities)

    log.info("Scanning %s entities for duplicates", len(entities))

    total = len(entities)
    for i in range(total):
        if len(candidates) >= active_rules.max_candidates:
            break
        for j in range(i + 1, total):
            if len(candidates) >= active_rules.max_candidates:
                break
            first = entities[i]
            second = entities[j]
            if first.id == second.id:
                continue
            pair_key = canonical_pair_key(first.id, second.id)
            if pair_key in seen_pairs:
                continue

            candidate = _match_pair(
                first,
                second,
                first_normalized=normalized_names[i],
                second_normalized=normalized_names[j],
                rules=active_rules,
                scorers=scorers,
            )
            if candidate is None:
                continue
            seen_pairs.add(pair_key)
            candidates.append(candidate)

    if len(candidates) >= active_rules.max_candidates:
        log.info("Reached candidate cap (%s); scan is not exhaustive", active_rules.max_candidates)
    log.info("Found %s candidates from name-based matching", len(candidates))
    candidates.sort(key=lambda candidate: candidate.similarity_score, reverse=True)
    return candidates


def _match_pair(
    first: IntelEntity,
    second: IntelEntity,
    *,
    first_normalized: str,
    second_normalized: str,
    rules: ScanRules,
    scorers: Sequence[PairScorer],
) -> DuplicateCandidate | None:
    overlap = alias_overlap_count(first.aliases, second.aliases)

    # Two empty names would otherwise normalise-equal
    if first_normalized and first_normalized == second_normalized:
        return _candidate(
            first, second, EXACT_MATCH_SCORE, 1.0, overlap, DetectionMethod.EXACT_NAME_MATCH
        )

    similarity = name_similarity(first.name, second.name)
    if similarity >= rules.name_similarity_threshold:
        return _candidate(
            first, second, similarity, similarity, overlap, DetectionMethod.NAME_SIMILARITY
        )

    if overlap >= rules.alias_overlap_minimum:
        return _candidate(
            first, second, ALIAS_OVERLAP_SCORE, similarity, overlap, DetectionMethod.ALIAS_OVERLAP
        )

    if _name_in_aliases(first.name, first_normalized, second.aliases, rules) or _name_in_aliases(
        second.name, second_normalized, first.aliases, rules
    ):
        return _candidate(
            first, second, NAME_IN_ALIAS_SCORE, similarity, overlap, DetectionMethod.NAME_IN_ALIAS
        )

    for scorer in scorers:
        scored = scorer.score(first, second)
        if scored is not None:
            return _candidate(first, second, scored.score, similarity, overlap, scored.method)

    return None


def _name_in_aliases(
    name: str,
    normalized: str,
    aliases: Sequence[str],
    rules: ScanRules,
) -> bool:
    return any(
        normalize_name(alias) == normalized
        or name_similarity(alias, name) > rules.name_in_alias_threshold
        for alias in aliases
    )


def _candidate(
    first: IntelEntity,
    second: IntelEntity,
    score: float,
    similarity: float,
    overlap: int,
    method: DetectionMethod,
) -> DuplicateCandidate:
    return DuplicateCandidate(
        entity1=first.snapshot(),
        entity2=second.snapshot(),
        similarity_score=score,
        name_similarity=similarity,
        alias_overlap=overlap,
        detection_method=method,
    )
