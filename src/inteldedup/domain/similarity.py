"""String and vector similarity primitives used by the candidate scanner."""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

from inteldedup.domain.errors import InputError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with case-insensitive character comparison."""

    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, left_char in enumerate(a, start=1):
        current = [i]
        for j, right_char in enumerate(b, start=1):
            cost = 0 if left_char.lower() == right_char.lower() else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """Return ``1 - distance / longest length``; two empty names are identical."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def normalize_name(value: str) -> str:
    """Lowercase and drop everything outside ``[a-z0-9]``."""

    return _NON_ALPHANUMERIC.sub("", value.lower())


def normalized_aliases(aliases: Iterable[str]) -> frozenset[str]:
    return frozenset(normalize_name(alias) for alias in aliases)


def alias_overlap_count(aliases1: Sequence[str], aliases2: Sequence[str]) -> int:
    """Count aliases shared by both sequences after normalisation."""

    if not aliases1 or not aliases2:
        return 0
    return len(normalized_aliases(aliases1) & normalized_aliases(aliases2))


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; ``0.0`` when either has no magnitude."""

    if len(vec_a) != len(vec_b):
        raise InputError(f"Vector length mismatch: {len(vec_a)} != {len(vec_b)}")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(vec_a, vec_b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    magnitude = math.sqrt(norm_a) * math.sqrt(norm_b)
    if magnitude == 0:
        return 0.0
    return dot / magnitude
