from __future__ import annotations

import json
import logging
from collections.abc import Mapping

LOGGER = logging.getLogger(__name__)


def parse_counts(payload: str) -> dict[str, int] | None:
    """Read measurement counts from a raw execution payload.

    Accepts a JSON object with a ``counts`` field, a flat JSON object of
    counts, or the ``{00=12, 11=30}`` map notation some services emit.
    Returns ``None`` when the payload holds no usable counts.
    """
    text = payload.strip()
    try:
        decoded = json.loads(text)
    except ValueError:
        return _parse_map_notation(text)

    if isinstance(decoded, Mapping) and isinstance(decoded.get("counts"), Mapping):
        decoded = decoded["counts"]
    if not isinstance(decoded, Mapping):
        return None
    counts: dict[str, int] = {}
    for key, value in decoded.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        counts[str(key)] = int(value)
    return counts


def _parse_map_notation(text: str) -> dict[str, int] | None:
    if not (text.startswith("{") and text.endswith("}")):
        return None
    body = "".join(text[1:-1].split())
    if not body:
        return {}
    counts: dict[str, int] = {}
    for item in body.split(","):
        key, sep, value = item.partition("=")
        if not sep:
            return None
        try:
            counts[key] = int(value)
        except ValueError:
            return None
    return counts


def histogram_intersection(
    counts: Mapping[str, int], reference: Mapping[str, int], reference_shots: int
) -> float | None:
    """Overlap of two count histograms normalised by the reference shot count.

    Returns ``None`` when there is no overlap or no reference shots.
    """
    if reference_shots <= 0:
        return None
    overlap = sum(min(counts.get(key, 0), reference.get(key, 0)) for key in set(counts) | set(reference))
    if overlap <= 0:
        return None
    return overlap / reference_shots
