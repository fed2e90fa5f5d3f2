from __future__ import annotations

import pytest

from nisqa.execution.similarity import histogram_intersection, parse_counts


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ('{"counts": {"00": 500, "11": 524}}', {"00": 500, "11": 524}),
        ('{"00": 12, "11": 30.0}', {"00": 12, "11": 30}),
        ("{00=12, 11=30}", {"00": 12, "11": 30}),
        ("{}", {}),
        ('{"counts": {"00": "many"}}', None),
        ('["00", "11"]', None),
        ("{00:12}", None),
        ("no counts here", None),
    ],
)
def test_parse_counts(payload: str, expected: dict[str, int] | None) -> None:
    assert parse_counts(payload) == expected


def test_histogram_intersection_is_normalised_by_reference_shots() -> None:
    counts = {"00": 400, "11": 500, "01": 124}
    reference = {"00": 512, "11": 512}

    assert histogram_intersection(counts, reference, 1024) == pytest.approx(900 / 1024)
    assert histogram_intersection(reference, reference, 1024) == 1.0


def test_histogram_intersection_without_overlap_or_shots_is_absent() -> None:
    assert histogram_intersection({"01": 10}, {"10": 10}, 10) is None
    assert histogram_intersection({"00": 10}, {"00": 10}, 0) is None
