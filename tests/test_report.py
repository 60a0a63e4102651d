from __future__ import annotations

import math
from datetime import datetime

import pytest

from matching_engine.domain.models import ContractorProfile, GeoPoint, ServiceRequest
from matching_engine.services.matching_service import batch_match
from matching_engine.services.report_service import (
    MATCH_COLUMNS,
    SUMMARY_COLUMNS,
    matches_to_frame,
    summarize_batch,
    summary_records,
)


ORIGIN = GeoPoint(lat=40.7128, lng=-74.0060)


def _build_results():
    contractors = [
        ContractorProfile(
            contractor_id=f"c-{index}",
            location=GeoPoint(lat=ORIGIN.lat + 0.02 * index, lng=ORIGIN.lng),
            services=frozenset({"plumbing"} if index < 3 else {"electrical"}),
            rating=4.0 + 0.2 * index,
            completed_jobs=20 * index,
            response_time_minutes=15.0,
            acceptance_rate=0.9,
            hourly_rate=80.0,
            max_concurrent_jobs=2,
        )
        for index in range(1, 5)
    ]
    requests = [
        ServiceRequest(
            request_id=request_id,
            service=service,
            location=ORIGIN,
            requested_at=datetime(2026, 6, 24, 14, 0),
        )
        for request_id, service in (
            ("job-a", "plumbing"),
            ("job-b", "roofing"),
            ("job-c", "electrical"),
        )
    ]
    return batch_match(requests, contractors, limit=5)


def test_matches_frame_has_one_row_per_ranked_match() -> None:
    results = _build_results()
    frame = matches_to_frame(results)

    assert list(frame.columns) == MATCH_COLUMNS
    assert len(frame) == sum(len(matches) for matches in results.values())
    job_a = frame[frame["request_id"] == "job-a"]
    assert job_a["rank"].tolist() == [1, 2]


def test_summary_keeps_request_order_and_flags_unmatched() -> None:
    results = _build_results()
    summary = summarize_batch(results)

    assert list(summary.columns) == SUMMARY_COLUMNS
    assert summary["request_id"].tolist() == ["job-a", "job-b", "job-c"]
    assert summary["matches"].tolist() == [2, 0, 2]
    assert summary["needs_escalation"].tolist() == [False, True, False]

    job_a = summary.set_index("request_id").loc["job-a"]
    assert job_a["top_contractor_id"] == results["job-a"][0].contractor_id
    assert job_a["top_score"] == pytest.approx(results["job-a"][0].score)
    assert job_a["mean_score"] == pytest.approx(
        sum(match.score for match in results["job-a"]) / 2
    )
    assert job_a["nearest_miles"] == pytest.approx(
        min(match.distance_miles for match in results["job-a"])
    )


def test_summary_for_batch_without_any_match() -> None:
    summary = summarize_batch({"job-x": [], "job-y": []})

    assert summary["request_id"].tolist() == ["job-x", "job-y"]
    assert summary["matches"].tolist() == [0, 0]
    assert summary["needs_escalation"].all()
    assert math.isnan(summary["top_score"].iloc[0])


def test_summary_records_replace_missing_values_with_none() -> None:
    records = summary_records(_build_results())

    unmatched = next(record for record in records if record["request_id"] == "job-b")
    assert unmatched["matches"] == 0
    assert unmatched["top_contractor_id"] is None
    assert unmatched["top_score"] is None
    assert unmatched["nearest_miles"] is None
    assert unmatched["needs_escalation"]
