"""Tabular summaries of batch matching results for operators."""

from __future__ import annotations

from typing import Mapping, Sequence

import pandas as pd

from matching_engine.domain.models import MatchScore


MATCH_COLUMNS = [
    "request_id",
    "rank",
    "contractor_id",
    "score",
    "distance_miles",
    "estimated_arrival_minutes",
    "quoted_price",
]

SUMMARY_COLUMNS = [
    "request_id",
    "matches",
    "top_contractor_id",
    "top_score",
    "mean_score",
    "nearest_miles",
    "needs_escalation",
]


def matches_to_frame(results: Mapping[str, Sequence[MatchScore]]) -> pd.DataFrame:
    """Flatten per-request rankings into one row per (request, contractor)."""
    rows = [
        {
            "request_id": request_id,
            "rank": rank,
            "contractor_id": match.contractor_id,
            "score": match.score,
            "distance_miles": match.distance_miles,
            "estimated_arrival_minutes": match.estimated_arrival_minutes,
            "quoted_price": match.quoted_price,
        }
        for request_id, matches in results.items()
        for rank, match in enumerate(matches, start=1)
    ]
    return pd.DataFrame(rows, columns=MATCH_COLUMNS)


def summarize_batch(results: Mapping[str, Sequence[MatchScore]]) -> pd.DataFrame:
    """One row per request; requests without matches are flagged for escalation."""
    frame = matches_to_frame(results)
    request_index = pd.Index(list(results), name="request_id")

    if frame.empty:
        summary = pd.DataFrame(index=request_index)
        summary["matches"] = 0
        summary["top_contractor_id"] = None
        summary["top_score"] = float("nan")
        summary["mean_score"] = float("nan")
        summary["nearest_miles"] = float("nan")
    else:
        grouped = frame.groupby("request_id", sort=False)
        top_rows = frame[frame["rank"] == 1].set_index("request_id")
        summary = pd.DataFrame(
            {
                "matches": grouped.size(),
                "top_contractor_id": top_rows["contractor_id"],
                "top_score": top_rows["score"],
                "mean_score": grouped["score"].mean(),
                "nearest_miles": grouped["distance_miles"].min(),
            }
        ).reindex(request_index)
        summary["matches"] = summary["matches"].fillna(0).astype(int)

    summary["needs_escalation"] = summary["matches"] == 0
    return summary.reset_index()[SUMMARY_COLUMNS]


def summary_records(results: Mapping[str, Sequence[MatchScore]]) -> list[dict[str, object]]:
    """JSON-friendly summary rows with NaN replaced by None."""
    summary = summarize_batch(results).astype(object)
    summary = summary.where(pd.notna(summary), None)
    return summary.to_dict(orient="records")
