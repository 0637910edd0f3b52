"""Run report aggregation."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from forecourt.common.fs import write_json
from forecourt.pipeline.pricing import PricingPolicy


def build_run_summary(
    view,
    *,
    run_id: str,
    as_of: str,
    feeds_total: int,
    policy: PricingPolicy,
    policy_date: date,
) -> dict:
    match = view.match
    if view.successful_feeds == 0:
        data_source = "none"
    elif view.successful_feeds < feeds_total:
        data_source = "partial"
    else:
        data_source = "live"

    warnings: list[str] = []
    if not view.directory:
        warnings.append("DIRECTORY_EMPTY")
    if view.successful_feeds < feeds_total:
        warnings.append("FEEDS_MISSING")
    if view.skipped_records:
        warnings.append("RECORDS_SKIPPED")
    policy_active = policy.is_active(policy_date)
    if not policy_active:
        warnings.append("PRICING_POLICY_OUTSIDE_WINDOW")

    return {
        "run_id": run_id,
        "as_of": as_of,
        "status": "partial" if warnings else "success",
        "data_source": data_source,
        "successful_feeds": view.successful_feeds,
        "total_feeds": feeds_total,
        "total_stations": len(view.live),
        "directory_count": len(view.directory),
        "matched_count": len(match.matched),
        "unmatched_count": len(match.unmatched),
        "live_count": match.live_count,
        "displayed_count": len(view.stations),
        "match_strategies": dict(sorted(match.strategy_counts.items())),
        "petrol_average": view.view_averages.petrol,
        "diesel_average": view.view_averages.diesel,
        "backfill_averages": {
            "petrol": view.backfill_averages.petrol,
            "diesel": view.backfill_averages.diesel,
        },
        "skipped_records": dict(sorted(view.skipped_records.items())),
        "policy": {
            "valid_from": policy.valid_from.isoformat(),
            "valid_to": policy.valid_to.isoformat(),
            "active": policy_active,
        },
        "policy_active": policy_active,
        "warnings": warnings,
    }


def write_run_summary(data_dir: Path, summary: dict) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    write_json(summary_path, summary)
    return summary_path
