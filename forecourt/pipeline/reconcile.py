"""Reconcile stage: harvested payloads in, priced and ordered station view out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from forecourt.common.constants import RAW_DIRECTORY, RAW_FEEDS_DIR
from forecourt.common.fs import read_json
from forecourt.common.models import (
    AuthoritativeSite,
    CanonicalStation,
    MatchResult,
    NationalAverages,
    ReferenceLocation,
)
from forecourt.common.time_utils import as_of_date
from forecourt.harvest.feeds import feed_specs
from forecourt.pipeline.aggregate import (
    DEFAULT_AVERAGES,
    SCOPE_MATCHED,
    averages_for_scope,
    filter_and_sort,
    national_averages,
)
from forecourt.pipeline.directory import ingest_directory
from forecourt.pipeline.export import write_station_csv, write_unmatched_csv
from forecourt.pipeline.matching import MatchSettings, match_stations
from forecourt.pipeline.normalise import normalise_feed
from forecourt.pipeline.reports import build_run_summary, write_run_summary

logger = logging.getLogger("forecourt.pipeline.reconcile")


@dataclass(frozen=True)
class StationView:
    live: list[CanonicalStation]
    directory: list[AuthoritativeSite]
    match: MatchResult
    backfill_averages: NationalAverages
    view_averages: NationalAverages
    stations: list
    skipped_records: dict[str, int]
    successful_feeds: int


def build_view(
    feed_payloads: Mapping[str, Any],
    directory_payload: Any,
    *,
    reference: ReferenceLocation,
    as_of: str,
    query: str | None = None,
    scope: str = SCOPE_MATCHED,
    settings: MatchSettings | None = None,
    average_defaults: NationalAverages = DEFAULT_AVERAGES,
) -> StationView:
    """Run the whole engine over already-fetched payloads.

    ``feed_payloads`` maps retailer name to its raw payload; retailers whose
    fetch failed should simply be absent. Retailers are processed in sorted
    order so identical inputs always produce identical output.
    """
    live: list[CanonicalStation] = []
    skipped: dict[str, int] = {}
    for retailer in sorted(feed_payloads):
        result = normalise_feed(retailer, feed_payloads[retailer], as_of=as_of)
        live.extend(result.stations)
        if result.skipped:
            skipped[retailer] = result.skipped

    directory = ingest_directory(directory_payload)
    backfill = national_averages(live, average_defaults)
    match = match_stations(live, directory, backfill, settings=settings, as_of=as_of)

    view_averages = averages_for_scope(match.matched, live, scope, average_defaults)
    pool = match.matched if scope == SCOPE_MATCHED else live
    stations = filter_and_sort(pool, query, reference)

    return StationView(
        live=live,
        directory=directory,
        match=match,
        backfill_averages=backfill,
        view_averages=view_averages,
        stations=stations,
        skipped_records=skipped,
        successful_feeds=len(feed_payloads),
    )


def load_harvest(data_dir: Path) -> tuple[dict[str, Any], Any, int]:
    """Read harvested payloads; returns (successful feeds, directory, feeds seen)."""
    feeds: dict[str, Any] = {}
    seen = 0
    feeds_dir = data_dir / RAW_FEEDS_DIR
    if feeds_dir.exists():
        for path in sorted(feeds_dir.glob("*.json")):
            entry = read_json(path)
            seen += 1
            if entry.get("success"):
                feeds[entry["retailer"]] = entry.get("payload")

    directory_path = data_dir / RAW_DIRECTORY
    directory_payload = None
    if directory_path.exists():
        directory_payload = read_json(directory_path).get("payload")
    else:
        logger.warning(
            "no harvested directory found",
            extra={"stage": "reconcile", "source": "directory", "event": "DIRECTORY_MISSING", "status": "warn"},
        )
    return feeds, directory_payload, seen


def run_reconcile(
    bundle,
    data_dir: Path,
    run_id: str,
    as_of: str,
    *,
    query: str | None = None,
    reference: ReferenceLocation | None = None,
    scope: str | None = None,
    settings: MatchSettings | None = None,
) -> dict:
    feeds, directory_payload, seen = load_harvest(data_dir)
    view = build_view(
        feeds,
        directory_payload,
        reference=reference or bundle.reference_location,
        as_of=as_of,
        query=query,
        scope=scope or bundle.engine["average_scope"],
        settings=settings or bundle.match_settings,
        average_defaults=bundle.average_defaults,
    )

    out_dir = data_dir / "out"
    write_station_csv(out_dir / "stations.csv", view.stations, bundle.pricing_policy)
    write_unmatched_csv(out_dir / "unmatched.csv", view.match.unmatched)

    feeds_total = max(seen, len(feed_specs(bundle.feeds)))
    summary = build_run_summary(
        view,
        run_id=run_id,
        as_of=as_of,
        feeds_total=feeds_total,
        policy=bundle.pricing_policy,
        policy_date=as_of_date(as_of),
    )
    write_run_summary(data_dir, summary)
    return summary
