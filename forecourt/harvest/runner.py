"""Harvest orchestration with fail-soft semantics."""

from __future__ import annotations

from pathlib import Path

from forecourt.common.config_loader import ConfigBundle
from forecourt.common.constants import RAW_DIRECTORY, RAW_FEEDS_DIR
from forecourt.common.errors import StageError
from forecourt.common.fs import ensure_dir, slugify, write_json
from forecourt.common.http import HttpClient
from forecourt.harvest.feeds import fetch_directory, fetch_feeds, fetch_via_proxy, feed_specs


def run_harvest(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    http_client: HttpClient | None = None,
) -> dict:
    feeds_cfg = bundle.feeds
    specs = feed_specs(feeds_cfg)

    owns_client = http_client is None
    client = http_client or HttpClient(timeout=bundle.timeout, retry=bundle.retry)
    try:
        directory_payload = fetch_directory(feeds_cfg["directory"]["url"], client)
        if feeds_cfg["proxy"]["enabled"]:
            results = fetch_via_proxy(feeds_cfg["proxy"]["url"], client)
        else:
            results = fetch_feeds(
                specs,
                client,
                max_workers=int(feeds_cfg["http"]["max_workers"]),
                deadline_seconds=float(feeds_cfg["http"]["feed_deadline_seconds"]),
            )
    finally:
        if owns_client:
            client.close()

    write_json(
        data_dir / RAW_DIRECTORY,
        {"run_id": run_id, "success": directory_payload is not None, "payload": directory_payload},
    )

    feeds_dir = data_dir / RAW_FEEDS_DIR
    ensure_dir(feeds_dir)
    for stale in feeds_dir.glob("*.json"):
        stale.unlink()
    for result in results:
        write_json(feeds_dir / f"{slugify(result.retailer)}.json", {"run_id": run_id, **result.to_dict()})

    failed = sorted(result.retailer for result in results if not result.success)
    succeeded = len(results) - len(failed)
    # A failed proxy call returns no results at all; count against the config.
    expected = len(results) if feeds_cfg["proxy"]["enabled"] and results else len(specs)
    if expected and succeeded == 0:
        raise StageError("All retailer feeds failed")

    return {
        "run_id": run_id,
        "feeds_total": expected,
        "feeds_ok": succeeded,
        "failed_retailers": failed,
        "directory_ok": directory_payload is not None,
    }
