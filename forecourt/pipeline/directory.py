"""Authoritative site directory ingestion."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from forecourt.common.models import AuthoritativeSite
from forecourt.common.values import as_flag, first_present, safe_float

logger = logging.getLogger("forecourt.pipeline.directory")


def _upper(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list)):
        return ""
    return str(value).upper().strip()


def _site_rows(payload: Any) -> list:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        if not payload.get("success"):
            return []
        data = payload.get("data")
        if isinstance(data, list):
            return data
    return []


def _site_number(value: Any) -> int | str | None:
    # Site numbers are used as set members and ids, so only scalars qualify.
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _site_from_row(row: Mapping) -> AuthoritativeSite | None:
    site_no = _site_number(row.get("siteNo"))
    if site_no is None:
        return None
    return AuthoritativeSite(
        site_no=site_no,
        alt_site_no=_site_number(row.get("altSiteNo")) or 0,
        latitude=safe_float(first_present(row, ("lat", "latitude"))) or 0.0,
        longitude=safe_float(first_present(row, ("lng", "longitude"))) or 0.0,
        site_name=_upper(first_present(row, ("name", "siteName"))),
        street1=_upper(first_present(row, ("addr", "street1"))),
        town=_upper(row.get("town")),
        post_code=_upper(first_present(row, ("postcode", "postCode"))),
        brand=_upper(row.get("brand")),
        hours24=as_flag(first_present(row, ("h24", "hours24"))),
        hgv_access=as_flag(first_present(row, ("hgv", "hgvAccess"))),
        petrol=as_flag(row.get("petrol")),
        diesel=as_flag(row.get("diesel")),
        bands=str(row.get("bands") or ""),
    )


def ingest_directory(payload: Any) -> list[AuthoritativeSite]:
    """Build site records from a ``{success, data}`` envelope or a bare list.

    Anything unrecognisable, including ``None`` from a failed fetch, yields an
    empty list.
    """
    sites: list[AuthoritativeSite] = []
    rows = _site_rows(payload)
    dropped = 0
    for index, row in enumerate(rows):
        try:
            if not isinstance(row, Mapping):
                raise TypeError(f"row is {type(row).__name__}, not an object")
            site = _site_from_row(row)
        except Exception as exc:
            dropped += 1
            logger.warning(
                f"skipping directory row {index}: {exc}",
                extra={"source": "directory", "event": "SITE_SKIPPED", "status": "warn"},
            )
            continue
        if site is None:
            dropped += 1
            continue
        sites.append(site)

    if dropped:
        logger.warning(
            f"dropped {dropped} unusable directory rows",
            extra={"source": "directory", "event": "SITES_DROPPED", "status": "warn"},
        )
    logger.info(
        "directory ingested",
        extra={
            "source": "directory",
            "event": "DIRECTORY_INGESTED",
            "status": "ok",
            "rows_in": len(rows),
            "rows_out": len(sites),
        },
    )
    return sites
