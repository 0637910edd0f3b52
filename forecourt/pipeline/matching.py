"""Reconcile live feed stations against the authoritative site directory.

Live stations and directory sites share no key, so each live station tries
three strategies in order: postcode, planar proximity gated by brand, and
brand plus town. Directory sites left unclaimed are synthesised with the
supplied national averages so the directory is always fully represented.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable

from forecourt.common.geo import planar_proximity
from forecourt.common.keys import brand_town_key, normalise_key
from forecourt.common.models import (
    AuthoritativeSite,
    CanonicalStation,
    MatchResult,
    NationalAverages,
    ReconciledStation,
)
from forecourt.common.time_utils import utc_timestamp_iso
from forecourt.common.values import safe_float

logger = logging.getLogger("forecourt.pipeline.matching")

STRATEGY_POSTCODE = "postcode"
STRATEGY_PROXIMITY = "proximity"
STRATEGY_BRAND_TOWN = "brand_town"


@dataclass(frozen=True)
class MatchSettings:
    exact_radius_deg: float = 0.001
    brand_radius_deg: float = 0.01
    # True keeps the historical behaviour where two live stations may both
    # claim one site. False makes the first claim win.
    allow_duplicate_claims: bool = True


@dataclass
class SiteIndex:
    by_postcode: dict[str, list[AuthoritativeSite]] = field(default_factory=lambda: defaultdict(list))
    by_name: dict[str, list[AuthoritativeSite]] = field(default_factory=lambda: defaultdict(list))
    by_brand_town: dict[str, list[AuthoritativeSite]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def build(cls, sites: Iterable[AuthoritativeSite]) -> "SiteIndex":
        index = cls()
        for site in sites:
            postcode = normalise_key(site.post_code)
            if postcode:
                index.by_postcode[postcode].append(site)
            name = normalise_key(site.site_name)
            if name:
                index.by_name[name].append(site)
            key = brand_town_key(site.brand, site.town)
            if key is not None:
                index.by_brand_town[key].append(site)
        return index

    def sizes(self) -> dict[str, int]:
        return {
            "postcode": len(self.by_postcode),
            "name": len(self.by_name),
            "brand_town": len(self.by_brand_town),
        }


def _by_postcode(
    station: CanonicalStation,
    index: SiteIndex,
    sites: list[AuthoritativeSite],
    settings: MatchSettings,
    available: Callable[[AuthoritativeSite], bool],
) -> AuthoritativeSite | None:
    postcode = normalise_key(station.postcode)
    if not postcode:
        return None
    candidates = [site for site in index.by_postcode.get(postcode, []) if available(site)]
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]
    brand = normalise_key(station.brand)
    for candidate in candidates:
        if normalise_key(candidate.brand) == brand:
            return candidate
    return candidates[0]


def _by_proximity(
    station: CanonicalStation,
    index: SiteIndex,
    sites: list[AuthoritativeSite],
    settings: MatchSettings,
    available: Callable[[AuthoritativeSite], bool],
) -> AuthoritativeSite | None:
    if not station.latitude or not station.longitude:
        return None
    brand = normalise_key(station.brand)
    closest = None
    threshold = settings.brand_radius_deg
    for site in sites:
        distance = planar_proximity(station.latitude, station.longitude, site.latitude, site.longitude)
        if distance >= threshold or not available(site):
            continue
        site_brand = normalise_key(site.brand)
        brands_match = brand in site_brand or site_brand in brand
        if distance < settings.exact_radius_deg or brands_match:
            threshold = distance
            closest = site
    return closest


def _by_brand_town(
    station: CanonicalStation,
    index: SiteIndex,
    sites: list[AuthoritativeSite],
    settings: MatchSettings,
    available: Callable[[AuthoritativeSite], bool],
) -> AuthoritativeSite | None:
    key = brand_town_key(station.brand, station.town)
    if key is None:
        return None
    for candidate in index.by_brand_town.get(key, []):
        if available(candidate):
            return candidate
    return None


MATCH_STRATEGIES = (
    (STRATEGY_POSTCODE, _by_postcode),
    (STRATEGY_PROXIMITY, _by_proximity),
    (STRATEGY_BRAND_TOWN, _by_brand_town),
)


def find_site(
    station: CanonicalStation,
    index: SiteIndex,
    sites: list[AuthoritativeSite],
    settings: MatchSettings,
    available: Callable[[AuthoritativeSite], bool] = lambda _site: True,
) -> tuple[str | None, AuthoritativeSite | None]:
    for name, strategy in MATCH_STRATEGIES:
        site = strategy(station, index, sites, settings, available)
        if site is not None:
            return name, site
    return None, None


def _merge(station: CanonicalStation, site: AuthoritativeSite) -> ReconciledStation:
    return ReconciledStation(
        id=f"matched-{site.site_no}-{station.id}",
        site_no=site.site_no,
        alt_site_no=site.alt_site_no,
        brand=station.brand,
        name=site.site_name or station.name,
        address=site.street1 or station.address,
        town=site.town or station.town,
        postcode=site.post_code or station.postcode,
        latitude=site.latitude,
        longitude=site.longitude,
        petrol_price=station.petrol_price,
        diesel_price=station.diesel_price,
        super_price=station.super_price,
        has_live_pricing=True,
        last_updated=station.last_updated,
        hours24=site.hours24,
        hgv_access=site.hgv_access,
        petrol=site.petrol,
        diesel=site.diesel,
        bands=site.bands,
        facilities=site.facilities,
        source_station_id=station.id,
    )


def _synthesise(site: AuthoritativeSite, averages: NationalAverages | None, as_of: str) -> ReconciledStation:
    return ReconciledStation(
        id=f"directory-{site.site_no}",
        site_no=site.site_no,
        alt_site_no=site.alt_site_no,
        brand=site.brand,
        name=site.site_name,
        address=site.street1,
        town=site.town,
        postcode=site.post_code,
        latitude=site.latitude,
        longitude=site.longitude,
        petrol_price=safe_float(averages.petrol) if averages else None,
        diesel_price=safe_float(averages.diesel) if averages else None,
        super_price=None,
        has_live_pricing=False,
        last_updated=as_of,
        hours24=site.hours24,
        hgv_access=site.hgv_access,
        petrol=site.petrol,
        diesel=site.diesel,
        bands=site.bands,
        facilities=site.facilities,
    )


def match_stations(
    live: list[CanonicalStation],
    directory: list[AuthoritativeSite],
    averages: NationalAverages | None,
    *,
    settings: MatchSettings | None = None,
    as_of: str | None = None,
) -> MatchResult:
    settings = settings or MatchSettings()
    as_of = as_of or utc_timestamp_iso()
    index = SiteIndex.build(directory)

    matched: list[ReconciledStation] = []
    unmatched: list[CanonicalStation] = []
    claimed: set = set()
    strategy_counts = {name: 0 for name, _strategy in MATCH_STRATEGIES}

    if settings.allow_duplicate_claims:
        def available(_site: AuthoritativeSite) -> bool:
            return True
    else:
        def available(site: AuthoritativeSite) -> bool:
            return site.site_no not in claimed

    for station in live:
        strategy, site = find_site(station, index, directory, settings, available)
        if site is None:
            unmatched.append(station)
            continue
        claimed.add(site.site_no)
        strategy_counts[strategy] += 1
        matched.append(_merge(station, site))

    for site in directory:
        if site.site_no in claimed:
            continue
        if site.petrol or site.diesel:
            matched.append(_synthesise(site, averages, as_of))

    live_count = sum(1 for station in matched if station.has_live_pricing)
    logger.info(
        f"matched {live_count} live stations against {len(directory)} sites",
        extra={
            "stage": "reconcile",
            "event": "MATCH_COMPLETE",
            "status": "ok",
            "rows_in": len(live),
            "rows_out": len(matched),
            "source": ",".join(f"{k}={v}" for k, v in sorted(index.sizes().items())),
        },
    )
    return MatchResult(
        matched=matched,
        unmatched=unmatched,
        live_count=live_count,
        strategy_counts=strategy_counts,
    )
