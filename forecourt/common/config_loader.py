"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from forecourt.common.errors import ConfigError
from forecourt.common.fs import read_yaml
from forecourt.common.http import RetryConfig, TimeoutConfig
from forecourt.common.models import NationalAverages, ReferenceLocation
from forecourt.common.schema import validate_engine_config, validate_feeds_config
from forecourt.pipeline.matching import MatchSettings
from forecourt.pipeline.pricing import PricingPolicy

CONFIG_FILES = ("feeds.yml", "engine.yml", "pricing_policy.yml")


@dataclass(frozen=True)
class ConfigBundle:
    feeds: dict
    engine: dict
    pricing_policy: PricingPolicy

    @property
    def match_settings(self) -> MatchSettings:
        matching = self.engine["matching"]
        return MatchSettings(
            exact_radius_deg=float(matching["exact_radius_deg"]),
            brand_radius_deg=float(matching["brand_radius_deg"]),
            allow_duplicate_claims=bool(matching["allow_duplicate_claims"]),
        )

    @property
    def reference_location(self) -> ReferenceLocation:
        location = self.engine["reference_location"]
        return ReferenceLocation(latitude=float(location["latitude"]), longitude=float(location["longitude"]))

    @property
    def average_defaults(self) -> NationalAverages:
        defaults = self.engine["national_average_defaults"]
        return NationalAverages(petrol=str(defaults["petrol"]), diesel=str(defaults["diesel"]))

    @property
    def timeout(self) -> TimeoutConfig:
        http = self.feeds["http"]
        return TimeoutConfig(connect=float(http["connect_timeout"]), read=float(http["read_timeout"]))

    @property
    def retry(self) -> RetryConfig:
        return RetryConfig(max_attempts=int(self.feeds["http"]["max_attempts"]))


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if not isinstance(base, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must contain a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    loaded = {}
    for name in CONFIG_FILES:
        overlay_path = overlay_config_dir / name if overlay_config_dir is not None else None
        loaded[name] = _load_yaml_with_overlay(config_dir / name, overlay_path)

    return ConfigBundle(
        feeds=validate_feeds_config(loaded["feeds.yml"], allow_unknown=allow_unknown),
        engine=validate_engine_config(loaded["engine.yml"], allow_unknown=allow_unknown),
        pricing_policy=PricingPolicy.from_config(loaded["pricing_policy.yml"]),
    )
