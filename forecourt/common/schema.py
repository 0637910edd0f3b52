"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from forecourt.common.errors import ConfigError


def _assert_mapping(obj: object, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    _assert_mapping(obj, ctx)
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_feeds_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top = {"retailers", "proxy", "directory", "http"}
    _assert_required_keys(cfg, top, "feeds config")
    _assert_no_unknown_keys(cfg, top, "feeds config", allow_unknown)

    if not isinstance(cfg["retailers"], list):
        raise ConfigError("feeds.retailers must be a list")
    names: list[str] = []
    for idx, retailer in enumerate(cfg["retailers"]):
        _assert_required_keys(retailer, {"name", "url"}, f"retailers[{idx}]")
        names.append(retailer["name"])
    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate retailer names: {', '.join(sorted(dupes))}")

    _assert_required_keys(cfg["proxy"], {"enabled", "url"}, "proxy")
    _assert_required_keys(cfg["directory"], {"url"}, "directory")
    _assert_required_keys(
        cfg["http"],
        {"max_workers", "connect_timeout", "read_timeout", "feed_deadline_seconds", "max_attempts"},
        "http",
    )
    for key in ("max_workers", "connect_timeout", "read_timeout", "feed_deadline_seconds", "max_attempts"):
        _assert_positive(cfg["http"][key], f"http.{key}")
    return cfg


def validate_engine_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top = {"national_average_defaults", "reference_location", "matching", "average_scope"}
    _assert_required_keys(cfg, top, "engine config")
    _assert_no_unknown_keys(cfg, top, "engine config", allow_unknown)

    _assert_required_keys(cfg["national_average_defaults"], {"petrol", "diesel"}, "national_average_defaults")
    _assert_required_keys(cfg["reference_location"], {"latitude", "longitude"}, "reference_location")
    _assert_required_keys(
        cfg["matching"],
        {"exact_radius_deg", "brand_radius_deg", "allow_duplicate_claims"},
        "matching",
    )
    _assert_positive(cfg["matching"]["exact_radius_deg"], "matching.exact_radius_deg")
    _assert_positive(cfg["matching"]["brand_radius_deg"], "matching.brand_radius_deg")
    if cfg["average_scope"] not in ("matched", "all"):
        raise ConfigError("average_scope must be 'matched' or 'all'")
    return cfg

