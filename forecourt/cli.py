"""CLI entrypoint for the forecourt fuel price pipeline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from forecourt.common.config_loader import ConfigBundle, load_all_configs
from forecourt.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from forecourt.common.errors import ConfigError, PipelineError
from forecourt.common.logging import build_logger, log_event
from forecourt.common.models import ReferenceLocation
from forecourt.common.time_utils import generate_run_id, parse_as_of
from forecourt.harvest.runner import run_harvest
from forecourt.pipeline.matching import MatchSettings
from forecourt.pipeline.reconcile import run_reconcile


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--as-of", default=None, help="ISO timestamp pinning the run clock")
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    parser.add_argument("--query", default=None)
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--scope", default=None, choices=["matched", "all"])
    claims = parser.add_mutually_exclusive_group()
    claims.add_argument("--allow-duplicate-claims", dest="duplicate_claims", action="store_true", default=None)
    claims.add_argument("--first-claim-wins", dest="duplicate_claims", action="store_false")
    return parser.parse_args(argv)


def _reference(args: argparse.Namespace, bundle: ConfigBundle) -> ReferenceLocation:
    default = bundle.reference_location
    if args.lat is None and args.lon is None:
        return default
    if args.lat is None or args.lon is None:
        raise ConfigError("--lat and --lon must be given together")
    return ReferenceLocation(latitude=args.lat, longitude=args.lon)


def _settings(args: argparse.Namespace, bundle: ConfigBundle) -> MatchSettings:
    settings = bundle.match_settings
    if args.duplicate_claims is None:
        return settings
    return MatchSettings(
        exact_radius_deg=settings.exact_radius_deg,
        brand_radius_deg=settings.brand_radius_deg,
        allow_duplicate_claims=args.duplicate_claims,
    )


def execute_stage(stage: str, args: argparse.Namespace, bundle: ConfigBundle, data_dir: Path, run_id: str, as_of: str) -> dict:
    if stage == "harvest":
        return run_harvest(bundle, data_dir, run_id)
    if stage == "reconcile":
        return run_reconcile(
            bundle,
            data_dir,
            run_id,
            as_of,
            query=args.query,
            reference=_reference(args, bundle),
            scope=args.scope,
            settings=_settings(args, bundle),
        )
    raise ValueError(f"Unknown stage: {stage}")


def _is_partial(stage: str, result: dict) -> bool:
    if stage == "harvest":
        return bool(result.get("failed_retailers")) or not result.get("directory_ok", True)
    return result.get("status") == "partial"


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    as_of = parse_as_of(args.as_of)
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        bundle = load_all_configs(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    except ConfigError as exc:
        log_event(logger, str(exc), event="CONFIG_FAIL", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL

    stages = STAGES if args.command == "all" else (args.command,)
    had_partial_failure = False

    for stage in stages:
        log_event(logger, "stage start", stage=stage, event="STAGE_START", status="ok")
        try:
            result = execute_stage(stage, args, bundle, data_dir, run_id, as_of)
        except PipelineError as exc:
            had_partial_failure = True
            log_event(
                logger,
                f"stage failed: {exc}",
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            if args.strict or isinstance(exc, ConfigError):
                return EXIT_HARD_FAIL
            continue
        except Exception as exc:
            log_event(
                logger,
                f"unexpected failure: {exc}",
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code="UNEXPECTED_ERROR",
            )
            return EXIT_HARD_FAIL

        if _is_partial(stage, result):
            had_partial_failure = True
        log_event(logger, "stage end", stage=stage, event="STAGE_END", status="ok")

    if had_partial_failure:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
