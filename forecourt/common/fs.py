"""Filesystem helpers.

Outputs are written to a sibling temp file and moved into place so a reader
never sees a half-written harvest or report.
"""

from __future__ import annotations

import csv
import json
import os
import re
from pathlib import Path
from typing import Iterable, Mapping

import yaml

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _replace_atomically(path: Path, write) -> None:
    ensure_dir(path.parent)
    tmp_path = path.with_name(f".{path.name}.tmp")
    with tmp_path.open("w", encoding="utf-8", newline="") as f:
        write(f)
    os.replace(tmp_path, path)


def write_json(path: Path, payload) -> None:
    def write(f) -> None:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")

    _replace_atomically(path, write)


def read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_csv(path: Path, headers: list[str], rows: Iterable[Mapping[str, object]]) -> None:
    def write(f) -> None:
        writer = csv.DictWriter(f, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)

    _replace_atomically(path, write)


def slugify(name: str) -> str:
    """``"Motor Fuel Group"`` -> ``"motor_fuel_group"``."""
    return _SLUG_RE.sub("_", name.lower()).strip("_") or "feed"
