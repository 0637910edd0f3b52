"""Key normalisation shared by the matcher and the pricing rules."""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")


def normalise_key(raw: object) -> str:
    """Upper-case, trim and drop every non-alphanumeric character.

    ``"sw1a 1aa"`` and ``"SW1A-1AA"`` both become ``"SW1A1AA"``; ``"Sainsbury's"``
    becomes ``"SAINSBURYS"``. ``None`` and empty values give ``""``.
    """
    if raw is None:
        return ""
    return _NON_ALNUM_RE.sub("", str(raw).upper().strip())


def brand_town_key(brand: object, town: object) -> str | None:
    norm_brand = normalise_key(brand)
    norm_town = normalise_key(town)
    if not norm_brand or not norm_town:
        return None
    return f"{norm_brand}_{norm_town}"
