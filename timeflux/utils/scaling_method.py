from __future__ import annotations

import warnings
from typing import Optional, Union

from timeflux.utils.semantics import SCALING_METHODS_CANONICAL

CANONICAL = set(SCALING_METHODS_CANONICAL)


def normalize_scaling_method(raw: Optional[Union[str, bool]]) -> str:
    """
    Normalize scaling_method to canonical strings (strict, explicit).

    Canonical:
      - median_mad
      - mean_sd

    Accepted aliases:
      - mad, median, robust, True -> median_mad
      - sd, mean, zscore, False   -> mean_sd
    """
    if raw is None:
        return "median_mad"
    if isinstance(raw, bool):
        return "median_mad" if raw else "mean_sd"

    s = str(raw).strip()
    if not s:
        return "median_mad"

    key = s.lower()

    alias_map = {
        "median_mad": "median_mad",
        "mad": "median_mad",
        "median": "median_mad",
        "robust": "median_mad",
        "mean_sd": "mean_sd",
        "sd": "mean_sd",
        "mean": "mean_sd",
        "zscore": "mean_sd",
    }

    if key in alias_map:
        out = alias_map[key]
        if out != key and key not in CANONICAL:
            warnings.warn(
                f"scaling_method={s!r} is an alias; prefer {out!r}.",
                category=DeprecationWarning,
                stacklevel=2,
            )
        return out

    raise ValueError(
        f"Unsupported scaling_method={s!r}. "
        "Use one of: 'median_mad', 'mean_sd'."
    )


def uses_median_mad(raw: Optional[Union[str, bool]]) -> bool:
    return normalize_scaling_method(raw) == "median_mad"
