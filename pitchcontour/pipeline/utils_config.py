# pitchcontour/pipeline/utils_config.py
from __future__ import annotations

import json
from dataclasses import is_dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple

from .config import ConfigurationError

# Mappings of per-name parameter dicts that may gain new parameter keys
OPEN_PARAMETER_MAPS = ("detectors",)


def apply_dotted_overrides(target: Any, overrides: Mapping[str, Any]) -> None:
    """
    Apply dotted-path overrides into nested config dataclasses/dicts.

    ``{"stage_c.max_gap_frames": 20, "stage_b.detectors.yin.threshold": 0.1}``

    Unknown attributes and unknown dict keys raise ConfigurationError. The one
    exception is a parameter dict under ``detectors.<name>``, which may gain
    new keys so detector options can be passed through.
    """
    for path, value in (overrides or {}).items():
        parts = str(path).split(".")
        cur = target
        for i, part in enumerate(parts):
            last = (i == len(parts) - 1)
            where = ".".join(parts[: i + 1])

            if isinstance(cur, dict):
                if last:
                    open_level = i >= 2 and parts[i - 2] in OPEN_PARAMETER_MAPS
                    if part not in cur and not open_level:
                        raise ConfigurationError(f"Unknown config key '{where}'")
                    cur[part] = value
                    break
                if not isinstance(cur.get(part), dict):
                    raise ConfigurationError(f"Unknown config key '{where}'")
                cur = cur[part]
                continue

            if not is_dataclass(cur) or not hasattr(cur, part):
                raise ConfigurationError(f"Unknown config key '{where}'")
            if last:
                setattr(cur, part, value)
                break
            cur = getattr(cur, part)


def parse_override(text: str) -> Tuple[str, Any]:
    """Parse a ``key=value`` string; values are read as JSON when possible."""
    if "=" not in text:
        raise ConfigurationError(f"Override '{text}' must look like key=value")
    key, raw = text.split("=", 1)
    key = key.strip()
    if not key:
        raise ConfigurationError(f"Override '{text}' has an empty key")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key, value


def overrides_from_pairs(pairs: Iterable[str]) -> Dict[str, Any]:
    return dict(parse_override(p) for p in pairs)
