"""
Stage C — Contour Cleaning

Three independent passes over the frame sequence, each returning a new list:

1. Noise gate: quiet high-frequency detections are dropped.
2. Median outlier filter: octave jumps are snapped to the local median.
3. Gap filler: short unvoiced runs are bridged with the last voiced value.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

import numpy as np

from .config import ConfigurationError, StageCConfig, median_span
from .models import FrameRecord


def _hz_array(records: List[FrameRecord]) -> np.ndarray:
    # 0.0 marks unvoiced frames inside this module only
    return np.array([r.hz if r.hz is not None else 0.0 for r in records], dtype=np.float64)


def apply_noise_gate(
    records: List[FrameRecord],
    noise_threshold: float,
    config: Optional[StageCConfig] = None,
) -> List[FrameRecord]:
    """
    Unvoice frames reporting a frequency above ``artifact_bound_hz`` at an
    RMS below ``noise_threshold``. A threshold of 0 disables the gate.
    """
    c_conf = config or StageCConfig()
    if noise_threshold <= 0.0:
        return list(records)

    bound = float(c_conf.artifact_bound_hz)
    out = []
    for r in records:
        if r.hz is not None and r.hz > bound and r.rms < noise_threshold:
            out.append(replace(r, hz=None))
        else:
            out.append(r)
    return out


def local_median(values: np.ndarray) -> float:
    """Element at index ``len // 2`` of the sorted values."""
    ordered = np.sort(values)
    return float(ordered[len(ordered) // 2])


def apply_median_filter(
    records: List[FrameRecord],
    config: Optional[StageCConfig] = None,
) -> List[FrameRecord]:
    """
    Snap frames that stray from their window median back onto it.

    With ``H = median_window // 2``, only frames with a full ``[i-H, i+H]``
    window are judged; the first and last ``H`` frames pass through as-is.
    Windows are always read from the input sequence, never from frames this
    pass has already corrected, so the result does not depend on scan order.

    A window spanning more frames than the contour holds is a
    ConfigurationError.
    """
    c_conf = config or StageCConfig()
    if records and median_span(c_conf.median_window) > len(records):
        raise ConfigurationError(
            f"median_window={c_conf.median_window} is larger than the contour ({len(records)} frames)"
        )
    half = int(c_conf.median_window) // 2
    min_count = int(c_conf.min_valid_count)
    fraction = float(c_conf.deviation_fraction)

    hz = _hz_array(records)
    out = list(records)
    for i in range(half, len(records) - half):
        current = hz[i]
        if current <= 0.0:
            continue

        window = hz[i - half: i + half + 1]
        voiced = window[window > 0.0]
        if voiced.size < min_count:
            continue

        median = local_median(voiced)
        if abs(current - median) > median * fraction:
            out[i] = replace(records[i], hz=median)
    return out


def fill_short_gaps(
    records: List[FrameRecord],
    config: Optional[StageCConfig] = None,
) -> List[FrameRecord]:
    """
    Bridge unvoiced runs of at most ``max_gap_frames`` with the preceding
    voiced frequency.

    A run is filled only when voiced frames exist on both sides of it, so
    leading and trailing silence always stays unvoiced; longer runs are
    treated as genuine silence.
    """
    c_conf = config or StageCConfig()
    max_gap = int(c_conf.max_gap_frames)

    out = list(records)
    last_valid_hz: Optional[float] = None
    gap_indices: List[int] = []

    for i, r in enumerate(records):
        if r.hz is None:
            gap_indices.append(i)
            continue

        if gap_indices and len(gap_indices) <= max_gap and last_valid_hz is not None:
            for j in gap_indices:
                out[j] = replace(records[j], hz=last_valid_hz)
        gap_indices = []
        last_valid_hz = r.hz

    return out
