"""
Stage D — Summary Statistics

Collapses the cleaned contour into min / max / mean frequency.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from .config import StageDConfig
from .models import NO_DATA, FrameRecord, SummaryStatistics


def voiced_frequencies(contour: List[FrameRecord]) -> np.ndarray:
    return np.array([r.hz for r in contour if r.hz is not None], dtype=np.float64)


def compute_statistics(
    contour: List[FrameRecord],
    config: Optional[StageDConfig] = None,
) -> SummaryStatistics:
    """Rounded extrema and mean of the voiced frames, or NO_DATA when there are none."""
    d_conf = config or StageDConfig()
    freqs = voiced_frequencies(contour)
    if freqs.size == 0:
        return NO_DATA

    decimals = int(d_conf.stats_decimals)
    return SummaryStatistics(
        min_hz=round(float(np.min(freqs)), decimals),
        max_hz=round(float(np.max(freqs)), decimals),
        mean_hz=round(float(np.mean(freqs)), decimals),
    )
