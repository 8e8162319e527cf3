"""
Stage B — Frame Segmentation & Noise Floor

Splits the sample buffer into fixed, non-overlapping frames, measures each
frame's RMS and asks the pitch estimator for a provisional frequency. Also
derives the adaptive noise threshold used by the gate in Stage C.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Callable, List, Optional, Union

import numpy as np

from .config import StageBConfig
from .detectors import PitchEstimator
from .models import FrameRecord

logger = logging.getLogger(__name__)

CancelCheck = Union[Callable[[], bool], threading.Event]


class AnalysisCancelled(RuntimeError):
    """Raised when the caller asks for an analysis to stop between frames."""


def _is_cancelled(should_cancel: Optional[CancelCheck]) -> bool:
    if should_cancel is None:
        return False
    if isinstance(should_cancel, threading.Event):
        return should_cancel.is_set()
    return bool(should_cancel())


def _accept(freq: Optional[float], min_hz: float, max_hz: float) -> Optional[float]:
    if freq is None:
        return None
    try:
        hz = float(freq)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(hz) or not (min_hz < hz < max_hz):
        return None
    return hz


def segment_frames(
    samples: np.ndarray,
    sr: int,
    estimator: PitchEstimator,
    config: Optional[StageBConfig] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> List[FrameRecord]:
    """
    One FrameRecord per ``frame_size`` block, in time order.

    The final block may be shorter than ``frame_size``; it is still measured
    and estimated. Estimates outside the open ``(min_hz, max_hz)`` band, and
    estimator failures, leave the frame unvoiced.
    """
    b_conf = config or StageBConfig()
    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    frame_size = int(b_conf.frame_size)
    decimals = int(b_conf.time_decimals)

    records: List[FrameRecord] = []
    for start in range(0, len(y), frame_size):
        if _is_cancelled(should_cancel):
            raise AnalysisCancelled(f"Analysis cancelled at sample {start} of {len(y)}")

        frame = y[start: start + frame_size]
        rms = float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))

        try:
            raw = estimator(frame)
        except Exception as e:
            logger.debug(f"Estimator failed on frame at sample {start}: {e}")
            raw = None

        records.append(FrameRecord(
            time=round(start / float(sr), decimals),
            hz=_accept(raw, b_conf.min_hz, b_conf.max_hz),
            rms=rms,
        ))
    return records


def estimate_noise_threshold(samples: np.ndarray, config: Optional[StageBConfig] = None) -> float:
    """
    Peak amplitude over a strided subsample, scaled by ``gate_fraction``.

    The strided peak is an approximation; it only has to be consistent for
    the same buffer. Empty or silent input yields 0.0.
    """
    b_conf = config or StageBConfig()
    stride = int(b_conf.noise_floor.get("stride", 1000))
    fraction = float(b_conf.noise_floor.get("gate_fraction", 0.08))

    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    if y.size == 0:
        return 0.0
    peak = float(np.max(np.abs(y[::stride])))
    return peak * fraction
