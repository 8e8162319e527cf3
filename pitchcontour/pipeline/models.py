# pitchcontour/pipeline/models.py
"""Dataclasses and enums shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AnalysisStatus(str, Enum):
    OK = "ok"
    EMPTY_INPUT = "empty_input"              # no samples, no frames
    NO_PITCH_DETECTED = "no_pitch_detected"  # frames exist, none voiced


@dataclass(frozen=True)
class FrameRecord:
    time: float                  # seconds, frame start (rounded)
    hz: Optional[float]          # None if unvoiced
    rms: float = 0.0             # frame RMS energy (linear)

    @property
    def voiced(self) -> bool:
        return self.hz is not None


@dataclass(frozen=True)
class SummaryStatistics:
    """
    Aggregate frequency statistics over the voiced frames of a contour.

    All three values are ``None`` together when no voiced frame exists;
    that is the "no data" state, distinct from any real frequency.
    """
    min_hz: Optional[float] = None
    max_hz: Optional[float] = None
    mean_hz: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.mean_hz is not None


NO_DATA = SummaryStatistics()


@dataclass
class AnalysisResult:
    contour: List[FrameRecord]
    statistics: SummaryStatistics
    status: AnalysisStatus = AnalysisStatus.OK
    noise_threshold: float = 0.0
    sample_rate: int = 0
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def __iter__(self):
        # Tuple-style unpacking: contour, stats = analyze(...)
        return iter((self.contour, self.statistics))

    @property
    def voiced_frames(self) -> int:
        return sum(1 for r in self.contour if r.voiced)
