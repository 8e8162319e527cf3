"""Pipeline package.

Stage modules, in the order a recording flows through them:

- ``stage_a``: load & decode
- ``stage_b``: frame segmentation, per-frame estimation, noise floor
- ``stage_c``: noise gate, median outlier filter, gap filling
- ``stage_d``: summary statistics

``analyze`` chains stages B to D over an in-memory buffer; ``analyze_file``
runs Stage A first.
"""

from __future__ import annotations

from .analyze import analyze, analyze_file
from .config import (
    BASIC_CONFIG,
    HIGH_FIDELITY_CONFIG,
    ConfigurationError,
    PipelineConfig,
    get_preset,
)
from .detectors import AutocorrelationDetector, BasePitchDetector, YinDetector, create_detector
from .models import AnalysisResult, AnalysisStatus, FrameRecord, SummaryStatistics
from .stage_a import DecodeError, load_audio
from .stage_b import AnalysisCancelled

__all__ = [
    "analyze",
    "analyze_file",
    "load_audio",
    "create_detector",
    "BasePitchDetector",
    "YinDetector",
    "AutocorrelationDetector",
    "PipelineConfig",
    "HIGH_FIDELITY_CONFIG",
    "BASIC_CONFIG",
    "get_preset",
    "AnalysisResult",
    "AnalysisStatus",
    "FrameRecord",
    "SummaryStatistics",
    "ConfigurationError",
    "DecodeError",
    "AnalysisCancelled",
]
