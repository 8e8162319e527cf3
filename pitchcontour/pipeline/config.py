from __future__ import annotations

import copy
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    """Raised when a pipeline configuration cannot be used as given."""


CHANNEL_POLICIES = ("left_only", "right_only", "mono_sum")
DETECTOR_NAMES = ("yin", "acf")


# ------------------------------------------------------------
# Stage A Config (Load & Decode)
# ------------------------------------------------------------

@dataclass
class StageAConfig:
    # None keeps the file's native rate
    target_sample_rate: Optional[int] = None
    channel_handling: str = "left_only"  # "left_only", "right_only", "mono_sum"

    # Optional pre-filter applied before segmentation
    low_pass_filter: Dict[str, Any] = field(
        default_factory=lambda: {"enabled": False, "cutoff_hz": 5000.0, "order": 4}
    )


# ------------------------------------------------------------
# Stage B Config (Segmentation + Estimation + Noise Floor)
# ------------------------------------------------------------

@dataclass
class StageBConfig:
    frame_size: int = 2048

    # Open band of accepted estimates (Hz)
    min_hz: float = 25.0
    max_hz: float = 5000.0

    # Frame start times are rounded for display stability
    time_decimals: int = 2

    # Active estimator and per-estimator parameters
    detector: str = "yin"
    detectors: Dict[str, Dict[str, Any]] = field(
        default_factory=lambda: {
            "yin": {"threshold": 0.05, "probability_threshold": 0.1},
            "acf": {"threshold": 0.3},
        }
    )

    # Sparse peak scan used to derive the noise gate threshold
    noise_floor: Dict[str, Any] = field(
        default_factory=lambda: {"stride": 1000, "gate_fraction": 0.08}
    )


# ------------------------------------------------------------
# Stage C Config (Gate + Median Filter + Gap Filling)
# ------------------------------------------------------------

@dataclass
class StageCConfig:
    noise_gate_enabled: bool = True
    # Quiet detections above this frequency are treated as estimator noise
    artifact_bound_hz: float = 1500.0

    median_filter_enabled: bool = True
    median_window: int = 100
    min_valid_count: int = 3
    deviation_fraction: float = 0.5

    gap_filling_enabled: bool = True
    max_gap_frames: int = 12


# ------------------------------------------------------------
# Stage D Config (Statistics)
# ------------------------------------------------------------

@dataclass
class StageDConfig:
    stats_decimals: int = 1


@dataclass
class PipelineConfig:
    stage_a: StageAConfig = field(default_factory=StageAConfig)
    stage_b: StageBConfig = field(default_factory=StageBConfig)
    stage_c: StageCConfig = field(default_factory=StageCConfig)
    stage_d: StageDConfig = field(default_factory=StageDConfig)

    def validate(self) -> "PipelineConfig":
        """
        Fail fast on settings the pipeline cannot honour.

        Wrongly typed values (for example strings arriving through dotted
        overrides) are reported as ConfigurationError like any other bad value.
        Returns ``self`` so callers can chain ``config.validate()``.
        """
        a, b, c, d = self.stage_a, self.stage_b, self.stage_c, self.stage_d

        if a.target_sample_rate is not None and _integer(a.target_sample_rate, "target_sample_rate") <= 0:
            raise ConfigurationError(f"target_sample_rate must be positive, got {a.target_sample_rate}")
        if a.channel_handling not in CHANNEL_POLICIES:
            raise ConfigurationError(
                f"Unknown channel_handling '{a.channel_handling}' (expected one of {', '.join(CHANNEL_POLICIES)})"
            )
        lp = _mapping(a.low_pass_filter, "low_pass_filter")
        if lp.get("enabled", False):
            if _number(lp.get("cutoff_hz", 0.0), "low_pass_filter.cutoff_hz") <= 0.0:
                raise ConfigurationError("low_pass_filter.cutoff_hz must be positive")
            if _integer(lp.get("order", 0), "low_pass_filter.order") < 1:
                raise ConfigurationError("low_pass_filter.order must be at least 1")

        if _integer(b.frame_size, "frame_size") <= 0:
            raise ConfigurationError(f"frame_size must be positive, got {b.frame_size}")
        min_hz = _number(b.min_hz, "min_hz")
        max_hz = _number(b.max_hz, "max_hz")
        if min_hz < 0.0:
            raise ConfigurationError(f"min_hz must not be negative, got {min_hz}")
        if min_hz >= max_hz:
            raise ConfigurationError(f"min_hz ({min_hz}) must be below max_hz ({max_hz})")
        if _integer(b.time_decimals, "time_decimals") < 0:
            raise ConfigurationError("time_decimals must not be negative")
        if b.detector not in DETECTOR_NAMES:
            raise ConfigurationError(
                f"Unknown detector '{b.detector}' (expected one of {', '.join(DETECTOR_NAMES)})"
            )
        detectors = _mapping(b.detectors, "detectors")
        for name, params in detectors.items():
            for key, value in _mapping(params, f"detectors.{name}").items():
                _number(value, f"detectors.{name}.{key}")
        noise_floor = _mapping(b.noise_floor, "noise_floor")
        if _integer(noise_floor.get("stride", 0), "noise_floor.stride") <= 0:
            raise ConfigurationError("noise_floor.stride must be positive")
        gate_fraction = _number(noise_floor.get("gate_fraction", -1.0), "noise_floor.gate_fraction")
        if not 0.0 <= gate_fraction <= 1.0:
            raise ConfigurationError(f"noise_floor.gate_fraction must lie in [0, 1], got {gate_fraction}")

        if _number(c.artifact_bound_hz, "artifact_bound_hz") < 0.0:
            raise ConfigurationError("artifact_bound_hz must not be negative")
        window = _integer(c.median_window, "median_window")
        if window < 1:
            raise ConfigurationError(f"median_window must be at least 1, got {window}")
        span = median_span(window)
        min_count = _integer(c.min_valid_count, "min_valid_count")
        if not 1 <= min_count <= span:
            raise ConfigurationError(
                f"min_valid_count must lie in [1, {span}] for median_window={window}, got {min_count}"
            )
        if _number(c.deviation_fraction, "deviation_fraction") <= 0.0:
            raise ConfigurationError("deviation_fraction must be positive")
        if _integer(c.max_gap_frames, "max_gap_frames") < 0:
            raise ConfigurationError("max_gap_frames must not be negative")

        if _integer(d.stats_decimals, "stats_decimals") < 0:
            raise ConfigurationError("stats_decimals must not be negative")
        return self

    def check_frame_count(self, n_samples: int) -> int:
        """
        Number of frames ``n_samples`` will produce.

        Raises ConfigurationError when the median filter is enabled and its
        full window spans more frames than the recording has.
        """
        frame_size = int(self.stage_b.frame_size)
        n_frames = -(-int(n_samples) // frame_size)
        c = self.stage_c
        if c.median_filter_enabled and n_frames > 0 and median_span(c.median_window) > n_frames:
            raise ConfigurationError(
                f"median_window={c.median_window} needs {median_span(c.median_window)} frames, "
                f"but the recording has only {n_frames}"
            )
        return n_frames


def median_span(median_window: int) -> int:
    """Frames covered by a full median window: the frame plus ``W // 2`` on each side."""
    return 2 * (int(median_window) // 2) + 1


def _number(value: Any, name: str) -> float:
    # bool is an int subclass but never a meaningful setting here
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    return float(value)


def _integer(value: Any, name: str) -> int:
    number = _number(value, name)
    if not number.is_integer():
        raise ConfigurationError(f"{name} must be a whole number, got {value!r}")
    return int(number)


def _mapping(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} must be a mapping, got {value!r}")
    return value


# ------------------------------------------------------------
# Presets
# ------------------------------------------------------------

HIGH_FIDELITY_CONFIG = PipelineConfig()

# Gap bridging only, wider gaps, narrower band, permissive YIN threshold
BASIC_CONFIG = PipelineConfig(
    stage_b=StageBConfig(
        min_hz=50.0,
        max_hz=5000.0,
        detectors={
            "yin": {"threshold": 0.005, "probability_threshold": 0.1},
            "acf": {"threshold": 0.3},
        },
    ),
    stage_c=StageCConfig(
        noise_gate_enabled=False,
        median_filter_enabled=False,
        max_gap_frames=20,
    ),
)

PRESETS: Dict[str, PipelineConfig] = {
    "high_fidelity": HIGH_FIDELITY_CONFIG,
    "basic": BASIC_CONFIG,
}


def get_preset(name: str) -> PipelineConfig:
    """Return an independent copy of a named preset."""
    try:
        return copy.deepcopy(PRESETS[name.lower()])
    except KeyError:
        raise ConfigurationError(f"Unknown preset '{name}' (expected one of {', '.join(PRESETS)})")
