# pitchcontour/pipeline/detectors.py
from __future__ import annotations

from typing import Any, Callable, Optional, Union

import numpy as np

# Prefer scipy.fft over numpy.fft for speed
try:
    import scipy.fft
    _FFT_LIB = scipy.fft
except ImportError:
    _FFT_LIB = np.fft

from .config import ConfigurationError, StageBConfig


# Anything that maps one frame of samples to a frequency (or None)
PitchEstimator = Callable[[np.ndarray], Optional[float]]


# --------------------------------------------------------------------------------------
# Utility
# --------------------------------------------------------------------------------------
def _safe_float(x: Any, default: float) -> float:
    try:
        return float(x)
    except Exception:
        return default


def _fft_size(n: int) -> int:
    size = 2 ** int(np.ceil(np.log2(max(n, 1))))
    if _FFT_LIB is not np.fft and hasattr(_FFT_LIB, "next_fast_len"):
        size = _FFT_LIB.next_fast_len(n)
    return int(size)


def _parabolic_offset(s0: float, s1: float, s2: float) -> float:
    denom = 2.0 * (2.0 * s1 - s2 - s0)
    if abs(denom) < 1e-12:
        return 0.0
    return (s2 - s0) / denom


def _yin_difference(x: np.ndarray) -> np.ndarray:
    """
    YIN difference function d(tau) for tau in [0, len(x) // 2).

    d(tau) = sum_{j < W} (x[j] - x[j + tau])^2 with W = len(x) // 2, expanded
    into energy terms and an FFT cross-correlation.
    """
    w = len(x) // 2
    cum = np.concatenate(([0.0], np.cumsum(x * x)))
    taus = np.arange(w)
    energy_head = cum[w]
    energy_shift = cum[taus + w] - cum[taus]

    n_fft = _fft_size(len(x) + w)
    X = _FFT_LIB.rfft(x, n=n_fft)
    Y = _FFT_LIB.rfft(x[:w], n=n_fft)
    corr = _FFT_LIB.irfft(X * np.conj(Y), n=n_fft)[:w]

    d = energy_head + energy_shift - 2.0 * corr
    return np.maximum(d, 0.0)


def _cumulative_mean_normalized(d: np.ndarray) -> np.ndarray:
    out = np.ones_like(d)
    if len(d) < 2:
        return out
    running = np.cumsum(d[1:])
    taus = np.arange(1, len(d))
    np.divide(d[1:] * taus, running, out=out[1:], where=running > 1e-12)
    return out


def _autocorr_pitch(
    frame: np.ndarray,
    sr: int,
    fmin: float,
    fmax: float,
    threshold: float = 0.1,
) -> Optional[float]:
    """
    ACF pitch for a single frame.
    Mean removal, zero-lag energy normalisation and strict neighbour checks
    for peak picking; returns the lag of the highest qualifying peak.
    """
    frame_length = len(frame)
    lag_min = max(1, int(sr / max(fmax, 1e-6)))
    # lag_max + 1 must stay inside the frame for the neighbour check
    lag_max = min(int(sr / max(fmin, 1e-6)), frame_length - 3)
    if lag_min >= lag_max:
        return None

    x = frame - np.mean(frame)
    n_fft = _fft_size(2 * frame_length - 1)
    X = _FFT_LIB.rfft(x, n=n_fft)
    ac = _FFT_LIB.irfft(X * np.conj(X), n=n_fft)[:frame_length]

    c0 = ac[0]
    if c0 <= 1e-12:
        return None
    norm_corr = ac / c0

    center = norm_corr[lag_min: lag_max + 1]
    left = norm_corr[lag_min - 1: lag_max]
    right = norm_corr[lag_min + 1: lag_max + 2]
    is_peak = (center > threshold) & (center > left) & (center > right)
    if not np.any(is_peak):
        return None

    masked = np.where(is_peak, center, -1.0)
    best = int(np.argmax(masked))
    lag = best + lag_min
    offset = _parabolic_offset(norm_corr[lag - 1], norm_corr[lag], norm_corr[lag + 1])
    return float(sr / (lag - offset))


# --------------------------------------------------------------------------------------
# Detector base + implementations
# --------------------------------------------------------------------------------------
class BasePitchDetector:
    """
    Single-frame fundamental-frequency estimator.
    Must implement: estimate(frame) -> Hz or None
    """

    def __init__(
        self,
        sr: int,
        fmin: float = 25.0,
        fmax: float = 5000.0,
        threshold: float = 0.10,
        **kwargs: Any,  # absorb unknown config keys safely
    ):
        self.sr = int(sr)
        self.fmin = float(fmin)
        self.fmax = float(fmax)
        self.threshold = float(threshold)
        self.kwargs = kwargs

    def estimate(self, frame: np.ndarray) -> Optional[float]:
        raise NotImplementedError

    def __call__(self, frame: np.ndarray) -> Optional[float]:
        return self.estimate(frame)


class YinDetector(BasePitchDetector):
    """
    YIN (de Cheveigné & Kawahara): difference function, cumulative mean
    normalisation, absolute threshold and parabolic interpolation.

    ``threshold`` bounds the normalised difference at the chosen lag;
    ``probability_threshold`` rejects estimates whose ``1 - d'(tau)`` is lower.
    """

    def __init__(self, sr: int, threshold: float = 0.10, probability_threshold: float = 0.1, **kwargs: Any):
        super().__init__(sr, threshold=threshold, **kwargs)
        self.probability_threshold = _safe_float(probability_threshold, 0.1)

    def estimate(self, frame: np.ndarray) -> Optional[float]:
        x = np.asarray(frame, dtype=np.float64).reshape(-1)
        if len(x) < 8 or not np.any(x):
            return None

        cmnd = _cumulative_mean_normalized(_yin_difference(x))
        tau_min = max(2, int(self.sr / max(self.fmax, 1e-6)))
        tau_max = min(len(cmnd) - 1, int(np.ceil(self.sr / max(self.fmin, 1e-6))))
        if tau_min >= tau_max:
            return None

        below = np.nonzero(cmnd[tau_min:tau_max] < self.threshold)[0]
        if below.size == 0:
            return None

        # Walk down to the bottom of the first dip under the threshold
        tau = int(below[0]) + tau_min
        while tau + 1 < tau_max and cmnd[tau + 1] < cmnd[tau]:
            tau += 1

        if 1.0 - cmnd[tau] < self.probability_threshold:
            return None

        better_tau = float(tau)
        if 0 < tau < len(cmnd) - 1:
            better_tau += _parabolic_offset(cmnd[tau - 1], cmnd[tau], cmnd[tau + 1])
        if better_tau <= 0.0:
            return None
        return float(self.sr / better_tau)


class AutocorrelationDetector(BasePitchDetector):
    """Normalised-autocorrelation peak picker; cheaper and less octave-safe than YIN."""

    def estimate(self, frame: np.ndarray) -> Optional[float]:
        x = np.asarray(frame, dtype=np.float64).reshape(-1)
        if len(x) < 8:
            return None
        return _autocorr_pitch(x, sr=self.sr, fmin=self.fmin, fmax=self.fmax, threshold=self.threshold)


_DETECTORS = {
    "yin": YinDetector,
    "acf": AutocorrelationDetector,
}


def create_detector(sr: int, config: Union[StageBConfig, None] = None) -> BasePitchDetector:
    """Build the estimator named by ``config.detector`` with its parameters."""
    b_conf = config or StageBConfig()
    try:
        cls = _DETECTORS[b_conf.detector]
    except KeyError:
        raise ConfigurationError(f"Unknown detector '{b_conf.detector}'")
    kwargs = dict(b_conf.detectors.get(b_conf.detector, {}) or {})
    kwargs.setdefault("fmin", b_conf.min_hz)
    kwargs.setdefault("fmax", b_conf.max_hz)
    return cls(sr, **kwargs)
