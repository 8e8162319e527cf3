"""
Stage A — Load & Decode

Turns an audio file (path or raw bytes) into a single-channel float sample
buffer. Decoding is an external concern for the analysis core: failures
surface as DecodeError and are never retried.
"""

from __future__ import annotations

import io
import logging
import os
import warnings
from typing import Optional, Tuple, Union

import numpy as np
import scipy.signal
import soundfile as sf

try:
    import librosa
except ImportError:
    librosa = None

from .config import PipelineConfig, StageAConfig

logger = logging.getLogger(__name__)

AudioSource = Union[str, os.PathLike, bytes, bytearray]


class DecodeError(RuntimeError):
    """Raised when an audio source cannot be decoded into samples."""


def _select_channel(audio: np.ndarray, policy: str) -> np.ndarray:
    """Reduce a [channels, samples] array to one channel."""
    if audio.ndim == 1:
        return audio
    if audio.shape[0] == 1:
        return audio[0]
    if policy == "mono_sum":
        return np.mean(audio, axis=0)
    if policy == "right_only":
        return audio[1]
    return audio[0]


def _resample(audio: np.ndarray, sr: int, target_sr: Optional[int]) -> Tuple[np.ndarray, int]:
    if not target_sr or int(target_sr) == sr or audio.size == 0:
        return audio, sr
    target_sr = int(target_sr)
    if librosa is not None:
        return librosa.resample(audio, orig_sr=sr, target_sr=target_sr), target_sr
    num_samples = int(len(audio) * float(target_sr) / sr)
    return scipy.signal.resample(audio, num_samples), target_sr


def low_pass(audio: np.ndarray, sr: int, cutoff_hz: float, order: int = 4) -> np.ndarray:
    """Zero-phase Butterworth low-pass."""
    y = np.asarray(audio, dtype=np.float64)
    nyquist = 0.5 * sr
    if y.size == 0 or cutoff_hz >= nyquist:
        return y.astype(np.float32)
    sos = scipy.signal.butter(int(order), float(cutoff_hz) / nyquist, btype="low", output="sos")
    # sosfiltfilt needs a minimum input length for its edge padding
    padlen = 3 * (2 * len(sos) + 1)
    if y.size <= padlen:
        return scipy.signal.sosfilt(sos, y).astype(np.float32)
    return scipy.signal.sosfiltfilt(sos, y).astype(np.float32)


def decode_audio(data: Union[bytes, bytearray]) -> Tuple[np.ndarray, int]:
    """Decode an in-memory audio file to a [channels, samples] float32 array."""
    if not data:
        raise DecodeError("No audio data supplied")
    try:
        audio, sr = sf.read(io.BytesIO(bytes(data)), dtype="float32", always_2d=True)
    except Exception as e:
        raise DecodeError(f"Could not decode audio bytes: {e}") from e
    return audio.T, int(sr)


def _load_path(path: str) -> Tuple[np.ndarray, int]:
    if librosa is not None:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                audio, sr = librosa.load(path, sr=None, mono=False)
            return np.atleast_2d(audio).astype(np.float32), int(sr)
        except Exception as e:
            logger.warning(f"librosa failed to load {path} ({e}); trying soundfile")
    try:
        audio, sr = sf.read(path, dtype="float32", always_2d=True)
    except Exception as e:
        raise DecodeError(f"Could not decode audio file {path}: {e}") from e
    return audio.T, int(sr)


def load_audio(
    source: AudioSource,
    config: Optional[Union[PipelineConfig, StageAConfig]] = None,
) -> Tuple[np.ndarray, int]:
    """
    Stage A main entry point.

    1. Decode (path via librosa, falling back to soundfile; bytes via soundfile).
    2. Select / mix down to a single channel.
    3. Optionally resample.
    4. Optionally low-pass filter.

    Returns ``(samples, sample_rate)``. An empty recording is returned as an
    empty buffer; deciding what that means is left to the caller.
    """
    if config is None:
        a_conf = StageAConfig()
    elif isinstance(config, StageAConfig):
        a_conf = config
    else:
        a_conf = config.stage_a

    if isinstance(source, (bytes, bytearray)):
        audio, sr = decode_audio(source)
    else:
        path = os.fspath(source)
        if not os.path.exists(path):
            raise DecodeError(f"Audio file not found: {path}")
        audio, sr = _load_path(path)

    y = np.asarray(_select_channel(audio, a_conf.channel_handling), dtype=np.float32)
    y, sr = _resample(y, sr, a_conf.target_sample_rate)

    lp_conf = a_conf.low_pass_filter or {}
    if lp_conf.get("enabled", False):
        y = low_pass(y, sr, float(lp_conf.get("cutoff_hz", 5000.0)), int(lp_conf.get("order", 4)))

    logger.debug(f"Stage A loaded {len(y)} samples at {sr} Hz")
    return np.asarray(y, dtype=np.float32), sr
