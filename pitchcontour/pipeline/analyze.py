from __future__ import annotations

import contextlib
import logging
from typing import Any, ContextManager, Dict, List, Optional

import numpy as np

from .config import ConfigurationError, PipelineConfig
from .detectors import PitchEstimator, create_detector
from .instrumentation import PipelineLogger
from .models import NO_DATA, AnalysisResult, AnalysisStatus, FrameRecord
from .stage_a import AudioSource, load_audio
from .stage_b import AnalysisCancelled, CancelCheck, estimate_noise_threshold, segment_frames
from .stage_c import apply_median_filter, apply_noise_gate, fill_short_gaps
from .stage_d import compute_statistics
from .timeline_export import analysis_to_payload

logger = logging.getLogger(__name__)


def _count_voiced(records: List[FrameRecord]) -> int:
    return sum(1 for r in records if r.voiced)


def _count_changed(before: List[FrameRecord], after: List[FrameRecord]) -> int:
    return sum(1 for a, b in zip(before, after) if a.voiced and b.voiced and a.hz != b.hz)


def _timed(pipeline_logger: Optional[PipelineLogger], stage: str) -> ContextManager[Dict[str, Any]]:
    if pipeline_logger is None:
        return contextlib.nullcontext({})
    return pipeline_logger.time_stage(stage)


def analyze(
    samples: np.ndarray,
    sample_rate: int,
    config: Optional[PipelineConfig] = None,
    detector: Optional[PitchEstimator] = None,
    should_cancel: Optional[CancelCheck] = None,
    pipeline_logger: Optional[PipelineLogger] = None,
) -> AnalysisResult:
    """
    Run the full contour pipeline over one in-memory recording.

    1. Segment frames and estimate per-frame pitch (Stage B).
    2. Derive the noise threshold from a strided peak scan (Stage B).
    3. Gate, median-filter and gap-fill the contour (Stage C).
    4. Summarise the cleaned contour (Stage D).

    Empty input and recordings without any detected pitch are reported via
    ``result.status`` rather than raised. Invalid configuration, including a
    median window wider than the recording, raises ConfigurationError before
    any frame is estimated. Cancellation is logged to the run log and
    re-raised as AnalysisCancelled.
    """
    config = config or PipelineConfig()
    config.validate()
    if sample_rate is None or int(sample_rate) <= 0:
        raise ConfigurationError(f"sample_rate must be positive, got {sample_rate}")
    sr = int(sample_rate)
    b_conf = config.stage_b
    estimator = detector if detector is not None else create_detector(sr, b_conf)

    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    n_frames = config.check_frame_count(y.size)
    diagnostics: Dict[str, Any] = {
        "n_samples": int(y.size),
        "duration_sec": float(y.size) / float(sr),
        "frame_size": int(b_conf.frame_size),
        "detector": getattr(estimator, "__name__", type(estimator).__name__),
    }
    if pipeline_logger is not None:
        pipeline_logger.emit_config("pipeline", config)

    if n_frames == 0:
        logger.info("Empty sample buffer; nothing to analyse")
        diagnostics["n_frames"] = 0
        result = AnalysisResult(
            contour=[], statistics=NO_DATA, status=AnalysisStatus.EMPTY_INPUT,
            sample_rate=sr, diagnostics=diagnostics,
        )
        _finish(pipeline_logger, result)
        return result

    try:
        result = _run_stages(y, sr, config, estimator, should_cancel, pipeline_logger, diagnostics)
    except AnalysisCancelled as e:
        logger.info(f"Analysis cancelled: {e}")
        if pipeline_logger is not None:
            pipeline_logger.log_event("pipeline", "cancelled", {"reason": str(e)})
            pipeline_logger.finalize()
        raise
    _finish(pipeline_logger, result)
    return result


def _run_stages(
    y: np.ndarray,
    sr: int,
    config: PipelineConfig,
    estimator: PitchEstimator,
    should_cancel: Optional[CancelCheck],
    pipeline_logger: Optional[PipelineLogger],
    diagnostics: Dict[str, Any],
) -> AnalysisResult:
    b_conf, c_conf, d_conf = config.stage_b, config.stage_c, config.stage_d

    with _timed(pipeline_logger, "segmentation") as meta:
        raw = segment_frames(y, sr, estimator, b_conf, should_cancel=should_cancel)
        meta["frames"] = len(raw)
    with _timed(pipeline_logger, "noise_floor") as meta:
        threshold = estimate_noise_threshold(y, b_conf)
        meta["noise_threshold"] = threshold

    gated = raw
    if c_conf.noise_gate_enabled:
        with _timed(pipeline_logger, "noise_gate"):
            gated = apply_noise_gate(raw, threshold, c_conf)

    filtered = gated
    if c_conf.median_filter_enabled:
        with _timed(pipeline_logger, "median_filter"):
            filtered = apply_median_filter(gated, c_conf)

    contour = filtered
    if c_conf.gap_filling_enabled:
        with _timed(pipeline_logger, "gap_filling"):
            contour = fill_short_gaps(filtered, c_conf)

    stats = compute_statistics(contour, d_conf)

    diagnostics.update({
        "n_frames": len(raw),
        "raw_voiced_frames": _count_voiced(raw),
        "gated_frames": _count_voiced(raw) - _count_voiced(gated),
        "corrected_frames": _count_changed(gated, filtered),
        "filled_frames": _count_voiced(contour) - _count_voiced(filtered),
        "voiced_frames": _count_voiced(contour),
    })
    status = AnalysisStatus.OK if stats.has_data else AnalysisStatus.NO_PITCH_DETECTED
    if status is AnalysisStatus.NO_PITCH_DETECTED:
        logger.info(f"No pitch detected in {len(raw)} frames")

    return AnalysisResult(
        contour=contour,
        statistics=stats,
        status=status,
        noise_threshold=threshold,
        sample_rate=sr,
        diagnostics=diagnostics,
    )


def _finish(pipeline_logger: Optional[PipelineLogger], result: AnalysisResult) -> None:
    logger.debug(
        f"Analysis {result.status.value}: {result.diagnostics.get('n_frames', 0)} frames, "
        f"stats={result.statistics}"
    )
    if pipeline_logger is None:
        return
    pipeline_logger.log_event("pipeline", "summary", {
        "status": result.status,
        "statistics": result.statistics,
        "diagnostics": result.diagnostics,
    })
    pipeline_logger.write_artifact("contour.json", analysis_to_payload(result))
    pipeline_logger.finalize()


def analyze_file(
    source: AudioSource,
    config: Optional[PipelineConfig] = None,
    detector: Optional[PitchEstimator] = None,
    should_cancel: Optional[CancelCheck] = None,
    pipeline_logger: Optional[PipelineLogger] = None,
) -> AnalysisResult:
    """Decode ``source`` (path or bytes) with Stage A, then :func:`analyze` it."""
    config = config or PipelineConfig()
    config.validate()
    samples, sr = load_audio(source, config)
    if pipeline_logger is not None:
        pipeline_logger.log_event("stage_a", "loaded", {"n_samples": int(samples.size), "sample_rate": sr})
    return analyze(
        samples, sr, config,
        detector=detector, should_cancel=should_cancel, pipeline_logger=pipeline_logger,
    )
