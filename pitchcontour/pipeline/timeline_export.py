# pitchcontour/pipeline/timeline_export.py

from __future__ import annotations

from typing import Any, Dict, Optional

from .models import AnalysisResult, FrameRecord, SummaryStatistics


def frame_record_to_dict(record: FrameRecord) -> Dict[str, Any]:
    """
    Convert a FrameRecord into a chart point.

    Unvoiced frames export ``hz: None`` (JSON null) so line charts break the
    line over silence instead of dropping it to zero.
    """
    return {
        "time": float(record.time),
        "hz": float(record.hz) if record.hz is not None else None,
        "rms": float(record.rms),
    }


def statistics_to_dict(stats: SummaryStatistics) -> Dict[str, Optional[float]]:
    return {
        "min_hz": stats.min_hz,
        "max_hz": stats.max_hz,
        "mean_hz": stats.mean_hz,
        "has_data": stats.has_data,
    }


def analysis_to_payload(result: AnalysisResult, include_diagnostics: bool = True) -> Dict[str, Any]:
    """
    JSON-friendly payload for API responses and saved reports.

    {
      "status": "ok" | "empty_input" | "no_pitch_detected",
      "sample_rate": 44100,
      "duration_sec": 1.0,
      "noise_threshold": 0.04,
      "statistics": {"min_hz", "max_hz", "mean_hz", "has_data"},
      "contour": [{"time", "hz", "rms"}, ...],
      "diagnostics": {...}           # optional
    }
    """
    payload: Dict[str, Any] = {
        "status": result.status.value,
        "sample_rate": int(result.sample_rate),
        "duration_sec": float(result.diagnostics.get("duration_sec", 0.0)),
        "noise_threshold": float(result.noise_threshold),
        "statistics": statistics_to_dict(result.statistics),
        "contour": [frame_record_to_dict(r) for r in result.contour],
    }
    if include_diagnostics:
        payload["diagnostics"] = dict(result.diagnostics)
    return payload
