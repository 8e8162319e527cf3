"""Structured JSONL logging for analysis runs.

Every run gets its own directory holding ``logs.jsonl`` (one event per line),
``timing.json`` (seconds per stage) and any artifacts written through
:meth:`PipelineLogger.write_artifact`. Writes are best-effort: a full disk or
a read-only directory must never fail an analysis.
"""
from __future__ import annotations

import importlib.util
import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Modules whose presence changes how Stage A decodes and resamples
TRACKED_MODULES = ("librosa", "soundfile", "scipy")


def _json_default(o: Any) -> Any:
    if isinstance(o, np.generic):
        return o.item()
    if isinstance(o, np.ndarray):
        return o.tolist()
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    if isinstance(o, Enum):
        return o.value
    return str(o)


def modules_available(names: Iterable[str]) -> Dict[str, bool]:
    """Map each module name to whether it can be imported."""
    found: Dict[str, bool] = {}
    for name in names:
        try:
            found[name] = importlib.util.find_spec(name) is not None
        except (ImportError, ValueError):
            found[name] = False
    return found


class PipelineLogger:
    """Collects events and stage timings for one analysis run."""

    def __init__(self, base_dir: str = "results", run_name: Optional[str] = None):
        self.run_name = run_name or time.strftime("run_%Y%m%d_%H%M%S") + f"_{uuid.uuid4().hex[:8]}"
        self.run_dir = os.path.join(base_dir, self.run_name)
        os.makedirs(self.run_dir, exist_ok=True)
        self.logs_path = os.path.join(self.run_dir, "logs.jsonl")
        self.timing_path = os.path.join(self.run_dir, "timing.json")

        self._durations: Dict[str, float] = {}
        self._t_start = time.perf_counter()
        self.log_event("pipeline", "start", {"modules": modules_available(TRACKED_MODULES)})

    def _write(self, path: str, text: str, mode: str = "w") -> bool:
        try:
            with open(path, mode, encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.warning(f"PipelineLogger could not write {path}: {e}")
            return False
        return True

    def log_event(self, stage: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        entry: Dict[str, Any] = {"stage": stage, "event": event, "timestamp": time.time()}
        entry.update(payload or {})
        self._write(self.logs_path, json.dumps(entry, default=_json_default) + "\n", mode="a")

    @contextmanager
    def time_stage(self, stage: str) -> Iterator[Dict[str, Any]]:
        """
        Time a block and log it as a ``timing`` event under ``stage``.

        The yielded dict is merged into the event, so the block can attach
        counts it only knows at the end.
        """
        extra: Dict[str, Any] = {}
        t0 = time.perf_counter()
        try:
            yield extra
        finally:
            elapsed = time.perf_counter() - t0
            self._durations[stage] = elapsed
            self.log_event(stage, "timing", {"duration_s": elapsed, **extra})

    def emit_config(self, stage: str, config_obj: Any) -> None:
        self.log_event(stage, "config", {"config": config_obj})

    def write_artifact(self, filename: str, obj: Any) -> None:
        """Dump ``obj`` as indented JSON next to the run log."""
        path = os.path.join(self.run_dir, filename)
        if not self._write(path, json.dumps(obj, indent=2, default=_json_default)):
            self.log_event("logger", "artifact_write_failed", {"filename": filename})

    def finalize(self) -> None:
        self._durations.setdefault("total", time.perf_counter() - self._t_start)
        self._write(self.timing_path, json.dumps(self._durations, indent=2))

    @property
    def timing(self) -> Dict[str, float]:
        return dict(self._durations)
