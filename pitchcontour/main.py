from __future__ import annotations

import json
import logging
import os
from typing import List, Optional, Tuple

from fastapi import FastAPI, UploadFile, File, HTTPException, Form
from fastapi.middleware.cors import CORSMiddleware

from pitchcontour import __version__
from pitchcontour.pipeline import ConfigurationError, DecodeError, PipelineConfig, analyze_file, get_preset
from pitchcontour.pipeline.instrumentation import PipelineLogger
from pitchcontour.pipeline.timeline_export import analysis_to_payload
from pitchcontour.pipeline.utils_config import apply_dotted_overrides

logger = logging.getLogger(__name__)


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def cors_settings() -> Tuple[List[str], bool]:
    """Origins and credential flag from PITCHCONTOUR_ALLOWED_ORIGINS / _ALLOW_CREDENTIALS."""
    raw = os.getenv("PITCHCONTOUR_ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()] or ["http://localhost:3000"]
    credentials = env_flag("PITCHCONTOUR_ALLOW_CREDENTIALS")
    # Wildcard origins cannot be combined with credentials
    if "*" in origins:
        credentials = False
    return origins, credentials


app = FastAPI(title="pitchcontour", version=__version__)

_origins, _credentials = cors_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# When set, every request writes a JSONL run log under this directory
LOG_DIR = os.getenv("PITCHCONTOUR_LOG_DIR")


def build_config(preset: Optional[str], overrides: Optional[str]) -> PipelineConfig:
    """Preset (default: high fidelity) plus a JSON object of dotted overrides, validated."""
    config = get_preset(preset) if preset else PipelineConfig()
    if overrides:
        try:
            parsed = json.loads(overrides)
        except ValueError as e:
            raise ConfigurationError(f"overrides must be a JSON object: {e}") from e
        if not isinstance(parsed, dict):
            raise ConfigurationError("overrides must be a JSON object")
        apply_dotted_overrides(config, parsed)
    return config.validate()


@app.post("/api/analyze")
async def analyze_upload(
    file: UploadFile = File(...),
    preset: Optional[str] = Form(None),
    overrides: Optional[str] = Form(None),
):
    """
    Analyse an uploaded recording and return its contour and statistics.

    - preset: "high_fidelity" (default) or "basic".
    - overrides: JSON object of dotted config keys, e.g.
      {"stage_c.max_gap_frames": 20}.
    """
    try:
        config = build_config(preset, overrides)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = await file.read()
    pipeline_logger = PipelineLogger(base_dir=LOG_DIR) if LOG_DIR else None
    try:
        result = analyze_file(content, config=config, pipeline_logger=pipeline_logger)
    except DecodeError as e:
        logger.warning(f"Could not decode upload {file.filename}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = analysis_to_payload(result)
    payload["filename"] = file.filename
    return payload


@app.get("/health")
def health_check():
    return {"status": "ok", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
