import argparse
import json
import logging
import sys
from typing import List, Optional

from pitchcontour.pipeline import ConfigurationError, DecodeError, PipelineConfig, analyze_file, get_preset
from pitchcontour.pipeline.config import PRESETS
from pitchcontour.pipeline.instrumentation import PipelineLogger
from pitchcontour.pipeline.models import AnalysisResult
from pitchcontour.pipeline.timeline_export import analysis_to_payload
from pitchcontour.pipeline.utils_config import apply_dotted_overrides, overrides_from_pairs


def _fmt_hz(value: Optional[float]) -> str:
    return f"{value:.1f} Hz" if value is not None else "n/a"


def format_summary(path: str, result: AnalysisResult) -> str:
    stats = result.statistics
    d = result.diagnostics
    lines = [
        f"File:      {path}",
        f"Status:    {result.status.value}",
        f"Duration:  {d.get('duration_sec', 0.0):.2f} s @ {result.sample_rate} Hz",
        f"Frames:    {d.get('n_frames', 0)} ({d.get('voiced_frames', 0)} voiced)",
        f"Min:       {_fmt_hz(stats.min_hz)}",
        f"Max:       {_fmt_hz(stats.max_hz)}",
        f"Mean:      {_fmt_hz(stats.mean_hz)}",
    ]
    if result.contour:
        lines.append(
            f"Cleaning:  {d.get('gated_frames', 0)} gated, "
            f"{d.get('corrected_frames', 0)} corrected, {d.get('filled_frames', 0)} filled"
        )
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pitch contour analysis of an audio file")
    parser.add_argument("audio", help="Path to the audio file")
    parser.add_argument("--preset", choices=sorted(PRESETS), default=None, help="Configuration preset")
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
        help="Dotted config override, e.g. stage_c.max_gap_frames=20 (repeatable)",
    )
    parser.add_argument("--json", dest="json_out", default=None, help="Write the full payload to this file")
    parser.add_argument("--log-dir", default=None, help="Write a JSONL run log under this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        config = get_preset(args.preset) if args.preset else PipelineConfig()
        apply_dotted_overrides(config, overrides_from_pairs(args.overrides))
        config.validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    pipeline_logger = PipelineLogger(base_dir=args.log_dir) if args.log_dir else None
    try:
        result = analyze_file(args.audio, config=config, pipeline_logger=pipeline_logger)
    except DecodeError as e:
        print(f"Decode error: {e}", file=sys.stderr)
        return 1
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    print(format_summary(args.audio, result))
    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as f:
            json.dump(analysis_to_payload(result), f, indent=2)
    return 0


if __name__ == "__main__":
    sys.exit(main())
