import json

import pytest
import soundfile as sf

from pitchcontour.analyze_tool import format_summary, main
from pitchcontour.pipeline.models import NO_DATA, AnalysisResult, AnalysisStatus
from pitchcontour.tests.audio_utils import generate_sine_wave


def _write_tone(tmp_path, freq_hz=220.0):
    path = tmp_path / "tone.wav"
    sf.write(str(path), generate_sine_wave(freq_hz, 0.5, sr=44100), 44100)
    return str(path)


def test_summary_and_json_report(tmp_path, capsys):
    audio = _write_tone(tmp_path)
    out = tmp_path / "report.json"

    assert main([audio, "--set", "stage_c.median_window=4", "--json", str(out)]) == 0
    printed = capsys.readouterr().out
    assert "Status:    ok" in printed
    assert "Mean:" in printed

    report = json.loads(out.read_text())
    assert report["status"] == "ok"
    assert abs(report["statistics"]["mean_hz"] - 220.0) < 2.0


def test_overrides_and_preset(tmp_path):
    audio = _write_tone(tmp_path)
    out = tmp_path / "report.json"
    assert main([audio, "--preset", "basic", "--set", "stage_d.stats_decimals=0", "--json", str(out)]) == 0
    assert json.loads(out.read_text())["statistics"]["mean_hz"] == 220.0


def test_log_dir(tmp_path):
    audio = _write_tone(tmp_path)
    logs = tmp_path / "logs"
    assert main([audio, "--set", "stage_c.median_window=4", "--log-dir", str(logs)]) == 0
    run_dirs = list(logs.iterdir())
    assert len(run_dirs) == 1
    assert (run_dirs[0] / "logs.jsonl").exists()
    assert (run_dirs[0] / "timing.json").exists()


def test_config_error_exit_code(tmp_path, capsys):
    audio = _write_tone(tmp_path)
    assert main([audio, "--set", "stage_c.median_window=0"]) == 2
    assert "Configuration error" in capsys.readouterr().err


@pytest.mark.parametrize("override", [
    "stage_c.median_window=abc",
    "stage_b.min_hz=\"low\"",
    "stage_b.noise_floor=5",
    "stage_b.noise_floor.gate_fracton=0.5",
])
def test_wrongly_typed_override_exit_code(tmp_path, capsys, override):
    audio = _write_tone(tmp_path)
    assert main([audio, "--set", override]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_short_file_with_default_window(tmp_path, capsys):
    audio = _write_tone(tmp_path)
    assert main([audio]) == 2
    assert "median_window" in capsys.readouterr().err


def test_decode_error_exit_code(tmp_path, capsys):
    assert main([str(tmp_path / "missing.wav")]) == 1
    assert "Decode error" in capsys.readouterr().err


def test_format_summary_without_data():
    result = AnalysisResult(contour=[], statistics=NO_DATA, status=AnalysisStatus.EMPTY_INPUT, sample_rate=44100)
    text = format_summary("empty.wav", result)
    assert "empty_input" in text
    assert "Mean:      n/a" in text
    assert "Cleaning" not in text
