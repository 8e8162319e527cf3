import pytest

from pitchcontour.pipeline.config import StageDConfig
from pitchcontour.pipeline.models import NO_DATA
from pitchcontour.pipeline.stage_d import compute_statistics, voiced_frequencies
from pitchcontour.tests.audio_utils import make_records


def test_statistics_rounded_to_one_decimal():
    stats = compute_statistics(make_records([220.123, 440.456]))
    assert stats.min_hz == 220.1
    assert stats.max_hz == 440.5
    assert stats.mean_hz == 330.3
    assert stats.has_data


def test_unvoiced_frames_are_ignored():
    stats = compute_statistics(make_records([None, 200.0, None, 300.0, None]))
    assert (stats.min_hz, stats.max_hz, stats.mean_hz) == (200.0, 300.0, 250.0)


def test_no_voiced_frames_is_no_data():
    stats = compute_statistics(make_records([None, None, None]))
    assert stats is NO_DATA
    assert not stats.has_data
    assert stats.min_hz is None and stats.max_hz is None and stats.mean_hz is None


def test_empty_contour_is_no_data():
    assert compute_statistics([]) is NO_DATA


def test_min_mean_max_ordering():
    stats = compute_statistics(make_records([55.5, 1234.56, 98.7, 440.0, 3000.01]))
    assert stats.min_hz <= stats.mean_hz <= stats.max_hz


def test_single_frame():
    stats = compute_statistics(make_records([261.63]))
    assert stats.min_hz == stats.max_hz == stats.mean_hz == pytest.approx(261.6)


def test_decimals_configurable():
    stats = compute_statistics(make_records([220.1234, 440.4567]), StageDConfig(stats_decimals=2))
    assert stats.min_hz == 220.12
    assert stats.max_hz == 440.46


def test_voiced_frequencies():
    freqs = voiced_frequencies(make_records([None, 100.0, 200.0]))
    assert freqs.tolist() == [100.0, 200.0]
