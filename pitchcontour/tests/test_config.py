import pytest

from pitchcontour.pipeline.config import (
    BASIC_CONFIG,
    HIGH_FIDELITY_CONFIG,
    ConfigurationError,
    PipelineConfig,
    get_preset,
)
from pitchcontour.pipeline.utils_config import apply_dotted_overrides, overrides_from_pairs, parse_override


class TestDefaults:
    def test_high_fidelity_values(self):
        conf = HIGH_FIDELITY_CONFIG
        assert conf.stage_b.frame_size == 2048
        assert conf.stage_b.min_hz == 25.0
        assert conf.stage_b.max_hz == 5000.0
        assert conf.stage_b.detectors["yin"]["threshold"] == 0.05
        assert conf.stage_b.noise_floor == {"stride": 1000, "gate_fraction": 0.08}
        assert conf.stage_c.artifact_bound_hz == 1500.0
        assert conf.stage_c.median_window == 100
        assert conf.stage_c.min_valid_count == 3
        assert conf.stage_c.deviation_fraction == 0.5
        assert conf.stage_c.max_gap_frames == 12

    def test_basic_values(self):
        conf = BASIC_CONFIG
        assert conf.stage_b.min_hz == 50.0
        assert conf.stage_b.detectors["yin"]["threshold"] == 0.005
        assert conf.stage_c.max_gap_frames == 20
        assert not conf.stage_c.noise_gate_enabled
        assert not conf.stage_c.median_filter_enabled
        assert conf.stage_c.gap_filling_enabled

    def test_presets_validate(self):
        HIGH_FIDELITY_CONFIG.validate()
        BASIC_CONFIG.validate()


class TestGetPreset:
    def test_returns_independent_copy(self):
        conf = get_preset("high_fidelity")
        conf.stage_c.max_gap_frames = 99
        conf.stage_b.detectors["yin"]["threshold"] = 0.9
        assert HIGH_FIDELITY_CONFIG.stage_c.max_gap_frames == 12
        assert HIGH_FIDELITY_CONFIG.stage_b.detectors["yin"]["threshold"] == 0.05

    def test_case_insensitive(self):
        assert get_preset("BASIC").stage_c.max_gap_frames == 20

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            get_preset("studio")


class TestValidate:
    @pytest.mark.parametrize("stage,attr,value", [
        ("stage_a", "target_sample_rate", 0),
        ("stage_a", "channel_handling", "both"),
        ("stage_b", "frame_size", 0),
        ("stage_b", "min_hz", -1.0),
        ("stage_b", "min_hz", 6000.0),
        ("stage_b", "detector", "crepe"),
        ("stage_b", "time_decimals", -1),
        ("stage_c", "median_window", 0),
        ("stage_c", "min_valid_count", 0),
        ("stage_c", "min_valid_count", 102),
        ("stage_c", "deviation_fraction", 0.0),
        ("stage_c", "max_gap_frames", -1),
        ("stage_c", "artifact_bound_hz", -5.0),
        ("stage_d", "stats_decimals", -1),
    ])
    def test_rejects(self, stage, attr, value):
        conf = PipelineConfig()
        setattr(getattr(conf, stage), attr, value)
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_min_valid_count_upper_bound_is_window_span(self):
        conf = PipelineConfig()
        conf.stage_c.median_window = 4
        conf.stage_c.min_valid_count = 5
        assert conf.validate() is conf
        conf.stage_c.min_valid_count = 6
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_noise_floor_bounds(self):
        conf = PipelineConfig()
        conf.stage_b.noise_floor["gate_fraction"] = 1.5
        with pytest.raises(ConfigurationError):
            conf.validate()
        conf.stage_b.noise_floor = {"stride": 0, "gate_fraction": 0.08}
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_low_pass_checked_only_when_enabled(self):
        conf = PipelineConfig()
        conf.stage_a.low_pass_filter = {"enabled": False, "cutoff_hz": -1.0}
        conf.validate()
        conf.stage_a.low_pass_filter["enabled"] = True
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_zero_gap_limit_is_valid(self):
        conf = PipelineConfig()
        conf.stage_c.max_gap_frames = 0
        conf.validate()


class TestOverrides:
    def test_dotted_attribute(self):
        conf = PipelineConfig()
        apply_dotted_overrides(conf, {"stage_c.max_gap_frames": 20, "stage_b.detector": "acf"})
        assert conf.stage_c.max_gap_frames == 20
        assert conf.stage_b.detector == "acf"

    def test_dict_leaf(self):
        conf = PipelineConfig()
        apply_dotted_overrides(conf, {"stage_b.detectors.yin.threshold": 0.2})
        assert conf.stage_b.detectors["yin"]["threshold"] == 0.2
        assert conf.stage_b.detectors["yin"]["probability_threshold"] == 0.1

    def test_unknown_attribute(self):
        with pytest.raises(ConfigurationError):
            apply_dotted_overrides(PipelineConfig(), {"stage_c.max_gap": 3})

    def test_unknown_dict_branch(self):
        with pytest.raises(ConfigurationError):
            apply_dotted_overrides(PipelineConfig(), {"stage_b.detectors.pyin.threshold": 0.2})

    def test_parse_override_json_values(self):
        assert parse_override("stage_c.max_gap_frames=20") == ("stage_c.max_gap_frames", 20)
        assert parse_override("stage_c.noise_gate_enabled=false") == ("stage_c.noise_gate_enabled", False)
        assert parse_override("stage_a.target_sample_rate=null") == ("stage_a.target_sample_rate", None)
        assert parse_override("stage_b.detector=acf") == ("stage_b.detector", "acf")

    @pytest.mark.parametrize("text", ["no_equals", "=5"])
    def test_parse_override_rejects(self, text):
        with pytest.raises(ConfigurationError):
            parse_override(text)

    def test_overrides_from_pairs(self):
        assert overrides_from_pairs(["a.b=1", "c=x"]) == {"a.b": 1, "c": "x"}


class TestValidateTypes:
    @pytest.mark.parametrize("key,value", [
        ("stage_b.min_hz", "abc"),
        ("stage_b.max_hz", None),
        ("stage_b.frame_size", "2048"),
        ("stage_b.frame_size", 2048.5),
        ("stage_b.time_decimals", True),
        ("stage_b.noise_floor", 5),
        ("stage_b.noise_floor.gate_fraction", "high"),
        ("stage_b.noise_floor.stride", [1000]),
        ("stage_b.detectors", "yin"),
        ("stage_b.detectors.yin", 0.1),
        ("stage_b.detectors.yin.threshold", "low"),
        ("stage_a.low_pass_filter", "on"),
        ("stage_a.target_sample_rate", "22050"),
        ("stage_c.median_window", "abc"),
        ("stage_c.min_valid_count", 2.5),
        ("stage_c.deviation_fraction", {}),
        ("stage_c.artifact_bound_hz", "1500"),
        ("stage_c.max_gap_frames", None),
        ("stage_d.stats_decimals", "1"),
    ])
    def test_wrong_type_is_configuration_error(self, key, value):
        conf = PipelineConfig()
        apply_dotted_overrides(conf, {key: value})
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_low_pass_with_bad_cutoff_type(self):
        conf = PipelineConfig()
        conf.stage_a.low_pass_filter = {"enabled": True, "cutoff_hz": "1k", "order": 4}
        with pytest.raises(ConfigurationError):
            conf.validate()

    def test_whole_float_and_numpy_values_accepted(self):
        np = pytest.importorskip("numpy")
        conf = PipelineConfig()
        conf.stage_b.frame_size = 1024.0
        conf.stage_c.median_window = np.int64(10)
        conf.stage_b.min_hz = np.float32(40.0)
        assert conf.validate() is conf


class TestMedianWindowFit:
    def test_frame_count_rounds_up(self):
        conf = PipelineConfig()
        conf.stage_c.median_window = 4
        assert conf.check_frame_count(4 * 2048 + 1) == 5
        assert conf.check_frame_count(0) == 0

    def test_window_wider_than_recording(self):
        # default window of 100 spans 101 frames
        with pytest.raises(ConfigurationError):
            PipelineConfig().check_frame_count(100 * 2048)
        assert PipelineConfig().check_frame_count(101 * 2048) == 101

    def test_disabled_median_filter_has_no_minimum(self):
        conf = get_preset("basic")
        assert conf.check_frame_count(10) == 1


class TestStrictOverrides:
    def test_typo_in_dict_key(self):
        conf = PipelineConfig()
        with pytest.raises(ConfigurationError):
            apply_dotted_overrides(conf, {"stage_b.noise_floor.gate_fracton": 0.5})
        assert "gate_fracton" not in conf.stage_b.noise_floor

    def test_known_dict_key(self):
        conf = PipelineConfig()
        apply_dotted_overrides(conf, {"stage_b.noise_floor.gate_fraction": 0.5})
        assert conf.stage_b.noise_floor["gate_fraction"] == 0.5

    def test_new_detector_parameter_allowed(self):
        conf = PipelineConfig()
        apply_dotted_overrides(conf, {"stage_b.detectors.yin.fmin": 60.0})
        assert conf.stage_b.detectors["yin"]["fmin"] == 60.0

    def test_unknown_low_pass_key(self):
        with pytest.raises(ConfigurationError):
            apply_dotted_overrides(PipelineConfig(), {"stage_a.low_pass_filter.cutoff": 800.0})

    def test_cannot_descend_into_scalar(self):
        with pytest.raises(ConfigurationError):
            apply_dotted_overrides(PipelineConfig(), {"stage_b.min_hz.real": 1.0})
