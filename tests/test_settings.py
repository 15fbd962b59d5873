"""Tests for tracer settings and their JSON loading.

Tests cover:
- Defaults
- Validation of out-of-range values
- Dictionary and JSON round trips
- Pushing settings to the kernel-visible fields
"""

import json

import pytest


class TestTracerSettings:
    """Tests for the TracerSettings dataclass."""

    def test_defaults(self):
        """Test the documented default values."""
        from voxeltrace.core.settings import TracerSettings

        settings = TracerSettings()
        assert settings.max_steps == 100
        assert settings.max_distance == 1000.0
        assert settings.push_distance == 1e-4
        assert settings.solid_push == 2e-4
        assert settings.max_depth == 6
        assert settings.useful_light_limit == pytest.approx(0.05)
        assert settings.negligible_light_limit == pytest.approx(0.01)
        settings.validate()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_steps": 0},
            {"max_depth": -1},
            {"max_distance": 0.0},
            {"push_distance": -1e-4},
            {"solid_push": 0.0},
            {"roughness_scale": 0.0},
            {"negligible_light_limit": -0.1},
            {"useful_light_limit": 0.001},
        ],
    )
    def test_invalid_values(self, kwargs):
        """Test that validate rejects out-of-range values."""
        from voxeltrace.core.settings import TracerSettings

        with pytest.raises(ValueError):
            TracerSettings(**kwargs).validate()

    def test_dict_roundtrip(self):
        """Test to_dict and from_dict."""
        from voxeltrace.core.settings import TracerSettings

        settings = TracerSettings(max_steps=250, reflection_bias=3.0)
        assert TracerSettings.from_dict(settings.to_dict()) == settings

    def test_unknown_keys_rejected(self):
        """Test that typos in setting names are reported."""
        from voxeltrace.core.settings import TracerSettings

        with pytest.raises(ValueError, match="max_step"):
            TracerSettings.from_dict({"max_step": 10})


class TestLoadSettings:
    """Tests for load_settings."""

    def test_partial_file_keeps_defaults(self, tmp_path):
        """Test that missing keys fall back to the defaults."""
        from voxeltrace.core.settings import load_settings

        path = tmp_path / "tracer.json"
        path.write_text(json.dumps({"max_depth": 3, "max_distance": 250.0}))
        settings = load_settings(path)
        assert settings.max_depth == 3
        assert settings.max_distance == 250.0
        assert settings.max_steps == 100

    def test_non_object_rejected(self, tmp_path):
        """Test that the file must contain a JSON object."""
        from voxeltrace.core.settings import load_settings

        path = tmp_path / "tracer.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError, match="JSON object"):
            load_settings(path)

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        from voxeltrace.core.settings import load_settings

        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.json")


class TestConfigureTracer:
    """Tests for the kernel-visible settings."""

    def test_fields_follow_configuration(self):
        """Test that configure_tracer writes every kernel field."""
        from voxeltrace.core import settings as tracer

        configured = tracer.TracerSettings(
            max_steps=7, max_distance=12.5, push_distance=1e-3, solid_push=3e-3
        )
        tracer.configure_tracer(configured)
        assert tracer.max_steps[None] == 7
        assert tracer.max_distance[None] == pytest.approx(12.5)
        assert tracer.push_distance[None] == pytest.approx(1e-3)
        assert tracer.solid_push[None] == pytest.approx(3e-3)
        assert tracer.get_tracer_settings() is configured

    def test_invalid_settings_not_applied(self):
        """Test that a rejected configuration leaves the active one in place."""
        from voxeltrace.core import settings as tracer

        active = tracer.get_tracer_settings()
        with pytest.raises(ValueError):
            tracer.configure_tracer(tracer.TracerSettings(max_steps=0))
        assert tracer.get_tracer_settings() is active
        assert tracer.max_steps[None] == active.max_steps

    def test_reset(self):
        """Test that reset_tracer_settings restores the defaults."""
        from voxeltrace.core import settings as tracer

        tracer.configure_tracer(tracer.TracerSettings(max_depth=1))
        tracer.reset_tracer_settings()
        assert tracer.get_tracer_settings() == tracer.TracerSettings()
