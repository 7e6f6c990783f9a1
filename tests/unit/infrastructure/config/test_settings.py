import os

import pytest

from aniq.infrastructure.api.anilist_client import HttpReachabilityProbe
from aniq.infrastructure.config import settings
from aniq.infrastructure.resilience.rate_governor import RateGovernor


@pytest.fixture
def fresh_store(monkeypatch):
    """Resets the module-level configuration store for one test."""
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    settings.clear_test_config()


def test_defaults_without_any_configuration(fresh_store):
    assert settings.get_api_url() == "https://graphql.anilist.co"
    assert settings.get_rate_limit_settings() == {
        'max_per_minute': 30,
        'low_water_mark': 6,
        'window_seconds': 60,
        'remaining_header_offset': 60,
        'reset_buffer_seconds': 0.1,
    }
    assert settings.get_max_attempts() == 3
    assert settings.get_default_year_range()['start'] == 2000


def test_yaml_values_are_flattened(fresh_store, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("rate_limit:\n  max_per_minute: 20\nquiz:\n  difficulty: hard\n")

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert settings.get_rate_limit_settings()['max_per_minute'] == 20
    assert settings.get_default_difficulty() == "hard"


def test_environment_overrides_yaml(fresh_store, tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("quiz:\n  max_attempts: 5\n")
    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    monkeypatch.setenv("ANIQ_QUIZ_MAX_ATTEMPTS", "4")

    assert settings.get_max_attempts() == 4


def test_dotenv_file_is_loaded(fresh_store, tmp_path):
    os.environ.pop("ANIQ_API_URL", None)
    env_file = tmp_path / ".env"
    env_file.write_text("ANIQ_API_URL=https://graphql.example\n")

    try:
        settings.load_configuration(config_file=tmp_path / "missing.yaml", env_file=env_file)
        assert settings.get_api_url() == "https://graphql.example"
    finally:
        os.environ.pop("ANIQ_API_URL", None)


def test_test_config_wins(fresh_store, monkeypatch):
    monkeypatch.setenv("ANIQ_QUIZ_DIFFICULTY", "easy")
    settings.set_config_for_testing({'quiz.difficulty': 'hard'})

    assert settings.get_default_difficulty() == "hard"


def test_env_values_are_coerced(fresh_store, monkeypatch):
    monkeypatch.setenv("ANIQ_RATE_LIMIT_RESET_BUFFER_SECONDS", "0.5")
    monkeypatch.setenv("ANIQ_SOME_FLAG", "true")

    assert settings.get_config('rate_limit.reset_buffer_seconds') == 0.5
    assert settings.get_config('some.flag') is True


def test_invalid_yaml_is_ignored(fresh_store, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("rate_limit: [unclosed\n")

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert settings.get_rate_limit_settings()['max_per_minute'] == 30


def test_defaults_match_the_components_they_configure(fresh_store):
    configured = RateGovernor(**settings.get_rate_limit_settings())
    built_in = RateGovernor()
    for name in settings.get_rate_limit_settings():
        assert getattr(configured, name) == getattr(built_in, name)

    assert settings.get_request_timeout() == 15.0
    assert settings.get_reachability_url() == HttpReachabilityProbe().url
