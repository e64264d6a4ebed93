import pytest

from core import config as config_module
from forecasting.orchestrator import build_parameters


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_service_level_out_of_range_is_blocked(monkeypatch):
    monkeypatch.setenv("SERVICE_LEVEL", "1.2")

    with pytest.raises(ValueError, match="service_level"):
        config_module.get_settings()


def test_inverted_default_stock_bounds_are_blocked(monkeypatch):
    monkeypatch.setenv("DEFAULT_MIN_STOCK", "500")
    monkeypatch.setenv("DEFAULT_MAX_STOCK", "100")

    with pytest.raises(ValueError, match="default_min_stock"):
        config_module.get_settings()


def test_local_allows_dev_defaults(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "true")

    settings = config_module.get_settings()
    assert settings.app_env == "local"
    assert settings.forecast_horizon_days == 30


def test_engine_defaults_come_from_env(monkeypatch):
    monkeypatch.setenv("FORECAST_HORIZON_DAYS", "14")
    monkeypatch.setenv("EXPIRY_WINDOW_DAYS", "90")

    params = build_parameters(config_module.get_settings())
    assert params.horizon_days == 14
    assert params.expiry_window_days == 90
    assert params.service_level == 0.95


def test_request_overrides_win(monkeypatch):
    params = build_parameters(
        config_module.get_settings(),
        action="optimize",
        horizon_days=7,
        budget=250.0,
        service_level=0.99,
    )
    assert (params.action, params.horizon_days, params.budget, params.service_level) == ("optimize", 7, 250.0, 0.99)
