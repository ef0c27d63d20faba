import pytest

from rideops.config.settings import PaymentGatewayType, Settings, get_settings


def test_default_settings():
    """Test default settings values."""
    settings = Settings()

    assert settings.app_name == "RideOps"
    assert settings.version == "1.0.0"
    assert settings.environment == "development"
    assert settings.retention_window_hours == 8.0
    assert settings.sweep_interval_s == 86400
    assert settings.capture_batch_size == 10
    assert settings.capture_drain_interval_s == 300
    assert settings.capture_max_attempts == 5
    assert settings.capture_auto_retry_enabled is False
    assert settings.payment_gateway == PaymentGatewayType.STUB


def test_production_validation_blocks_stub_gateway():
    """Test that production environment blocks PAYMENT_GATEWAY=stub."""
    with pytest.raises(ValueError, match="PAYMENT_GATEWAY=stub is not allowed in production"):
        Settings(environment="production", payment_gateway=PaymentGatewayType.STUB)


def test_production_allows_http_gateway():
    """Test that production environment allows the http gateway."""
    settings = Settings(
        environment="production",
        payment_gateway=PaymentGatewayType.HTTP,
        payment_gateway_url="https://payments.internal",
    )
    assert settings.payment_gateway == PaymentGatewayType.HTTP


def test_http_gateway_requires_url():
    """Test that the http gateway cannot be configured without a URL."""
    with pytest.raises(ValueError, match="PAYMENT_GATEWAY_URL is required"):
        Settings(payment_gateway=PaymentGatewayType.HTTP)


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError, match="CAPTURE_BATCH_SIZE must be at least 1"):
        Settings(capture_batch_size=0)


def test_retention_window_must_be_positive():
    with pytest.raises(ValueError, match="RETENTION_WINDOW_HOURS must be positive"):
        Settings(retention_window_hours=0)


def test_settings_from_environment(monkeypatch):
    """Test that settings are read from environment variables."""
    monkeypatch.setenv("RETENTION_WINDOW_HOURS", "12")
    monkeypatch.setenv("CAPTURE_BATCH_SIZE", "25")

    settings = Settings()
    assert settings.retention_window_hours == 12.0
    assert settings.capture_batch_size == 25


def test_settings_dependency_injection():
    """Test the get_settings dependency function."""
    settings = get_settings()
    assert isinstance(settings, Settings)
    assert settings.app_name == "RideOps"
