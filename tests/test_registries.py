import pytest

from rideops.config.settings import Settings
from rideops.v1.captures.gateway import StubPaymentGateway, build_gateway
from rideops.v1.core.registries import (
    JobRegistry,
    Registry,
    payment_gateway_registry,
)
from rideops.v1.infra.jobs.handlers import CaptureDrainTask, CaptureRetryTask
from rideops.v1.infra.jobs.registry_init import (
    CAPTURE_DRAIN,
    CAPTURE_RETRY,
    RETENTION_SWEEP,
    register_job_tasks,
)


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    # Test empty registry
    assert registry.list() == []

    # Test register and get
    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]

    # Test KeyError for missing implementation
    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_unregister():
    registry = Registry[str]("Test")
    registry.register("impl", "value")

    registry.unregister("impl")
    registry.unregister("missing")

    assert registry.list() == []


def test_registry_freeze():
    """Test that a frozen registry rejects modifications."""
    registry = Registry[str]("Test")
    registry.register("impl", "value")
    registry.freeze()

    assert registry.is_frozen()
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("other", "value")
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.unregister("impl")

    # Reads still work
    assert registry.get("impl") == "value"


def test_payment_gateway_registry_has_adapters():
    assert {"stub", "http"} <= set(payment_gateway_registry.list())


def test_build_gateway_uses_configured_adapter():
    gateway = build_gateway(Settings())
    assert isinstance(gateway, StubPaymentGateway)


def test_register_job_tasks_default():
    """Retry of failed captures is off unless enabled."""
    registry = JobRegistry()
    register_job_tasks(Settings(), gateway=StubPaymentGateway(), registry=registry)

    assert set(registry.list()) == {RETENTION_SWEEP, CAPTURE_DRAIN}
    drain_task = registry.get(CAPTURE_DRAIN)
    assert isinstance(drain_task, CaptureDrainTask)
    assert drain_task.interval_s == 300
    assert registry.get(RETENTION_SWEEP).interval_s == 86400


def test_register_job_tasks_with_auto_retry():
    registry = JobRegistry()
    settings = Settings(capture_auto_retry_enabled=True, capture_retry_interval_s=600)

    register_job_tasks(settings, gateway=StubPaymentGateway(), registry=registry)

    retry_task = registry.get(CAPTURE_RETRY)
    assert isinstance(retry_task, CaptureRetryTask)
    assert retry_task.interval_s == 600

    # Re-registering with retry disabled removes the task again
    register_job_tasks(Settings(), gateway=StubPaymentGateway(), registry=registry)
    assert CAPTURE_RETRY not in registry.list()
