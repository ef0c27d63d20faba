from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def unregister(self, name: str) -> None:
        """Remove an implementation if present."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot unregister '{name}' from {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations.pop(name, None)

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - recurring background tasks
class ScheduledTask(Protocol):
    """Protocol for tasks executed by the job runner."""

    interval_s: int

    async def run(self, session_factory: Any, **params: Any) -> dict[str, Any]:
        """
        Execute one bounded, single pass of the task.

        Args:
            session_factory: async_sessionmaker producing AsyncSession objects
            **params: Optional per-run overrides (e.g. batch_size)

        Returns:
            Result dictionary stored with the job run record
        """
        ...


class JobRegistry(Registry[ScheduledTask]):
    """Registry for scheduled background tasks (retention_sweep, capture_drain)."""

    def __init__(self):
        super().__init__("Job")


# Payment Gateway Registry - capture adapters
class PaymentGatewayFactory(Protocol):
    """Protocol for factories that build a payment gateway from settings."""

    def __call__(self, settings: Any) -> Any:
        ...


class PaymentGatewayRegistry(Registry[PaymentGatewayFactory]):
    """Registry for payment gateway adapters (stub, http)."""

    def __init__(self):
        super().__init__("PaymentGateway")


# Global registry instances (singletons)
job_registry = JobRegistry()
payment_gateway_registry = PaymentGatewayRegistry()
