from enum import Enum


class RideStatus(str, Enum):
    """Статусы поездки."""
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (RideStatus.COMPLETED, RideStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return self in (RideStatus.ASSIGNED, RideStatus.IN_PROGRESS)


class PaymentStatus(str, Enum):
    """Статусы оплаты поездки."""
    PENDING = "PENDING"
    CAPTURED = "CAPTURED"
    REFUNDED = "REFUNDED"

    def __str__(self) -> str:
        return self.value


class ReleaseOutcome(str, Enum):
    """Результат освобождения водителя."""
    RELEASED = "RELEASED"
    ALREADY_AVAILABLE = "ALREADY_AVAILABLE"
    # Водитель уже захвачен под другую поездку: ничего не изменено
    REASSIGNED = "REASSIGNED"

    def __str__(self) -> str:
        return self.value


class ReconciliationAction(str, Enum):
    """Побочные эффекты, которые может доводить задача сверки."""
    CAPTURE_PAYMENT = "CAPTURE_PAYMENT"
    VOID_PAYMENT = "VOID_PAYMENT"
    REFUND_PAYMENT = "REFUND_PAYMENT"
    RELEASE_DRIVER = "RELEASE_DRIVER"
    # Водитель неизвестен: освобождается тот, кто держит захват под ride_id
    RELEASE_CLAIM = "RELEASE_CLAIM"

    def __str__(self) -> str:
        return self.value


class ReconciliationStatus(str, Enum):
    """Статус задачи сверки."""
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"

    def __str__(self) -> str:
        return self.value
