# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

from src.common.constants import TypeMsg, API_PREFIX, IDEMPOTENCY_HEADER


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        """Проверяет, что TypeMsg является строковым enum."""
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


def test_api_constants() -> None:
    assert API_PREFIX == "/api/v1"
    assert IDEMPOTENCY_HEADER == "Idempotency-Key"
