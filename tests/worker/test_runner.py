import pytest
from unittest.mock import AsyncMock, MagicMock, patch
import asyncio
from src.worker.runner import run_workers

@pytest.fixture
def mock_infra():
    with patch("src.worker.runner.init_db", new_callable=AsyncMock) as mock_init_db, \
         patch("src.worker.runner.close_db", new_callable=AsyncMock) as mock_close_db, \
         patch("src.worker.runner.init_event_bus", new_callable=AsyncMock) as mock_init_event_bus, \
         patch("src.worker.runner.close_event_bus", new_callable=AsyncMock) as mock_close_event_bus, \
         patch("src.worker.runner.get_db", return_value=MagicMock()), \
         patch("src.worker.runner.get_event_bus", return_value=MagicMock()):
        yield {
            "init_db": mock_init_db,
            "close_db": mock_close_db,
            "init_event_bus": mock_init_event_bus,
            "close_event_bus": mock_close_event_bus
        }

@pytest.fixture
def mock_clients():
    with patch("src.worker.runner.RegistryClient") as MockRegistry, \
         patch("src.worker.runner.get_payment_gateway") as mock_get_gateway:
        registry = MockRegistry.return_value
        registry.close = AsyncMock()
        gateway = mock_get_gateway.return_value
        gateway.close = AsyncMock()
        yield {"registry": registry, "payments": gateway}

@pytest.fixture
def mock_workers():
    with patch("src.worker.runner.ReconciliationWorker") as MockReconciliation:

        reconciliation_instance = MockReconciliation.return_value
        reconciliation_instance.start = AsyncMock()
        reconciliation_instance.stop = AsyncMock()

        yield {
            "reconciliation": reconciliation_instance,
        }

@pytest.mark.asyncio
async def test_run_workers_success(mock_infra, mock_clients, mock_workers):
    # Mock asyncio.sleep to raise CancelledError immediately to exit loop
    with patch("src.worker.runner.asyncio.sleep", side_effect=asyncio.CancelledError):
        await run_workers()

    # Check init
    mock_infra["init_db"].assert_called_once_with("rides.sql")
    mock_infra["init_event_bus"].assert_called_once()

    # Check start / stop
    mock_workers["reconciliation"].start.assert_called_once()
    mock_workers["reconciliation"].stop.assert_called_once()

    # Check close
    mock_clients["registry"].close.assert_called_once()
    mock_clients["payments"].close.assert_called_once()
    mock_infra["close_db"].assert_called_once()
    mock_infra["close_event_bus"].assert_called_once()

@pytest.mark.asyncio
async def test_run_workers_shared_infra(mock_infra, mock_clients, mock_workers):
    # В режиме all инфраструктуру поднимает main.py
    with patch("src.worker.runner.asyncio.sleep", side_effect=asyncio.CancelledError):
        await run_workers(init_infra=False)

    mock_infra["init_db"].assert_not_called()
    mock_infra["close_db"].assert_not_called()
    mock_clients["registry"].close.assert_called_once()

@pytest.mark.asyncio
async def test_run_workers_error(mock_infra, mock_clients, mock_workers):
    # Mock init_db to raise exception
    mock_infra["init_db"].side_effect = Exception("Init error")

    with pytest.raises(Exception, match="Init error"):
        await run_workers()

    # Сбой до запуска воркеров: закрывать нечего
    mock_workers["reconciliation"].start.assert_not_called()
    mock_infra["close_db"].assert_not_called()
