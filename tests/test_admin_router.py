from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from agent_executor.adapters.entry.http.admin_router import router
from agent_executor.core.domain.entities.execution_result import ExecutionResult
from agent_executor.core.domain.enums.trade_enums import CloseReason, FailureReason


@pytest.fixture
def supervisor() -> SimpleNamespace:
    return SimpleNamespace(
        coordinator=SimpleNamespace(
            execute_signal_for_deployment=AsyncMock(
                return_value=ExecutionResult.ok(tx_hash="0xabc", position_id="pos-1")
            ),
            close_position=AsyncMock(return_value=ExecutionResult.fail(FailureReason.ALREADY_CLOSED)),
        ),
        signals_uc=SimpleNamespace(execute_signal=AsyncMock(return_value=[ExecutionResult.ok(position_id="p")])),
        monitor_uc=SimpleNamespace(execute_once=AsyncMock(return_value={"monitored": 1, "closed": 0})),
        sync_uc=SimpleNamespace(execute_once=AsyncMock(return_value={"checked": 2, "updated": 1, "errors": 0})),
        manual_uc=SimpleNamespace(
            execute=AsyncMock(return_value=ExecutionResult.fail(FailureReason.MANUAL_TRADE_NOT_FOUND))
        ),
    )


@pytest.fixture
def client(supervisor: SimpleNamespace) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.state.supervisor = supervisor
    return TestClient(app)


def test_execute_for_deployment(client: TestClient, supervisor: SimpleNamespace) -> None:
    resp = client.post("/admin/deployments/dep-1/signals/sig-1/execute")

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["tx_hash"] == "0xabc"
    supervisor.coordinator.execute_signal_for_deployment.assert_awaited_once_with("sig-1", "dep-1")


def test_execute_signal_fan_out(client: TestClient) -> None:
    resp = client.post("/admin/signals/sig-1/execute")
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_close_already_closed_is_not_an_error(client: TestClient, supervisor: SimpleNamespace) -> None:
    resp = client.post("/admin/positions/pos-1/close", json={"reason": "TAKE_PROFIT"})

    assert resp.status_code == 200
    assert resp.json()["reason"] == "ALREADY_CLOSED"
    supervisor.coordinator.close_position.assert_awaited_once_with("pos-1", CloseReason.TAKE_PROFIT)


def test_close_defaults_to_manual(client: TestClient, supervisor: SimpleNamespace) -> None:
    client.post("/admin/positions/pos-1/close")
    supervisor.coordinator.close_position.assert_awaited_once_with("pos-1", CloseReason.MANUAL)


def test_not_found_maps_to_404(client: TestClient) -> None:
    resp = client.post("/admin/manual-trades/mt-1/execute")
    assert resp.status_code == 404


def test_already_executed_manual_trade_is_not_404(client: TestClient, supervisor: SimpleNamespace) -> None:
    supervisor.manual_uc.execute.return_value = ExecutionResult.fail(FailureReason.ALREADY_EXECUTED)

    resp = client.post("/admin/manual-trades/mt-1/execute")

    assert resp.status_code == 200
    assert resp.json()["reason"] == "ALREADY_EXECUTED"


def test_monitor_and_sync_return_counters(client: TestClient) -> None:
    assert client.post("/admin/monitor/run-once").json()["monitored"] == 1
    assert client.post("/admin/deployments/sync-module-status").json()["updated"] == 1
