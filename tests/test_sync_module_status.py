from __future__ import annotations

import asyncio

from agent_executor.core.usecases.sync_module_status_use_case import SyncModuleStatusUseCase

from fakes import SAFE, Harness


def test_refreshes_only_changed_flags(harness: Harness) -> None:
    harness.add_deployment("dep-2", "0x" + "6" * 40)
    harness.gateway.module_enabled[SAFE.lower()] = False

    stats = asyncio.run(SyncModuleStatusUseCase(harness.deployments, harness.gateway).execute_once())

    assert stats == {"checked": 2, "updated": 1, "errors": 0}
    assert harness.deployments.module_updates == [("dep-1", False)]
    assert harness.deployments.items["dep-1"].module_enabled is False


def test_read_errors_are_counted_and_do_not_stop_the_pass(harness: Harness) -> None:
    harness.add_deployment("dep-2", "0x" + "6" * 40)
    harness.gateway.fail["is_module_enabled"] = RuntimeError("rpc down")

    stats = asyncio.run(SyncModuleStatusUseCase(harness.deployments, harness.gateway).execute_once())

    assert stats["checked"] == 2
    assert stats["errors"] == 1


def test_deployments_without_safe_are_not_checked(harness: Harness) -> None:
    harness.deployments.items["dep-new"] = harness.deployment.model_copy(
        update={"id": "dep-new", "safe_wallet": None}
    )

    stats = asyncio.run(SyncModuleStatusUseCase(harness.deployments, harness.gateway).execute_once())

    assert stats["checked"] == 1
