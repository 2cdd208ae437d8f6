from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_executor.adapters.external.chain.exceptions import (
    ConfigurationMissingError,
    TransactionDroppedError,
    TransactionRevertedError,
)
from agent_executor.adapters.external.chain.module_gateway import TradingModuleGateway

from fakes import MODULE, ROUTER, SAFE, USDC, WETH

TX_HASH = "0x" + "cd" * 32


def _gateway(stats=None, send_exc=None, events=None, receipt=None, module_address=MODULE,
             known_tx=None, confirmed_nonce=0):
    w3 = MagicMock()
    module = MagicMock()
    module.functions.getSafeStats.return_value.call = AsyncMock(side_effect=stats or [(False, 0, 0, 0, 0)])
    module.events.TradeExecuted.return_value.process_receipt.return_value = events or []
    w3.eth.contract.return_value = module

    tx = MagicMock()
    tx.send = AsyncMock(
        return_value={"tx_hash": TX_HASH, "status": 1, "block_number": 3, "receipt": {}},
        side_effect=send_exc,
    )
    tx.get_receipt = AsyncMock(return_value=receipt)
    tx.get_transaction = AsyncMock(return_value=known_tx)
    tx.confirmed_nonce = AsyncMock(return_value=confirmed_nonce)
    return TradingModuleGateway(w3, tx, module_address), module, tx


class TestInitializeCapital:
    def test_already_initialized_sends_nothing(self) -> None:
        gw, _, tx = _gateway(stats=[(True, 100, 100, 0, 0)])
        assert asyncio.run(gw.initialize_capital(SAFE)) is None
        tx.send.assert_not_awaited()

    def test_sends_init(self) -> None:
        gw, _, tx = _gateway()
        assert asyncio.run(gw.initialize_capital(SAFE)) == TX_HASH
        tx.send.assert_awaited_once()

    def test_revert_after_concurrent_init_counts_as_success(self) -> None:
        gw, _, _ = _gateway(
            stats=[(False, 0, 0, 0, 0), (True, 100, 100, 0, 0)],
            send_exc=TransactionRevertedError(TX_HASH, {}, "already initialized"),
        )
        assert asyncio.run(gw.initialize_capital(SAFE)) is None

    def test_revert_without_init_propagates(self) -> None:
        gw, _, _ = _gateway(
            stats=[(False, 0, 0, 0, 0), (False, 0, 0, 0, 0)],
            send_exc=TransactionRevertedError(TX_HASH, {}, "boom"),
        )
        with pytest.raises(TransactionRevertedError):
            asyncio.run(gw.initialize_capital(SAFE))


class TestTrades:
    def test_amount_out_from_event_of_this_safe(self) -> None:
        events = [
            {"address": MODULE, "args": {"safe": "0x" + "9" * 40, "amountOut": 1}},
            {"address": MODULE, "args": {"safe": SAFE, "amountOut": 12345}},
        ]
        gw, module, _ = _gateway(events=events)

        receipt = asyncio.run(gw.execute_trade(SAFE, USDC, WETH, 50_000_000, 1, 500, ROUTER))

        assert receipt.tx_hash == TX_HASH
        assert receipt.amount_out == 12345
        module.functions.executeTrade.assert_called_once()

    def test_amount_out_unknown_without_event(self) -> None:
        gw, _, _ = _gateway(events=[])
        receipt = asyncio.run(gw.close_position(SAFE, WETH, USDC, 10, 1, 3000, ROUTER, 50_000_000))
        assert receipt.amount_out is None

    def test_approval_goes_through_module(self) -> None:
        gw, module, _ = _gateway()
        asyncio.run(gw.approve_token_for_dex(SAFE, USDC, ROUTER))

        args = module.functions.executeFromModule.call_args.args
        assert args[1] == USDC
        assert args[2] == 0
        assert args[3][:4] == bytes.fromhex("095ea7b3")  # approve(address,uint256)

    def test_missing_module_address(self) -> None:
        gw, _, _ = _gateway(module_address="")
        with pytest.raises(ConfigurationMissingError):
            asyncio.run(gw.is_token_whitelisted(SAFE, WETH))


class TestReconcile:
    def test_pending(self) -> None:
        gw, _, tx = _gateway(receipt=None, known_tx={"hash": TX_HASH, "nonce": 7})
        assert asyncio.run(gw.reconcile(TX_HASH, SAFE, nonce=7)) is None
        tx.confirmed_nonce.assert_not_awaited()

    def test_unknown_tx_with_free_nonce_is_still_pending(self) -> None:
        gw, _, tx = _gateway(receipt=None, confirmed_nonce=7)
        assert asyncio.run(gw.reconcile(TX_HASH, SAFE, nonce=7)) is None
        tx.reset_nonces.assert_not_called()

    def test_unknown_tx_with_spent_nonce_was_replaced(self) -> None:
        gw, _, tx = _gateway(receipt=None, confirmed_nonce=8)

        with pytest.raises(TransactionDroppedError) as err:
            asyncio.run(gw.reconcile(TX_HASH, SAFE, nonce=7))

        assert err.value.tx_hash == TX_HASH
        tx.reset_nonces.assert_called_once_with()

    def test_spent_nonce_mined_by_this_tx_is_not_a_drop(self) -> None:
        gw, _, tx = _gateway(confirmed_nonce=8)
        tx.get_receipt = AsyncMock(side_effect=[None, {"status": 1, "blockNumber": 12}])

        receipt = asyncio.run(gw.reconcile(TX_HASH, SAFE, nonce=7))

        assert receipt.tx_hash == TX_HASH
        assert receipt.block_number == 12
        tx.reset_nonces.assert_not_called()

    def test_unknown_nonce_never_drops(self) -> None:
        gw, _, _ = _gateway(receipt=None, confirmed_nonce=100)
        assert asyncio.run(gw.reconcile(TX_HASH, SAFE)) is None

    def test_reverted(self) -> None:
        gw, _, _ = _gateway(receipt={"status": 0})
        with pytest.raises(TransactionRevertedError):
            asyncio.run(gw.reconcile(TX_HASH, SAFE))

    def test_mined(self) -> None:
        events = [{"address": MODULE, "args": {"safe": SAFE, "amountOut": 777}}]
        gw, _, _ = _gateway(receipt={"status": 1, "blockNumber": 11}, events=events)

        receipt = asyncio.run(gw.reconcile(TX_HASH, SAFE))

        assert receipt.amount_out == 777
        assert receipt.block_number == 11
