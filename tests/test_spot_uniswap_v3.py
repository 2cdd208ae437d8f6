from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_utils import function_signature_to_4byte_selector

from agent_executor.adapters.external.chain.exceptions import QuoteUnavailableError
from agent_executor.adapters.external.venues.base import VenueAdapter
from agent_executor.adapters.external.venues.registry import VenueAdapterRegistry
from agent_executor.adapters.external.venues.spot_uniswap_v3 import EXACT_INPUT_SINGLE_SIG, SpotUniswapV3Adapter
from agent_executor.core.domain.entities.signal_entity import SignalEntity
from agent_executor.core.domain.entities.venue_entities import TokenRegistryEntity
from agent_executor.core.domain.enums.trade_enums import Venue

from fakes import ROUTER, SAFE, USDC, WETH, InMemoryVenueRepository

QUOTER = "0x61fFE014bA17989E743c5F6cB21bF9697530B21e"


def _adapter(quote_results, gateway=None) -> SpotUniswapV3Adapter:
    w3 = MagicMock()
    quoter = MagicMock()
    quoter.functions.quoteExactInputSingle.return_value.call = AsyncMock(side_effect=quote_results)
    w3.eth.contract.return_value = quoter
    venue_repo = InMemoryVenueRepository(
        tokens=[TokenRegistryEntity(chain="arbitrum", token_symbol="WETH", token_address=WETH, decimals=18)],
    )
    return SpotUniswapV3Adapter(
        w3,
        gateway or MagicMock(),
        venue_repo,
        router=ROUTER,
        quoter=QUOTER,
        usdc_address=USDC,
        fee_tiers=[3000, 500, 10000],
    )


class TestQuote:
    def test_falls_through_fee_tiers(self) -> None:
        adapter = _adapter([Exception("no pool"), (0, 0, 0, 0), (123, 0, 0, 0)])
        quote = asyncio.run(adapter.quote(USDC, WETH, 1_000_000))
        assert (quote.amount_out, quote.fee) == (123, 10000)

    def test_no_tier_quotes(self) -> None:
        adapter = _adapter([Exception("no pool")] * 3)
        with pytest.raises(QuoteUnavailableError):
            asyncio.run(adapter.quote(USDC, WETH, 1_000_000))


class TestPrice:
    def test_usdc_is_one(self) -> None:
        assert asyncio.run(_adapter([]).get_price("usdc")) == 1.0

    def test_registered_token_is_quoted_against_usdc(self) -> None:
        adapter = _adapter([(2_500_000_000, 0, 0, 0)])
        assert asyncio.run(adapter.get_price("WETH")) == pytest.approx(2500.0)

    def test_unregistered_token(self) -> None:
        assert asyncio.run(_adapter([]).get_price("PEPE")) is None

    def test_no_quote_means_no_price(self) -> None:
        adapter = _adapter([Exception("no pool")] * 3)
        assert asyncio.run(adapter.get_price("WETH")) is None


def test_execution_summary_rejects_short_balance() -> None:
    gateway = MagicMock()
    gateway.token_balance = AsyncMock(side_effect=[10_000_000, 0])
    adapter = _adapter([], gateway=gateway)
    signal = SignalEntity(
        id="s", agent_id="a", token_symbol="WETH", side="LONG",
        size_model={"type": "fixed-usdc", "value": 50},
    )

    summary = asyncio.run(adapter.get_execution_summary(signal, SAFE, 50.0))

    assert not summary.can_execute
    assert summary.usdc_balance == pytest.approx(10.0)


def test_build_swap_targets_router() -> None:
    tx = _adapter([]).build_swap(USDC, WETH, 1_000_000, 1, 1_700_000_000, SAFE, fee=500)
    selector = "0x" + function_signature_to_4byte_selector(EXACT_INPUT_SINGLE_SIG).hex()
    assert tx["to"] == ROUTER
    assert tx["data"].startswith(selector)


@pytest.mark.parametrize(
    "quoted, bps, expected",
    [(1000, 100, 990), (1000, 0, 1000), (1000, 20_000, 0), (1000, -5, 1000), (999, 100, 989)],
)
def test_compute_min_amount_out(quoted: int, bps: int, expected: int) -> None:
    assert VenueAdapter.compute_min_amount_out(quoted, bps) == expected


class TestRegistry:
    def test_unknown_venue_is_unsupported(self) -> None:
        registry = VenueAdapterRegistry([_adapter([])])
        gmx = registry.get(Venue.GMX)
        assert not gmx.supports_execution()
        assert asyncio.run(gmx.get_price("WETH")) is None
        assert registry.get(Venue.SPOT).supports_execution()
