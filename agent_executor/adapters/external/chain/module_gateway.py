import logging
from dataclasses import dataclass
from typing import Optional

from web3 import AsyncWeb3
from web3.logs import DISCARD

from .abis import ABI_ERC20, ABI_SAFE, ABI_TRADING_MODULE, MAX_UINT256
from .exceptions import ConfigurationMissingError, TransactionDroppedError, TransactionRevertedError
from .tx_service import TxService
from .utils import checksum, encode_call, to_json_safe


@dataclass
class TradeReceipt:
    tx_hash: str
    amount_out: Optional[int]
    block_number: Optional[int] = None


@dataclass
class SafeStats:
    initialized: bool
    initial_capital: int
    current_capital: int
    profit_taken: int
    unrealized_profit: int


class TradingModuleGateway:
    """
    Thin interface to the trading module enabled on each user's Safe.

    Every write is one transaction: build -> nonce -> submit -> one receipt.
    No retries here; callers decide what to do with a failure.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        tx: TxService,
        module_address: str,
        gas_limit_trade: int = 1_000_000,
        gas_limit_setup: int = 300_000,
        gas_limit_module_call: int = 1_500_000,
        logger: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self._tx = tx
        self._module_address = module_address
        self._gas_trade = gas_limit_trade
        self._gas_setup = gas_limit_setup
        self._gas_module_call = gas_limit_module_call
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def module_address(self) -> str:
        if not self._module_address:
            raise ConfigurationMissingError("TRADING_MODULE_ADDRESS")
        return checksum(self._module_address)

    def _module(self):
        return self.w3.eth.contract(address=self.module_address, abi=ABI_TRADING_MODULE)

    def _erc20(self, token: str):
        return self.w3.eth.contract(address=checksum(token), abi=ABI_ERC20)

    # ---------- reads ----------

    async def is_module_enabled(self, safe: str, module: Optional[str] = None) -> bool:
        safe_c = self.w3.eth.contract(address=checksum(safe), abi=ABI_SAFE)
        target = checksum(module) if module else self.module_address
        return bool(await safe_c.functions.isModuleEnabled(target).call())

    async def get_safe_stats(self, safe: str) -> SafeStats:
        raw = await self._module().functions.getSafeStats(checksum(safe)).call()
        return SafeStats(
            initialized=bool(raw[0]),
            initial_capital=int(raw[1]),
            current_capital=int(raw[2]),
            profit_taken=int(raw[3]),
            unrealized_profit=int(raw[4]),
        )

    async def is_token_whitelisted(self, safe: str, token: str) -> bool:
        return bool(await self._module().functions.isTokenWhitelisted(checksum(safe), checksum(token)).call())

    async def token_balance(self, token: str, owner: str) -> int:
        return int(await self._erc20(token).functions.balanceOf(checksum(owner)).call())

    async def token_allowance(self, token: str, owner: str, spender: str) -> int:
        return int(await self._erc20(token).functions.allowance(checksum(owner), checksum(spender)).call())

    # ---------- setup writes ----------

    async def initialize_capital(self, safe: str) -> Optional[str]:
        """
        Records the Safe's starting balance. Returns the tx hash, or None
        when capital was already initialized (treated as success).
        """
        stats = await self.get_safe_stats(safe)
        if stats.initialized:
            return None
        fn = self._module().functions.initializeCapital(checksum(safe))
        try:
            res = await self._tx.send(fn, gas_limit=self._gas_setup)
        except TransactionRevertedError:
            # the module rejects double-init; a concurrent init still counts
            if (await self.get_safe_stats(safe)).initialized:
                self._logger.info("capital already initialized for %s", safe)
                return None
            raise
        self._logger.info("capital initialized for %s tx=%s", safe, res["tx_hash"])
        return res["tx_hash"]

    async def set_token_whitelist(self, safe: str, token: str, enabled: bool = True) -> str:
        fn = self._module().functions.setTokenWhitelist(checksum(safe), checksum(token), bool(enabled))
        res = await self._tx.send(fn, gas_limit=self._gas_setup)
        self._logger.info("whitelist %s=%s for %s tx=%s", token, enabled, safe, res["tx_hash"])
        return res["tx_hash"]

    async def approve_token_for_dex(self, safe: str, token: str, spender: str) -> str:
        """
        Max-approve `spender` on `token` from the Safe, via executeFromModule.
        """
        data = encode_call(
            "approve(address,uint256)",
            ["address", "uint256"],
            [checksum(spender), MAX_UINT256],
        )
        fn = self._module().functions.executeFromModule(checksum(safe), checksum(token), 0, data)
        res = await self._tx.send(fn, gas_limit=self._gas_module_call)
        self._logger.info("approved %s -> %s for %s tx=%s", token, spender, safe, res["tx_hash"])
        return res["tx_hash"]

    # ---------- trades ----------

    def _amount_out_from_receipt(self, receipt: dict, safe: str) -> Optional[int]:
        events = self._module().events.TradeExecuted().process_receipt(receipt, errors=DISCARD)
        for ev in events:
            if str(ev["address"]).lower() != self.module_address.lower():
                continue
            if str(ev["args"]["safe"]).lower() != safe.lower():
                continue
            return int(ev["args"]["amountOut"])
        return None

    def _trade_receipt(self, res: dict, safe: str) -> TradeReceipt:
        return TradeReceipt(
            tx_hash=res["tx_hash"],
            amount_out=self._amount_out_from_receipt(res["receipt"], safe),
            block_number=res.get("block_number"),
        )

    async def execute_trade(
        self,
        safe: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        pool_fee: int,
        profit_receiver: str,
    ) -> TradeReceipt:
        fn = self._module().functions.executeTrade(
            checksum(safe),
            checksum(token_in),
            checksum(token_out),
            int(amount_in),
            int(min_amount_out),
            int(pool_fee),
            checksum(profit_receiver),
        )
        res = await self._tx.send(fn, gas_limit=self._gas_trade)
        return self._trade_receipt(res, safe)

    async def close_position(
        self,
        safe: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        pool_fee: int,
        profit_receiver: str,
        entry_value_raw: int,
    ) -> TradeReceipt:
        """
        Swap back to USDC. The module computes profit against entry_value_raw
        and pays the profit share to profit_receiver on a profitable close.
        """
        fn = self._module().functions.closePosition(
            checksum(safe),
            checksum(token_in),
            checksum(token_out),
            int(amount_in),
            int(min_amount_out),
            int(pool_fee),
            checksum(profit_receiver),
            int(entry_value_raw),
        )
        res = await self._tx.send(fn, gas_limit=self._gas_trade)
        return self._trade_receipt(res, safe)

    async def reconcile(self, tx_hash: str, safe: str, nonce: Optional[int] = None) -> Optional[TradeReceipt]:
        """
        Re-query a tx whose receipt wait timed out.

        Returns None while the tx is pending (or unknown with its nonce still
        free), a TradeReceipt once it is mined successfully. Raises
        TransactionRevertedError if it reverted and TransactionDroppedError
        when the node forgot it and its nonce was consumed by another tx.
        """
        rcpt = await self._tx.get_receipt(tx_hash)
        if rcpt is None:
            if await self._tx.get_transaction(tx_hash) is not None:
                return None
            if nonce is None or await self._tx.confirmed_nonce() <= nonce:
                return None
            # nonce is spent; the tx itself may have been mined meanwhile
            rcpt = await self._tx.get_receipt(tx_hash)
            if rcpt is None:
                self._tx.reset_nonces()
                raise TransactionDroppedError(
                    f"tx {tx_hash} was replaced: nonce {nonce} already mined",
                    tx_hash=tx_hash,
                    nonce=nonce,
                )
        if int(rcpt.get("status", 0)) == 0:
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                receipt=to_json_safe(rcpt),
                msg="Transaction reverted (status=0)",
            )
        return TradeReceipt(
            tx_hash=tx_hash,
            amount_out=self._amount_out_from_receipt(rcpt, safe),
            block_number=rcpt.get("blockNumber"),
        )

    def reset_nonces(self) -> None:
        self._tx.reset_nonces()
