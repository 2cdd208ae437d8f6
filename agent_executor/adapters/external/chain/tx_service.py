import logging
from typing import Optional

from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from ....core.services.nonce_coordinator import NonceCoordinator
from .exceptions import (
    ConfigurationMissingError,
    SubmissionFailedError,
    TransactionRevertedError,
)
from .utils import to_json_safe


class TxService:
    """
    Transaction sender for module operations.

    Responsibilities:
    - Build and sign contract calls with an explicit gas limit and a nonce
      from the NonceCoordinator.
    - Broadcast and wait for one receipt under a deadline.
    - Normalize failures into SubmissionFailedError / TransactionRevertedError.
    - Look receipts up again for reconciliation after a timeout.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        private_key: str,
        nonces: NonceCoordinator,
        receipt_timeout_sec: float = 120.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self.pk = private_key
        self.account = Account.from_key(private_key) if private_key else None
        self._nonces = nonces
        self._receipt_timeout = receipt_timeout_sec
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def sender_address(self) -> str:
        if self.account is None:
            raise ConfigurationMissingError("EXECUTOR_PRIVATE_KEY")
        return self.account.address

    # ---------- internal helpers ----------

    async def _finalize_fee_fields(self, tx: dict) -> dict:
        """
        If the caller didn't specify EIP-1559 style fields, fallback to legacy gasPrice.
        """
        if "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
            return tx
        if "gasPrice" not in tx:
            tx["gasPrice"] = await self.w3.eth.gas_price
        return tx

    async def _revert_reason(self, tx: dict, block_number: Optional[int]) -> Optional[str]:
        """
        Replays the call at the mined block to recover the revert string.
        """
        call = {k: tx[k] for k in ("from", "to", "data", "value") if k in tx}
        try:
            await self.w3.eth.call(call, block_identifier=block_number or "latest")
        except ContractLogicError as exc:
            return str(exc.message or exc)
        except Exception as exc:
            self._logger.debug("revert replay failed: %s", exc)
        return None

    # ---------- public API ----------

    async def send(self, fn, *, gas_limit: int, value: int = 0) -> dict:
        """
        Broadcasts a state-changing call and waits for it to be mined.

        Args:
            fn: parameterized AsyncContractFunction
            gas_limit: explicit gas limit (estimation is not used for module calls)
            value: ETH value (wei)

        Returns:
            {
              "tx_hash": "0x..",
              "status": 1,
              "block_number": int,
              "gas_limit_used": int,
              "gas_price_wei": int,
              "receipt": <raw web3 receipt>,
            }

        Raises:
            ConfigurationMissingError: no executor key configured.
            SubmissionFailedError: build/sign/send failed, or the receipt wait
                timed out (tx_hash set in that case).
            TransactionRevertedError: mined with status == 0.
        """
        sender = self.sender_address()
        nonce = await self._nonces.acquire(sender)

        # 1) build + sign + broadcast; nothing reached the network on failure
        try:
            tx = await fn.build_transaction({
                "from": sender,
                "nonce": nonce,
                "value": int(value or 0),
                "gas": int(gas_limit),
            })
            tx = await self._finalize_fee_fields(tx)
            signed = self.w3.eth.account.sign_transaction(tx, self.pk)
            txh = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            await self._nonces.release_unused(sender, nonce)
            raise SubmissionFailedError(f"submission failed: {exc}") from exc

        tx_hash = Web3.to_hex(txh)
        self._logger.info("tx sent %s nonce=%s gas=%s", tx_hash, nonce, gas_limit)

        # 2) wait for inclusion under a deadline
        try:
            rcpt = await self.w3.eth.wait_for_transaction_receipt(txh, timeout=self._receipt_timeout)
        except TimeExhausted as exc:
            raise SubmissionFailedError(
                f"receipt not available after {self._receipt_timeout}s", tx_hash=tx_hash, nonce=nonce
            ) from exc
        except Exception as exc:
            raise SubmissionFailedError(f"receipt wait failed: {exc}", tx_hash=tx_hash, nonce=nonce) from exc

        status = int(rcpt.get("status", 0))
        block_number = rcpt.get("blockNumber")

        if status == 0:
            reason = await self._revert_reason(tx, block_number)
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                receipt=to_json_safe(rcpt),
                msg="Transaction reverted (status=0). Possibly out-of-gas or require() failed",
                reason=reason,
            )

        return {
            "tx_hash": tx_hash,
            "status": status,
            "block_number": block_number,
            "gas_limit_used": int(gas_limit),
            "gas_price_wei": int(tx.get("gasPrice", 0)),
            "receipt": rcpt,
        }

    async def get_receipt(self, tx_hash: str) -> Optional[dict]:
        """
        Receipt of a previously sent tx, or None if the node does not know it yet.
        """
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def get_transaction(self, tx_hash: str) -> Optional[dict]:
        """
        The tx as the node sees it (pending or mined), or None if it was
        dropped from the mempool or never propagated.
        """
        try:
            return await self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None

    async def confirmed_nonce(self) -> int:
        """Number of mined txs from the executor account."""
        return await self.w3.eth.get_transaction_count(self.sender_address(), "latest")

    def reset_nonces(self) -> None:
        """Forget cached nonces so the next send re-reads the node's pending count."""
        if self.account is not None:
            self._nonces.forget(self.account.address)
