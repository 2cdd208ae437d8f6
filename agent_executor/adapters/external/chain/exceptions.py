from typing import Optional


class TransactionRevertedError(Exception):
    """
    Raised when the tx was actually sent on-chain, mined, and status == 0.
    Gas was paid, the chain executed and reverted. Not retried with the
    same parameters.
    """
    def __init__(self, tx_hash: str, receipt: dict, msg: str, reason: Optional[str] = None):
        super().__init__(msg if not reason else f"{msg}: {reason}")
        self.tx_hash = tx_hash
        self.receipt = receipt
        self.msg = msg
        self.reason = reason


class SubmissionFailedError(Exception):
    """
    Network / RPC level failure around a submission.

    tx_hash is None when nothing reached the network. When it is set (e.g. the
    receipt wait timed out) the tx may still land; reconcile before acting.
    nonce is the sender nonce the tx was signed with, when known.
    """
    def __init__(self, msg: str, tx_hash: Optional[str] = None, nonce: Optional[int] = None):
        super().__init__(msg)
        self.msg = msg
        self.tx_hash = tx_hash
        self.nonce = nonce


class TransactionDroppedError(SubmissionFailedError):
    """
    A broadcast tx that will never be mined: the node no longer knows it and
    its nonce was consumed by another tx, or it stayed unconfirmed past the
    allowed age. Safe to submit again.
    """


class ConfigurationMissingError(Exception):
    """
    Executor key or module address is absent. Fatal for the process.
    """
    def __init__(self, field: str):
        super().__init__(f"missing required configuration: {field}")
        self.field = field


class QuoteUnavailableError(Exception):
    """No fee tier returned a quote for the pair."""
    def __init__(self, token_in: str, token_out: str, amount_in: int):
        super().__init__(f"no quote for {token_in} -> {token_out} amount_in={amount_in}")
        self.token_in = token_in
        self.token_out = token_out
        self.amount_in = amount_in
