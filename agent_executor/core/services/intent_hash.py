from eth_abi import encode
from eth_utils import keccak, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def compute_signal_hash(
    side: str,
    token_symbol: str,
    creator_address: str | None,
    amount_in_raw: int,
    timestamp: int,
) -> str:
    """
    Proof-of-intent hash of a signal:
    keccak256(abi.encode(string side, string symbol, address creator, uint256 amountIn, uint256 ts))
    """
    creator = to_checksum_address(creator_address or ZERO_ADDRESS)
    payload = encode(
        ["string", "string", "address", "uint256", "uint256"],
        [side, token_symbol, creator, int(amount_in_raw), int(timestamp)],
    )
    return "0x" + keccak(payload).hex()
