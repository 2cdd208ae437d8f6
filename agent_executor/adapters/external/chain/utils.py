from typing import Any, Sequence

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector
from hexbytes import HexBytes
from web3 import Web3


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert web3 / HexBytes-heavy structures into plain
    JSON-serializable primitives (dict, list, str, int, float, bool, None).

    - HexBytes -> "0x..." str
    - bytes    -> "0x..." str
    - dict / AttributeDict -> {k: to_json_safe(v)}
    - list/tuple -> [to_json_safe(v), ...]
    - everything else -> unchanged if natively serializable, else str(obj)
    """
    if isinstance(obj, HexBytes):
        return Web3.to_hex(obj)

    if isinstance(obj, (bytes, bytearray)):
        return "0x" + obj.hex()

    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj

    if hasattr(obj, "items"):
        return {str(k): to_json_safe(v) for (k, v) in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]

    return str(obj)


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> bytes:
    """
    Raw calldata for `signature`, e.g.
    encode_call("approve(address,uint256)", ["address", "uint256"], [spender, amount])
    """
    return function_signature_to_4byte_selector(signature) + encode(list(arg_types), list(args))


def checksum(addr: str) -> str:
    return Web3.to_checksum_address(addr)
