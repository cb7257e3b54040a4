"""ABI encoding of revealed clear values"""
from typing import List, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError

from daocredit.errors import InvalidProofError

CLEAR_VALUE_TYPE = 'uint32'

def encode_clear_values(values: Sequence[int]) -> bytes:
    """Encode clear values as a tuple of uint32, one 32-byte word each"""
    try:
        return encode([CLEAR_VALUE_TYPE] * len(values), list(values))
    except EncodingError as e:
        raise ValueError(f"Clear value out of range: {e}")

def decode_clear_values(payload: bytes, count: int) -> List[int]:
    """
    Decode exactly `count` uint32 clear values.

    Raises:
        InvalidProofError: If the payload is not `count` well-formed words
    """
    if len(payload) != 32 * count:
        raise InvalidProofError(
            f"Clear value payload has {len(payload)} bytes, expected {32 * count}"
        )
    try:
        return list(decode([CLEAR_VALUE_TYPE] * count, payload))
    except DecodingError as e:
        raise InvalidProofError(f"Malformed clear value payload: {e}")
