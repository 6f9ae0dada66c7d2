"""
Ledger boundary: JSON-RPC клиент, декодирование payload-ов и reader.
"""

from src.ledger.decoding import (
    decode_decay_state,
    decode_pool_state,
    parse_content_id,
    parse_wide_int,
)
from src.ledger.reader import LedgerReader
from src.ledger.rpc_client import (
    METHOD_NOT_FOUND_CODE,
    POOL_NOT_FOUND_CODE,
    LedgerRpcClient,
)

__all__ = [
    "LedgerReader",
    "LedgerRpcClient",
    "METHOD_NOT_FOUND_CODE",
    "POOL_NOT_FOUND_CODE",
    "decode_decay_state",
    "decode_pool_state",
    "parse_content_id",
    "parse_wide_int",
]
