"""Core decoding, lookup and resolution components."""

from utxo_fetcher.core.block_decoder import (
    BlockDecoder,
    decode_block,
    decode_transaction,
    encode_block,
    encode_transaction,
)
from utxo_fetcher.core.coin_time import CoinTimeCache, CoinTimeResolver, median_time_past
from utxo_fetcher.core.data_provider import ChainLookupService, LookupService, create_lookup_service
from utxo_fetcher.core.errors import (
    FetcherError,
    HashMismatch,
    HeightNotFound,
    InsufficientHistory,
    LookupUnavailable,
    MalformedBlock,
    PrevoutNotFound,
)
from utxo_fetcher.core.spent_output_builder import SpentOutputBuilder
from utxo_fetcher.core.verification import compare, verify_hash

__all__ = [
    "BlockDecoder",
    "decode_block",
    "decode_transaction",
    "encode_block",
    "encode_transaction",
    "CoinTimeCache",
    "CoinTimeResolver",
    "median_time_past",
    "ChainLookupService",
    "LookupService",
    "create_lookup_service",
    "FetcherError",
    "HashMismatch",
    "HeightNotFound",
    "InsufficientHistory",
    "LookupUnavailable",
    "MalformedBlock",
    "PrevoutNotFound",
    "SpentOutputBuilder",
    "compare",
    "verify_hash",
]
