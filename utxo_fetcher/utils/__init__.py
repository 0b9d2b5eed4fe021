"""Utility functions and helpers."""

from utxo_fetcher.utils.logging import setup_logging
from utxo_fetcher.utils.bitcoin import (
    double_sha256,
    hash_to_hex,
    hex_to_hash,
    get_script_type,
    satoshi_to_btc,
)
from utxo_fetcher.utils.time import to_utc_timestamp, format_block_time

__all__ = [
    "setup_logging",
    "double_sha256",
    "hash_to_hex",
    "hex_to_hash",
    "get_script_type",
    "satoshi_to_btc",
    "to_utc_timestamp",
    "format_block_time",
]
