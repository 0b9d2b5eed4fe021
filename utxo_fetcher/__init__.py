"""
Spent UTXO Fetcher

Reconstructs, for every input of a raw Bitcoin block, the output it spends:
value, script, coinbase flag, creation height and BIP-68 coin time.
"""

__version__ = "1.0.0"
__author__ = "Bitcoin Data Engineering Team"
__description__ = "Spent UTXO fetcher for raw Bitcoin blocks using public block explorer APIs"

from utxo_fetcher.core.block_decoder import decode_block
from utxo_fetcher.core.coin_time import CoinTimeCache, CoinTimeResolver
from utxo_fetcher.core.data_provider import ChainLookupService, LookupService
from utxo_fetcher.core.spent_output_builder import SpentOutputBuilder
from utxo_fetcher.core.verification import compare, verify_hash
from utxo_fetcher.models.config import FetcherConfig

__all__ = [
    "decode_block",
    "CoinTimeCache",
    "CoinTimeResolver",
    "ChainLookupService",
    "LookupService",
    "SpentOutputBuilder",
    "compare",
    "verify_hash",
    "FetcherConfig",
]
