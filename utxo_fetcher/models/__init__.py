"""Data models and configuration."""

from utxo_fetcher.models.config import FetcherConfig
from utxo_fetcher.models.blockchain import (
    BlockHeader,
    ComparisonReport,
    DecodedBlock,
    FieldDiff,
    OutPoint,
    PrevoutInfo,
    SpentUtxoRecord,
    Transaction,
    TxIn,
    TxOut,
)

__all__ = [
    "FetcherConfig",
    "BlockHeader",
    "ComparisonReport",
    "DecodedBlock",
    "FieldDiff",
    "OutPoint",
    "PrevoutInfo",
    "SpentUtxoRecord",
    "Transaction",
    "TxIn",
    "TxOut",
]
