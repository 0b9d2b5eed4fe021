"""Blockchain data models for decoded blocks and spent UTXO records."""

from dataclasses import dataclass, field
from typing import List

NULL_TXID = "00" * 32
NULL_VOUT = 0xFFFFFFFF


@dataclass(frozen=True)
class OutPoint:
    """Reference to a specific output of a specific transaction."""
    txid: str
    vout: int

    def is_null(self) -> bool:
        """Coinbase inputs reference the all-zero txid at index 0xffffffff."""
        return self.txid == NULL_TXID and self.vout == NULL_VOUT

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"

    @classmethod
    def parse(cls, value: str) -> "OutPoint":
        """Parse the ``txid:vout`` form produced by ``str()``."""
        txid, sep, vout = value.rpartition(":")
        if not sep or not txid:
            raise ValueError(f"Invalid outpoint: {value!r}")
        return cls(txid=txid.lower(), vout=int(vout))


@dataclass(frozen=True)
class TxOut:
    """Transaction output: value in satoshis and the locking script."""
    value: int
    script_pubkey: bytes


@dataclass(frozen=True)
class TxIn:
    """Transaction input."""
    previous_output: OutPoint
    script_sig: bytes
    sequence: int
    witness: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class Transaction:
    """Decoded transaction."""
    version: int
    inputs: List[TxIn]
    outputs: List[TxOut]
    locktime: int
    txid: str
    has_witness: bool = False

    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].previous_output.is_null()


@dataclass(frozen=True)
class BlockHeader:
    """80-byte block header."""
    version: int
    previous_block_hash: str
    merkle_root: str
    timestamp: int
    bits: int
    nonce: int
    raw: bytes = field(repr=False, default=b"")


@dataclass(frozen=True)
class DecodedBlock:
    """Read-only view of a raw block."""
    header: BlockHeader
    transactions: List[Transaction]
    block_hash: str

    @property
    def input_count(self) -> int:
        """Number of inputs that need resolving (coinbase input excluded)."""
        return sum(len(tx.inputs) for tx in self.transactions) - 1


@dataclass(frozen=True)
class PrevoutInfo:
    """Lookup result for a spent output."""
    tx_out: TxOut
    creation_height: int
    is_coinbase: bool


@dataclass(frozen=True)
class SpentUtxoRecord:
    """A spent output together with the metadata needed to validate its spend.

    ``coin_time`` is the BIP-68 creation time: the median time past of the
    block preceding the one that confirmed the output.
    """
    outpoint: OutPoint
    tx_out: TxOut
    is_coinbase: bool
    creation_height: int
    coin_time: int


@dataclass(frozen=True)
class FieldDiff:
    """A single field that differs between two records with the same outpoint."""
    outpoint: OutPoint
    field_name: str
    actual: object
    reference: object


@dataclass
class ComparisonReport:
    """Result of comparing two spent UTXO record sets."""
    field_diffs: List[FieldDiff] = field(default_factory=list)
    only_in_actual: List[OutPoint] = field(default_factory=list)
    only_in_reference: List[OutPoint] = field(default_factory=list)
    compared: int = 0

    @property
    def is_equal(self) -> bool:
        return not (self.field_diffs or self.only_in_actual or self.only_in_reference)

    @property
    def diff_count(self) -> int:
        return len(self.field_diffs) + len(self.only_in_actual) + len(self.only_in_reference)
