"""Pytest configuration and fixtures for spent UTXO fetcher tests."""

import threading
import time
from typing import Dict, List, Optional, Tuple

import pytest

from utxo_fetcher.core.block_decoder import decode_block, encode_block
from utxo_fetcher.core.errors import HeightNotFound, LookupUnavailable, PrevoutNotFound
from utxo_fetcher.models.blockchain import (
    NULL_TXID, NULL_VOUT, BlockHeader, DecodedBlock, OutPoint, PrevoutInfo,
    Transaction, TxIn, TxOut
)


# ============================================================================
# REFERENCE DATA
# ============================================================================

GENESIS_BLOCK_HEX = (
    "0100000000000000000000000000000000000000000000000000000000000000"
    "000000003ba3edfd7a7b12b27ac72c3e67768f617fc81bc3888a51323a9fb8aa"
    "4b1e5e4a29ab5f49ffff001d1dac2b7c01010000000100000000000000000000"
    "00000000000000000000000000000000000000000000ffffffff4d04ffff001d"
    "0104455468652054696d65732030332f4a616e2f32303039204368616e63656c"
    "6c6f72206f6e206272696e6b206f66207365636f6e64206261696c6f75742066"
    "6f722062616e6b73ffffffff0100f2052a01000000434104678afdb0fe554827"
    "1967f1a67130b7105cd6a828e03909a67962e0ea1f61deb649f6bc3f4cef38c4"
    "f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_BLOCK_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
GENESIS_COINBASE_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"

# Timestamps shaped like mainnet blocks 156107..156119: block 156113 is about
# two hours ahead of its neighbours, so it sorts last in every window it is in.
# Median of 156108..156118 is block 156114 (1323065878), of 156107..156117 is
# block 156112 (1323065825) and of 156109..156119 is block 156115 (1323066065).
ANOMALY_TIMESTAMPS = {
    156107: 1323062500,
    156108: 1323063000,
    156109: 1323063500,
    156110: 1323064200,
    156111: 1323065000,
    156112: 1323065825,
    156113: 1323073500,
    156114: 1323065878,
    156115: 1323066065,
    156116: 1323066500,
    156117: 1323067000,
    156118: 1323067400,
    156119: 1323068000,
}

# Blocks 866328..866338 have ascending timestamps; 866333 sits in the middle.
ASCENDING_TIMESTAMPS = {
    866328 + i: 1729331091 + (i - 5) * 600 for i in range(11)
}

P2WPKH_SCRIPT = bytes.fromhex("0014") + bytes(range(20))
P2PKH_SCRIPT = bytes.fromhex("76a914") + bytes(range(20)) + bytes.fromhex("88ac")


# ============================================================================
# FAKE LOOKUP SERVICE
# ============================================================================

class FakeLookupService:
    """Deterministic in-memory ``LookupService`` that counts its calls."""

    def __init__(self, prevouts: Optional[Dict[OutPoint, PrevoutInfo]] = None,
                 timestamps: Optional[Dict[int, int]] = None,
                 delay: float = 0.0):
        self.prevouts = dict(prevouts or {})
        self.timestamps = dict(timestamps or {})
        self.delay = delay
        self.unavailable_outpoints = set()
        self.unavailable_heights = set()
        self.prevout_calls: List[OutPoint] = []
        self.timestamp_calls: List[int] = []
        self._lock = threading.Lock()

    def fetch_prevout(self, outpoint: OutPoint) -> PrevoutInfo:
        with self._lock:
            self.prevout_calls.append(outpoint)
        if self.delay:
            time.sleep(self.delay)
        if outpoint in self.unavailable_outpoints:
            raise LookupUnavailable("service unavailable", outpoint=outpoint)
        if outpoint not in self.prevouts:
            raise PrevoutNotFound(outpoint)
        return self.prevouts[outpoint]

    def fetch_block_timestamp(self, height: int) -> int:
        with self._lock:
            self.timestamp_calls.append(height)
        if self.delay:
            time.sleep(self.delay)
        if height in self.unavailable_heights:
            raise LookupUnavailable("service unavailable", height=height)
        if height not in self.timestamps:
            raise HeightNotFound(height)
        return self.timestamps[height]


# ============================================================================
# BLOCK CONSTRUCTION
# ============================================================================

def make_txid(n: int) -> str:
    return f"{n:064x}"


def make_transaction(inputs: List[Tuple[str, int]], outputs: List[TxOut],
                     witness: bool = False) -> Transaction:
    """Transaction with placeholder txid; decode an encoded block to get real ids."""
    tx_inputs = [
        TxIn(previous_output=OutPoint(txid, vout), script_sig=b"\x51",
             sequence=0xFFFFFFFF, witness=[b"\x30" * 71, b"\x02" * 33] if witness else [])
        for txid, vout in inputs
    ]
    return Transaction(version=2, inputs=tx_inputs, outputs=outputs, locktime=0,
                       txid="", has_witness=witness)


def make_coinbase(height: int = 866339) -> Transaction:
    coinbase_in = TxIn(
        previous_output=OutPoint(NULL_TXID, NULL_VOUT),
        script_sig=bytes([3]) + height.to_bytes(3, "little"),
        sequence=0xFFFFFFFF,
    )
    return Transaction(version=1, inputs=[coinbase_in],
                       outputs=[TxOut(value=312_500_000, script_pubkey=P2WPKH_SCRIPT)],
                       locktime=0, txid="")


def make_raw_block(transactions: List[Transaction], timestamp: int = 1729334424) -> bytes:
    header = BlockHeader(
        version=0x20000000,
        previous_block_hash="00" * 32,
        merkle_root="11" * 32,
        timestamp=timestamp,
        bits=0x17030ECD,
        nonce=12345,
    )
    return encode_block(DecodedBlock(header=header, transactions=transactions, block_hash=""))


def make_block(transactions: List[Transaction]) -> DecodedBlock:
    return decode_block(make_raw_block(transactions))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def genesis_raw() -> bytes:
    return bytes.fromhex(GENESIS_BLOCK_HEX)


@pytest.fixture
def anomaly_lookup():
    """Lookup service serving the 156107..156119 timestamps."""
    return FakeLookupService(timestamps=ANOMALY_TIMESTAMPS)


@pytest.fixture
def spending_block():
    """
    Block with a coinbase and three spending transactions (four inputs).

    Input order: (a, 0), (b, 1), (a, 1), (c, 0); (a, *) and (c, 0) were
    confirmed at 866339, (b, 1) at 156119 from a coinbase transaction.
    """
    txs = [
        make_coinbase(),
        make_transaction([(make_txid(0xA), 0), (make_txid(0xB), 1)],
                         [TxOut(value=90_000, script_pubkey=P2WPKH_SCRIPT)], witness=True),
        make_transaction([(make_txid(0xA), 1)],
                         [TxOut(value=40_000, script_pubkey=P2PKH_SCRIPT)]),
        make_transaction([(make_txid(0xC), 0)],
                         [TxOut(value=10_000, script_pubkey=P2PKH_SCRIPT)], witness=True),
    ]
    return make_block(txs)


@pytest.fixture
def spending_prevouts():
    return {
        OutPoint(make_txid(0xA), 0): PrevoutInfo(TxOut(50_000, P2WPKH_SCRIPT), 866339, False),
        OutPoint(make_txid(0xB), 1): PrevoutInfo(TxOut(5_000_000_000, P2PKH_SCRIPT), 156119, True),
        OutPoint(make_txid(0xA), 1): PrevoutInfo(TxOut(45_000, P2PKH_SCRIPT), 866339, False),
        OutPoint(make_txid(0xC), 0): PrevoutInfo(TxOut(12_000, P2WPKH_SCRIPT), 866339, False),
    }


@pytest.fixture
def spending_lookup(spending_prevouts):
    timestamps = dict(ANOMALY_TIMESTAMPS)
    timestamps.update(ASCENDING_TIMESTAMPS)
    return FakeLookupService(prevouts=spending_prevouts, timestamps=timestamps)
