"""Raw block decoding and re-encoding (Bitcoin consensus serialization)."""

import struct
from typing import List, Tuple
import structlog

from utxo_fetcher.core.errors import MalformedBlock
from utxo_fetcher.models.blockchain import (
    BlockHeader, DecodedBlock, OutPoint, Transaction, TxIn, TxOut
)
from utxo_fetcher.utils.bitcoin import (
    double_sha256, hash_to_hex, hex_to_hash, write_compact_size
)

logger = structlog.get_logger(__name__)

HEADER_SIZE = 80
SEGWIT_MARKER = 0x00
SEGWIT_FLAG = 0x01


class _ByteReader:
    """Bounds-checked cursor over a byte buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read(self, n: int) -> bytes:
        if n < 0 or n > self.remaining():
            raise MalformedBlock(
                f"Unexpected end of data: need {n} bytes, {self.remaining()} left",
                offset=self.offset,
            )
        chunk = self.data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def peek(self, n: int) -> bytes:
        return self.data[self.offset:self.offset + n]

    def read_uint8(self) -> int:
        return self.read(1)[0]

    def read_int32(self) -> int:
        return struct.unpack("<i", self.read(4))[0]

    def read_uint32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]

    def read_uint64(self) -> int:
        return struct.unpack("<Q", self.read(8))[0]

    def read_compact_size(self) -> int:
        prefix = self.read_uint8()
        if prefix < 0xFD:
            return prefix
        elif prefix == 0xFD:
            return struct.unpack("<H", self.read(2))[0]
        elif prefix == 0xFE:
            return struct.unpack("<I", self.read(4))[0]
        return self.read_uint64()

    def read_count(self, min_item_size: int) -> int:
        """Read a CompactSize count and check it fits in what is left."""
        start = self.offset
        count = self.read_compact_size()
        if count * min_item_size > self.remaining():
            raise MalformedBlock(
                f"Declared count {count} exceeds remaining buffer ({self.remaining()} bytes)",
                offset=start,
            )
        return count

    def read_var_bytes(self) -> bytes:
        return self.read(self.read_count(1))


class BlockDecoder:
    """Decode raw blocks and transactions into read-only models."""

    def __init__(self):
        self.logger = logger.bind(component="block_decoder")

    def decode_block(self, raw: bytes) -> DecodedBlock:
        """
        Decode a serialized block.

        Raises:
            MalformedBlock: truncated data, inconsistent counts, trailing bytes,
                or a first transaction without a coinbase input.
        """
        reader = _ByteReader(bytes(raw))
        header = self._read_header(reader)

        # Every transaction is at least 10 bytes (version, two counts, locktime)
        tx_count = reader.read_count(10)
        if tx_count == 0:
            raise MalformedBlock("Block has no transactions", offset=HEADER_SIZE)

        transactions = [self._read_transaction(reader) for _ in range(tx_count)]

        if reader.remaining():
            raise MalformedBlock(
                f"{reader.remaining()} trailing bytes after last transaction",
                offset=reader.offset,
            )

        coinbase = transactions[0]
        if not coinbase.inputs or not coinbase.inputs[0].previous_output.is_null():
            raise MalformedBlock("First transaction has no coinbase input")

        block = DecodedBlock(
            header=header,
            transactions=transactions,
            block_hash=hash_to_hex(double_sha256(header.raw)),
        )

        self.logger.debug("Decoded block",
                          block_hash=block.block_hash,
                          tx_count=len(transactions),
                          input_count=block.input_count)
        return block

    def decode_transaction(self, raw: bytes) -> Transaction:
        """Decode a single serialized transaction (legacy or segwit)."""
        reader = _ByteReader(bytes(raw))
        tx = self._read_transaction(reader)
        if reader.remaining():
            raise MalformedBlock(
                f"{reader.remaining()} trailing bytes after transaction",
                offset=reader.offset,
            )
        return tx

    def _read_header(self, reader: _ByteReader) -> BlockHeader:
        raw_header = reader.read(HEADER_SIZE)
        header_reader = _ByteReader(raw_header)
        return BlockHeader(
            version=header_reader.read_int32(),
            previous_block_hash=hash_to_hex(header_reader.read(32)),
            merkle_root=hash_to_hex(header_reader.read(32)),
            timestamp=header_reader.read_uint32(),
            bits=header_reader.read_uint32(),
            nonce=header_reader.read_uint32(),
            raw=raw_header,
        )

    def _read_transaction(self, reader: _ByteReader) -> Transaction:
        start = reader.offset
        version = reader.read_int32()

        has_witness = False
        if reader.peek(1) == bytes([SEGWIT_MARKER]):
            reader.read(1)
            flag = reader.read_uint8()
            if flag != SEGWIT_FLAG:
                raise MalformedBlock(f"Invalid segwit flag {flag:#04x}", offset=reader.offset - 1)
            has_witness = True

        # Outpoint (36) + script length (1) + sequence (4)
        input_count = reader.read_count(41)
        inputs: List[Tuple[OutPoint, bytes, int]] = []
        for _ in range(input_count):
            prev_hash = reader.read(32)
            prev_index = reader.read_uint32()
            script_sig = reader.read_var_bytes()
            sequence = reader.read_uint32()
            inputs.append((OutPoint(hash_to_hex(prev_hash), prev_index), script_sig, sequence))

        # Value (8) + script length (1)
        output_count = reader.read_count(9)
        outputs = []
        for _ in range(output_count):
            value = reader.read_uint64()
            outputs.append(TxOut(value=value, script_pubkey=reader.read_var_bytes()))

        witnesses: List[List[bytes]] = [[] for _ in inputs]
        if has_witness:
            for witness in witnesses:
                item_count = reader.read_count(1)
                witness.extend(reader.read_var_bytes() for _ in range(item_count))

        locktime = reader.read_uint32()

        tx_inputs = [
            TxIn(previous_output=outpoint, script_sig=script_sig,
                 sequence=sequence, witness=witness)
            for (outpoint, script_sig, sequence), witness in zip(inputs, witnesses)
        ]

        if has_witness:
            txid_bytes = double_sha256(_serialize_transaction(
                version, tx_inputs, outputs, locktime, include_witness=False))
        else:
            txid_bytes = double_sha256(reader.data[start:reader.offset])

        return Transaction(
            version=version,
            inputs=tx_inputs,
            outputs=outputs,
            locktime=locktime,
            txid=hash_to_hex(txid_bytes),
            has_witness=has_witness,
        )


def _serialize_transaction(version: int, inputs: List[TxIn], outputs: List[TxOut],
                           locktime: int, include_witness: bool) -> bytes:
    parts = [struct.pack("<i", version)]
    if include_witness:
        parts.append(bytes([SEGWIT_MARKER, SEGWIT_FLAG]))

    parts.append(write_compact_size(len(inputs)))
    for txin in inputs:
        parts.append(hex_to_hash(txin.previous_output.txid))
        parts.append(struct.pack("<I", txin.previous_output.vout))
        parts.append(write_compact_size(len(txin.script_sig)))
        parts.append(txin.script_sig)
        parts.append(struct.pack("<I", txin.sequence))

    parts.append(write_compact_size(len(outputs)))
    for txout in outputs:
        parts.append(struct.pack("<Q", txout.value))
        parts.append(write_compact_size(len(txout.script_pubkey)))
        parts.append(txout.script_pubkey)

    if include_witness:
        for txin in inputs:
            parts.append(write_compact_size(len(txin.witness)))
            for item in txin.witness:
                parts.append(write_compact_size(len(item)))
                parts.append(item)

    parts.append(struct.pack("<I", locktime))
    return b"".join(parts)


def encode_transaction(tx: Transaction) -> bytes:
    """Serialize a transaction, with witness data if it was decoded with it."""
    return _serialize_transaction(tx.version, tx.inputs, tx.outputs, tx.locktime,
                                  include_witness=tx.has_witness)


def encode_header(header: BlockHeader) -> bytes:
    return b"".join([
        struct.pack("<i", header.version),
        hex_to_hash(header.previous_block_hash),
        hex_to_hash(header.merkle_root),
        struct.pack("<III", header.timestamp, header.bits, header.nonce),
    ])


def encode_block(block: DecodedBlock) -> bytes:
    """Serialize a decoded block back into consensus bytes."""
    parts = [encode_header(block.header), write_compact_size(len(block.transactions))]
    parts.extend(encode_transaction(tx) for tx in block.transactions)
    return b"".join(parts)


_decoder = BlockDecoder()


def decode_block(raw: bytes) -> DecodedBlock:
    """Module-level shortcut for ``BlockDecoder().decode_block``."""
    return _decoder.decode_block(raw)


def decode_transaction(raw: bytes) -> Transaction:
    """Module-level shortcut for ``BlockDecoder().decode_transaction``."""
    return _decoder.decode_transaction(raw)
