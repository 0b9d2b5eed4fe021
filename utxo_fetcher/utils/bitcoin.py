"""Bitcoin-specific utility functions."""

import hashlib
import struct
from decimal import Decimal

# Satoshis per Bitcoin
SATOSHIS_PER_BTC = Decimal('100000000')


def satoshi_to_btc(satoshis: int) -> Decimal:
    """Convert satoshis to BTC."""
    return Decimal(satoshis) / SATOSHIS_PER_BTC


def double_sha256(data: bytes) -> bytes:
    """SHA256(SHA256(data)), the hash used for block and transaction ids."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash_to_hex(digest: bytes) -> str:
    """Internal byte order to the reversed hex shown by explorers."""
    return digest[::-1].hex()


def hex_to_hash(value: str) -> bytes:
    """Reversed display hex back to internal byte order."""
    digest = bytes.fromhex(value)
    if len(digest) != 32:
        raise ValueError(f"Hash must be 32 bytes, got {len(digest)}")
    return digest[::-1]


def write_compact_size(n: int) -> bytes:
    """Encode an integer as a CompactSize."""
    if n < 0xFD:
        return struct.pack("<B", n)
    elif n <= 0xFFFF:
        return struct.pack("<BH", 0xFD, n)
    elif n <= 0xFFFFFFFF:
        return struct.pack("<BI", 0xFE, n)
    return struct.pack("<BQ", 0xFF, n)


def get_script_type(script: bytes) -> str:
    """Determine script type from the locking script bytes."""
    if not script:
        return "unknown"

    # P2PKH: OP_DUP OP_HASH160 <pubKeyHash> OP_EQUALVERIFY OP_CHECKSIG
    if (len(script) == 25 and
        script[0] == 0x76 and  # OP_DUP
        script[1] == 0xa9 and  # OP_HASH160
        script[2] == 0x14 and  # Push 20 bytes
        script[23] == 0x88 and # OP_EQUALVERIFY
        script[24] == 0xac):   # OP_CHECKSIG
        return "P2PKH"

    # P2SH: OP_HASH160 <scriptHash> OP_EQUAL
    if (len(script) == 23 and
        script[0] == 0xa9 and
        script[1] == 0x14 and
        script[22] == 0x87):
        return "P2SH"

    # P2WPKH: OP_0 <20-byte-pubkey-hash>
    if len(script) == 22 and script[0] == 0x00 and script[1] == 0x14:
        return "P2WPKH"

    # P2WSH: OP_0 <32-byte-script-hash>
    if len(script) == 34 and script[0] == 0x00 and script[1] == 0x20:
        return "P2WSH"

    # P2TR: OP_1 <32-byte-taproot-output>
    if len(script) == 34 and script[0] == 0x51 and script[1] == 0x20:
        return "P2TR"

    # P2PK: <pubkey> OP_CHECKSIG
    if len(script) in (35, 67) and script[-1] == 0xac:
        return "P2PK"

    # Multisig: OP_M <pubkey1> ... <pubkeyN> OP_N OP_CHECKMULTISIG
    if len(script) > 3 and 0x51 <= script[0] <= 0x60 and script[-1] == 0xae:
        return "MULTISIG"

    if script[0] == 0x6a:  # OP_RETURN
        return "OP_RETURN"

    return "NON_STANDARD"
