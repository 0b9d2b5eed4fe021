"""Block directory files: raw block input, JSON results and zstd archives."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import structlog
import zstd

from utxo_fetcher.models.blockchain import NULL_TXID, OutPoint, SpentUtxoRecord, TxOut

logger = structlog.get_logger(__name__)

RAW_FILE = "raw"
SPENT_UTXOS_FILE = "spent_utxos.json"
RAW_ZST_FILE = "raw.zst"
SPENT_UTXOS_ZST_FILE = "spent_utxos.zst"


@dataclass(frozen=True)
class BlockDirectory:
    """Paths used for one block: ``raw`` in, JSON and ``.zst`` files out."""
    path: Path

    @property
    def raw(self) -> Path:
        return self.path / RAW_FILE

    @property
    def spent_utxos(self) -> Path:
        return self.path / SPENT_UTXOS_FILE

    @property
    def raw_zst(self) -> Path:
        return self.path / RAW_ZST_FILE

    @property
    def spent_utxos_zst(self) -> Path:
        return self.path / SPENT_UTXOS_ZST_FILE

    def existing_outputs(self) -> List[Path]:
        return [p for p in (self.spent_utxos, self.raw_zst, self.spent_utxos_zst) if p.exists()]

    def read_raw(self) -> bytes:
        return self.raw.read_bytes()


def positional_outpoint(index: int) -> OutPoint:
    """Stand-in key for the ``index``-th entry of a file written without outpoints."""
    return OutPoint(txid=NULL_TXID, vout=index)


def record_to_dict(record: SpentUtxoRecord) -> Dict[str, Any]:
    """JSON shape of a record; ``creation_time`` holds the coin time."""
    return {
        "outpoint": str(record.outpoint),
        "txout": {
            "value": record.tx_out.value,
            "script_pubkey": record.tx_out.script_pubkey.hex(),
        },
        "is_coinbase": record.is_coinbase,
        "creation_height": record.creation_height,
        "creation_time": record.coin_time,
    }


def record_from_dict(data: Dict[str, Any], outpoint: Optional[OutPoint] = None) -> SpentUtxoRecord:
    """Parse a record; ``outpoint`` is used when the entry carries none."""
    if "outpoint" in data:
        outpoint = OutPoint.parse(data["outpoint"])
    elif outpoint is None:
        raise ValueError("Record has no outpoint and no positional outpoint was given")

    txout = data["txout"]
    return SpentUtxoRecord(
        outpoint=outpoint,
        tx_out=TxOut(value=int(txout["value"]), script_pubkey=bytes.fromhex(txout["script_pubkey"])),
        is_coinbase=bool(data["is_coinbase"]),
        creation_height=int(data["creation_height"]),
        coin_time=int(data["creation_time"]),
    )


def write_records(path: Path, records: Sequence[SpentUtxoRecord]) -> None:
    """Write records as pretty JSON, refusing to overwrite an existing file."""
    path = Path(path)
    with path.open("x", encoding="utf-8") as fh:
        json.dump([record_to_dict(r) for r in records], fh, indent=2)
        fh.write("\n")
    logger.info("Wrote spent UTXOs", path=str(path), records=len(records))


def load_records(path: Path, outpoints: Optional[Sequence[OutPoint]] = None) -> List[SpentUtxoRecord]:
    """
    Load records from ``.json`` or ``.zst`` (zstd-compressed JSON).

    Entries without an ``outpoint`` key are matched positionally to
    ``outpoints``. Past the end of ``outpoints`` (or without it) they are
    keyed by ``positional_outpoint(index)``, so two such files still line up
    by position.
    """
    path = Path(path)
    raw = path.read_bytes()
    if path.suffix == ".zst":
        raw = zstd.decompress(raw)

    entries = json.loads(raw)
    if not isinstance(entries, list):
        raise ValueError(f"{path} does not contain a list of records")

    records = []
    for index, entry in enumerate(entries):
        if outpoints is not None and index < len(outpoints):
            fallback = outpoints[index]
        else:
            fallback = positional_outpoint(index)
        records.append(record_from_dict(entry, fallback))
    return records


def compress_file(input_path: Path, output_path: Path, level: int = 22) -> None:
    """Compress ``input_path`` into ``output_path`` with zstd."""
    output_path = Path(output_path)
    compressed = zstd.compress(Path(input_path).read_bytes(), level)
    with output_path.open("xb") as fh:
        fh.write(compressed)
    logger.info("Compression complete", path=str(output_path), size=len(compressed))
