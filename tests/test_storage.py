"""Tests for block directory files and record serialization."""

import json

import pytest
import zstd

from utxo_fetcher.models.blockchain import OutPoint, SpentUtxoRecord, TxOut
from utxo_fetcher.storage.files import (
    BlockDirectory, compress_file, load_records, positional_outpoint, record_from_dict,
    record_to_dict, write_records
)

from .conftest import P2PKH_SCRIPT, P2WPKH_SCRIPT, make_txid


@pytest.fixture
def records():
    return [
        SpentUtxoRecord(OutPoint(make_txid(1), 0), TxOut(50_000, P2WPKH_SCRIPT), False, 866339, 1729331091),
        SpentUtxoRecord(OutPoint(make_txid(2), 3), TxOut(5_000_000_000, P2PKH_SCRIPT), True, 156119, 1323065878),
    ]


class TestRecordSerialization:
    """JSON shape of a single record."""

    def test_to_dict(self, records):
        assert record_to_dict(records[1]) == {
            "outpoint": f"{make_txid(2)}:3",
            "txout": {"value": 5_000_000_000, "script_pubkey": P2PKH_SCRIPT.hex()},
            "is_coinbase": True,
            "creation_height": 156119,
            "creation_time": 1323065878,
        }

    def test_from_dict(self, records):
        assert record_from_dict(record_to_dict(records[0])) == records[0]

    def test_positional_outpoint(self, records):
        data = record_to_dict(records[0])
        del data["outpoint"]

        assert record_from_dict(data, records[0].outpoint) == records[0]

    def test_missing_outpoint(self, records):
        data = record_to_dict(records[0])
        del data["outpoint"]

        with pytest.raises(ValueError):
            record_from_dict(data)

    def test_outpoint_in_entry_wins(self, records):
        data = record_to_dict(records[0])

        assert record_from_dict(data, records[1].outpoint).outpoint == records[0].outpoint


class TestRecordFiles:
    """Reading and writing record files."""

    def test_write_and_load(self, tmp_path, records):
        path = tmp_path / "spent_utxos.json"
        write_records(path, records)

        assert load_records(path) == records
        assert json.loads(path.read_text())[0]["creation_time"] == 1729331091

    def test_write_refuses_overwrite(self, tmp_path, records):
        path = tmp_path / "spent_utxos.json"
        path.write_text("[]")

        with pytest.raises(FileExistsError):
            write_records(path, records)
        assert path.read_text() == "[]"

    def test_empty_list(self, tmp_path):
        path = tmp_path / "spent_utxos.json"
        write_records(path, [])

        assert load_records(path) == []

    def test_load_compressed(self, tmp_path, records):
        json_path = tmp_path / "spent_utxos.json"
        zst_path = tmp_path / "spent_utxos.zst"
        write_records(json_path, records)
        compress_file(json_path, zst_path)

        assert zstd.decompress(zst_path.read_bytes()) == json_path.read_bytes()
        assert load_records(zst_path) == records

    def test_load_without_outpoints(self, tmp_path, records):
        entries = [record_to_dict(r) for r in records]
        for entry in entries:
            del entry["outpoint"]
        path = tmp_path / "reference.json"
        path.write_text(json.dumps(entries))

        loaded = load_records(path, [r.outpoint for r in records])

        assert loaded == records

    def test_load_without_any_outpoints(self, tmp_path, records):
        entries = [record_to_dict(r) for r in records]
        for entry in entries:
            del entry["outpoint"]
        path = tmp_path / "spent_utxos.json"
        path.write_text(json.dumps(entries))

        loaded = load_records(path)

        assert [r.outpoint for r in loaded] == [positional_outpoint(0), positional_outpoint(1)]
        assert [r.tx_out for r in loaded] == [r.tx_out for r in records]

    def test_load_rejects_non_list(self, tmp_path):
        path = tmp_path / "reference.json"
        path.write_text('{"outpoint": "x:0"}')

        with pytest.raises(ValueError):
            load_records(path)

    def test_compress_refuses_overwrite(self, tmp_path):
        source = tmp_path / "raw"
        source.write_bytes(b"\x01" * 100)
        target = tmp_path / "raw.zst"
        target.write_bytes(b"existing")

        with pytest.raises(FileExistsError):
            compress_file(source, target, level=3)
        assert target.read_bytes() == b"existing"


class TestBlockDirectory:
    """File layout of a block directory."""

    def test_paths(self, tmp_path):
        directory = BlockDirectory(tmp_path)

        assert directory.raw == tmp_path / "raw"
        assert directory.spent_utxos == tmp_path / "spent_utxos.json"
        assert directory.raw_zst == tmp_path / "raw.zst"
        assert directory.spent_utxos_zst == tmp_path / "spent_utxos.zst"

    def test_existing_outputs(self, tmp_path):
        directory = BlockDirectory(tmp_path)
        directory.raw.write_bytes(b"\x00")

        assert directory.existing_outputs() == []

        directory.raw_zst.write_bytes(b"\x00")
        assert directory.existing_outputs() == [directory.raw_zst]

    def test_read_raw(self, tmp_path, genesis_raw):
        directory = BlockDirectory(tmp_path)
        directory.raw.write_bytes(genesis_raw)

        assert directory.read_raw() == genesis_raw
