"""Block hash verification and spent UTXO set comparison."""

from typing import Dict, Iterable, Union
import structlog

from utxo_fetcher.core.block_decoder import decode_block
from utxo_fetcher.core.errors import HashMismatch
from utxo_fetcher.models.blockchain import (
    ComparisonReport, DecodedBlock, FieldDiff, OutPoint, SpentUtxoRecord
)

logger = structlog.get_logger(__name__)

COMPARED_FIELDS = ("tx_out", "is_coinbase", "creation_height", "coin_time")


def verify_hash(block: Union[bytes, DecodedBlock], expected_hash: str) -> bool:
    """
    Check the block's header hash against ``expected_hash`` (case-insensitive).

    Raises:
        MalformedBlock: raw bytes could not be decoded.
        HashMismatch: the hashes differ.
    """
    if not isinstance(block, DecodedBlock):
        block = decode_block(block)

    expected = expected_hash.strip().lower()
    if block.block_hash != expected:
        logger.error("Block hashes do not match", expected=expected, actual=block.block_hash)
        raise HashMismatch(expected=expected, actual=block.block_hash)

    logger.info("Block hash verified", block_hash=block.block_hash)
    return True


def _index_by_outpoint(records: Iterable[SpentUtxoRecord]) -> Dict[OutPoint, SpentUtxoRecord]:
    return {record.outpoint: record for record in records}


def compare(actual: Iterable[SpentUtxoRecord],
            reference: Iterable[SpentUtxoRecord]) -> ComparisonReport:
    """
    Compare two record sets keyed by outpoint.

    Reports one ``FieldDiff`` per differing field of a shared outpoint, plus the
    outpoints present on only one side. Diffs follow the order of ``actual``.
    """
    actual_by_outpoint = _index_by_outpoint(actual)
    reference_by_outpoint = _index_by_outpoint(reference)

    report = ComparisonReport()
    for outpoint, record in actual_by_outpoint.items():
        other = reference_by_outpoint.get(outpoint)
        if other is None:
            report.only_in_actual.append(outpoint)
            continue

        report.compared += 1
        for field_name in COMPARED_FIELDS:
            actual_value = getattr(record, field_name)
            reference_value = getattr(other, field_name)
            if actual_value != reference_value:
                report.field_diffs.append(FieldDiff(
                    outpoint=outpoint,
                    field_name=field_name,
                    actual=actual_value,
                    reference=reference_value,
                ))

    report.only_in_reference.extend(
        outpoint for outpoint in reference_by_outpoint if outpoint not in actual_by_outpoint
    )

    logger.info("Compared spent UTXO sets",
                compared=report.compared,
                field_diffs=len(report.field_diffs),
                only_in_actual=len(report.only_in_actual),
                only_in_reference=len(report.only_in_reference))
    return report
