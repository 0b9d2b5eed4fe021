"""Spent output resolution for every non-coinbase input of a block."""

import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import List, Optional, Tuple
import structlog

from utxo_fetcher.core.coin_time import CoinTimeCache, CoinTimeResolver
from utxo_fetcher.core.data_provider import LookupService
from utxo_fetcher.core.errors import FetcherError
from utxo_fetcher.models.blockchain import DecodedBlock, OutPoint, SpentUtxoRecord
from utxo_fetcher.utils.bitcoin import get_script_type

logger = structlog.get_logger(__name__)


class BuildCancelled(Exception):
    """Raised inside workers once another input has failed."""


class _BuildRun:
    """State of one ``build()`` call: coin time resolver, cancel flag and progress."""

    def __init__(self, lookup: LookupService, total: int):
        self.resolver = CoinTimeResolver(lookup, CoinTimeCache())
        self.cancelled = threading.Event()
        self.total = total
        self.processed = 0
        self._lock = threading.Lock()

    def advance(self) -> int:
        with self._lock:
            self.processed += 1
            return self.processed


class SpentOutputBuilder:
    """
    Resolve the spent outputs of a decoded block.

    The build is all-or-nothing: the first failing input aborts the run and no
    partial record list is returned. Records are placed in a slot per input so
    the output order matches block order even when inputs resolve concurrently.
    A builder can serve overlapping ``build()`` calls; each keeps its own state.
    """

    def __init__(self, lookup: LookupService, max_workers: int = 4):
        self.lookup = lookup
        self.max_workers = max(1, max_workers)
        self.logger = logger.bind(component="spent_output_builder")

    def build(self, block: DecodedBlock) -> List[SpentUtxoRecord]:
        """
        Build the ordered spent UTXO records for ``block``.

        A fresh coin time cache is used for every run.

        Raises:
            FetcherError: the first unrecoverable resolution failure, with the
                offending outpoint attached.
        """
        outpoints = self.collect_outpoints(block)
        run = _BuildRun(self.lookup, len(outpoints))

        self.logger.info("Resolving spent outputs",
                         block_hash=block.block_hash,
                         inputs=run.total,
                         workers=self.max_workers)

        if self.max_workers == 1 or run.total <= 1:
            records = [self._resolve_input(outpoint, run) for outpoint in outpoints]
        else:
            records = self._build_concurrently(outpoints, run)

        cache = run.resolver.cache
        self.logger.info("Resolved spent outputs",
                         block_hash=block.block_hash,
                         records=len(records),
                         coin_time_heights=len(cache),
                         cache_hits=cache.hits,
                         cache_misses=cache.misses)
        return records

    @staticmethod
    def collect_outpoints(block: DecodedBlock) -> List[OutPoint]:
        """Outpoints spent by the block, in transaction then input order, coinbase skipped."""
        outpoints = []
        for tx_index, tx in enumerate(block.transactions):
            for input_index, txin in enumerate(tx.inputs):
                if tx_index == 0 and input_index == 0:
                    continue
                outpoints.append(txin.previous_output)
        return outpoints

    def _build_concurrently(self, outpoints: List[OutPoint], run: _BuildRun) -> List[SpentUtxoRecord]:
        slots: List[Optional[SpentUtxoRecord]] = [None] * len(outpoints)

        def resolve_slot(index: int) -> Tuple[int, SpentUtxoRecord]:
            if run.cancelled.is_set():
                raise BuildCancelled()
            return index, self._resolve_input(outpoints[index], run)

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="spent-output") as executor:
            futures = [executor.submit(resolve_slot, i) for i in range(len(outpoints))]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)

            failed = next((f for f in futures if f in done and f.exception() is not None), None)
            if failed is not None:
                run.cancelled.set()
                for future in pending:
                    future.cancel()
                raise failed.exception()

        for future in futures:
            index, record = future.result()
            slots[index] = record
        return slots

    def _resolve_input(self, outpoint: OutPoint, run: _BuildRun) -> SpentUtxoRecord:
        try:
            prevout = self.lookup.fetch_prevout(outpoint)
            coin_time = run.resolver.resolve(prevout.creation_height)
        except FetcherError as e:
            # Coin time failures are shared by every input waiting on that height
            error = e if e.outpoint is not None else e.with_outpoint(outpoint)
            self.logger.error("Failed to resolve input",
                              outpoint=str(outpoint),
                              height=error.height,
                              error=error.message)
            if error is e:
                raise
            raise error from e

        record = SpentUtxoRecord(
            outpoint=outpoint,
            tx_out=prevout.tx_out,
            is_coinbase=prevout.is_coinbase,
            creation_height=prevout.creation_height,
            coin_time=coin_time,
        )
        self._report_progress(record, run)
        return record

    def _report_progress(self, record: SpentUtxoRecord, run: _BuildRun):
        processed = run.advance()

        self.logger.info("Resolved input",
                         outpoint=str(record.outpoint),
                         value=record.tx_out.value,
                         script_type=get_script_type(record.tx_out.script_pubkey),
                         is_coinbase=record.is_coinbase,
                         creation_height=record.creation_height,
                         coin_time=record.coin_time,
                         progress=f"{processed / run.total * 100:.2f}% ({processed}/{run.total})")
