"""Command-line interface for the spent UTXO fetcher."""

import sys
from pathlib import Path
from typing import List, Optional
import click

from utxo_fetcher.core.block_decoder import decode_block
from utxo_fetcher.core.coin_time import CoinTimeResolver
from utxo_fetcher.core.data_provider import create_lookup_service
from utxo_fetcher.core.errors import FetcherError
from utxo_fetcher.core.spent_output_builder import SpentOutputBuilder
from utxo_fetcher.core.verification import compare, verify_hash
from utxo_fetcher.models.blockchain import ComparisonReport, OutPoint, SpentUtxoRecord, TxOut
from utxo_fetcher.models.config import FetcherConfig
from utxo_fetcher.storage.files import BlockDirectory, compress_file, load_records, write_records
from utxo_fetcher.utils.bitcoin import satoshi_to_btc
from utxo_fetcher.utils.logging import setup_logging
from utxo_fetcher.utils.time import format_block_time


def _fail(message: str):
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _format_value(value) -> str:
    if isinstance(value, TxOut):
        return (f"value={value.value} ({satoshi_to_btc(value.value)} BTC) "
                f"script_pubkey={value.script_pubkey.hex()}")
    return str(value)


def _print_report(report: ComparisonReport):
    if report.is_equal:
        click.echo(f"✅ UTXO files are equal ({report.compared} records)")
        return

    click.echo(f"❌ UTXO files differ ({report.diff_count} differences)")
    for diff in report.field_diffs:
        click.echo(f"  {diff.outpoint} {diff.field_name}:")
        click.echo(f"    actual:    {_format_value(diff.actual)}")
        click.echo(f"    reference: {_format_value(diff.reference)}")
    for outpoint in report.only_in_actual:
        click.echo(f"  {outpoint} only in actual")
    for outpoint in report.only_in_reference:
        click.echo(f"  {outpoint} only in reference")


def _compare_files(actual_path: Path, reference_path: Path,
                   outpoints: Optional[List[OutPoint]] = None) -> ComparisonReport:
    actual: List[SpentUtxoRecord] = load_records(actual_path, outpoints)
    reference = load_records(reference_path, [r.outpoint for r in actual])
    report = compare(actual, reference)
    _print_report(report)
    return report


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str]):
    """Spent UTXO Fetcher CLI."""
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = FetcherConfig(_env_file=config_file)
        else:
            config = FetcherConfig()

        if log_level:
            config.log_level = log_level

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(config)
    ctx.obj['config'] = config


@cli.command()
@click.argument('block_dir', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('block_hash', required=False)
@click.option('--eq', 'eq_file', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Compare spent_utxos.json against this .json or .zst file')
@click.option('--workers', '-w', type=click.IntRange(min=1), default=None,
              help='Concurrent input resolutions (default: from config)')
@click.pass_context
def fetch(ctx, block_dir: Path, block_hash: Optional[str], eq_file: Optional[Path],
          workers: Optional[int]):
    """Fetch the spent UTXOs of BLOCK_DIR/raw and compress both files."""
    config: FetcherConfig = ctx.obj['config']
    directory = BlockDirectory(block_dir)

    try:
        raw = directory.read_raw()
    except OSError as e:
        _fail(f"Couldn't read the 'raw' block file in '{block_dir}': {e}")

    try:
        block = decode_block(raw)
        if block_hash:
            verify_hash(block, block_hash)

        # Existing results plus --eq: only compare
        if directory.spent_utxos.exists() and eq_file:
            _compare_files(directory.spent_utxos, eq_file,
                           SpentOutputBuilder.collect_outpoints(block))
            return

        existing = directory.existing_outputs()
        if existing:
            click.echo(f"⚠️  Output files already exist in '{block_dir}': "
                       f"{', '.join(p.name for p in existing)}. Aborting to avoid overwriting.", err=True)
            sys.exit(1)

        click.echo(f"🔄 Fetching spent UTXOs for block {block.block_hash}...")
        builder = SpentOutputBuilder(create_lookup_service(config),
                                     max_workers=workers or config.max_workers)
        records = builder.build(block)
        write_records(directory.spent_utxos, records)

        if eq_file:
            _compare_files(directory.spent_utxos, eq_file)

        compress_file(directory.raw, directory.raw_zst, config.compression_level)
        compress_file(directory.spent_utxos, directory.spent_utxos_zst, config.compression_level)

    except FetcherError as e:
        _fail(f"Error fetching spent UTXOs: {e}")
    except (OSError, ValueError, KeyError) as e:
        _fail(f"Error processing '{block_dir}': {e}")

    click.echo(f"✅ Block processed ({len(records)} spent UTXOs) and both files have been compressed")


@cli.command(name='compare')
@click.argument('actual', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('reference', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--strict', is_flag=True, help='Exit with status 1 on any difference')
def compare_command(actual: Path, reference: Path, strict: bool):
    """Compare two spent UTXO files (.json or .zst)."""
    try:
        report = _compare_files(actual, reference)
    except (OSError, ValueError, KeyError) as e:
        _fail(f"Error loading UTXO files: {e}")

    if strict and not report.is_equal:
        sys.exit(1)


@cli.command()
@click.argument('raw_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('block_hash')
def verify(raw_file: Path, block_hash: str):
    """Verify that RAW_FILE hashes to BLOCK_HASH."""
    try:
        verify_hash(raw_file.read_bytes(), block_hash)
    except FetcherError as e:
        _fail(str(e))

    click.echo(f"✅ Block hash matches {block_hash.lower()}")


@cli.command(name='coin-time')
@click.argument('height', type=int)
@click.pass_context
def coin_time(ctx, height: int):
    """Compute the BIP-68 coin time for outputs confirmed at HEIGHT."""
    config: FetcherConfig = ctx.obj['config']

    try:
        value = CoinTimeResolver(create_lookup_service(config)).resolve(height)
    except FetcherError as e:
        _fail(f"Coin time lookup failed: {e}")

    click.echo(f"{height}: {value} ({format_block_time(value)} UTC)")


@cli.command()
def version():
    """Show version information."""
    from utxo_fetcher import __version__, __description__

    click.echo(f"Spent UTXO Fetcher v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
