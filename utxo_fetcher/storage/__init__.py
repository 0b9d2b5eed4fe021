"""Result files and compression."""

from utxo_fetcher.storage.files import (
    BlockDirectory,
    compress_file,
    load_records,
    write_records,
)

__all__ = [
    "BlockDirectory",
    "compress_file",
    "load_records",
    "write_records",
]
