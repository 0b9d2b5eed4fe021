"""Error taxonomy for block decoding, lookups and verification."""

from typing import Optional

from utxo_fetcher.models.blockchain import OutPoint


class FetcherError(Exception):
    """Base class for every error surfaced by the fetcher."""

    def __init__(self, message: str, outpoint: Optional[OutPoint] = None,
                 height: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.outpoint = outpoint
        self.height = height

    def with_outpoint(self, outpoint: OutPoint) -> "FetcherError":
        """Copy of this error with ``outpoint`` attached; ``self`` is left untouched."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.args = self.args
        clone.outpoint = outpoint
        return clone

    def __str__(self) -> str:
        context = []
        if self.outpoint is not None:
            context.append(f"outpoint={self.outpoint}")
        if self.height is not None:
            context.append(f"height={self.height}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class MalformedBlock(FetcherError):
    """Raw bytes are truncated or structurally inconsistent."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is not None:
            return f"{self.message} (offset={self.offset})"
        return self.message


class PrevoutNotFound(FetcherError):
    """Referenced transaction or output does not exist upstream."""

    def __init__(self, outpoint: OutPoint, reason: str = "previous output not found"):
        super().__init__(reason, outpoint=outpoint)


class HeightNotFound(FetcherError):
    """Height is negative or beyond the known chain tip."""

    def __init__(self, height: int, reason: str = "block height not found"):
        super().__init__(reason, height=height)


class LookupUnavailable(FetcherError):
    """Transient transport or service failure, after the adapter's retries."""


class InsufficientHistory(FetcherError):
    """Height has fewer than 11 preceding blocks."""

    def __init__(self, height: int, outpoint: Optional[OutPoint] = None):
        super().__init__("UTXO height is less than 11, no full median-time-past window",
                         outpoint=outpoint, height=height)


class HashMismatch(FetcherError):
    """Block hash does not match the expected value."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Block hashes do not match: expected {expected}, actual {actual}")
        self.expected = expected
        self.actual = actual
