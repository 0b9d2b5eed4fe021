"""
Previous-output and block-timestamp lookup service.

The builder and the coin-time resolver only depend on the ``LookupService``
protocol; the concrete ``ChainLookupService`` talks to public explorer APIs.
Switch between sources via configuration without changing application code.
"""

from typing import Any, Dict, Optional, Protocol
import structlog

from utxo_fetcher.core.block_decoder import decode_transaction
from utxo_fetcher.core.blockchain_api_client import (
    BlockchainAPIError, BlockchainInfoClient, EsploraClient, ResourceNotFound
)
from utxo_fetcher.core.errors import (
    HeightNotFound, LookupUnavailable, MalformedBlock, PrevoutNotFound
)
from utxo_fetcher.models.blockchain import OutPoint, PrevoutInfo, TxOut
from utxo_fetcher.models.config import FetcherConfig

logger = structlog.get_logger(__name__)


class LookupService(Protocol):
    """Protocol for previous-output and block-timestamp lookups."""

    def fetch_prevout(self, outpoint: OutPoint) -> PrevoutInfo:
        """Resolve the spent output, its confirming height and coinbase flag.

        Raises PrevoutNotFound or LookupUnavailable.
        """
        ...

    def fetch_block_timestamp(self, height: int) -> int:
        """Header timestamp of the block at ``height``.

        Raises HeightNotFound or LookupUnavailable.
        """
        ...


class ChainLookupService:
    """
    ``LookupService`` backed by public block explorer APIs.

    Prevouts come from blockchain.info (height + raw transaction hex) or from
    an Esplora API; block timestamps always come from Esplora.
    """

    def __init__(self, config: Optional[FetcherConfig] = None,
                 esplora: Optional[EsploraClient] = None,
                 blockchain_info: Optional[BlockchainInfoClient] = None):
        self.config = config or FetcherConfig()
        client_kwargs = dict(
            rate_limit_delay=self.config.rate_limit_delay,
            max_retries=self.config.max_retries,
            retry_backoff=self.config.retry_backoff,
            timeout=self.config.request_timeout,
        )
        self.esplora = esplora or EsploraClient(self.config.esplora_url, **client_kwargs)
        if self.config.data_source == "blockchain_info":
            self.blockchain_info = blockchain_info or BlockchainInfoClient(
                self.config.blockchain_info_url, **client_kwargs)
        else:
            self.blockchain_info = blockchain_info
        self.logger = logger.bind(component="lookup_service",
                                  data_source=self.config.data_source)

    def fetch_prevout(self, outpoint: OutPoint) -> PrevoutInfo:
        try:
            if self.config.data_source == "blockchain_info":
                info = self._fetch_prevout_blockchain_info(outpoint)
            else:
                info = self._fetch_prevout_esplora(outpoint)
        except ResourceNotFound as e:
            raise PrevoutNotFound(outpoint, f"previous transaction not found: {e}") from e
        except BlockchainAPIError as e:
            raise LookupUnavailable(str(e), outpoint=outpoint) from e

        self.logger.debug("Fetched prevout",
                          outpoint=str(outpoint),
                          height=info.creation_height,
                          value=info.tx_out.value,
                          is_coinbase=info.is_coinbase)
        return info

    def fetch_block_timestamp(self, height: int) -> int:
        if height < 0:
            raise HeightNotFound(height, "negative block height")
        try:
            block_hash = self.esplora.get_block_hash(height)
            block = self.esplora.get_block(block_hash)
        except ResourceNotFound as e:
            raise HeightNotFound(height, f"no block at this height: {e}") from e
        except BlockchainAPIError as e:
            raise LookupUnavailable(str(e), height=height) from e

        timestamp = block.get("timestamp") if isinstance(block, dict) else None
        if not isinstance(timestamp, int):
            raise LookupUnavailable("Block response has no timestamp", height=height)
        if block.get("height", height) != height:
            raise LookupUnavailable(
                f"Block response is for height {block.get('height')}", height=height)
        return timestamp

    def _fetch_prevout_blockchain_info(self, outpoint: OutPoint) -> PrevoutInfo:
        tx_json = self.blockchain_info.get_transaction(outpoint.txid)
        height = _confirmed_height(tx_json.get("block_height"), outpoint)

        raw_hex = self.blockchain_info.get_transaction_hex(outpoint.txid)
        try:
            tx = decode_transaction(bytes.fromhex(raw_hex))
        except (ValueError, MalformedBlock) as e:
            raise LookupUnavailable(f"Undecodable transaction hex: {e}", outpoint=outpoint) from e

        if tx.txid != outpoint.txid:
            raise LookupUnavailable(f"API returned transaction {tx.txid}", outpoint=outpoint)
        if outpoint.vout >= len(tx.outputs):
            raise PrevoutNotFound(outpoint, f"transaction has only {len(tx.outputs)} outputs")

        return PrevoutInfo(
            tx_out=tx.outputs[outpoint.vout],
            creation_height=height,
            is_coinbase=tx.is_coinbase(),
        )

    def _fetch_prevout_esplora(self, outpoint: OutPoint) -> PrevoutInfo:
        tx_json = self.esplora.get_transaction(outpoint.txid)
        status = tx_json.get("status") or {}
        height = _confirmed_height(status.get("block_height"), outpoint)

        vouts = tx_json.get("vout") or []
        if outpoint.vout >= len(vouts):
            raise PrevoutNotFound(outpoint, f"transaction has only {len(vouts)} outputs")

        try:
            tx_out = _esplora_txout(vouts[outpoint.vout])
        except (KeyError, TypeError, ValueError) as e:
            raise LookupUnavailable(f"Malformed output in API response: {e}", outpoint=outpoint) from e

        vins = tx_json.get("vin") or []
        is_coinbase = bool(vins) and bool(vins[0].get("is_coinbase", False))

        return PrevoutInfo(tx_out=tx_out, creation_height=height, is_coinbase=is_coinbase)


def _confirmed_height(value: Any, outpoint: OutPoint) -> int:
    if value is None:
        raise PrevoutNotFound(outpoint, "previous transaction is unconfirmed")
    if not isinstance(value, int) or value < 0:
        raise LookupUnavailable(f"Invalid block height in API response: {value!r}",
                                outpoint=outpoint)
    return value


def _esplora_txout(vout: Dict[str, Any]) -> TxOut:
    return TxOut(value=int(vout["value"]), script_pubkey=bytes.fromhex(vout["scriptpubkey"]))


def create_lookup_service(config: Optional[FetcherConfig] = None) -> ChainLookupService:
    """Factory function to create the lookup service."""
    return ChainLookupService(config)
