"""
HTTP clients for public Bitcoin block explorer APIs.

- Blockchain.info: transaction confirmation height and raw transaction hex.
- Esplora (blockstream.info / mempool.space): transactions, block hashes by
  height and block headers with timestamps.

No node is required; both APIs are free and rate limited.
"""

import threading
import time
from typing import Any, Dict, Optional
import requests
import structlog

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class BlockchainAPIError(Exception):
    """Request failed after exhausting retries, or returned an unusable payload."""
    pass


class ResourceNotFound(BlockchainAPIError):
    """The API answered 404 (or an equivalent "not found" body)."""
    pass


class _RateLimitedClient:
    """Shared session, throttling and retry loop."""

    BASE_URL = ""

    def __init__(self,
                 base_url: Optional[str] = None,
                 rate_limit_delay: float = 0.12,
                 max_retries: int = 3,
                 retry_backoff: float = 1.0,
                 timeout: int = 30):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': 'utxo-fetcher/1.0.0'
        })

        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()

        logger.info(f"{type(self).__name__} initialized",
                    base_url=self.base_url,
                    rate_limit_delay=rate_limit_delay)

    def _rate_limit(self):
        """Space requests at least ``rate_limit_delay`` apart across threads."""
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.rate_limit_delay:
                time.sleep(self.rate_limit_delay - elapsed)
            self._last_request_time = time.monotonic()

    def _request(self, endpoint: str, params: Optional[Dict] = None) -> requests.Response:
        """Make GET request with rate limiting and retry logic."""
        url = f"{self.base_url}{endpoint}"

        for attempt in range(self.max_retries):
            try:
                self._rate_limit()
                response = self.session.get(url, params=params, timeout=self.timeout)

                if response.status_code == 404:
                    raise ResourceNotFound(f"{endpoint} not found")

                if response.status_code in RETRYABLE_STATUS:
                    if response.status_code == 429:
                        wait_time = float(response.headers.get('Retry-After', self.retry_backoff * 2 ** attempt))
                    else:
                        wait_time = self.retry_backoff * 2 ** attempt
                    logger.warning("Retryable API response",
                                   endpoint=endpoint,
                                   status=response.status_code,
                                   attempt=attempt + 1,
                                   wait_time=wait_time)
                    if attempt < self.max_retries - 1:
                        time.sleep(wait_time)
                    continue

                response.raise_for_status()
                return response

            except requests.RequestException as e:
                logger.warning("API request failed",
                               endpoint=endpoint,
                               attempt=attempt + 1,
                               error=str(e))

                if attempt == self.max_retries - 1:
                    raise BlockchainAPIError(f"Request failed after {self.max_retries} attempts: {e}") from e

                time.sleep(self.retry_backoff * 2 ** attempt)  # Exponential backoff

        raise BlockchainAPIError(f"{endpoint} still unavailable after {self.max_retries} attempts")

    def _get_json(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        response = self._request(endpoint, params)
        try:
            return response.json()
        except ValueError as e:
            raise BlockchainAPIError(f"Invalid JSON from {endpoint}: {e}") from e

    def _get_text(self, endpoint: str, params: Optional[Dict] = None) -> str:
        return self._request(endpoint, params).text.strip()


class BlockchainInfoClient(_RateLimitedClient):
    """
    Blockchain.info API client.

    API Documentation: https://www.blockchain.com/explorer/api
    """

    BASE_URL = "https://blockchain.info"

    def get_transaction(self, txid: str) -> Dict[str, Any]:
        """
        Get transaction by hash.

        Returns:
            {
                "hash": "...",
                "block_height": 866338,
                "inputs": [...],
                "out": [...]
            }
        """
        return self._get_json(f"/rawtx/{txid}")

    def get_transaction_hex(self, txid: str) -> str:
        """Get raw transaction as hex."""
        return self._get_text(f"/rawtx/{txid}", {"format": "hex"})


class EsploraClient(_RateLimitedClient):
    """
    Esplora API client (blockstream.info, mempool.space).

    API Docs: https://github.com/Blockstream/esplora/blob/master/API.md
    """

    BASE_URL = "https://blockstream.info/api"

    def get_block_hash(self, height: int) -> str:
        """Get block hash at specific height."""
        return self._get_text(f"/block-height/{height}")

    def get_block(self, block_hash: str) -> Dict[str, Any]:
        """
        Get block header information by hash.

        Returns:
            {
                "id": "...",
                "height": 866333,
                "timestamp": 1729331091,
                ...
            }
        """
        return self._get_json(f"/block/{block_hash}")

    def get_transaction(self, txid: str) -> Dict[str, Any]:
        """
        Get transaction by ID.

        Returns:
            {
                "txid": "...",
                "vin": [{"is_coinbase": false, ...}],
                "vout": [{"scriptpubkey": "0014...", "value": 1234}],
                "status": {"confirmed": true, "block_height": 866338}
            }
        """
        return self._get_json(f"/tx/{txid}")
