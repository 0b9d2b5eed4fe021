"""Configuration management using Pydantic settings."""

from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class FetcherConfig(BaseSettings):
    """Configuration for the spent UTXO fetcher."""

    # Data Source Settings
    data_source: Literal["blockchain_info", "esplora"] = Field(
        default="blockchain_info",
        description="API used to resolve spent outputs"
    )
    blockchain_info_url: str = Field(default="https://blockchain.info", description="Blockchain.info API base URL")
    esplora_url: str = Field(default="https://blockstream.info/api", description="Esplora API base URL")
    request_timeout: int = Field(default=30, description="Request timeout in seconds")
    max_retries: int = Field(default=3, ge=1, description="Attempts per request before giving up")
    retry_backoff: float = Field(default=1.0, ge=0, description="Base delay for exponential backoff in seconds")
    rate_limit_delay: float = Field(default=0.12, ge=0, description="Minimum delay between requests in seconds")

    # Processing Settings
    max_workers: int = Field(default=4, ge=1, description="Concurrent input resolutions (1 = sequential)")
    compression_level: int = Field(default=22, ge=1, le=22, description="Zstandard compression level")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
