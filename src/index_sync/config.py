"""Synchronizer Configuration

Settings are read from environment variables so the same code runs from a
cron job, a container or a developer shell.

Environment variables:
  INDEX_SYNC_BASE_URL: Public base URL of the journal site (default: http://localhost)
  INDEX_SYNC_BATCH_SIZE: Max articles per run (default: 2000)
  ELASTICSEARCH_URL: Search cluster endpoint (default: http://localhost:9200)
  ELASTICSEARCH_INDEX: Target index name (default: articles)
  ELASTICSEARCH_API_KEY: Optional API key for the cluster
  ELASTICSEARCH_TIMEOUT: Request timeout in seconds (default: 30)
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

# Upper bound chosen to balance index commit overhead against the memory
# and time spent per run.
MAX_BATCH_SIZE = 2000

# Column width used when word-wrapping body chunks.
WORDWRAP_WIDTH = 250


class SyncSettings(BaseModel):
    base_url: str = "http://localhost"
    batch_size: int = Field(default=MAX_BATCH_SIZE, gt=0)
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_index: str = "articles"
    elasticsearch_api_key: Optional[str] = None
    request_timeout: float = Field(default=30, gt=0)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from the process environment, ignoring unset variables."""
        env_map = {
            "base_url": "INDEX_SYNC_BASE_URL",
            "batch_size": "INDEX_SYNC_BATCH_SIZE",
            "elasticsearch_url": "ELASTICSEARCH_URL",
            "elasticsearch_index": "ELASTICSEARCH_INDEX",
            "elasticsearch_api_key": "ELASTICSEARCH_API_KEY",
            "request_timeout": "ELASTICSEARCH_TIMEOUT",
        }
        values = {
            field: os.getenv(var)
            for field, var in env_map.items()
            if os.getenv(var)
        }
        return cls(**values)
