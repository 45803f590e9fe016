# crudbasico/config.py

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _split_origins(raw: Optional[str]) -> List[str]:
    return [origin.strip() for origin in (raw or "").split(",") if origin.strip()]


@dataclass
class Settings:
    """Runtime settings, read from the environment (and a local .env file)."""

    project_id: Optional[str] = None
    dataset_id: str = "crudbasico"
    table_id: str = "tasks"
    location: str = "US"
    allowed_origins: List[str] = field(default_factory=list)
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    store_workers: int = 10

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            project_id=os.getenv("BIGQUERY_PROJECT_ID") or None,
            dataset_id=os.getenv("BIGQUERY_DATASET") or os.getenv("DB_NAME") or "crudbasico",
            table_id=os.getenv("BIGQUERY_TABLE") or "tasks",
            location=os.getenv("BIGQUERY_LOCATION") or "US",
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS")),
            host=os.getenv("HOST") or "0.0.0.0",
            port=int(os.getenv("PORT") or 8080),
            log_level=os.getenv("LOG_LEVEL") or "INFO",
            store_workers=int(os.getenv("STORE_WORKERS") or 10),
        )

    def missing_store_vars(self) -> List[str]:
        """Names of required environment variables the BigQuery store lacks."""
        missing = []
        if not self.project_id:
            missing.append("BIGQUERY_PROJECT_ID")
        if not self.dataset_id:
            missing.append("BIGQUERY_DATASET")
        if not self.table_id:
            missing.append("BIGQUERY_TABLE")
        return missing
