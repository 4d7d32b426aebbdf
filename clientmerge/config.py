"""Configuration for duplicate detection and merging."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional


@dataclass
class EngineConfig:
    """Configuration for the matcher, merger and CLI."""

    # Name similarity must be strictly greater than this to count
    similarity_threshold: float = 0.8

    # Points awarded when the first two members of a group agree
    score_weights: Dict[str, int] = field(default_factory=lambda: {
        "exact_name": 100,
        "age": 20,
        "gender": 15,
        "ethnicity": 15,
        "height": 10,
    })

    # Storage
    database_path: Optional[Path] = None

    # Audit trail written next to the database
    audit_enabled: bool = True

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a configuration from CLIENTMERGE_* environment variables."""
        config = cls()

        db_path = os.environ.get("CLIENTMERGE_DB")
        if db_path:
            config.database_path = Path(db_path)

        threshold = os.environ.get("CLIENTMERGE_SIMILARITY_THRESHOLD")
        if threshold:
            config.similarity_threshold = float(threshold)

        audit = os.environ.get("CLIENTMERGE_AUDIT")
        if audit:
            config.audit_enabled = audit.strip().lower() not in {"0", "false", "no", "off"}

        config.log_level = os.environ.get("CLIENTMERGE_LOG_LEVEL", config.log_level).upper()

        return config


# Global configuration instance
default_config = EngineConfig()
