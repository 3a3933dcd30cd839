"""
Configuration
=============

Runtime settings read from the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Service settings. Build with ``Settings.from_env()``."""

    database_url: str = "sqlite:///./chatbi.db"
    llm_provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:7b"
    llm_timeout: float = 45.0
    query_timeout: float = 30.0
    sample_rows: int = 5
    environment: str = "development"
    otlp_endpoint: str = "disabled"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read settings from environment variables.

        Unset variables fall back to the dataclass defaults.
        """
        defaults = cls()
        return cls(
            database_url=os.getenv("CHATBI_DATABASE_URL", defaults.database_url),
            llm_provider=os.getenv("CHATBI_LLM_PROVIDER", defaults.llm_provider).lower(),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", defaults.ollama_base_url),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults.ollama_model),
            llm_timeout=float(os.getenv("CHATBI_LLM_TIMEOUT", defaults.llm_timeout)),
            query_timeout=float(os.getenv("CHATBI_QUERY_TIMEOUT", defaults.query_timeout)),
            sample_rows=int(os.getenv("CHATBI_SAMPLE_ROWS", defaults.sample_rows)),
            environment=os.getenv("ENVIRONMENT", defaults.environment),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", defaults.otlp_endpoint),
        )

    @property
    def tracing_enabled(self) -> bool:
        return self.otlp_endpoint.lower() != "disabled"
