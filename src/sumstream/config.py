"""Runtime settings and logging setup."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "SUMSTREAM_"

LOG_FORMAT = "%(asctime)s:%(name)s:%(levelname)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseSettings):
    """Server and client settings.

    Every field can be set through a ``SUMSTREAM_<FIELD>`` environment
    variable or a ``.env`` file. Keyword arguments win over both. List
    fields such as ``cors_origins`` take a JSON array.
    """

    host: str = "127.0.0.1"
    port: int = 3000
    stream_path: str = "/api/summarize/stream"
    base_url: str = "http://127.0.0.1:3000"
    token_delay: float = Field(default=0.08, ge=0.0)
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    cors_origins: list[str] = ["*"]
    summarizer: str = "extractive"
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def stream_url(self) -> str:
        return build_endpoint(self.base_url, self.stream_path)


def build_endpoint(base: str, path: str) -> str:
    """Join *base* and *path* with exactly one slash between them."""
    if not path:
        return base
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
