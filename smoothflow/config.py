"""Default configuration, read from the environment."""
from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy.engine import make_url


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default) in {"1", "true", "True"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///smoothflow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds. Zero or negative disables the ceiling.
    DB_CONNECT_TIMEOUT = _env_int("DB_CONNECT_TIMEOUT", 5)
    DB_POOL_TIMEOUT = _env_int("DB_POOL_TIMEOUT", 10)
    DB_STATEMENT_TIMEOUT_MS = _env_int("DB_STATEMENT_TIMEOUT_MS", 15000)

    TOKEN_MAX_AGE = _env_int("TOKEN_MAX_AGE", 30 * 24 * 60 * 60)

    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", str(Path("/tmp") / "uploads"))
    MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
    # Room for multipart boundaries and the other form fields on top of the file.
    MULTIPART_OVERHEAD_BYTES = 64 * 1024

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")

    DEBUG_ALLOW = _env_flag("DEBUG_ALLOW")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def build_engine_options(
    database_uri: str,
    *,
    connect_timeout: int,
    pool_timeout: int,
    statement_timeout_ms: int,
) -> dict[str, object]:
    """Return SQLAlchemy engine options with timeout ceilings for the driver in use."""
    url = make_url(database_uri)
    options: dict[str, object] = {"pool_pre_ping": True}
    connect_args: dict[str, object] = {}

    if url.get_backend_name() == "sqlite":
        # sqlite3 "timeout" is how long a locked database is waited on.
        if connect_timeout > 0:
            connect_args["timeout"] = connect_timeout
        options["connect_args"] = connect_args
        return options

    if pool_timeout > 0:
        options["pool_timeout"] = pool_timeout

    if url.get_backend_name() == "postgresql":
        if connect_timeout > 0:
            connect_args["connect_timeout"] = connect_timeout
        if statement_timeout_ms > 0:
            connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"
    elif url.get_backend_name() == "mysql" and connect_timeout > 0:
        connect_args["connect_timeout"] = connect_timeout

    if connect_args:
        options["connect_args"] = connect_args
    return options
