from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    database: str
    user: str
    password: str
    statement_timeout_ms: int
    url: Optional[str] = None

    def sqlalchemy_url(self) -> URL:
        if self.url:
            url = make_url(self.url)
            # Prisma-style URLs carry a bare scheme and a ?schema= parameter libpq rejects.
            if url.drivername in ("postgresql", "postgres"):
                url = url.set(drivername="postgresql+psycopg")
            return url.difference_update_query(["schema"])
        return URL.create(
            "postgresql+psycopg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


def get_db_config() -> DBConfig:
    return DBConfig(
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=os.getenv("POSTGRES_DB", "marmitas"),
        user=os.getenv("POSTGRES_USER", "ro_reader"),
        password=os.getenv("POSTGRES_PASSWORD", ""),
        statement_timeout_ms=int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "15000")),
        url=os.getenv("DATABASE_URL") or None,
    )


def get_engine(cfg: Optional[DBConfig] = None) -> Engine:
    cfg = cfg or get_db_config()
    # Every pooled session is read-only and bounded by a server-side statement timeout.
    options = f"-c default_transaction_read_only=on -c statement_timeout={cfg.statement_timeout_ms}"
    return create_engine(
        cfg.sqlalchemy_url(),
        pool_pre_ping=True,
        connect_args={"options": options, "connect_timeout": 5},
    )


def ping(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
