"""
Database connection management for the Equalizer engine.

Supports both PostgreSQL (via psycopg2) and a mock in-memory implementation.
Config from Vault (or environment): ``db_type`` and ``postgres_url``.
"""

from typing import Any, Dict
from urllib.parse import urlparse, unquote

import psycopg2
from psycopg2.extras import RealDictCursor

from utils.vault import secrets
from utils.core.log import pid_tool_logger, set_logger, get_logger

DB_TYPE = (secrets.get("db_type", default="mock") or "mock").strip().lower()
DATABASE_URL = secrets.get("postgres_url", default="") or ""

# Mock database storage (in-memory)
_mock_db: Dict[str, Any] = {
    "construtoras": {},
    "obras": {},
    "propostas": [],
    "eap_padrao": [],
    "eap_proposta": {},
    "eap_equalizacao": [],
}


class MockConnection:
    """Mock database connection for development/testing."""

    def __init__(self):
        self._mock_db = _mock_db

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


def _parse_postgres_url(url: str) -> Dict[str, Any]:
    """
    Parse postgresql:// or postgres:// URL into connection kwargs.
    Uses component-based parsing so the password (with %, &, etc.) is not
    interpreted as part of the DSN and does not need to be percent-encoded in Vault.
    """
    parsed = urlparse(url)
    netloc = parsed.netloc or ""
    path = (parsed.path or "").strip("/") or "postgres"

    # userinfo is "user:password" before the last @ in netloc
    at = netloc.rfind("@")
    if at >= 0:
        userinfo = netloc[:at]
        hostport = netloc[at + 1 :]
    else:
        userinfo = ""
        hostport = netloc

    user = ""
    password = ""
    if userinfo:
        colon = userinfo.find(":")
        if colon >= 0:
            user = unquote(userinfo[:colon])
            password = unquote(userinfo[colon + 1 :])
        else:
            user = unquote(userinfo)

    host = "localhost"
    port = 5432
    if hostport:
        if ":" in hostport:
            host, port_str = hostport.rsplit(":", 1)
            try:
                port = int(port_str)
            except ValueError:
                port = 5432
        else:
            host = hostport

    return {
        "host": host or "localhost",
        "port": port,
        "user": user,
        "password": password,
        "dbname": path,
    }


def get_db_connection():
    """
    Get a database connection based on the configured db_type.

    Returns:
        - psycopg2 connection (RealDictCursor rows) if db_type="postgres"
        - MockConnection if db_type="mock" (default)
    """
    log = get_logger()
    if DB_TYPE == "postgres":
        if not DATABASE_URL:
            raise ValueError("postgres_url is required when db_type=postgres")
        try:
            conn = psycopg2.connect(
                cursor_factory=RealDictCursor,
                **_parse_postgres_url(DATABASE_URL),
            )
            log.debug("Connected to PostgreSQL database")
            return conn
        except Exception as e:
            log.error(f"Failed to connect to PostgreSQL: {e}")
            raise

    log.debug("Using mock database connection")
    return MockConnection()


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS construtoras (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        nome TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS obras (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        nome TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS propostas (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        construtora_id UUID REFERENCES construtoras(id),
        obra_id UUID REFERENCES obras(id),
        data_referencia DATE,
        status VARCHAR(50) NOT NULL DEFAULT 'pendente',
        valor_total NUMERIC(18, 2) NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS eap_padrao (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        caminho TEXT NOT NULL,
        caminho_sort TEXT,
        item TEXT NOT NULL,
        nivel INTEGER NOT NULL,
        parent_id UUID REFERENCES eap_padrao(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS eap_proposta (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        proposta_id UUID NOT NULL REFERENCES propostas(id) ON DELETE CASCADE,
        section_id INTEGER,
        section_name TEXT,
        section_total NUMERIC(18, 2),
        item_number TEXT,
        item_code TEXT,
        item_description TEXT,
        item_quantity NUMERIC(18, 4),
        item_unit TEXT,
        item_unit_price_material NUMERIC(18, 2),
        item_unit_price_labor NUMERIC(18, 2),
        item_unit_total_price_subtotal NUMERIC(18, 2),
        item_total_price_material NUMERIC(18, 2),
        item_total_price_labor NUMERIC(18, 2),
        item_total_price_subtotal NUMERIC(18, 2),
        item_status TEXT,
        item_order INTEGER,
        tag TEXT,
        hidden_from_equalization BOOLEAN NOT NULL DEFAULT FALSE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS eap_equalizacao (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        eap_padrao_id UUID NOT NULL REFERENCES eap_padrao(id) ON DELETE CASCADE,
        eap_proposta_id UUID REFERENCES eap_proposta(id) ON DELETE SET NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_eap_padrao_sort
    ON eap_padrao(caminho_sort);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_eap_proposta_proposta
    ON eap_proposta(proposta_id, section_id, item_order);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_eap_equalizacao_padrao
    ON eap_equalizacao(eap_padrao_id);
    """,
)


def reset_mock_db() -> None:
    _mock_db["construtoras"] = {}
    _mock_db["obras"] = {}
    _mock_db["propostas"] = []
    _mock_db["eap_padrao"] = []
    _mock_db["eap_proposta"] = {}
    _mock_db["eap_equalizacao"] = []


def init_db():
    """
    Initialize database tables.
    For PostgreSQL: creates tables if they don't exist.
    For mock: resets in-memory structures.
    """
    set_logger(pid_tool_logger("SYSTEM", "db_init"))
    log = get_logger()

    if DB_TYPE == "postgres":
        conn = get_db_connection()
        try:
            with conn.cursor() as cur:
                for statement in _SCHEMA:
                    cur.execute(statement)
            conn.commit()
            log.info("Database tables initialized successfully")
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to initialize database: {e}")
            raise
        finally:
            conn.close()
    else:
        log.debug("Mock database mode - resetting in-memory tables")
        reset_mock_db()


if __name__ == "__main__":
    init_db()
    conn = get_db_connection()
    print(f"Database connection successful (type: {DB_TYPE})")
    conn.close()
