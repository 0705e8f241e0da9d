"""Postgres-backed store bundle for one transaction."""

from psycopg2.extensions import cursor as PgCursor

from salestracker.domain.ingest import Stores

from .closers_repository import PgCloserStore
from .messages_repository import PgHistoryStore
from .proofs_repository import PgProofStore
from .sales_repository import PgSaleStore


def pg_stores(cur: PgCursor) -> Stores:
    """All stores sharing cur, so one commit covers a whole message."""
    return Stores(
        proofs=PgProofStore(cur),
        sales=PgSaleStore(cur),
        closers=PgCloserStore(cur),
        history=PgHistoryStore(cur),
    )
