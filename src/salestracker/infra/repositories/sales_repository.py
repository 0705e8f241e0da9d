"""Sales repository - persistence for parsed sales and their audit trail.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

import json
import uuid
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from salestracker.domain.ingest import AuditEntry
from salestracker.domain.sales import Currency, ProofType, SaleRecord, SaleStatus

_SALE_COLUMNS = """
    id, closer_id, closer_name, client_name, client_email, client_phone,
    amount, currency, product, funnel, payment_method, payment_type, extras,
    proof_url, proof_type, proof_message_id, raw_text, group_id,
    source_message_id, status, verified, verified_at, verified_by,
    created_at, updated_at
"""


def _row_to_sale(row: tuple) -> SaleRecord:
    return SaleRecord(
        id=str(row[0]),
        closer_id=row[1],
        closer_name=row[2],
        client_name=row[3],
        client_email=row[4],
        client_phone=row[5],
        amount=Decimal(row[6]),
        currency=Currency(row[7]),
        product=row[8],
        funnel=row[9],
        payment_method=row[10],
        payment_type=row[11],
        extras=row[12],
        proof_url=row[13],
        proof_type=ProofType(row[14]) if row[14] else None,
        proof_message_id=row[15],
        raw_text=row[16],
        group_id=row[17],
        source_message_id=row[18],
        status=SaleStatus(row[19]),
        verified=row[20],
        verified_at=row[21],
        verified_by=row[22],
        created_at=row[23],
        updated_at=row[24],
    )


def insert_sale(cur: PgCursor, sale: SaleRecord) -> str:
    """Insert a sale.

    Returns:
        UUID string of the created sale.
    """
    cur.execute(
        """
        INSERT INTO sales (
            closer_id, closer_name, client_name, client_email, client_phone,
            amount, currency, product, funnel, payment_method, payment_type,
            extras, proof_url, proof_type, proof_message_id, raw_text,
            group_id, source_message_id, status, verified, verified_at,
            verified_by, created_at, updated_at
        )
        VALUES (
            %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
            %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
        )
        RETURNING id
        """,
        (
            sale.closer_id,
            sale.closer_name,
            sale.client_name,
            sale.client_email,
            sale.client_phone,
            sale.amount,
            sale.currency.value,
            sale.product,
            sale.funnel,
            sale.payment_method,
            sale.payment_type,
            sale.extras,
            sale.proof_url,
            sale.proof_type.value if sale.proof_type else None,
            sale.proof_message_id,
            sale.raw_text,
            sale.group_id,
            sale.source_message_id,
            sale.status.value,
            sale.verified,
            sale.verified_at,
            sale.verified_by,
            sale.created_at,
            sale.updated_at,
        ),
    )
    row = cur.fetchone()
    return str(row[0])


def get_sale(cur: PgCursor, sale_id: str) -> SaleRecord | None:
    """Sale by id. Ids that are not UUIDs cannot exist and return None."""
    try:
        uuid.UUID(sale_id)
    except ValueError:
        return None
    cur.execute(
        f"""
        SELECT {_SALE_COLUMNS}
        FROM sales
        WHERE id = %s
        """,
        (sale_id,),
    )
    row = cur.fetchone()
    return _row_to_sale(row) if row else None


def update_sale_verification(cur: PgCursor, sale: SaleRecord) -> None:
    cur.execute(
        """
        UPDATE sales
        SET status = %s, verified = %s, verified_at = %s, verified_by = %s,
            updated_at = %s
        WHERE id = %s
        """,
        (
            sale.status.value,
            sale.verified,
            sale.verified_at,
            sale.verified_by,
            sale.updated_at,
            sale.id,
        ),
    )


def insert_audit_entry(cur: PgCursor, entry: AuditEntry) -> None:
    cur.execute(
        """
        INSERT INTO audit_logs (
            action, entity_type, entity_id, previous_status, new_status,
            performed_by, entity_data, bulk_operation, total_in_batch, created_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s)
        """,
        (
            entry.action,
            entry.entity_type,
            entry.entity_id,
            entry.previous_status.value,
            entry.new_status.value,
            entry.performed_by,
            json.dumps(entry.entity_data),
            entry.bulk_operation,
            entry.total_in_batch,
            entry.created_at,
        ),
    )


class PgSaleStore:
    """SaleStore bound to one transaction cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self._cur = cur

    def insert(self, sale: SaleRecord) -> str:
        return insert_sale(self._cur, sale)

    def get(self, sale_id: str) -> SaleRecord | None:
        return get_sale(self._cur, sale_id)

    def update_verification(self, sale: SaleRecord) -> None:
        update_sale_verification(self._cur, sale)

    def insert_audit_entry(self, entry: AuditEntry) -> None:
        insert_audit_entry(self._cur, entry)
