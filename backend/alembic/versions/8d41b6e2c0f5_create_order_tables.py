"""create order tables

Revision ID: 8d41b6e2c0f5
Revises: 3c9e1f0a7b21
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from config import settings
from models.order import DATE_FIELDS, NUMERIC_FIELDS, TEXT_FIELDS, order_function_ddl

# revision identifiers, used by Alembic.
revision: str = "8d41b6e2c0f5"
down_revision: Union[str, None] = "3c9e1f0a7b21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = settings.DB_SCHEMA


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.execute(sa.schema.CreateSequence(sa.Sequence("qo_order_number_seq", schema=SCHEMA)))
    op.create_table(
        "qo_orders",
        sa.Column("qono", sa.String(20), primary_key=True),
        sa.Column("cust_id", sa.String(50), nullable=True),
        sa.Column("newcasename", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("qodate", sa.Date(), nullable=False, server_default=sa.func.current_date()),
        _ts("created_at"),
        _ts("updated_at"),
        schema=SCHEMA,
    )
    op.create_table(
        "process_record",
        sa.Column(
            "qono",
            sa.String(20),
            sa.ForeignKey(f"{SCHEMA}.qo_orders.qono", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("uid", sa.Integer(), primary_key=True),
        sa.Column("window_no", sa.Integer(), nullable=False),
        *(sa.Column(name, sa.Date(), nullable=True) for name in DATE_FIELDS),
        *(sa.Column(name, sa.Numeric(), nullable=True) for name in NUMERIC_FIELDS),
        *(sa.Column(name, sa.Text(), nullable=True) for name in TEXT_FIELDS),
        _ts("created_at"),
        _ts("updated_at"),
        schema=SCHEMA,
    )
    for statement in order_function_ddl(SCHEMA):
        op.execute(statement)


def downgrade() -> None:
    op.drop_table("process_record", schema=SCHEMA)
    op.execute(f"DROP FUNCTION IF EXISTS {SCHEMA}.resequence_window_no()")
    op.execute(f"DROP FUNCTION IF EXISTS {SCHEMA}.get_next_uid(varchar)")
    op.execute(f"DROP FUNCTION IF EXISTS {SCHEMA}.generate_qo_order_number()")
    op.drop_table("qo_orders", schema=SCHEMA)
    op.execute(sa.schema.DropSequence(sa.Sequence("qo_order_number_seq", schema=SCHEMA)))
