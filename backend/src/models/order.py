from datetime import date, datetime

from sqlalchemy import (
    DDL,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Sequence,
    String,
    Table,
    Text,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from config import settings
from models.base import Base

DRAFT = "DRAFT"
CONFIRMED = "CONFIRMED"

ORDER_NUMBER_PREFIX = "Q"
ORDER_NUMBER_DIGITS = 5

order_number_seq = Sequence("qo_order_number_seq", metadata=Base.metadata)

# Process-record line items, by storage type. qono/uid/window_no are assigned
# by the server and never taken from input.
DATE_FIELDS = ("qo_date", "ship_date")
NUMERIC_FIELDS = (
    "width", "height", "sewing_add", "petal_qty", "v_petal_length",
    "h_petal_length", "frames", "least_qty", "last_qty", "pcs", "qty_che",
    "qty_yd", "width_left", "width_right", "height_left", "height_right",
    "o_width_left", "o_width_right", "o_height", "o_height_left",
    "o_height_right", "selfde_frames", "hook_qty", "hook_length",
    "process_qty", "join_fabric_qty_yd", "join_fabric_qty_che",
    "process_frame_qty", "band_qty", "hole_qty", "velcro_qty",
    "iron_hole_qty", "real_frame_width",
)
TEXT_FIELDS = (
    "cust_id", "set_location", "color_no", "product", "fabric", "process",
    "open_style", "process_times", "joining_fabric", "symm_pattern",
    "cutain_hem", "label", "band_type", "iron", "neck_style", "sketch",
    "hook_type", "head_style", "urgent", "large_and_small", "sew_together",
    "st_group", "comment", "crew_cut", "cust_name", "unit", "band_needed",
    "lead", "keep_pattern", "process_unit", "ship_type", "shipping_locate",
    "erp_custid", "case_name", "shared_fabric", "shared_group",
    "roman_track", "make_hole", "velcro", "special_sew", "hidden_sew",
    "mark_line", "side_loop_fasteners", "band_with_velcro", "band_on_side",
    "itemno",
)
SERVER_FIELDS = ("qono", "uid", "window_no")


def format_order_number(day: date, sequence_value: int) -> str:
    """``Q`` + YYMM + zero-padded sequence value, e.g. ``Q260700042``."""
    return f"{ORDER_NUMBER_PREFIX}{day:%y%m}{sequence_value:0{ORDER_NUMBER_DIGITS}d}"


class QoOrder(Base):
    """Order header. Records can only be changed while it is a DRAFT."""

    __tablename__ = "qo_orders"

    qono: Mapped[str] = mapped_column(String(20), primary_key=True)
    cust_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    newcasename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=DRAFT, nullable=False)
    qodate: Mapped[date] = mapped_column(
        Date, server_default=func.current_date(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


process_record_table = Table(
    "process_record",
    Base.metadata,
    Column(
        "qono",
        String(20),
        ForeignKey("qo_orders.qono", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("uid", Integer, primary_key=True),
    Column("window_no", Integer, nullable=False),
    *(Column(name, Date, nullable=True) for name in DATE_FIELDS),
    *(Column(name, Numeric, nullable=True) for name in NUMERIC_FIELDS),
    *(Column(name, Text, nullable=True) for name in TEXT_FIELDS),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)


class ProcessRecord(Base):
    __table__ = process_record_table


def order_function_ddl(schema: str) -> list[str]:
    """Numbering helpers and the window_no resequencing trigger.

    The pricing function is owned by the database, not created here.
    """
    return [
        f"""
        CREATE OR REPLACE FUNCTION {schema}.generate_qo_order_number() RETURNS varchar
        LANGUAGE plpgsql AS $$
        BEGIN
            RETURN '{ORDER_NUMBER_PREFIX}' || to_char(current_date, 'YYMM')
                || lpad(nextval('{schema}.{order_number_seq.name}')::text, {ORDER_NUMBER_DIGITS}, '0');
        END;
        $$
        """,
        f"""
        CREATE OR REPLACE FUNCTION {schema}.get_next_uid(p_qono varchar) RETURNS integer
        LANGUAGE plpgsql AS $$
        BEGIN
            RETURN (SELECT coalesce(max(uid), 0) + 1 FROM {schema}.process_record WHERE qono = p_qono);
        END;
        $$
        """,
        f"""
        CREATE OR REPLACE FUNCTION {schema}.resequence_window_no() RETURNS trigger
        LANGUAGE plpgsql AS $$
        BEGIN
            UPDATE {schema}.process_record
               SET window_no = window_no - 1
             WHERE qono = OLD.qono AND window_no > OLD.window_no;
            RETURN OLD;
        END;
        $$
        """,
        f"""
        CREATE TRIGGER process_record_resequence
        AFTER DELETE ON {schema}.process_record
        FOR EACH ROW EXECUTE FUNCTION {schema}.resequence_window_no()
        """,
    ]


for _statement in order_function_ddl(settings.DB_SCHEMA):
    event.listen(process_record_table, "after_create", DDL(_statement))
