import logging
from datetime import date
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BeforeValidator, ConfigDict, TypeAdapter, create_model
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_snake
from sqlalchemy import column, delete, func, insert, literal, or_, select, table, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.errors import NotFoundError, ValidationError
from core.search import LIKE_ESCAPE, contains_pattern
from models import ProcessRecord, QoOrder
from models.order import (
    CONFIRMED,
    DATE_FIELDS,
    DRAFT,
    NUMERIC_FIELDS,
    TEXT_FIELDS,
    format_order_number,
    order_number_seq,
)

logger = logging.getLogger(__name__)

ORDER_COLUMNS = tuple(QoOrder.__table__.c)
RECORD_COLUMNS = tuple(ProcessRecord.__table__.c)

_sequence_state = table(
    order_number_seq.name,
    column("last_value"),
    column("is_called"),
    schema=settings.DB_SCHEMA,
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


_Blank = BeforeValidator(_blank_to_none)

RecordFields = create_model(
    "RecordFields",
    __config__=ConfigDict(extra="ignore", coerce_numbers_to_str=True),
    **{name: (Annotated[date | None, _Blank], None) for name in DATE_FIELDS},
    **{name: (Annotated[Decimal | None, _Blank], None) for name in NUMERIC_FIELDS},
    **{name: (str | None, None) for name in TEXT_FIELDS},
)


def clean_record(data: dict[str, Any]) -> dict[str, Any]:
    """Coerce client record fields to their column types.

    Keys may be camelCase or snake_case. Unknown keys and the server-assigned
    qono/uid/window_no are dropped. Only keys present in ``data`` come back,
    so the result also works as a partial update.
    """
    try:
        fields = RecordFields.model_validate({to_snake(k): v for k, v in data.items()})
    except SchemaError as e:
        names = sorted({str(err["loc"][0]) for err in e.errors()})
        raise ValidationError(f"Invalid value for: {', '.join(names)}") from e
    return fields.model_dump(include=fields.model_fields_set)


_order_document = TypeAdapter(dict[str, Any])


def _db_function(name: str):
    """A function in the configured schema, e.g. ``app_order.get_next_uid``."""
    return getattr(getattr(func, settings.DB_SCHEMA), name)


def _record_count():
    return (
        select(func.count())
        .select_from(ProcessRecord)
        .where(ProcessRecord.qono == QoOrder.qono)
        .correlate(QoOrder)
        .scalar_subquery()
        .label("record_count")
    )


class OrderService:
    """Draft orders and their numbered process records.

    Every mutating method must run inside a transaction; record changes
    lock the order row first so concurrent adds get distinct uid and
    window_no values.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def preview_number(self) -> str:
        """The number the next reserve would get. Not reserved; may be taken first."""
        result = await self.db.execute(
            select(
                func.current_date().label("today"),
                _sequence_state.c.last_value,
                _sequence_state.c.is_called,
            )
        )
        row = result.first()
        next_value = row.last_value + 1 if row.is_called else row.last_value
        return format_order_number(row.today, next_value)

    async def reserve(
        self,
        cust_id: str | None,
        new_case_name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> dict:
        result = await self.db.execute(
            insert(QoOrder)
            .values(
                qono=_db_function("generate_qo_order_number")(),
                cust_id=cust_id,
                newcasename=new_case_name,
                phone=phone,
                address=address,
                status=DRAFT,
            )
            .returning(*ORDER_COLUMNS)
        )
        order = dict(result.mappings().first())
        logger.info("Reserved order %s for customer %s", order["qono"], cust_id)
        return order

    async def _lock_draft(self, qono: str) -> None:
        status = await self.db.scalar(
            select(QoOrder.status).where(QoOrder.qono == qono).with_for_update()
        )
        if status is None:
            raise NotFoundError("Order not found")
        if status != DRAFT:
            raise ValidationError("Only draft orders can be changed")

    async def add_record(self, qono: str, data: dict[str, Any]) -> dict:
        values = clean_record(data)
        await self._lock_draft(qono)

        uid = await self.db.scalar(select(_db_function("get_next_uid")(qono)))
        window_no = await self.db.scalar(
            select(func.coalesce(func.max(ProcessRecord.window_no), 0) + 1).where(
                ProcessRecord.qono == qono
            )
        )
        result = await self.db.execute(
            insert(ProcessRecord)
            .values(**values, qono=qono, uid=uid, window_no=window_no)
            .returning(*RECORD_COLUMNS)
        )
        logger.info("Added record %s/%s as window %s", qono, uid, window_no)
        return dict(result.mappings().first())

    async def get_order(self, qono: str) -> dict:
        result = await self.db.execute(select(*ORDER_COLUMNS).where(QoOrder.qono == qono))
        order = result.mappings().first()
        if order is None:
            raise NotFoundError("Order not found")

        result = await self.db.execute(
            select(*RECORD_COLUMNS)
            .where(ProcessRecord.qono == qono)
            .order_by(ProcessRecord.window_no)
        )
        records = [dict(row) for row in result.mappings().all()]
        return {**order, "records": records, "record_count": len(records)}

    async def list_orders(
        self,
        page: int = 1,
        limit: int = settings.ORDER_PAGE_LIMIT,
        status: str | None = None,
        cust_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        keyword: str | None = None,
    ) -> tuple[list[dict], int]:
        """One page of orders, newest first, plus the total matching count."""
        filters = []
        if status:
            filters.append(QoOrder.status == status)
        if cust_id:
            filters.append(QoOrder.cust_id == cust_id)
        if start_date:
            filters.append(QoOrder.qodate >= start_date)
        if end_date:
            filters.append(QoOrder.qodate <= end_date)
        if keyword:
            pattern = contains_pattern(keyword)
            filters.append(
                or_(
                    *(
                        col.ilike(pattern, escape=LIKE_ESCAPE)
                        for col in (QoOrder.qono, QoOrder.newcasename, QoOrder.phone, QoOrder.address)
                    )
                )
            )

        total = await self.db.scalar(select(func.count()).select_from(QoOrder).where(*filters))
        result = await self.db.execute(
            select(*ORDER_COLUMNS, _record_count())
            .where(*filters)
            .order_by(QoOrder.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return [dict(row) for row in result.mappings().all()], int(total or 0)

    async def update_record(self, qono: str, uid: int, data: dict[str, Any]) -> dict:
        values = clean_record(data)
        if not values:
            raise ValidationError("No updatable fields supplied")
        await self._lock_draft(qono)

        result = await self.db.execute(
            update(ProcessRecord)
            .where(ProcessRecord.qono == qono, ProcessRecord.uid == uid)
            .values(**values, updated_at=func.now())
            .returning(*RECORD_COLUMNS)
        )
        record = result.mappings().first()
        if record is None:
            raise NotFoundError("Record not found")
        return dict(record)

    async def delete_record(self, qono: str, uid: int) -> dict:
        """Delete one record; later window numbers shift down by one (trigger)."""
        await self._lock_draft(qono)
        result = await self.db.execute(
            delete(ProcessRecord)
            .where(ProcessRecord.qono == qono, ProcessRecord.uid == uid)
            .returning(*RECORD_COLUMNS)
        )
        record = result.mappings().first()
        if record is None:
            raise NotFoundError("Record not found")
        logger.info("Deleted record %s/%s", qono, uid)
        return dict(record)

    async def confirm(self, qono: str) -> dict:
        await self._lock_draft(qono)
        count = await self.db.scalar(
            select(func.count()).select_from(ProcessRecord).where(ProcessRecord.qono == qono)
        )
        if not count:
            raise ValidationError("An order needs at least one record to be confirmed")

        result = await self.db.execute(
            update(QoOrder)
            .where(QoOrder.qono == qono, QoOrder.status == DRAFT)
            .values(status=CONFIRMED, updated_at=func.now())
            .returning(*ORDER_COLUMNS)
        )
        logger.info("Confirmed order %s with %d records", qono, count)
        return dict(result.mappings().first())

    async def delete_order(self, qono: str) -> None:
        """Drop a draft order; its records go with it (ON DELETE CASCADE)."""
        await self._lock_draft(qono)
        await self.db.execute(
            delete(QoOrder).where(QoOrder.qono == qono, QoOrder.status == DRAFT)
        )
        logger.info("Deleted draft order %s", qono)

    async def price_order(self, qono: str) -> Any:
        """Hand the order document to the database pricing function.

        The function takes the order (with its records) as jsonb and returns
        priced line items and totals as jsonb; the result is passed through.
        """
        document = _order_document.dump_python(await self.get_order(qono), mode="json")
        pricing = _db_function(settings.PRICING_FUNCTION)
        priced = await self.db.scalar(
            select(pricing(literal(document, type_=JSONB), type_=JSONB))
        )
        if priced is None:
            raise ValidationError("Pricing returned no result")
        return priced
