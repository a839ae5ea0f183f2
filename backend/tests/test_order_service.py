from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from core.errors import NotFoundError, ValidationError
from models.order import (
    DATE_FIELDS,
    NUMERIC_FIELDS,
    TEXT_FIELDS,
    format_order_number,
    order_function_ddl,
    order_number_seq,
)
from services.order import OrderService, clean_record

ORDER = {"qono": "Q260700042", "status": "DRAFT", "cust_id": "C001"}


@pytest.fixture
def service(mock_db):
    return OrderService(mock_db)


def scalar_statements(db) -> list:
    return [c.args[0] for c in db.scalar.await_args_list]


def test_order_number_format():
    assert format_order_number(date(2026, 7, 15), 42) == "Q260700042"
    assert format_order_number(date(2027, 1, 1), 123456) == "Q2701123456"


def test_record_fields_cover_every_line_item_column():
    fields = DATE_FIELDS + NUMERIC_FIELDS + TEXT_FIELDS
    assert len(fields) == len(set(fields)) == 81


def test_order_ddl_lives_in_configured_schema():
    ddl = "\n".join(order_function_ddl("app_order"))
    assert order_number_seq.schema == "app_order"
    assert "app_order.generate_qo_order_number()" in ddl
    assert "nextval('app_order.qo_order_number_seq')" in ddl
    assert "AFTER DELETE ON app_order.process_record" in ddl


def test_clean_record_coerces_and_drops_server_fields():
    values = clean_record(
        {
            "width": "120.5",
            "heightLeft": 80,
            "shipDate": "2026-08-01",
            "itemno": 7,
            "comment": "",
            "uid": 99,
            "windowNo": 4,
            "qono": "Q-other",
            "not_a_column": "x",
        }
    )

    assert values == {
        "width": Decimal("120.5"),
        "height_left": Decimal("80"),
        "ship_date": date(2026, 8, 1),
        "itemno": "7",
        "comment": "",
    }


def test_clean_record_blank_numbers_become_null():
    assert clean_record({"width": "", "qo_date": " "}) == {"width": None, "qo_date": None}


def test_clean_record_rejects_bad_values():
    with pytest.raises(ValidationError, match="height, ship_date"):
        clean_record({"height": "tall", "ship_date": "someday"})


async def test_preview_number_does_not_consume_sequence(service, mock_db, make_result, statements, compile_pg):
    mock_db.execute = AsyncMock(
        return_value=make_result(
            first=SimpleNamespace(today=date(2026, 7, 1), last_value=41, is_called=True)
        )
    )

    assert await service.preview_number() == "Q260700042"
    sql, _ = compile_pg(statements(mock_db)[0])
    assert "FROM app_order.qo_order_number_seq" in sql
    assert "nextval" not in sql


async def test_preview_number_on_fresh_sequence(service, mock_db, make_result):
    mock_db.execute = AsyncMock(
        return_value=make_result(
            first=SimpleNamespace(today=date(2026, 7, 1), last_value=1, is_called=False)
        )
    )

    assert await service.preview_number() == "Q260700001"


async def test_reserve_numbers_in_database(service, mock_db, make_result, statements, compile_pg):
    mock_db.execute = AsyncMock(return_value=make_result(first=ORDER))

    order = await service.reserve("C001", "Lin residence", "0912", "Taipei")

    assert order["qono"] == "Q260700042"
    sql, params = compile_pg(statements(mock_db)[0])
    assert "INSERT INTO app_order.qo_orders" in sql
    assert "app_order.generate_qo_order_number()" in sql
    assert params["status"] == "DRAFT"
    assert params["newcasename"] == "Lin residence"


async def test_add_record_assigns_uid_and_window(service, mock_db, make_result, statements, compile_pg):
    mock_db.scalar = AsyncMock(side_effect=["DRAFT", 3, 2])
    mock_db.execute = AsyncMock(
        return_value=make_result(first={"qono": "Q1", "uid": 3, "window_no": 2})
    )

    record = await service.add_record("Q1", {"width": "100", "uid": 1, "windowNo": 9})

    assert record["uid"] == 3
    lock, next_uid, next_window = (compile_pg(s)[0] for s in scalar_statements(mock_db))
    assert "FOR UPDATE" in lock
    assert "app_order.get_next_uid" in next_uid
    assert "max(app_order.process_record.window_no)" in next_window

    sql, params = compile_pg(statements(mock_db)[0])
    assert "INSERT INTO app_order.process_record" in sql
    assert params["uid"] == 3
    assert params["window_no"] == 2
    assert params["width"] == Decimal("100")


async def test_add_record_to_missing_order(service, mock_db):
    mock_db.scalar = AsyncMock(return_value=None)

    with pytest.raises(NotFoundError):
        await service.add_record("Q404", {"width": 1})
    mock_db.execute.assert_not_awaited()


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.add_record("Q1", {"width": 1}),
        lambda s: s.update_record("Q1", 1, {"width": 1}),
        lambda s: s.delete_record("Q1", 1),
        lambda s: s.delete_order("Q1"),
    ],
)
async def test_confirmed_orders_are_read_only(call, service, mock_db):
    mock_db.scalar = AsyncMock(return_value="CONFIRMED")

    with pytest.raises(ValidationError):
        await call(service)
    mock_db.execute.assert_not_awaited()


async def test_update_needs_a_real_field(service, mock_db):
    with pytest.raises(ValidationError):
        await service.update_record("Q1", 1, {"uid": 5, "windowNo": 1, "bogus": 2})
    mock_db.scalar.assert_not_awaited()


async def test_update_missing_record(service, mock_db, make_result):
    mock_db.scalar = AsyncMock(return_value="DRAFT")
    mock_db.execute = AsyncMock(return_value=make_result(first=None))

    with pytest.raises(NotFoundError):
        await service.update_record("Q1", 9, {"comment": "rush"})


async def test_update_record_touches_updated_at(service, mock_db, make_result, statements, compile_pg):
    mock_db.scalar = AsyncMock(return_value="DRAFT")
    mock_db.execute = AsyncMock(return_value=make_result(first={"uid": 1, "comment": "rush"}))

    record = await service.update_record("Q1", 1, {"comment": "rush"})

    assert record["comment"] == "rush"
    sql, params = compile_pg(statements(mock_db)[0])
    assert "UPDATE app_order.process_record" in sql
    assert "updated_at=now()" in sql
    assert params["comment"] == "rush"
    assert "window_no" not in params


async def test_delete_missing_record(service, mock_db, make_result):
    mock_db.scalar = AsyncMock(return_value="DRAFT")
    mock_db.execute = AsyncMock(return_value=make_result(first=None))

    with pytest.raises(NotFoundError):
        await service.delete_record("Q1", 9)


async def test_confirm_needs_records(service, mock_db):
    mock_db.scalar = AsyncMock(side_effect=["DRAFT", 0])

    with pytest.raises(ValidationError):
        await service.confirm("Q1")
    mock_db.execute.assert_not_awaited()


async def test_confirm(service, mock_db, make_result, statements, compile_pg):
    mock_db.scalar = AsyncMock(side_effect=["DRAFT", 2])
    mock_db.execute = AsyncMock(return_value=make_result(first={**ORDER, "status": "CONFIRMED"}))

    order = await service.confirm("Q260700042")

    assert order["status"] == "CONFIRMED"
    _, params = compile_pg(statements(mock_db)[0])
    assert params["status"] == "CONFIRMED"
    assert params["status_1"] == "DRAFT"


async def test_get_order_includes_records_in_window_order(service, mock_db, make_result, statements, compile_pg):
    records = [{"uid": 2, "window_no": 1}, {"uid": 1, "window_no": 2}]
    mock_db.execute = AsyncMock(
        side_effect=[make_result(first=ORDER), make_result(mappings=records)]
    )

    order = await service.get_order("Q260700042")

    assert order["record_count"] == 2
    assert order["records"] == records
    sql, _ = compile_pg(statements(mock_db)[1])
    assert "ORDER BY app_order.process_record.window_no" in sql


async def test_get_missing_order(service, mock_db, make_result):
    mock_db.execute = AsyncMock(return_value=make_result(first=None))

    with pytest.raises(NotFoundError):
        await service.get_order("Q404")


async def test_list_orders_filters_and_pages(service, mock_db, make_result, statements, compile_pg):
    mock_db.scalar = AsyncMock(return_value=45)
    mock_db.execute = AsyncMock(return_value=make_result(mappings=[{**ORDER, "record_count": 3}]))

    orders, total = await service.list_orders(
        page=3, limit=20, status="DRAFT", start_date=date(2026, 7, 1), keyword="50%"
    )

    assert total == 45
    assert orders[0]["record_count"] == 3
    sql, params = compile_pg(statements(mock_db)[0])
    assert "AS record_count" in sql
    assert "ESCAPE" in sql
    assert "ORDER BY app_order.qo_orders.created_at DESC" in sql
    assert "%50\\%%" in params.values()
    assert {20, 40} <= set(params.values())


async def test_price_order_sends_json_document(service, mock_db, make_result, compile_pg):
    records = [{"uid": 1, "window_no": 1, "width": Decimal("1.5"), "ship_date": date(2026, 8, 1)}]
    mock_db.execute = AsyncMock(
        side_effect=[make_result(first=ORDER), make_result(mappings=records)]
    )
    mock_db.scalar = AsyncMock(return_value={"total": 1200})

    assert await service.price_order("Q260700042") == {"total": 1200}

    sql, params = compile_pg(scalar_statements(mock_db)[0])
    assert "app_order.calculate_qo_order_price" in sql
    (document,) = [v for v in params.values() if isinstance(v, dict)]
    assert document["qono"] == "Q260700042"
    assert document["records"][0]["width"] == "1.5"
    assert document["records"][0]["ship_date"] == "2026-08-01"


async def test_price_order_without_result(service, mock_db, make_result):
    mock_db.execute = AsyncMock(side_effect=[make_result(first=ORDER), make_result()])
    mock_db.scalar = AsyncMock(return_value=None)

    with pytest.raises(ValidationError):
        await service.price_order("Q260700042")
