import math
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_database
from api.schemas import ReserveOrderRequest, camelize
from config import settings
from core.database import Database
from services.order import OrderService

router = APIRouter(prefix="/api/qo-orders", tags=["orders"])

RecordBody = Annotated[dict[str, Any], Body()]


# Declared before /{qono} so it is not captured as an order number.
@router.get("/preview-number")
async def preview_number(database: Database = Depends(get_database)):
    async with database.session() as db:
        number = await OrderService(db).preview_number()
    return {
        "success": True,
        "previewNumber": number,
        "note": "Preview only; the final number is assigned when the order is saved",
    }


@router.post("/reserve", status_code=201)
async def reserve(body: ReserveOrderRequest, database: Database = Depends(get_database)):
    """Create the DRAFT header and hand back its generated order number."""
    async with database.transaction() as db:
        order = await OrderService(db).reserve(
            body.cust_id, body.new_case_name, body.phone, body.address
        )
    return {"success": True, "qono": order["qono"], "order": camelize(order)}


@router.get("")
async def list_orders(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = settings.ORDER_PAGE_LIMIT,
    status: str | None = None,
    cust_id: Annotated[str | None, Query(alias="custId")] = None,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
    keyword: str | None = None,
    database: Database = Depends(get_database),
):
    async with database.session() as db:
        orders, total = await OrderService(db).list_orders(
            page, limit, status, cust_id, start_date, end_date, keyword
        )
    return {
        "success": True,
        "orders": camelize(orders),
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }


@router.get("/{qono}")
async def get_order(qono: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        order = await OrderService(db).get_order(qono)
    return {"success": True, "order": camelize(order)}


@router.post("/{qono}/records", status_code=201)
async def add_record(qono: str, body: RecordBody, database: Database = Depends(get_database)):
    """Append a line item; uid and window_no are assigned server-side."""
    async with database.transaction() as db:
        record = await OrderService(db).add_record(qono, body)
    return {
        "success": True,
        "qono": qono,
        "uid": record["uid"],
        "windowNo": record["window_no"],
        "record": camelize(record),
    }


@router.put("/{qono}/records/{uid}")
async def update_record(
    qono: str, uid: int, body: RecordBody, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        record = await OrderService(db).update_record(qono, uid, body)
    return {"success": True, "record": camelize(record)}


@router.delete("/{qono}/records/{uid}")
async def delete_record(qono: str, uid: int, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        record = await OrderService(db).delete_record(qono, uid)
    return {"success": True, "deletedRecord": camelize(record)}


@router.post("/{qono}/confirm")
async def confirm(qono: str, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        order = await OrderService(db).confirm(qono)
    return {"success": True, "order": camelize(order)}


@router.post("/{qono}/pricing")
async def price_order(qono: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        pricing = await OrderService(db).price_order(qono)
    return {"success": True, "qono": qono, "pricing": pricing}


@router.delete("/{qono}")
async def delete_order(qono: str, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        await OrderService(db).delete_order(qono)
    return {"success": True, "qono": qono}
