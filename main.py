import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db, session_scope
from models import RecurrenceKind, TransactionStatus, TransactionType
from periods import Period, local_today, resolve_period, to_calendar_day
from recurrence import Occurrence
from schemas import (
    CategoryIn,
    OccurrenceOut,
    OwnerSettingsIn,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
)
from services import (
    CategoryNotFound,
    CategoryService,
    GroupWriteError,
    MetricsService,
    OwnerSettingsService,
    StorageUnavailable,
    TransactionFilters,
    TransactionNotFound,
    TransactionRecord,
    TransactionService,
)


settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    init_db()
    with session_scope() as session:
        CategoryService(session).ensure_defaults()
    logger.info(
        f"startup: recurrence_mode={settings.recurrence_mode} "
        f"horizon_days={settings.recurrence_horizon_days}"
    )


@app.exception_handler(StorageUnavailable)
def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(GroupWriteError)
def group_write_handler(request: Request, exc: GroupWriteError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _enum_param(request: Request, name: str, enum_cls):
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from exc


def filters_from_request(request: Request) -> TransactionFilters:
    return TransactionFilters(
        type=_enum_param(request, "type", TransactionType),
        status=_enum_param(request, "status", TransactionStatus),
        recurrence_kind=_enum_param(request, "recurrence", RecurrenceKind),
        query=request.query_params.get("q") or None,
    )


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name, "").lower() in {"1", "true", "yes", "on"}


def _day_param(request: Request, name: str, default: Optional[date] = None) -> date:
    value = request.query_params.get(name)
    if not value:
        if default is None:
            raise HTTPException(status_code=400, detail=f"Missing {name}")
        return default
    try:
        return to_calendar_day(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from exc


async def _json_body(request: Request, model):
    try:
        payload = await request.json()
        return model.model_validate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def transaction_payload(record: TransactionRecord) -> dict[str, object]:
    return TransactionOut.model_validate(record).model_dump(mode="json")


def occurrence_payload(occ: Occurrence) -> dict[str, object]:
    txn = occ.transaction
    return OccurrenceOut(
        transaction_id=txn.id,
        occurrence_date=occ.occurrence_date,
        type=txn.type,
        amount_cents=txn.amount_cents,
        category=txn.category,
        description=txn.description,
        status=txn.status,
        recurrence_kind=txn.recurrence_kind,
        group_id=txn.group_id,
    ).model_dump(mode="json")


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    sort = request.query_params.get("sort", "anchor_date")
    if sort not in ("anchor_date", "description", "category", "amount"):
        raise HTTPException(status_code=400, detail=f"Invalid sort: {sort}")
    descending = request.query_params.get("order", "desc") != "asc"
    records = TransactionService(db).list(
        filters_from_request(request), sort=sort, descending=descending
    )
    return {"items": [transaction_payload(record) for record in records]}


@app.post("/api/transactions", status_code=201)
async def create_transaction(request: Request, db: Session = Depends(get_db)):
    data = await _json_body(request, TransactionIn)
    try:
        record = TransactionService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_payload(record)


@app.get("/api/transactions/recurring")
def api_recurring(request: Request, db: Session = Depends(get_db)):
    after = _day_param(request, "after", local_today())
    items = TransactionService(db).upcoming(after)
    return {
        "items": [
            {
                **transaction_payload(item["transaction"]),
                "next_date": item["next_date"].isoformat(),
            }
            for item in items
        ]
    }


@app.get("/api/transactions/{transaction_id}")
def api_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        record = TransactionService(db).get(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_payload(record)


@app.patch("/api/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    data = await _json_body(request, TransactionUpdate)
    try:
        record = TransactionService(db).update(
            transaction_id, data, update_all=_flag(request, "all")
        )
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_payload(record)


@app.post("/api/transactions/{transaction_id}/toggle-status")
def toggle_transaction_status(transaction_id: int, db: Session = Depends(get_db)):
    try:
        record = TransactionService(db).toggle_status(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_payload(record)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    try:
        removed = TransactionService(db).delete(
            transaction_id, delete_all=_flag(request, "all")
        )
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"removed": removed}


@app.get("/api/groups/{group_id}")
def api_group(group_id: str, db: Session = Depends(get_db)):
    records = TransactionService(db).group(group_id)
    if not records:
        raise HTTPException(status_code=404, detail="Series not found")
    return {"items": [transaction_payload(record) for record in records]}


@app.get("/api/occurrences")
def api_occurrences(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    occurrences = MetricsService(db).occurrences(period, filters_from_request(request))
    return {
        "start": period.start,
        "end": period.end,
        "items": [occurrence_payload(occ) for occ in occurrences],
    }


@app.get("/api/summary")
def api_summary(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    summary = MetricsService(db).summary(period)
    return {"start": period.start, "end": period.end, **summary.as_dict()}


@app.get("/api/cumulative")
def api_cumulative(request: Request, db: Session = Depends(get_db)):
    up_to = _day_param(request, "up_to", local_today())
    return MetricsService(db).cumulative(up_to)


@app.get("/api/calendar/{year}/{month}")
def api_calendar(year: int, month: int, db: Session = Depends(get_db)):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    return {"year": year, "month": month, "days": MetricsService(db).calendar(year, month)}


@app.get("/api/series")
def api_series(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    try:
        series = MetricsService(db).monthly_series(period.start, period.end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"start": period.start, "end": period.end, "items": series}


@app.get("/api/dashboard")
def api_dashboard(request: Request, db: Session = Depends(get_db)):
    today = _day_param(request, "today", local_today())
    data = MetricsService(db).dashboard(today)
    data["recent"] = [occurrence_payload(occ) for occ in data["recent"]]
    return data


@app.get("/api/categories")
def api_categories(request: Request, db: Session = Depends(get_db)):
    type_ = _enum_param(request, "type", TransactionType)
    categories = CategoryService(db).list_all(type_)
    return {
        "items": [
            {"id": c.id, "name": c.name, "type": c.type.value, "order": c.order}
            for c in categories
        ]
    }


@app.get("/api/categories/suggest")
def api_category_suggest(request: Request, db: Session = Depends(get_db)):
    type_ = _enum_param(request, "type", TransactionType) or TransactionType.expense
    names = CategoryService(db).suggest(type_, request.query_params.get("q", ""))
    return {"items": names}


@app.post("/api/categories", status_code=201)
async def create_category(request: Request, db: Session = Depends(get_db)):
    data = await _json_body(request, CategoryIn)
    try:
        category = CategoryService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "id": category.id,
        "name": category.name,
        "type": category.type.value,
        "order": category.order,
    }


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except CategoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": category_id}


def _settings_payload(row) -> dict[str, object]:
    return {
        "emergency_fund_cents": row.emergency_fund_cents,
        "currency_code": row.currency_code.value,
    }


@app.get("/api/settings")
def api_settings(db: Session = Depends(get_db)):
    return _settings_payload(OwnerSettingsService(db).get())


@app.put("/api/settings")
async def update_settings(request: Request, db: Session = Depends(get_db)):
    data = await _json_body(request, OwnerSettingsIn)
    return _settings_payload(OwnerSettingsService(db).update(data))
