from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Optional

from rapidfuzz.distance import Levenshtein
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import RECURRENCE_MODES, get_settings
from models import (
    DEFAULT_CATEGORIES,
    Category,
    CurrencyCode,
    OwnerSettings,
    RecurrenceKind,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from periods import (
    Period,
    add_months,
    local_today,
    month_end,
    month_period,
    month_start,
    start_of_year,
)
from recurrence import (
    Occurrence,
    RecurrenceRule,
    expand,
    next_occurrence,
    occurrences_on,
    series_dates,
)
from schemas import (
    CategoryIn,
    OwnerSettingsIn,
    SortField,
    TransactionIn,
    TransactionUpdate,
)
from summaries import (
    Summary,
    category_breakdown,
    day_summaries,
    emergency_fund_used,
    percent_change,
    reserve_status,
    summarize,
)


logger = logging.getLogger(__name__)

# Fields that "edit all" copies across a materialized series. Dates stay
# per record because every sibling owns its own occurrence date.
GROUP_SHARED_FIELDS = ("type", "amount_cents", "category", "description", "status")

SORT_COLUMNS = {
    "anchor_date": Transaction.anchor_date,
    "description": Transaction.description,
    "category": Transaction.category,
    "amount": Transaction.amount_cents,
}


class TransactionNotFound(ValueError):
    pass


class CategoryNotFound(ValueError):
    pass


class StorageUnavailable(RuntimeError):
    pass


class GroupWriteError(RuntimeError):
    pass


def get_current_user_id() -> int:
    return get_settings().default_user_id


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except OperationalError as exc:
        logger.error(f"storage_unavailable: action={action}")
        raise StorageUnavailable(f"Storage unavailable while trying to {action}") from exc


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    user_id: int
    type: TransactionType
    amount_cents: int
    category: str
    description: str
    anchor_date: date
    status: TransactionStatus
    recurrence_kind: RecurrenceKind
    recurrence_end_date: Optional[date] = None
    group_id: Optional[str] = None

    @property
    def recurrence(self) -> RecurrenceRule:
        return RecurrenceRule(
            kind=self.recurrence_kind,
            anchor_date=self.anchor_date,
            end_date=self.recurrence_end_date,
            group_id=self.group_id,
        )

    @classmethod
    def from_row(cls, row: Transaction) -> "TransactionRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            type=row.type,
            amount_cents=row.amount_cents,
            category=row.category,
            description=row.description or "",
            anchor_date=row.anchor_date,
            status=row.status,
            recurrence_kind=row.recurrence_kind,
            recurrence_end_date=row.recurrence_end_date,
            group_id=row.group_id,
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    user_id: int
    records: tuple[TransactionRecord, ...]
    taken_at: datetime

    def get(self, transaction_id: int) -> Optional[TransactionRecord]:
        for record in self.records:
            if record.id == transaction_id:
                return record
        return None


SnapshotCallback = Callable[[LedgerSnapshot], None]


class ChangeFeed:
    """Pushes a fresh snapshot to every subscriber of an owner after a write."""

    def __init__(self) -> None:
        self._subscribers: dict[int, list[SnapshotCallback]] = {}

    def subscribe(self, user_id: int, callback: SnapshotCallback) -> Callable[[], None]:
        self._subscribers.setdefault(user_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(user_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def has_subscribers(self, user_id: int) -> bool:
        return bool(self._subscribers.get(user_id))

    def publish(self, snapshot: LedgerSnapshot) -> None:
        for callback in list(self._subscribers.get(snapshot.user_id, [])):
            try:
                callback(snapshot)
            except Exception:
                logger.exception(
                    f"change_feed_callback_failed: user_id={snapshot.user_id}"
                )


change_feed = ChangeFeed()


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    recurrence_kind: Optional[RecurrenceKind] = None
    query: Optional[str] = None

    def matches(self, record: TransactionRecord) -> bool:
        if self.type and record.type != self.type:
            return False
        if self.status and record.status != self.status:
            return False
        if self.recurrence_kind and record.recurrence_kind != self.recurrence_kind:
            return False
        if self.query:
            needle = self.query.lower()
            if (
                needle not in record.description.lower()
                and needle not in record.category.lower()
            ):
                return False
        return True


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _for_type(self, type_: TransactionType) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id, Category.type == type_)
            .order_by(Category.order, Category.name)
        )
        return self.session.scalars(stmt).all()

    def ensure_defaults(self, *, commit: bool = True) -> bool:
        with storage_errors("load categories"):
            existing = self.session.execute(
                select(func.count(Category.id)).where(Category.user_id == self.user_id)
            ).scalar_one()
        if existing:
            return False
        for type_, names in DEFAULT_CATEGORIES.items():
            for order, name in enumerate(names):
                self.session.add(
                    Category(user_id=self.user_id, name=name, type=type_, order=order)
                )
        with storage_errors("seed categories"):
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        logger.info(f"categories_seeded: user_id={self.user_id}")
        return True

    def list_all(self, type_: Optional[TransactionType] = None) -> list[Category]:
        self.ensure_defaults()
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.type, Category.order, Category.name)
        )
        if type_ is not None:
            stmt = stmt.where(Category.type == type_)
        with storage_errors("list categories"):
            return self.session.scalars(stmt).all()

    def create(self, data: CategoryIn) -> Category:
        self.ensure_defaults(commit=False)
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                Category.type == data.type,
                func.lower(Category.name) == data.name.lower(),
            )
        )
        if existing:
            raise ValueError("Category with this name already exists")
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            order=data.order,
        )
        self.session.add(category)
        with storage_errors("create category"):
            self.session.commit()
        self.session.refresh(category)
        logger.info(
            f"category_created: user_id={self.user_id} type={data.type.value} name={category.name}"
        )
        return category

    def resolve(self, type_: TransactionType, name: str) -> Category:
        """Return the registered category for ``name``, registering it if new.

        Only flushes; the caller's commit decides whether the registration
        sticks.
        """
        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Category cannot be empty")
        self.ensure_defaults(commit=False)
        candidates = self._for_type(type_)
        for category in candidates:
            if category.name == clean_name:
                return category
        for category in candidates:
            if category.name.lower() == clean_name.lower():
                return category
        category = Category(
            user_id=self.user_id,
            name=clean_name,
            type=type_,
            order=len(candidates),
        )
        self.session.add(category)
        self.session.flush()
        return category

    def suggest(
        self, type_: TransactionType, name: str, limit: int = 3
    ) -> list[str]:
        needle = name.strip().lower()
        if not needle:
            return []
        scored = []
        for category in self.list_all(type_):
            distance = Levenshtein.distance(needle, category.name.lower())
            if distance <= 2 or category.name.lower().startswith(needle):
                scored.append((distance, category.name))
        scored.sort()
        return [name for _distance, name in scored[:limit]]

    def delete(self, category_id: int) -> None:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise CategoryNotFound("Category not found")
        self.session.delete(category)
        with storage_errors("delete category"):
            self.session.commit()
        logger.info(f"category_deleted: user_id={self.user_id} id={category_id}")


class OwnerSettingsService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _load(self) -> Optional[OwnerSettings]:
        with storage_errors("load settings"):
            return self.session.scalar(
                select(OwnerSettings).where(OwnerSettings.user_id == self.user_id)
            )

    def get(self) -> OwnerSettings:
        """Stored settings, or an unsaved default row when none exist yet."""
        row = self._load()
        if row is None:
            row = OwnerSettings(
                user_id=self.user_id,
                emergency_fund_cents=0,
                currency_code=CurrencyCode.brl,
            )
        return row

    def update(self, data: OwnerSettingsIn) -> OwnerSettings:
        row = self._load()
        if row is None:
            row = OwnerSettings(user_id=self.user_id)
            self.session.add(row)
        row.emergency_fund_cents = data.emergency_fund_cents
        row.currency_code = data.currency_code
        with storage_errors("update settings"):
            self.session.commit()
        self.session.refresh(row)
        logger.info(
            f"settings_updated: user_id={self.user_id} emergency_fund_cents={row.emergency_fund_cents}"
        )
        return row


class TransactionService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        *,
        recurrence_mode: Optional[str] = None,
        horizon_days: Optional[int] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        settings = get_settings()
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.recurrence_mode = recurrence_mode or settings.recurrence_mode
        if self.recurrence_mode not in RECURRENCE_MODES:
            raise ValueError(f"Unsupported recurrence mode: {self.recurrence_mode}")
        self.horizon_days = horizon_days or settings.recurrence_horizon_days
        self.feed = feed or change_feed

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except OperationalError as exc:
            self.session.rollback()
            logger.error(f"storage_unavailable: action={action} user_id={self.user_id}")
            raise StorageUnavailable(
                f"Storage unavailable while trying to {action}"
            ) from exc

    def _commit_group(self, action: str, group_id: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                f"group_write_failed: action={action} user_id={self.user_id} group_id={group_id}"
            )
            raise GroupWriteError(
                f"Could not {action} series {group_id}; no record was changed"
            ) from exc

    def _publish(self) -> None:
        if self.feed.has_subscribers(self.user_id):
            self.feed.publish(self.snapshot())

    def _get_row(self, transaction_id: int) -> Transaction:
        with storage_errors("load transaction"):
            txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise TransactionNotFound("Transaction not found")
        return txn

    def _materialize(
        self, rule: RecurrenceRule, template: dict[str, object], group_id: str
    ) -> list[Transaction]:
        return [
            Transaction(**template, anchor_date=occurrence_date, group_id=group_id)
            for occurrence_date in series_dates(rule, horizon_days=self.horizon_days)
        ]

    def has_any(self) -> bool:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.user_id == self.user_id
        )
        with storage_errors("count transactions"):
            return (self.session.execute(stmt).scalar_one() or 0) > 0

    def create(self, data: TransactionIn) -> TransactionRecord:
        category = CategoryService(self.session, self.user_id).resolve(
            data.type, data.category
        )
        rule = RecurrenceRule(
            kind=data.recurrence_kind,
            anchor_date=data.anchor_date,
            end_date=data.recurrence_end_date,
        )
        template: dict[str, object] = {
            "user_id": self.user_id,
            "type": data.type,
            "amount_cents": data.amount_cents,
            "category": category.name,
            "description": data.description,
            "status": data.status,
            "recurrence_kind": data.recurrence_kind,
            "recurrence_end_date": data.recurrence_end_date,
        }
        group_id = None
        if self.recurrence_mode == "eager" and rule.is_recurring:
            group_id = str(uuid.uuid4())
            rows = self._materialize(rule, template, group_id)
        else:
            rows = [Transaction(**template, anchor_date=data.anchor_date)]

        self.session.add_all(rows)
        self._commit("create transaction")
        logger.info(
            f"transaction_created: user_id={self.user_id} id={rows[0].id} "
            f"recurrence={data.recurrence_kind.value} records={len(rows)} group_id={group_id}"
        )
        self._publish()
        return TransactionRecord.from_row(rows[0])

    def get(self, transaction_id: int) -> TransactionRecord:
        return TransactionRecord.from_row(self._get_row(transaction_id))

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        sort: SortField = "anchor_date",
        descending: bool = True,
    ) -> list[TransactionRecord]:
        filters = filters or TransactionFilters()
        column = SORT_COLUMNS[sort]
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .execution_options(populate_existing=True)
        )
        if descending:
            stmt = stmt.order_by(column.desc(), Transaction.id.desc())
        else:
            stmt = stmt.order_by(column.asc(), Transaction.id.asc())
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.status:
            stmt = stmt.where(Transaction.status == filters.status)
        if filters.recurrence_kind:
            stmt = stmt.where(Transaction.recurrence_kind == filters.recurrence_kind)
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.description).like(like),
                    func.lower(Transaction.category).like(like),
                )
            )
        with storage_errors("list transactions"):
            rows = self.session.scalars(stmt).all()
        return [TransactionRecord.from_row(row) for row in rows]

    def recurring(self) -> list[TransactionRecord]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.recurrence_kind != RecurrenceKind.none,
            )
            .order_by(Transaction.anchor_date, Transaction.id)
            .execution_options(populate_existing=True)
        )
        with storage_errors("list recurring transactions"):
            rows = self.session.scalars(stmt).all()
        return [TransactionRecord.from_row(row) for row in rows]

    def upcoming(self, after: Optional[date] = None) -> list[dict[str, object]]:
        """Next due date of every recurring series, soonest first."""
        after = after or local_today()
        seen_groups: set[str] = set()
        items = []
        for record in self.recurring():
            if record.group_id:
                if record.group_id in seen_groups or record.anchor_date <= after:
                    continue
                seen_groups.add(record.group_id)
                due = record.anchor_date
            else:
                due = next_occurrence(
                    record.recurrence, after, horizon_days=self.horizon_days
                )
            if due is not None:
                items.append({"transaction": record, "next_date": due})
        items.sort(key=lambda item: (item["next_date"], item["transaction"].id))
        return items

    def group(self, group_id: str) -> list[TransactionRecord]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id, Transaction.group_id == group_id)
            .order_by(Transaction.anchor_date, Transaction.id)
            .execution_options(populate_existing=True)
        )
        with storage_errors("load series"):
            rows = self.session.scalars(stmt).all()
        return [TransactionRecord.from_row(row) for row in rows]

    def update(
        self,
        transaction_id: int,
        data: TransactionUpdate,
        *,
        update_all: bool = False,
    ) -> TransactionRecord:
        txn = self._get_row(transaction_id)
        changes = data.changes()

        new_type = changes.get("type", txn.type)
        new_kind = changes.get("recurrence_kind", txn.recurrence_kind)
        new_anchor = changes.get("anchor_date", txn.anchor_date)
        new_end = changes.get("recurrence_end_date", txn.recurrence_end_date)
        group_id = txn.group_id
        schedule_changed = (
            new_kind != txn.recurrence_kind or new_end != txn.recurrence_end_date
        )

        # Every rejection happens before the category registry is touched.
        if new_kind == RecurrenceKind.none:
            if changes.get("recurrence_end_date") is not None:
                raise ValueError("End date requires a recurring transaction")
            # One-off records carry no schedule at all.
            new_end = None
            changes["recurrence_end_date"] = None
            if group_id is not None:
                if update_all:
                    raise ValueError(
                        "Delete the series instead of turning every record into a one-off"
                    )
                changes["group_id"] = None
                group_id = None
        elif group_id is not None and schedule_changed:
            raise ValueError(
                "The schedule of a materialized series cannot be edited; "
                "delete it and create it again"
            )

        RecurrenceRule(
            kind=new_kind, anchor_date=new_anchor, end_date=new_end, group_id=group_id
        )

        if "category" in changes or new_type != txn.type:
            category = CategoryService(self.session, self.user_id).resolve(
                new_type, changes.get("category", txn.category)
            )
            changes["category"] = category.name

        extra_rows: list[Transaction] = []
        if (
            self.recurrence_mode == "eager"
            and group_id is None
            and new_kind != RecurrenceKind.none
        ):
            group_id = str(uuid.uuid4())
            changes["group_id"] = group_id
            rule = RecurrenceRule(kind=new_kind, anchor_date=new_anchor, end_date=new_end)
            template = {
                "user_id": self.user_id,
                "type": new_type,
                "amount_cents": changes.get("amount_cents", txn.amount_cents),
                "category": changes.get("category", txn.category),
                "description": changes.get("description", txn.description),
                "status": changes.get("status", txn.status),
                "recurrence_kind": new_kind,
                "recurrence_end_date": new_end,
            }
            extra_rows = self._materialize(rule, template, group_id)[1:]

        for field_name, value in changes.items():
            setattr(txn, field_name, value)
        self.session.add_all(extra_rows)

        if update_all and txn.group_id is not None:
            shared = {k: v for k, v in changes.items() if k in GROUP_SHARED_FIELDS}
            if shared:
                self.session.execute(
                    update(Transaction)
                    .where(
                        Transaction.user_id == self.user_id,
                        Transaction.group_id == txn.group_id,
                    )
                    .values(**shared)
                )
            self._commit_group("update", txn.group_id)
            logger.info(
                f"group_updated: user_id={self.user_id} group_id={txn.group_id} "
                f"fields={','.join(sorted(shared))}"
            )
        else:
            self._commit("update transaction")
            logger.info(
                f"transaction_updated: user_id={self.user_id} id={txn.id} "
                f"fields={','.join(sorted(changes))} materialized={len(extra_rows)}"
            )
        self._publish()
        return TransactionRecord.from_row(txn)

    def set_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        *,
        update_all: bool = False,
    ) -> TransactionRecord:
        return self.update(
            transaction_id, TransactionUpdate(status=status), update_all=update_all
        )

    def toggle_status(self, transaction_id: int) -> TransactionRecord:
        txn = self._get_row(transaction_id)
        status = (
            TransactionStatus.pending
            if txn.status == TransactionStatus.paid
            else TransactionStatus.paid
        )
        return self.set_status(transaction_id, status)

    def delete(self, transaction_id: int, *, delete_all: bool = False) -> int:
        txn = self._get_row(transaction_id)
        group_id = txn.group_id
        if delete_all and group_id is not None:
            result = self.session.execute(
                delete(Transaction)
                .where(
                    Transaction.user_id == self.user_id,
                    Transaction.group_id == group_id,
                )
            )
            self._commit_group("delete", group_id)
            removed = int(result.rowcount or 0)
            logger.info(
                f"group_deleted: user_id={self.user_id} group_id={group_id} records={removed}"
            )
        else:
            self.session.delete(txn)
            self._commit("delete transaction")
            removed = 1
            logger.info(
                f"transaction_deleted: user_id={self.user_id} id={transaction_id} group_id={group_id}"
            )
        self._publish()
        return removed

    def snapshot(self) -> LedgerSnapshot:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.anchor_date, Transaction.id)
            .execution_options(populate_existing=True)
        )
        with storage_errors("load ledger"):
            rows = self.session.scalars(stmt).all()
        return LedgerSnapshot(
            user_id=self.user_id,
            records=tuple(TransactionRecord.from_row(row) for row in rows),
            taken_at=datetime.utcnow(),
        )


class MetricsService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        *,
        horizon_days: Optional[int] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.horizon_days = horizon_days or get_settings().recurrence_horizon_days
        self.transactions = TransactionService(
            session, self.user_id, horizon_days=self.horizon_days
        )

    def _records(self) -> tuple[TransactionRecord, ...]:
        return self.transactions.snapshot().records

    def _expand(
        self, records: tuple[TransactionRecord, ...], start: date, end: date
    ) -> list[Occurrence]:
        return expand(records, start, end, horizon_days=self.horizon_days)

    def occurrences(
        self, period: Period, filters: Optional[TransactionFilters] = None
    ) -> list[Occurrence]:
        occurrences = self._expand(self._records(), period.start, period.end)
        if filters is None:
            return occurrences
        return [occ for occ in occurrences if filters.matches(occ.transaction)]

    def month(self, year: int, month: int) -> list[Occurrence]:
        return self.occurrences(month_period(year, month))

    def summary(self, period: Period) -> Summary:
        return summarize(self.occurrences(period))

    def calendar(self, year: int, month: int) -> list[dict[str, object]]:
        first = date(year, month, 1)
        # Sunday-first grid padded out to whole weeks.
        grid_start = first - timedelta(days=(first.weekday() + 1) % 7)
        last = month_end(first)
        grid_end = last + timedelta(days=(5 - last.weekday()) % 7)
        occurrences = self._expand(self._records(), grid_start, grid_end)
        per_day = day_summaries(occurrences)

        days = []
        current = grid_start
        while current <= grid_end:
            summary = per_day.get(current)
            row: dict[str, object] = {
                "date": current,
                "in_month": current.month == month,
                "transaction_ids": [
                    occ.transaction_id for occ in occurrences_on(occurrences, current)
                ],
            }
            row.update(
                summary.as_dict()
                if summary
                else {
                    "income": 0,
                    "expense": 0,
                    "paid_income": 0,
                    "paid_expense": 0,
                    "balance": 0,
                }
            )
            days.append(row)
            current += timedelta(days=1)
        return days

    def monthly_series(self, start: date, end: date) -> list[dict[str, object]]:
        if start > end:
            raise ValueError("Start date must be before end date")
        records = self._records()
        series = []
        current = month_start(start)
        while current <= end:
            summary = summarize(self._expand(records, current, month_end(current)))
            series.append(
                {
                    "month": current.strftime("%Y-%m"),
                    "income": summary.total_income,
                    "expense": summary.total_expense,
                    "balance": summary.balance,
                }
            )
            current = add_months(current, 1)
        return series

    def cumulative(self, up_to: date) -> dict[str, object]:
        """Year-to-date totals and the emergency fund consumed by the deficit.

        The window always starts on January 1st of ``up_to``'s year, so a
        surplus month only offsets earlier deficits instead of resetting them.
        """
        start = start_of_year(up_to)
        summary = summarize(self._expand(self._records(), start, up_to))
        used = emergency_fund_used(summary)
        fund_total = OwnerSettingsService(self.session, self.user_id).get()
        reserve = reserve_status(fund_total.emergency_fund_cents, used)
        result = summary.as_dict()
        result.update(
            {
                "start": start,
                "up_to": up_to,
                "emergency_fund_used": used,
                "emergency_fund_total": reserve.total,
                "emergency_fund_remaining": reserve.remaining,
                "emergency_fund_used_percent": reserve.used_percent,
            }
        )
        return result

    def dashboard(self, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        records = self._records()
        this_start = month_start(today)
        prev_start = add_months(today, -1)

        current = summarize(self._expand(records, this_start, month_end(this_start)))
        previous = summarize(self._expand(records, prev_start, month_end(prev_start)))
        recent = self._expand(records, prev_start, today)[:5]

        return {
            "current_month": current.as_dict(),
            "previous_month": previous.as_dict(),
            "changes": {
                "income": percent_change(current.total_income, previous.total_income),
                "expense": percent_change(
                    current.total_expense, previous.total_expense
                ),
                "balance": percent_change(current.balance, previous.balance),
            },
            "expense_breakdown": category_breakdown(current.by_category_expense),
            "income_breakdown": category_breakdown(current.by_category_income),
            "series": self.monthly_series(add_months(today, -5), month_end(today)),
            "recent": recent,
            "reserve": self.cumulative(today),
        }
