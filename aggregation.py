"""Rollups over a user's transaction log.

Every query here is scoped to one user and ignores soft-deleted rows.
Sums are the store's own ``SUM`` over ``NUMERIC(12, 2)`` amounts and come
back as :class:`~decimal.Decimal`; nothing is rounded or formatted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy import and_, extract, func, select
from sqlalchemy.orm import Session, aliased

from errors import ValidationError
from models import Category, Transaction, TransactionType
from periods import MonthWindow, month_key

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class CategorySummaryRow:
    category_id: int
    category_name: str
    type: TransactionType
    total_amount: Decimal


@dataclass(frozen=True)
class MonthSummaryRow:
    year: int
    month: int
    type: TransactionType
    total_amount: Decimal
    month_key: str


@dataclass(frozen=True)
class FlatMonthRow:
    year: int
    month: int
    type: TransactionType
    total_amount: Decimal


@dataclass(frozen=True)
class GroupedMonthRow:
    """A month bucket whose key is the composite ``(year, month, type)``."""

    key: tuple[int, int, TransactionType]
    total_amount: Decimal


MonthRow = Union[FlatMonthRow, GroupedMonthRow]


@dataclass(frozen=True)
class WindowTotals:
    income: Decimal
    expense: Decimal


def require_user_id(user_id: Optional[int]) -> int:
    if user_id is None or isinstance(user_id, bool):
        raise ValidationError("userId is required")
    try:
        value = int(user_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid userId: {user_id!r}") from exc
    if value <= 0:
        raise ValidationError(f"Invalid userId: {user_id!r}")
    return value


def resolve_category_name(name: Optional[str]) -> str:
    # Missing or soft-deleted categories join to NULL.
    return name if name is not None else UNCATEGORIZED


def normalize_month_row(row: MonthRow) -> FlatMonthRow:
    if isinstance(row, FlatMonthRow):
        return row
    if isinstance(row, GroupedMonthRow):
        year, month, txn_type = row.key
        return FlatMonthRow(
            year=int(year),
            month=int(month),
            type=TransactionType(txn_type),
            total_amount=row.total_amount,
        )
    raise TypeError(f"Unsupported month row: {type(row).__name__}")


def build_monthly_summary(rows: Iterable[MonthRow]) -> list[MonthSummaryRow]:
    buckets: dict[tuple[int, int, TransactionType], Decimal] = {}
    for row in rows:
        flat = normalize_month_row(row)
        key = (flat.year, flat.month, flat.type)
        buckets[key] = buckets.get(key, Decimal(0)) + Decimal(flat.total_amount)

    return [
        MonthSummaryRow(
            year=year,
            month=month,
            type=txn_type,
            total_amount=total,
            month_key=month_key(year, month),
        )
        for (year, month, txn_type), total in sorted(
            buckets.items(), key=lambda item: (item[0][0], item[0][1], item[0][2].value)
        )
    ]


class AggregationEngine:
    def __init__(self, session: Session, user_id: Optional[int]) -> None:
        self.session = session
        self.user_id = require_user_id(user_id)

    def _live_transactions(self, model=Transaction) -> list:
        return [model.user_id == self.user_id, model.is_deleted.is_(False)]

    def category_summary(self) -> list[CategorySummaryRow]:
        """Per-category totals, largest first.

        ``type`` is the type of the earliest transaction in the group.
        Equal totals are ordered by ascending category id.
        """
        FirstTxn = aliased(Transaction)
        first_type = (
            select(FirstTxn.type)
            .where(
                *self._live_transactions(FirstTxn),
                FirstTxn.category_id == Transaction.category_id,
            )
            .order_by(FirstTxn.created_at.asc(), FirstTxn.id.asc())
            .limit(1)
            .correlate(Transaction)
            .scalar_subquery()
        )
        totals = (
            select(
                Transaction.category_id.label("category_id"),
                func.sum(Transaction.amount).label("total_amount"),
                first_type.label("type"),
            )
            .where(*self._live_transactions())
            .group_by(Transaction.category_id)
            .subquery()
        )
        stmt = (
            select(
                totals.c.category_id,
                totals.c.type,
                totals.c.total_amount,
                Category.name.label("category_name"),
            )
            .outerjoin(
                Category,
                and_(
                    Category.id == totals.c.category_id,
                    Category.user_id == self.user_id,
                    Category.is_deleted.is_(False),
                ),
            )
            .order_by(totals.c.total_amount.desc(), totals.c.category_id.asc())
        )
        return [
            CategorySummaryRow(
                category_id=row.category_id,
                category_name=resolve_category_name(row.category_name),
                type=TransactionType(row.type),
                total_amount=Decimal(row.total_amount or 0),
            )
            for row in self.session.execute(stmt)
        ]

    def monthly_summary(self) -> list[MonthSummaryRow]:
        year = extract("year", Transaction.created_at)
        month = extract("month", Transaction.created_at)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                Transaction.type,
                func.sum(Transaction.amount).label("total_amount"),
            )
            .where(*self._live_transactions())
            .group_by(year, month, Transaction.type)
        )
        rows = [
            FlatMonthRow(
                year=int(row.year),
                month=int(row.month),
                type=TransactionType(row.type),
                total_amount=Decimal(row.total_amount or 0),
            )
            for row in self.session.execute(stmt)
        ]
        return build_monthly_summary(rows)

    def window_totals(self, window: MonthWindow) -> WindowTotals:
        """Income and expense sums for ``window``, across all categories."""
        stmt = (
            select(
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount), 0).label("total"),
            )
            .where(
                *self._live_transactions(),
                Transaction.created_at >= window.start,
                Transaction.created_at < window.end,
            )
            .group_by(Transaction.type)
        )
        by_type = {
            TransactionType(row.type): Decimal(row.total or 0)
            for row in self.session.execute(stmt)
        }
        return WindowTotals(
            income=by_type.get(TransactionType.income, Decimal(0)),
            expense=by_type.get(TransactionType.expense, Decimal(0)),
        )
