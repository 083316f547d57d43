from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, joinedload

from aggregation import (
    AggregationEngine,
    CategorySummaryRow,
    MonthSummaryRow,
    require_user_id,
)
from config import get_settings
from errors import StoreError, ValidationError
from models import Budget, Category, Transaction, TransactionType, User
from periods import day_window, month_window, to_utc_naive
from schemas import CategoryIn, CategoryUpdate, TransactionIn, TransactionUpdate
from security import hash_password, verify_password

UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128

SORTABLE_TRANSACTION_FIELDS = {
    "created_at": Transaction.created_at,
    "amount": Transaction.amount,
    "type": Transaction.type,
}


def to_amount(value: object, *, field: str = "amount") -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be greater than or equal to 0")
    return amount


def page_bounds(skip: object, limit: object) -> tuple[int, int]:
    for name, value in (("skip", skip), ("limit", limit)):
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValidationError(f"{name} must be an integer")
    try:
        skip_value = int(skip)
        limit_value = int(limit)
    except ValueError as exc:
        raise ValidationError("skip and limit must be integers") from exc
    if skip_value < 0:
        raise ValidationError("skip must be greater than or equal to 0")
    if limit_value < 1:
        raise ValidationError("limit must be greater than or equal to 1")
    return skip_value, min(limit_value, get_settings().page_limit)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


@dataclass
class Page:
    results: list
    total: int

    @property
    def count(self) -> int:
        return len(self.results)


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class BudgetMonthSummary:
    budget: Decimal
    spent: Decimal
    income: Decimal
    month: str


@dataclass(frozen=True)
class AnalyticsSummary:
    category_summary: list[CategorySummaryRow]
    monthly_summary: list[MonthSummaryRow]


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, name: str, email: str, password: str) -> User:
        normalized = normalize_email(email)
        if not normalized or "@" not in normalized:
            raise ValidationError("A valid email is required")
        password = (password or "").strip()
        if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_LENGTH} characters"
            )
        existing = self.session.scalar(select(User).where(User.email == normalized))
        if existing:
            raise ValidationError("User already exists")
        user = User(
            name=(name or "").strip(),
            email=normalized,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        user = self.session.scalar(
            select(User).where(
                User.email == normalize_email(email), User.is_deleted.is_(False)
            )
        )
        if not user or not user.password_hash:
            return None
        if not verify_password((password or "").strip(), user.password_hash):
            return None
        return user

    def get(self, user_id: int) -> Optional[User]:
        return self.session.scalar(
            select(User).where(User.id == user_id, User.is_deleted.is_(False))
        )


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int]) -> None:
        self.session = session
        self.user_id = require_user_id(user_id)

    def _find_by_name(self, name: str) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                Category.is_deleted.is_(False),
                func.lower(Category.name) == name.lower(),
            )
        )

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        if self._find_by_name(name):
            raise ValidationError(f'Category "{name}" already exists')
        category = Category(
            user_id=self.user_id,
            name=name,
            type=data.type,
            color=data.color.strip(),
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def list(self, skip: int = 0, limit: int = 20) -> Page:
        skip, limit = page_bounds(skip, limit)
        criteria = (Category.user_id == self.user_id, Category.is_deleted.is_(False))
        results = self.session.scalars(
            select(Category)
            .where(*criteria)
            .order_by(Category.name.asc(), Category.id.asc())
            .offset(skip)
            .limit(limit)
        ).all()
        total = self.session.execute(
            select(func.count(Category.id)).where(*criteria)
        ).scalar_one()
        return Page(results=list(results), total=int(total or 0))

    def get(self, category_id: int) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.id == category_id,
                Category.user_id == self.user_id,
                Category.is_deleted.is_(False),
            )
        )

    def update(self, category_id: int, data: CategoryUpdate) -> Optional[Category]:
        category = self.get(category_id)
        if not category:
            return None
        name = data.name.strip() if data.name is not None else None
        if name is not None:
            if not name:
                raise ValidationError("Category name cannot be empty")
            clash = self._find_by_name(name)
            if clash and clash.id != category.id:
                raise ValidationError(f'Category "{name}" already exists')
        if data.type is not None and data.type != category.type:
            conflicting = self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.user_id == self.user_id,
                    Transaction.category_id == category.id,
                    Transaction.is_deleted.is_(False),
                    Transaction.type != data.type,
                )
            ).scalar_one()
            if conflicting:
                raise ValidationError(
                    "Cannot change category type while it has transactions of the other type"
                )
            category.type = data.type
        if name is not None:
            category.name = name
        if data.color is not None:
            category.color = data.color.strip()
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> Optional[Category]:
        category = self.get(category_id)
        if not category:
            return None
        category.is_deleted = True
        self.session.commit()
        return category


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int]) -> None:
        self.session = session
        self.user_id = require_user_id(user_id)

    def _category_for(self, category_id: int, txn_type: TransactionType) -> Category:
        category = CategoryService(self.session, self.user_id).get(category_id)
        if not category:
            raise ValidationError("Category not found")
        if category.type != txn_type:
            raise ValidationError("Category type mismatch")
        return category

    def create(self, data: TransactionIn) -> Transaction:
        amount = to_amount(data.amount)
        self._category_for(data.category_id, data.type)
        created_at = to_utc_naive(data.created_at) if data.created_at else None
        txn = Transaction(
            user_id=self.user_id,
            amount=amount,
            type=data.type,
            category_id=data.category_id,
            note=data.note.strip(),
            created_at=created_at or datetime.utcnow(),
        )
        self.session.add(txn)
        self.session.commit()
        return self.get(txn.id)

    def get(self, transaction_id: int) -> Optional[Transaction]:
        return self.session.scalar(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.id == transaction_id,
                Transaction.user_id == self.user_id,
                Transaction.is_deleted.is_(False),
            )
        )

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        skip: int = 0,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_dir: str = "desc",
    ) -> Page:
        filters = filters or TransactionFilters()
        skip, limit = page_bounds(skip, limit)
        min_amount = (
            to_amount(filters.min_amount, field="minAmount")
            if filters.min_amount is not None
            else None
        )
        max_amount = (
            to_amount(filters.max_amount, field="maxAmount")
            if filters.max_amount is not None
            else None
        )
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise ValidationError("minAmount cannot be greater than maxAmount")
        lower, upper = day_window(filters.start_date, filters.end_date)
        sort_key = sort_by or "created_at"
        if sort_key not in SORTABLE_TRANSACTION_FIELDS:
            raise ValidationError(f"Cannot sort transactions by {sort_key}")
        if sort_dir not in ("asc", "desc"):
            raise ValidationError("sortDir must be 'asc' or 'desc'")

        criteria = [
            Transaction.user_id == self.user_id,
            Transaction.is_deleted.is_(False),
        ]
        if filters.type:
            criteria.append(Transaction.type == filters.type)
        if filters.category_id is not None:
            criteria.append(Transaction.category_id == filters.category_id)
        if min_amount is not None:
            criteria.append(Transaction.amount >= min_amount)
        if max_amount is not None:
            criteria.append(Transaction.amount <= max_amount)
        if lower is not None:
            criteria.append(Transaction.created_at >= lower)
        if upper is not None:
            criteria.append(Transaction.created_at < upper)

        column = SORTABLE_TRANSACTION_FIELDS[sort_key]
        order = column.asc() if sort_dir == "asc" else column.desc()
        results = self.session.scalars(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(*criteria)
            .order_by(order, Transaction.id.desc())
            .offset(skip)
            .limit(limit)
        ).all()
        total = self.session.execute(
            select(func.count(Transaction.id)).where(*criteria)
        ).scalar_one()
        return Page(results=list(results), total=int(total or 0))

    def update(
        self, transaction_id: int, data: TransactionUpdate
    ) -> Optional[Transaction]:
        txn = self.get(transaction_id)
        if not txn:
            return None
        new_type = data.type if data.type is not None else txn.type
        new_category_id = (
            data.category_id if data.category_id is not None else txn.category_id
        )
        if new_type != txn.type or new_category_id != txn.category_id:
            self._category_for(new_category_id, new_type)
        if data.amount is not None:
            txn.amount = to_amount(data.amount)
        if data.note is not None:
            txn.note = data.note.strip()
        txn.type = new_type
        txn.category_id = new_category_id
        self.session.commit()
        self.session.expire(txn)
        return self.get(transaction_id)

    def delete(self, transaction_id: int) -> Optional[Transaction]:
        txn = self.get(transaction_id)
        if not txn:
            return None
        txn.is_deleted = True
        self.session.commit()
        return txn


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int]) -> None:
        self.session = session
        self.user_id = require_user_id(user_id)

    def _find(self, month: str) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget)
            .where(
                Budget.user_id == self.user_id,
                Budget.month == month,
                Budget.is_deleted.is_(False),
            )
            .execution_options(populate_existing=True)
        )

    def set_budget(self, month: str, amount: object) -> Budget:
        """Create or overwrite the cap for ``month``.

        Relies on the unique ``(user_id, month)`` constraint: the write is a
        single ``INSERT .. ON CONFLICT DO UPDATE`` so concurrent callers end
        with the last write, never two rows. A soft-deleted budget for the
        same month is revived.
        """
        window = month_window(month)
        value = to_amount(amount)

        dialect = self.session.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StoreError(f"Atomic budget upsert is not supported on {dialect}")

        now = datetime.utcnow()
        stmt = insert(Budget).values(
            user_id=self.user_id,
            month=window.month,
            amount=value,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "month"],
            set_={"amount": value, "is_deleted": False, "updated_at": now},
        )
        self.session.execute(stmt)
        self.session.commit()
        return self._find(window.month)

    def get_budget_for_month(self, month: str) -> BudgetMonthSummary:
        window = month_window(month)
        budget = self._find(window.month)
        totals = AggregationEngine(self.session, self.user_id).window_totals(window)
        return BudgetMonthSummary(
            budget=budget.amount if budget else Decimal(0),
            spent=totals.expense,
            income=totals.income,
            month=window.month,
        )

    def get_budgets(self, skip: int = 0, limit: int = 20) -> Page:
        skip, limit = page_bounds(skip, limit)
        criteria = (Budget.user_id == self.user_id, Budget.is_deleted.is_(False))
        results = self.session.scalars(
            select(Budget)
            .where(*criteria)
            .order_by(Budget.month.desc())
            .offset(skip)
            .limit(limit)
        ).all()
        total = self.session.execute(
            select(func.count(Budget.id)).where(*criteria)
        ).scalar_one()
        return Page(results=list(results), total=int(total or 0))


class AnalyticsService:
    def __init__(self, session: Session, user_id: Optional[int]) -> None:
        self.session = session
        self.aggregation = AggregationEngine(session, user_id)
        self.user_id = self.aggregation.user_id

    def get_analytics(self) -> AnalyticsSummary:
        return AnalyticsSummary(
            category_summary=self.aggregation.category_summary(),
            monthly_summary=self.aggregation.monthly_summary(),
        )
