from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import ValidationError
from models import Budget, TransactionType
from schemas import CategoryIn, TransactionIn
from services import BudgetService, CategoryService, TransactionService, UserService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def seed_user(session, email="ann@example.com"):
    user = UserService(session).create("Ann", email, "secret-pass")
    categories = CategoryService(session, user.id)
    food = categories.create(CategoryIn(name="Food", type=TransactionType.expense))
    salary = categories.create(CategoryIn(name="Salary", type=TransactionType.income))
    return user, food, salary


def add_txn(session, user_id, category, amount, when):
    return TransactionService(session, user_id).create(
        TransactionIn(
            amount=amount,
            type=category.type,
            category_id=category.id,
            created_at=when,
        )
    )


def budget_rows(session, user_id, month):
    return session.execute(
        select(func.count(Budget.id)).where(
            Budget.user_id == user_id, Budget.month == month
        )
    ).scalar_one()


def test_budget_for_month_combines_cap_spend_and_income() -> None:
    session = make_session()
    user, food, salary = seed_user(session)
    add_txn(session, user.id, food, 100, datetime(2025, 10, 3, 12, 0))
    add_txn(session, user.id, food, 250, datetime(2025, 10, 20, 18, 30))
    add_txn(session, user.id, salary, 5000, datetime(2025, 10, 1, 9, 0))
    add_txn(session, user.id, food, 40, datetime(2025, 9, 30, 23, 59, 59))

    budgets = BudgetService(session, user.id)
    budgets.set_budget("2025-10", 3000)

    summary = budgets.get_budget_for_month("2025-10")

    assert summary.budget == Decimal("3000")
    assert summary.spent == Decimal("350")
    assert summary.income == Decimal("5000")
    assert summary.month == "2025-10"


def test_budget_for_month_without_data_is_all_zero() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)

    summary = BudgetService(session, user.id).get_budget_for_month("2025-10")

    assert (summary.budget, summary.spent, summary.income, summary.month) == (
        0,
        0,
        0,
        "2025-10",
    )


def test_budget_window_boundaries() -> None:
    session = make_session()
    user, food, _salary = seed_user(session)
    add_txn(session, user.id, food, 11, datetime(2025, 2, 28, 23, 59, 59))
    add_txn(session, user.id, food, 22, datetime(2025, 3, 1, 0, 0, 0))
    add_txn(session, user.id, food, 33, datetime(2025, 2, 1, 0, 0, 0))

    budgets = BudgetService(session, user.id)

    assert budgets.get_budget_for_month("2025-02").spent == Decimal("44")
    assert budgets.get_budget_for_month("2025-03").spent == Decimal("22")


def test_set_budget_twice_keeps_a_single_record() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)
    budgets = BudgetService(session, user.id)

    first = budgets.set_budget("2025-10", 3000)
    second = budgets.set_budget("2025-10", 4500)

    assert first.id == second.id
    assert second.amount == Decimal("4500")
    assert budget_rows(session, user.id, "2025-10") == 1


def test_set_budget_is_idempotent() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)
    budgets = BudgetService(session, user.id)

    for _ in range(3):
        budget = budgets.set_budget("2025-11", Decimal("120.50"))

    assert budget.amount == Decimal("120.50")
    assert budget_rows(session, user.id, "2025-11") == 1


def test_set_budget_revives_soft_deleted_record() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)
    budgets = BudgetService(session, user.id)
    budget = budgets.set_budget("2025-10", 100)
    budget.is_deleted = True
    session.commit()

    assert budgets.get_budget_for_month("2025-10").budget == 0

    revived = budgets.set_budget("2025-10", 200)

    assert revived.id == budget.id
    assert revived.is_deleted is False
    assert budgets.get_budget_for_month("2025-10").budget == Decimal("200")


def test_budgets_are_per_user() -> None:
    session = make_session()
    ann, _f, _s = seed_user(session)
    bob, _f2, _s2 = seed_user(session, email="bob@example.com")

    BudgetService(session, ann.id).set_budget("2025-10", 100)
    BudgetService(session, bob.id).set_budget("2025-10", 900)

    assert BudgetService(session, ann.id).get_budget_for_month("2025-10").budget == 100
    assert BudgetService(session, bob.id).get_budget_for_month("2025-10").budget == 900


@pytest.mark.parametrize("month", ["2025-13", "25-10", "2025-1", "October"])
def test_malformed_month_is_rejected_before_store_access(month) -> None:
    # No session: a store call would fail with AttributeError instead.
    budgets = BudgetService(None, 1)

    with pytest.raises(ValidationError):
        budgets.set_budget(month, 100)
    with pytest.raises(ValidationError):
        budgets.get_budget_for_month(month)


@pytest.mark.parametrize("amount", [-1, "abc", None, True, "NaN", float("inf")])
def test_invalid_amount_is_rejected(amount) -> None:
    with pytest.raises(ValidationError):
        BudgetService(None, 1).set_budget("2025-10", amount)


def test_budget_service_requires_user() -> None:
    with pytest.raises(ValidationError):
        BudgetService(None, None)


def test_get_budgets_pages_newest_month_first() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)
    budgets = BudgetService(session, user.id)
    for month in ["2025-01", "2024-12", "2025-03", "2025-02"]:
        budgets.set_budget(month, 10)

    page = budgets.get_budgets(skip=1, limit=2)

    assert [b.month for b in page.results] == ["2025-02", "2025-01"]
    assert page.total == 4


def test_get_budgets_caps_limit_and_hides_deleted() -> None:
    session = make_session()
    user, _food, _salary = seed_user(session)
    budgets = BudgetService(session, user.id)
    for year in (2023, 2024):
        for month in range(1, 13):
            budgets.set_budget(f"{year}-{month:02d}", month)
    hidden = budgets.set_budget("2025-01", 1)
    hidden.is_deleted = True
    session.commit()

    page = budgets.get_budgets(skip=0, limit=500)

    assert len(page.results) == 20
    assert page.total == 24
    assert page.results[0].month == "2024-12"


@pytest.mark.parametrize("skip,limit", [(-1, 10), (0, 0), (0, -5), ("x", 10), (0, 2.5)])
def test_get_budgets_rejects_bad_paging(skip, limit) -> None:
    with pytest.raises(ValidationError):
        BudgetService(None, 1).get_budgets(skip=skip, limit=limit)


def test_soft_delete_changes_later_results_only() -> None:
    session = make_session()
    user, food, _salary = seed_user(session)
    add_txn(session, user.id, food, 100, datetime(2025, 10, 3))
    lunch = add_txn(session, user.id, food, 25, datetime(2025, 10, 4))
    budgets = BudgetService(session, user.id)

    before = budgets.get_budget_for_month("2025-10")
    TransactionService(session, user.id).delete(lunch.id)
    after = budgets.get_budget_for_month("2025-10")

    assert before.spent == Decimal("125")
    assert after.spent == Decimal("100")
