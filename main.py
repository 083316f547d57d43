import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal
from errors import ValidationError
from models import TransactionType
from schemas import (
    AnalyticsOut,
    BudgetIn,
    BudgetMonthOut,
    BudgetOut,
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    LoginIn,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
    UserIn,
    UserOut,
)
from services import (
    AnalyticsService,
    BudgetService,
    CategoryService,
    TransactionFilters,
    TransactionService,
    UserService,
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Tracker")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> int:
    # Token verification happens upstream; it forwards the user id.
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not UserService(db).get(x_user_id):
        raise HTTPException(status_code=401, detail="Unknown user")
    return x_user_id


def bad_request(exc: ValidationError) -> HTTPException:
    logger.warning(f"request rejected: {exc}")
    return HTTPException(status_code=400, detail=str(exc))


def not_found(kind: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} not found")


@app.post("/api/users", response_model=UserOut, status_code=201)
def register_user(payload: UserIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).create(payload.name, payload.email, payload.password)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    logger.info(f"user_created: id={user.id}")
    return user


@app.post("/api/users/login", response_model=UserOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = UserService(db).authenticate(payload.email, payload.password)
    if not user:
        logger.warning("login_failed")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    logger.info(f"user_authenticated: id={user.id}")
    return user


@app.get("/api/categories")
def list_categories(
    skip: int = Query(0),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        page = CategoryService(db, user_id).list(skip=skip, limit=limit)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    return {
        "results": [CategoryOut.model_validate(c) for c in page.results],
        "total": page.total,
    }


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        category = CategoryService(db, user_id).create(payload)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    logger.info(f"category_created: user={user_id} id={category.id}")
    return category


@app.get("/api/categories/{category_id}", response_model=CategoryOut)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    category = CategoryService(db, user_id).get(category_id)
    if not category:
        raise not_found("Category")
    return category


@app.patch("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        category = CategoryService(db, user_id).update(category_id, payload)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    if not category:
        raise not_found("Category")
    return category


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    if not CategoryService(db, user_id).delete(category_id):
        raise not_found("Category")
    logger.info(f"category_deleted: user={user_id} id={category_id}")
    return {"message": "Category deleted"}


@app.get("/api/transactions")
def list_transactions(
    skip: int = Query(0),
    limit: int = Query(20),
    category: Optional[int] = Query(None),
    type: Optional[TransactionType] = Query(None),
    min_amount: Optional[Decimal] = Query(None, alias="minAmount"),
    max_amount: Optional[Decimal] = Query(None, alias="maxAmount"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    filters = TransactionFilters(
        type=type,
        category_id=category,
        min_amount=min_amount,
        max_amount=max_amount,
        start_date=start_date,
        end_date=end_date,
    )
    try:
        page = TransactionService(db, user_id).list(
            filters, skip=skip, limit=limit, sort_by=sort_by, sort_dir=sort_dir
        )
    except ValidationError as exc:
        raise bad_request(exc) from exc
    return {
        "results": [TransactionOut.model_validate(t) for t in page.results],
        "count": page.count,
        "total": page.total,
    }


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        txn = TransactionService(db, user_id).create(payload)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    logger.info(f"transaction_created: user={user_id} id={txn.id}")
    return txn


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    txn = TransactionService(db, user_id).get(transaction_id)
    if not txn:
        raise not_found("Transaction")
    return txn


@app.patch("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        txn = TransactionService(db, user_id).update(transaction_id, payload)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    if not txn:
        raise not_found("Transaction")
    return txn


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    if not TransactionService(db, user_id).delete(transaction_id):
        raise not_found("Transaction")
    logger.info(f"transaction_deleted: user={user_id} id={transaction_id}")
    return {"message": "Transaction deleted"}


@app.post("/api/budget", response_model=BudgetOut)
def set_budget(
    payload: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        budget = BudgetService(db, user_id).set_budget(payload.month, payload.amount)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    logger.info(f"budget_set: user={user_id} month={budget.month}")
    return budget


@app.get("/api/budget")
def list_budgets(
    skip: int = Query(0),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        page = BudgetService(db, user_id).get_budgets(skip=skip, limit=limit)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    return {
        "results": [BudgetOut.model_validate(b) for b in page.results],
        "total": page.total,
    }


@app.get("/api/budget/{month}", response_model=BudgetMonthOut)
def get_budget(
    month: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    try:
        summary = BudgetService(db, user_id).get_budget_for_month(month)
    except ValidationError as exc:
        raise bad_request(exc) from exc
    return BudgetMonthOut.model_validate(summary)


@app.get("/api/analytics")
def get_analytics(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    summary = AnalyticsService(db, user_id).get_analytics()
    return {
        "success": True,
        "data": AnalyticsOut.model_validate(summary).model_dump(mode="json"),
    }


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
