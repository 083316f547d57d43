from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import TransactionType

MONTH_REGEX = r"^\d{4}-\d{2}$"


class UserIn(BaseModel):
    name: str = Field(default="", max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = Field(default="", max_length=20)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    color: Optional[str] = Field(default=None, max_length=20)


class TransactionIn(BaseModel):
    amount: Decimal = Field(..., ge=0)
    type: TransactionType
    category_id: int
    note: str = Field(default="", max_length=500)
    created_at: Optional[datetime] = None


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, ge=0)
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    note: Optional[str] = Field(default=None, max_length=500)


class BudgetIn(BaseModel):
    month: str = Field(..., pattern=MONTH_REGEX)
    amount: Decimal = Field(..., ge=0)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: TransactionType
    color: str


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: float
    type: TransactionType
    category_id: int
    category: Optional[CategoryOut] = None
    note: str
    created_at: datetime


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    month: str
    amount: float
    created_at: datetime
    updated_at: datetime


class BudgetMonthOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    budget: float
    spent: float
    income: float
    month: str


class CategorySummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    categoryId: int = Field(validation_alias="category_id")
    categoryName: str = Field(validation_alias="category_name")
    type: TransactionType
    totalAmount: float = Field(validation_alias="total_amount")


class MonthSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    type: TransactionType
    totalAmount: float = Field(validation_alias="total_amount")
    monthKey: str = Field(validation_alias="month_key")


class AnalyticsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    categorySummary: list[CategorySummaryOut] = Field(
        validation_alias="category_summary"
    )
    monthlySummary: list[MonthSummaryOut] = Field(validation_alias="monthly_summary")
