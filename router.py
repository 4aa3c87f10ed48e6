import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from database import get_db, Income, Expense, Frequency
from logger import get_logger
from responses import success
from schemas import (
    IncomeCreate,
    IncomeUpdate,
    IncomeRead,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseRead,
)

incomes_router = APIRouter()
expenses_router = APIRouter()
logger = get_logger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")
_MAX_ID = 2**63 - 1


def parse_id(raw: str) -> Optional[int]:
    """Parse leading base-10 digits like parseInt; None when there are none."""
    match = _LEADING_INT.match(raw)
    if not match:
        return None
    value = int(match.group(1))
    # out of range for any integer column, so it cannot match a row
    if abs(value) > _MAX_ID:
        return None
    return value


def _income(row: Income) -> dict:
    return IncomeRead.model_validate(row).model_dump(mode="json", by_alias=True)


def _expense(row: Expense) -> dict:
    return ExpenseRead.model_validate(row).model_dump(mode="json", by_alias=True)


def _find_income(db: Session, raw_id: str) -> Income:
    income_id = parse_id(raw_id)
    income = None
    if income_id is not None:
        income = db.query(Income).filter(Income.id == income_id).first()
    if not income:
        raise HTTPException(status_code=404, detail="Income not found")
    return income


def _find_expense(db: Session, raw_id: str) -> Expense:
    expense_id = parse_id(raw_id)
    expense = None
    if expense_id is not None:
        expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


# incomes
@incomes_router.post("", status_code=status.HTTP_201_CREATED)
@incomes_router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_income(income: IncomeCreate, db: Session = Depends(get_db)):
    db_income = Income(
        user_id=income.user_id,
        amount=income.amount,
        source=income.source,
        date=income.date,
        is_recurring=income.is_recurring or False,
        frequency=income.frequency or Frequency.one_time,
    )
    db.add(db_income)
    db.commit()
    db.refresh(db_income)

    logger.info("income_created", income_id=db_income.id, user_id=db_income.user_id)
    return success("income", _income(db_income), status_code=status.HTTP_201_CREATED)


@incomes_router.api_route("", methods=["GET", "HEAD"])
@incomes_router.api_route("/", methods=["GET", "HEAD"], include_in_schema=False)
def get_incomes(db: Session = Depends(get_db)):
    incomes = db.query(Income).all()
    return success("incomes", [_income(i) for i in incomes])


@incomes_router.api_route("/{income_id}", methods=["GET", "HEAD"])
@incomes_router.api_route("/{income_id}/", methods=["GET", "HEAD"], include_in_schema=False)
def get_income(income_id: str, db: Session = Depends(get_db)):
    return success("income", _income(_find_income(db, income_id)))


@incomes_router.patch("/{income_id}")
@incomes_router.patch("/{income_id}/", include_in_schema=False)
def update_income(income_id: str, income: IncomeUpdate, db: Session = Depends(get_db)):
    db_income = _find_income(db, income_id)

    # Truthy fields only, except is_recurring which may be set to False.
    if income.amount:
        db_income.amount = income.amount
    if income.source:
        db_income.source = income.source
    if income.date:
        db_income.date = income.date
    if income.is_recurring is not None:
        db_income.is_recurring = income.is_recurring
    if income.frequency:
        db_income.frequency = income.frequency

    db.commit()
    db.refresh(db_income)
    return success("income", _income(db_income))


@incomes_router.delete("/{income_id}", status_code=status.HTTP_204_NO_CONTENT)
@incomes_router.delete("/{income_id}/", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
def delete_income(income_id: str, db: Session = Depends(get_db)):
    db_income = _find_income(db, income_id)
    deleted_id = db_income.id
    db.delete(db_income)
    db.commit()

    logger.info("income_deleted", income_id=deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# expenses
@expenses_router.post("", status_code=status.HTTP_201_CREATED)
@expenses_router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_expense(expense: ExpenseCreate, db: Session = Depends(get_db)):
    db_expense = Expense(
        user_id=expense.user_id,
        amount=expense.amount,
        category=expense.category,
        description=expense.description,
        date=expense.date,
    )
    db.add(db_expense)
    db.commit()
    db.refresh(db_expense)

    logger.info("expense_created", expense_id=db_expense.id, user_id=db_expense.user_id)
    return success("expense", _expense(db_expense), status_code=status.HTTP_201_CREATED)


@expenses_router.api_route("", methods=["GET", "HEAD"])
@expenses_router.api_route("/", methods=["GET", "HEAD"], include_in_schema=False)
def get_expenses(db: Session = Depends(get_db)):
    expenses = db.query(Expense).all()
    return success("expenses", [_expense(e) for e in expenses])


@expenses_router.api_route("/{expense_id}", methods=["GET", "HEAD"])
@expenses_router.api_route("/{expense_id}/", methods=["GET", "HEAD"], include_in_schema=False)
def get_expense(expense_id: str, db: Session = Depends(get_db)):
    return success("expense", _expense(_find_expense(db, expense_id)))


@expenses_router.patch("/{expense_id}")
@expenses_router.patch("/{expense_id}/", include_in_schema=False)
def update_expense(
    expense_id: str, expense: ExpenseUpdate, db: Session = Depends(get_db)
):
    db_expense = _find_expense(db, expense_id)

    if expense.amount:
        db_expense.amount = expense.amount
    if expense.category:
        db_expense.category = expense.category
    if expense.description:
        db_expense.description = expense.description
    if expense.date:
        db_expense.date = expense.date

    db.commit()
    db.refresh(db_expense)
    return success("expense", _expense(db_expense))


@expenses_router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
@expenses_router.delete("/{expense_id}/", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
def delete_expense(expense_id: str, db: Session = Depends(get_db)):
    db_expense = _find_expense(db, expense_id)
    deleted_id = db_expense.id
    db.delete(db_expense)
    db.commit()

    logger.info("expense_deleted", expense_id=deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
