from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import db, current_account, current_user, require_admin
from app.models.category import Category
from app.models.recurring_transaction import RecurringTransaction
from app.models.user import User
from app.schemas.recurring import (
    JobRunOut,
    JobStatusOut,
    RecurringCreate,
    RecurringOut,
    RecurringUpdate,
)
from app.services.recurring import process_recurring_once
from app.services.recurring_scheduler import get_scheduler

router = APIRouter(prefix="/recurring", tags=["recurring"])


def _require_owned(s: Session, rule_id: int, user_id: int) -> RecurringTransaction:
    rt = s.execute(
        select(RecurringTransaction).where(
            RecurringTransaction.id == rule_id,
            RecurringTransaction.user_id == user_id,
        )
    ).scalar_one_or_none()
    if rt is None:
        raise HTTPException(status_code=404, detail="recurring_not_found")
    return rt


@router.get("", response_model=list[RecurringOut])
def list_recurring(s: Session = Depends(db), me: User = Depends(current_account)):
    q = (
        select(RecurringTransaction)
        .where(RecurringTransaction.user_id == me.id)
        .order_by(RecurringTransaction.start_date.desc(), RecurringTransaction.id.desc())
    )
    return s.execute(q).scalars().all()


@router.post("", response_model=RecurringOut, status_code=201)
def add_recurring(body: RecurringCreate, s: Session = Depends(db), me: User = Depends(current_account)):
    cat = s.execute(
        select(Category).where(Category.id == body.category_id, Category.user_id == me.id)
    ).scalar_one_or_none()
    if cat is None:
        raise HTTPException(status_code=404, detail="category_not_found")

    rt = RecurringTransaction(
        user_id=me.id,
        category_id=body.category_id,
        amount=body.amount,
        description=body.description,
        start_date=body.start_date,
        recurrence=body.recurrence,
    )
    s.add(rt)
    s.commit()
    s.refresh(rt)
    return rt


@router.put("/{rule_id}", response_model=RecurringOut)
def edit_recurring(rule_id: int, body: RecurringUpdate, s: Session = Depends(db), me: User = Depends(current_account)):
    rt = _require_owned(s, rule_id, me.id)
    if body.start_date != rt.start_date or body.recurrence != rt.recurrence:
        # the old checkpoint belongs to the old schedule; entries are unique per (rule, date)
        rt.last_occurrence = None
    rt.amount = body.amount
    rt.description = body.description
    rt.start_date = body.start_date
    rt.recurrence = body.recurrence
    s.commit()
    s.refresh(rt)
    return rt


@router.delete("/{rule_id}", status_code=204)
def delete_recurring(rule_id: int, s: Session = Depends(db), me: User = Depends(current_account)):
    # entries already materialized from the rule are kept
    rt = _require_owned(s, rule_id, me.id)
    s.delete(rt)
    s.commit()


@router.get("/job/status", response_model=JobStatusOut)
def job_status(u=Depends(current_user)):
    return get_scheduler().status()


@router.post("/job/run", response_model=JobRunOut)
async def job_run(u=Depends(require_admin)):
    summary = await asyncio.to_thread(process_recurring_once)
    if summary is None:
        return JobRunOut(skipped=True)
    return JobRunOut(skipped=False, **summary.to_dict())
