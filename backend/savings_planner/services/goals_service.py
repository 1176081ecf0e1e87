"""Pure goal and contribution operations.

Every operation takes the current goal collection and returns a new one.
Nothing here mutates its input, touches storage or logs user data beyond ids.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..logging_config import get_logger
from .currency import SUPPORTED_CURRENCIES, Currency

logger = get_logger(__name__)

NAME_MAX_LENGTH = 50
MAX_AMOUNT = Decimal("1000000000")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Alias so the `date` field below does not shadow the type.
CalendarDate = date


class Contribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    amount: Decimal = Field(gt=Decimal("0"))
    date: CalendarDate
    created_at: datetime


class Goal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str = Field(min_length=1)
    target_amount: Decimal = Field(gt=Decimal("0"))
    currency: Currency
    current_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    contributions: tuple[Contribution, ...] = ()
    created_at: datetime

    @model_validator(mode="after")
    def _check_current_amount(self) -> "Goal":
        total = sum((c.amount for c in self.contributions), Decimal("0"))
        if total != self.current_amount:
            raise ValueError("current_amount must equal the sum of contributions")
        return self

    @property
    def currency_locked(self) -> bool:
        return len(self.contributions) > 0


GoalCollection = tuple[Goal, ...]


class GoalValidationError(ValueError):
    """Raised with field-level messages when goal or contribution input is invalid."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(errors.values()))
        self.errors = errors


def _today() -> date:
    """Wrapper for deterministic tests."""
    return date.today()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_amount(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _validate_name(name: Any, errors: dict[str, str]) -> str:
    trimmed = str(name or "").strip()
    if not trimmed:
        errors["name"] = "Goal name is required"
    elif len(trimmed) > NAME_MAX_LENGTH:
        errors["name"] = f"Goal name must be {NAME_MAX_LENGTH} characters or less"
    return trimmed


def _validate_target_amount(value: Any, errors: dict[str, str]) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        errors["target_amount"] = "Target amount is required"
        return None

    amount = _parse_amount(value)
    if amount is None or amount <= 0:
        errors["target_amount"] = "Target amount must be a positive number"
        return None
    if amount > MAX_AMOUNT:
        errors["target_amount"] = "Target amount is too large"
        return None
    return amount


def _validate_currency(value: Any, errors: dict[str, str]) -> str | None:
    currency = str(value or "").strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        errors["currency"] = f"Currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}"
        return None
    return currency


def validate_goal_input(
    name: Any,
    target_amount: Any,
    currency: Any = None,
    *,
    require_currency: bool = True,
) -> dict[str, Any]:
    """Validate goal form input and return normalized values."""
    errors: dict[str, str] = {}
    normalized_name = _validate_name(name, errors)
    normalized_target = _validate_target_amount(target_amount, errors)

    normalized_currency = None
    if require_currency or currency is not None:
        normalized_currency = _validate_currency(currency, errors)

    if errors:
        raise GoalValidationError(errors)

    return {
        "name": normalized_name,
        "target_amount": normalized_target,
        "currency": normalized_currency,
    }


def validate_contribution_input(amount: Any, contribution_date: Any, today: date) -> tuple[Decimal, date]:
    """
    Validate contribution form input.

    Rules:
    - 0 < amount <= 1e9
    - date required, YYYY-MM-DD or a date, and not after `today`
    """
    errors: dict[str, str] = {}

    parsed_amount: Decimal | None = None
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        errors["amount"] = "Contribution amount is required"
    else:
        parsed_amount = _parse_amount(amount)
        if parsed_amount is None or parsed_amount <= 0:
            errors["amount"] = "Amount must be a positive number"
        elif parsed_amount > MAX_AMOUNT:
            errors["amount"] = "Amount is too large"

    parsed_date: date | None = None
    if contribution_date is None or (isinstance(contribution_date, str) and not contribution_date.strip()):
        errors["date"] = "Date is required"
    elif isinstance(contribution_date, datetime):
        parsed_date = contribution_date.date()
    elif isinstance(contribution_date, date):
        parsed_date = contribution_date
    else:
        raw_date = str(contribution_date).strip()
        # fromisoformat also takes basic and week dates; only the extended form is allowed.
        if not _ISO_DATE.match(raw_date):
            errors["date"] = "Date must be in YYYY-MM-DD format"
        else:
            try:
                parsed_date = date.fromisoformat(raw_date)
            except ValueError:
                errors["date"] = "Date must be in YYYY-MM-DD format"

    # Whole-day comparison: any time on `today` is allowed.
    if parsed_date is not None and parsed_date > today:
        errors["date"] = "Date cannot be in the future"

    if errors:
        raise GoalValidationError(errors)

    return parsed_amount, parsed_date


def find_goal(goals: GoalCollection, goal_id: UUID | None) -> Goal | None:
    if goal_id is None:
        return None
    for goal in goals:
        if goal.id == goal_id:
            return goal
    return None


def create_goal(
    goals: GoalCollection,
    name: Any,
    target_amount: Any,
    currency: Any,
    *,
    now: datetime | None = None,
) -> tuple[GoalCollection, Goal]:
    """Validate input and append a new empty goal."""
    normalized = validate_goal_input(name, target_amount, currency)

    goal = Goal(
        id=uuid4(),
        name=normalized["name"],
        target_amount=normalized["target_amount"],
        currency=normalized["currency"],
        current_amount=Decimal("0"),
        contributions=(),
        created_at=now or _now(),
    )
    return (*goals, goal), goal


def edit_goal(
    goals: GoalCollection,
    goal_id: UUID,
    name: Any,
    target_amount: Any,
    currency: Any = None,
) -> GoalCollection:
    """
    Replace name and target of one goal.

    Currency changes only while the goal has no contributions; for a locked
    goal the requested currency is ignored. Unknown ids leave `goals` as is.
    """
    normalized = validate_goal_input(name, target_amount, currency, require_currency=False)

    existing = find_goal(goals, goal_id)
    if existing is None:
        return goals

    update: dict[str, Any] = {
        "name": normalized["name"],
        "target_amount": normalized["target_amount"],
    }
    requested_currency = normalized["currency"]
    if requested_currency is not None and requested_currency != existing.currency:
        if existing.currency_locked:
            logger.info(
                "goal_currency_change_ignored",
                goal_id=str(goal_id),
                currency=existing.currency,
                requested=requested_currency,
            )
        else:
            update["currency"] = requested_currency

    updated = existing.model_copy(update=update)
    return tuple(updated if goal.id == goal_id else goal for goal in goals)


def delete_goal(goals: GoalCollection, goal_id: UUID) -> GoalCollection:
    """Drop one goal and its contributions. Unknown ids are a no-op."""
    if find_goal(goals, goal_id) is None:
        return goals
    return tuple(goal for goal in goals if goal.id != goal_id)


def add_contribution(
    goals: GoalCollection,
    goal_id: UUID | None,
    amount: Any,
    contribution_date: Any,
    *,
    now: datetime | None = None,
) -> GoalCollection:
    """
    Append one contribution and raise `current_amount` by the same amount.

    Both fields change in the same new Goal value, so the sum invariant holds
    for every collection this returns.
    """
    parsed_amount, parsed_date = validate_contribution_input(amount, contribution_date, _today())

    existing = find_goal(goals, goal_id)
    if existing is None:
        return goals

    contribution = Contribution(
        id=uuid4(),
        amount=parsed_amount,
        date=parsed_date,
        created_at=now or _now(),
    )
    updated = existing.model_copy(
        update={
            "current_amount": existing.current_amount + parsed_amount,
            "contributions": (*existing.contributions, contribution),
        }
    )
    return tuple(updated if goal.id == goal_id else goal for goal in goals)
