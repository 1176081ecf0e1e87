"""Goals router: CRUD endpoints, contributions and computed card fields."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, field_serializer

from .services.currency import Currency, format_currency, quantize_amount
from .services.dashboard_service import build_goal_view
from .services.exchange_rate import ExchangeRateProvider
from .services.goal_store import GoalStore
from .services.goals_service import CalendarDate, Contribution, Goal, GoalValidationError
from .state import get_goal_store, get_rate_provider

router = APIRouter(prefix="/goals", tags=["goals"])


def _money(value: Decimal) -> str:
    return str(quantize_amount(value))


def _newest_first(contributions) -> list[Contribution]:
    """Display order: latest date first, later entries first within a day."""
    ordered = sorted(
        enumerate(contributions),
        key=lambda item: (item[1].date, item[1].created_at, item[0]),
        reverse=True,
    )
    return [contribution for _, contribution in ordered]


def _validation_error(exc: GoalValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"message": str(exc), "errors": exc.errors})


class GoalCreateRequest(BaseModel):
    name: str = ""
    target_amount: Decimal | str | None = None
    currency: str = "USD"


class GoalUpdateRequest(BaseModel):
    name: str = ""
    target_amount: Decimal | str | None = None
    currency: str | None = None


class ContributionCreateRequest(BaseModel):
    amount: Decimal | str | None = None
    date: str | None = Field(default=None, description="YYYY-MM-DD, not in the future")


class ContributionResponse(BaseModel):
    id: UUID
    amount: Decimal
    date: CalendarDate
    created_at: datetime

    @field_serializer("amount")
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)


class GoalResponse(BaseModel):
    id: UUID
    name: str
    target_amount: Decimal
    currency: Currency
    current_amount: Decimal
    created_at: datetime
    progress_pct: Decimal
    remaining_amount: Decimal
    converted_currency: Currency
    converted_target_amount: Decimal
    formatted_target: str
    formatted_current: str
    formatted_converted_target: str
    contribution_count: int
    currency_locked: bool
    contributions: list[ContributionResponse]

    @field_serializer(
        "target_amount",
        "current_amount",
        "progress_pct",
        "remaining_amount",
        "converted_target_amount",
    )
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)


def _contribution_response(contribution: Contribution) -> ContributionResponse:
    return ContributionResponse(
        id=contribution.id,
        amount=contribution.amount,
        date=contribution.date,
        created_at=contribution.created_at,
    )


def _goal_response(goal: Goal, rate_provider: ExchangeRateProvider) -> GoalResponse:
    view = build_goal_view(goal, rate_provider.snapshot())
    return GoalResponse(
        id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        currency=goal.currency,
        current_amount=goal.current_amount,
        created_at=goal.created_at,
        progress_pct=view.progress_pct,
        remaining_amount=view.remaining_amount,
        converted_currency=view.converted_currency,
        converted_target_amount=view.converted_target_amount,
        contribution_count=view.contribution_count,
        formatted_target=format_currency(goal.target_amount, goal.currency),
        formatted_current=format_currency(goal.current_amount, goal.currency),
        formatted_converted_target=format_currency(view.converted_target_amount, view.converted_currency),
        currency_locked=view.currency_locked,
        contributions=[_contribution_response(c) for c in _newest_first(goal.contributions)],
    )


@router.get("", response_model=list[GoalResponse])
async def list_goals_endpoint(
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> list[GoalResponse]:
    """List goals in creation order."""
    return [_goal_response(goal, rate_provider) for goal in store.goals]


@router.post("", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal_endpoint(
    payload: GoalCreateRequest,
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> GoalResponse:
    """Create one savings goal with no contributions."""
    try:
        goal = store.create_goal(payload.name, payload.target_amount, payload.currency)
    except GoalValidationError as exc:
        raise _validation_error(exc) from exc
    return _goal_response(goal, rate_provider)


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal_endpoint(
    goal_id: UUID,
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> GoalResponse:
    goal = store.get(goal_id)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return _goal_response(goal, rate_provider)


@router.patch("/{goal_id}", response_model=GoalResponse)
async def update_goal_endpoint(
    goal_id: UUID,
    payload: GoalUpdateRequest,
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> GoalResponse:
    """
    Update name and target amount.

    `currency` is applied only while the goal has no contributions.
    """
    try:
        goal = store.edit_goal(goal_id, payload.name, payload.target_amount, payload.currency)
    except GoalValidationError as exc:
        raise _validation_error(exc) from exc

    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return _goal_response(goal, rate_provider)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal_endpoint(
    goal_id: UUID,
    store: GoalStore = Depends(get_goal_store),
) -> Response:
    """Delete one goal and its contributions. Deleting a missing goal is not an error."""
    store.delete_goal(goal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{goal_id}/contributions", response_model=list[ContributionResponse])
async def list_contributions_endpoint(
    goal_id: UUID,
    store: GoalStore = Depends(get_goal_store),
) -> list[ContributionResponse]:
    goal = store.get(goal_id)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return [_contribution_response(c) for c in _newest_first(goal.contributions)]


@router.post(
    "/{goal_id}/contributions",
    response_model=GoalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_contribution_endpoint(
    goal_id: UUID,
    payload: ContributionCreateRequest,
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> GoalResponse:
    """Record one contribution and return the updated goal."""
    try:
        goal = store.add_contribution(goal_id, payload.amount, payload.date)
    except GoalValidationError as exc:
        raise _validation_error(exc) from exc

    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return _goal_response(goal, rate_provider)
