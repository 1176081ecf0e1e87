"""Root-owned goal collection backed by the key-value store."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from ..logging_config import get_logger
from . import goals_service
from .goals_service import Goal, GoalCollection
from .storage import KeyValueStore, StorageError, read_json, write_json

logger = get_logger(__name__)

GOALS_KEY = "savings-goals"

_collection_adapter = TypeAdapter(list[Goal])


class GoalStore:
    """
    Holds the current goal collection and persists it after every change.

    Mutations swap in the collection returned by `goals_service`; the whole
    collection is then written back as one JSON array. A failed write is
    logged and the in-memory collection stays authoritative.
    """

    def __init__(self, storage: KeyValueStore, *, storage_key: str = GOALS_KEY) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self._goals: GoalCollection = self._load()

    @property
    def goals(self) -> GoalCollection:
        return self._goals

    def get(self, goal_id: UUID) -> Goal | None:
        return goals_service.find_goal(self._goals, goal_id)

    def create_goal(self, name: Any, target_amount: Any, currency: Any) -> Goal:
        goals, goal = goals_service.create_goal(self._goals, name, target_amount, currency)
        self._commit(goals)
        logger.info("goal_created", goal_id=str(goal.id), currency=goal.currency)
        return goal

    def edit_goal(
        self,
        goal_id: UUID,
        name: Any,
        target_amount: Any,
        currency: Any = None,
    ) -> Goal | None:
        goals = goals_service.edit_goal(self._goals, goal_id, name, target_amount, currency)
        if goals is self._goals:
            return None
        self._commit(goals)
        logger.info("goal_updated", goal_id=str(goal_id))
        return self.get(goal_id)

    def delete_goal(self, goal_id: UUID) -> bool:
        goals = goals_service.delete_goal(self._goals, goal_id)
        if goals is self._goals:
            return False
        self._commit(goals)
        logger.info("goal_deleted", goal_id=str(goal_id))
        return True

    def add_contribution(
        self,
        goal_id: UUID | None,
        amount: Decimal | str,
        contribution_date: date | str,
    ) -> Goal | None:
        goals = goals_service.add_contribution(self._goals, goal_id, amount, contribution_date)
        if goals is self._goals:
            return None
        self._commit(goals)
        goal = self.get(goal_id)
        logger.info(
            "contribution_added",
            goal_id=str(goal_id),
            contribution_count=len(goal.contributions),
        )
        return goal

    def _commit(self, goals: GoalCollection) -> None:
        self._goals = goals
        self._persist()

    def _load(self) -> GoalCollection:
        raw = read_json(self.storage, self.storage_key)
        if raw is None:
            return ()

        try:
            goals = _collection_adapter.validate_python(raw)
        except ValidationError as exc:
            logger.warning("goal_collection_malformed", error_count=exc.error_count())
            return ()

        seen: set[UUID] = set()
        for goal in goals:
            if goal.id in seen:
                logger.warning("goal_collection_duplicate_id", goal_id=str(goal.id))
                return ()
            seen.add(goal.id)

        return tuple(goals)

    def _persist(self) -> None:
        payload = _collection_adapter.dump_python(list(self._goals), mode="json")
        try:
            write_json(self.storage, self.storage_key, payload)
        except StorageError:
            logger.exception("goal_collection_write_failed", goal_count=len(self._goals))
