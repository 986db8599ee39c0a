"""
Workout persistence (owner-scoped).

Every query filters by the owning user id; callers pass the id resolved
from the request, never one supplied by the model.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.exceptions import ToolExecutionError
from models import Workout, WorkoutExercise, WorkoutSet
from schemas import RecordWorkoutParams

logger = logging.getLogger(__name__)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def create_workout(db: Session, user_id: UUID, data: RecordWorkoutParams) -> Workout:
    """Insert a workout with its exercises and sets in one commit."""
    workout = Workout(
        user_id=user_id,
        date=_as_utc(data.date) if data.date else datetime.now(timezone.utc),
        name=data.name,
    )
    for ex_pos, exercise in enumerate(data.exercises):
        ex_row = WorkoutExercise(position=ex_pos, name=exercise.name)
        for set_pos, s in enumerate(exercise.sets):
            ex_row.sets.append(
                WorkoutSet(
                    position=set_pos,
                    set_number=s.set_number,
                    repetitions=s.repetitions,
                    weight_kg=s.weight_kg,
                )
            )
        workout.exercises.append(ex_row)

    try:
        db.add(workout)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error recording workout for user {user_id}: {e}")
        raise ToolExecutionError("Failed to save workout to the database.") from e

    logger.info(
        "Workout recorded",
        extra={"extra_fields": {"user_id": str(user_id), "workout_id": str(workout.id),
                                "exercises": len(data.exercises)}},
    )
    return workout


def list_recent_workouts(db: Session, user_id: UUID, limit: int = 10) -> List[Workout]:
    """Most recent first (by workout date), at most `limit` rows."""
    try:
        return (
            db.query(Workout)
            .options(selectinload(Workout.exercises).selectinload(WorkoutExercise.sets))
            .filter(Workout.user_id == user_id)
            .order_by(Workout.date.desc(), Workout.created_at.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Error fetching workouts for user {user_id}: {e}")
        raise ToolExecutionError("Failed to retrieve workouts from the database.") from e


def serialize_workout(workout: Workout) -> Dict[str, Any]:
    return {
        "id": str(workout.id),
        "date": workout.date.isoformat() if workout.date else None,
        "name": workout.name,
        "exercises": [
            {
                "name": ex.name,
                "sets": [
                    {
                        "setNumber": s.set_number,
                        "repetitions": s.repetitions,
                        "weightKg": s.weight_kg,
                    }
                    for s in ex.sets
                ],
            }
            for ex in workout.exercises
        ],
    }
