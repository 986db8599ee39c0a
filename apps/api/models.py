from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Text, Index, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid
from datetime import datetime, timezone


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "user_account"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=True)
    image = Column(Text, nullable=True)  # avatar URL

    conversations = relationship("Conversation", back_populates="user", cascade="all, delete-orphan")
    workouts = relationship("Workout", back_populates="user", cascade="all, delete-orphan")


class Conversation(Base):
    """
    Chat conversation owned by one user.

    `messages` holds the ordered message list exactly as the client produced it:
    [{"role": "user", "content": "..."}, {"role": "assistant", "tool_calls": [...]},
     {"role": "tool", "tool_call_id": "...", "content": "..."}, ...]

    updated_at is written explicitly alongside every messages change and drives
    list ordering.
    """
    __tablename__ = "conversation"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False, default="New Chat")
    messages = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User", back_populates="conversations")

    __table_args__ = (
        Index("ix_conversation_user_id", "user_id"),
        Index("ix_conversation_user_updated", "user_id", "updated_at"),
    )


class Workout(Base):
    """A logged strength session: ordered exercises, each with ordered sets."""
    __tablename__ = "workout"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="workouts")
    exercises = relationship(
        "WorkoutExercise",
        back_populates="workout",
        cascade="all, delete-orphan",
        order_by="WorkoutExercise.position",
    )

    __table_args__ = (
        Index("ix_workout_user_date", "user_id", "date"),
    )


class WorkoutExercise(Base):
    __tablename__ = "workout_exercise"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workout_id = Column(Uuid(as_uuid=True), ForeignKey("workout.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(Text, nullable=False)

    workout = relationship("Workout", back_populates="exercises")
    sets = relationship(
        "WorkoutSet",
        back_populates="exercise",
        cascade="all, delete-orphan",
        order_by="WorkoutSet.position",
    )

    __table_args__ = (
        Index("ix_workout_exercise_workout_id", "workout_id"),
    )


class WorkoutSet(Base):
    __tablename__ = "workout_set"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exercise_id = Column(Uuid(as_uuid=True), ForeignKey("workout_exercise.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    set_number = Column(Integer, nullable=True)
    repetitions = Column(Integer, nullable=True)
    weight_kg = Column(Float, nullable=True)

    exercise = relationship("WorkoutExercise", back_populates="sets")

    __table_args__ = (
        Index("ix_workout_set_exercise_id", "exercise_id"),
    )
