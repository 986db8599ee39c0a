"""
Chat tools

Tools the model may call during a chat turn. Each tool declares a pydantic
parameter model (exported to the model as JSON schema) and an executor that
runs against its own short-lived database session.

Execution never raises: unknown tools, bad arguments, missing identity and
executor failures all come back as ordinary tool results so the model can
relay them in conversation.

The acting user id is always the one resolved for the request and passed in
by the caller. Model-supplied arguments cannot name a user.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from core.auth import user_exists
from core.config import settings
from core.database import SessionLocal
from core.exceptions import ToolExecutionError
from schemas import GetWorkoutsParams, RecordWorkoutParams
from services import workout_store

logger = logging.getLogger(__name__)

Executor = Callable[[Session, UUID, BaseModel], Any]


def _inline_refs(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve local $ref pointers so the declaration is one self-contained object."""
    defs = schema.get("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                return resolve(defs[ref.split("/")[-1]])
            return {k: resolve(v) for k, v in node.items() if k != "$defs"}
        if isinstance(node, list):
            return [resolve(v) for v in node]
        return node

    return resolve(schema)


@dataclass(frozen=True)
class ToolResult:
    name: str
    payload: Any
    ok: bool

    @property
    def content(self) -> str:
        """Tool message content: strings pass through, everything else is JSON."""
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, default=str)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params_model: Type[BaseModel]
    executor: Executor
    # returned when the caller's identity can't be confirmed at call time
    unauthenticated_result: Any
    # maps an executor failure to the result the model sees
    failure_result: Callable[[Exception], Any]

    def declaration(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": _inline_refs(self.params_model.model_json_schema(by_alias=True)),
            },
        }


def _invalid_arguments(name: str, errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": f"Invalid arguments for {name}",
        "details": errors,
    }


class ToolRegistry:
    """Name -> Tool mapping plus guarded execution."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._tools: Dict[str, Tool] = {}
        self._session_factory = session_factory

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def declarations(self) -> List[Dict[str, Any]]:
        return [t.declaration() for t in self._tools.values()]

    def execute(self, name: str, raw_arguments: Any, user_id: Optional[UUID]) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolResult(name, {"success": False, "error": f"Unknown tool: {name}"}, ok=False)

        # Arguments arrive as a JSON string from the model; tolerate dicts too.
        if raw_arguments is None or raw_arguments == "":
            arguments: Any = {}
        elif isinstance(raw_arguments, str):
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError:
                return ToolResult(
                    name,
                    _invalid_arguments(name, [{"field": "", "message": "Arguments are not valid JSON"}]),
                    ok=False,
                )
        else:
            arguments = raw_arguments
        if not isinstance(arguments, dict):
            return ToolResult(
                name,
                _invalid_arguments(name, [{"field": "", "message": "Arguments must be a JSON object"}]),
                ok=False,
            )

        try:
            params = tool.params_model.model_validate(arguments)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            logger.info(f"Rejected {name} call: {len(errors)} validation error(s)")
            return ToolResult(name, _invalid_arguments(name, errors), ok=False)

        db = self._session_factory()
        try:
            if not user_exists(db, user_id):
                logger.error(f"No authenticated user for tool call {name}")
                return ToolResult(name, tool.unauthenticated_result, ok=False)

            logger.info(
                f"Executing tool {name}",
                extra={"extra_fields": {"tool": name, "user_id": str(user_id)}},
            )
            payload = tool.executor(db, user_id, params)
            return ToolResult(name, payload, ok=True)
        except Exception as e:
            db.rollback()
            logger.warning(f"Tool execution error for {name}: {e}", exc_info=True)
            return ToolResult(name, tool.failure_result(e), ok=False)
        finally:
            db.close()


# ---------------------------------------------------------------------------
# Workout tools
# ---------------------------------------------------------------------------

def _record_workout(db: Session, user_id: UUID, params: RecordWorkoutParams) -> Dict[str, Any]:
    workout = workout_store.create_workout(db, user_id, params)
    return {
        "success": True,
        "message": "Workout recorded successfully!",
        "workout_id": str(workout.id),
    }


def _record_workout_failed(exc: Exception) -> Dict[str, Any]:
    if isinstance(exc, ToolExecutionError):
        return {"success": False, "error": f"Failed to record workout: {exc.message}"}
    return {"success": False, "error": "Failed to record workout due to an internal error."}


def _get_workouts(db: Session, user_id: UUID, params: GetWorkoutsParams) -> List[Dict[str, Any]]:
    limit = min(params.limit, settings.WORKOUT_LIST_MAX_LIMIT)
    workouts = workout_store.list_recent_workouts(db, user_id, limit=limit)
    return [workout_store.serialize_workout(w) for w in workouts]


RECORD_WORKOUT = Tool(
    name="record_workout",
    description=(
        "Records the details of a user's completed workout session, including the date "
        "(optional, defaults to now), an optional workout name, and a list of exercises. "
        "For each exercise, record its name and the details of each set performed "
        "(reps, weight in kg). Parse details from the user's natural language description."
    ),
    params_model=RecordWorkoutParams,
    executor=_record_workout,
    unauthenticated_result={"success": False, "error": "Authentication required."},
    failure_result=_record_workout_failed,
)

GET_WORKOUTS = Tool(
    name="get_workouts",
    description=(
        "Retrieves the raw data of the user's most recent workout sessions from their "
        "history (up to a specified limit). Use this when the user asks about their past "
        "workouts, workout log, or training history."
    ),
    params_model=GetWorkoutsParams,
    executor=_get_workouts,
    unauthenticated_result="Sorry, I couldn't verify your identity to fetch workouts.",
    failure_result=lambda exc: "Sorry, I encountered an error while trying to retrieve your workouts.",
)


def build_default_registry(session_factory: Callable[[], Session] = SessionLocal) -> ToolRegistry:
    registry = ToolRegistry(session_factory=session_factory)
    registry.register(RECORD_WORKOUT)
    registry.register(GET_WORKOUTS)
    return registry
