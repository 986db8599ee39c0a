"""
Request/response schemas.

Chat messages are a closed set of role-tagged variants; every message list
crossing the API boundary (chat turns, conversation create/update) is
validated against them.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class ToolCallFunction(BaseModel):
    name: str = Field(min_length=1)
    # JSON-encoded argument object, exactly as the model produced it
    arguments: str = "{}"


class ToolCall(BaseModel):
    id: str = Field(min_length=1)
    type: Literal["function"] = "function"
    function: ToolCallFunction


class SystemMessage(BaseModel):
    role: Literal["system"]
    content: str


class UserMessage(BaseModel):
    role: Literal["user"]
    content: str


class AssistantMessage(BaseModel):
    role: Literal["assistant"]
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None


class ToolMessage(BaseModel):
    role: Literal["tool"]
    tool_call_id: str = Field(min_length=1)
    name: Optional[str] = None
    content: str


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

MessageList = TypeAdapter(List[Message])


def dump_messages(messages: List[BaseModel]) -> List[dict]:
    """Wire/storage form: plain dicts, unset optionals omitted."""
    return [m.model_dump(exclude_none=True) for m in messages]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    """One chat turn: the full message history including the new user message."""
    messages: List[Message] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ConversationCreate(BaseModel):
    messages: List[Message] = Field(min_length=1)
    title: Optional[str] = None


class ConversationUpdate(BaseModel):
    messages: List[Message]
    title: Optional[str] = None


class ConversationSummary(_CamelModel):
    id: UUID
    title: str
    updated_at: datetime


class ConversationOut(_CamelModel):
    id: UUID
    title: str
    messages: List[Message]
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: UUID
    name: Optional[str] = None
    email: str
    image: Optional[str] = None


class SignupResponse(BaseModel):
    user: UserResponse
    message: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ---------------------------------------------------------------------------
# Tool parameters (model-facing, camelCase on the wire)
# ---------------------------------------------------------------------------

class _ToolParams(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class WorkoutSetParams(_ToolParams):
    set_number: Optional[int] = Field(default=None, gt=0, description="Optional set number (1, 2, 3...)")
    repetitions: Optional[int] = Field(default=None, gt=0, description="Number of repetitions performed")
    weight_kg: Optional[float] = Field(default=None, gt=0, description="Weight used in kilograms")


class ExerciseParams(_ToolParams):
    name: str = Field(min_length=1, description="Name of the exercise, e.g., 'Squat', 'Bench Press'")
    sets: List[WorkoutSetParams] = Field(
        min_length=1, description="At least one set must be recorded for an exercise"
    )


class RecordWorkoutParams(_ToolParams):
    date: Optional[datetime] = Field(
        default=None,
        description="Workout date in ISO 8601 format (e.g., YYYY-MM-DDTHH:mm:ssZ), defaults to now if omitted",
    )
    name: Optional[str] = Field(default=None, description="Optional name for the workout session, e.g., 'Leg Day'")
    exercises: List[ExerciseParams] = Field(
        min_length=1, description="At least one exercise must be recorded for the workout"
    )


class GetWorkoutsParams(_ToolParams):
    limit: int = Field(default=10, gt=0, description="Maximum number of recent workouts to retrieve (default: 10)")
