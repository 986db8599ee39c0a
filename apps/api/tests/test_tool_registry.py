"""
Workout tool tests: declarations, argument validation, identity, persistence.

Tools execute against their own sessions; assertions read back through a
separate db_session.
"""
import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from models import Workout, WorkoutExercise, WorkoutSet
from schemas import RecordWorkoutParams
from services import workout_store
from services.tool_registry import Tool, ToolRegistry, build_default_registry


SQUATS = {
    "name": "Leg Day",
    "exercises": [
        {
            "name": "Squat",
            "sets": [
                {"setNumber": 1, "repetitions": 5, "weightKg": 100},
                {"setNumber": 2, "repetitions": 5, "weightKg": 100},
                {"setNumber": 3, "repetitions": 5, "weightKg": 100},
            ],
        }
    ],
}


@pytest.fixture
def registry():
    return build_default_registry()


def _row_counts(db):
    return (
        db.query(Workout).count(),
        db.query(WorkoutExercise).count(),
        db.query(WorkoutSet).count(),
    )


class TestDeclarations:
    def test_both_tools_declared(self, registry):
        names = [d["function"]["name"] for d in registry.declarations()]
        assert names == ["record_workout", "get_workouts"]

    def test_record_workout_schema_is_self_contained(self, registry):
        decl = registry.get("record_workout").declaration()
        params = decl["function"]["parameters"]
        assert decl["type"] == "function"
        assert "$defs" not in json.dumps(params)
        assert params["required"] == ["exercises"]
        set_props = params["properties"]["exercises"]["items"]["properties"]["sets"]["items"]["properties"]
        assert set(set_props) == {"setNumber", "repetitions", "weightKg"}

    def test_duplicate_registration_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register(registry.get("get_workouts"))


class TestRecordWorkout:
    def test_records_workout_for_caller(self, registry, db_session, test_user):
        result = registry.execute("record_workout", json.dumps(SQUATS), test_user.id)

        assert result.ok
        payload = json.loads(result.content)
        assert payload["success"] is True
        assert payload["message"] == "Workout recorded successfully!"

        workout = db_session.query(Workout).one()
        assert str(workout.id) == payload["workout_id"]
        assert workout.user_id == test_user.id
        assert workout.name == "Leg Day"
        sets = workout.exercises[0].sets
        assert [(s.set_number, s.repetitions, s.weight_kg) for s in sets] == [
            (1, 5, 100.0), (2, 5, 100.0), (3, 5, 100.0)
        ]

    def test_date_defaults_to_now(self, registry, db_session, test_user):
        before = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=5)
        registry.execute("record_workout", SQUATS, test_user.id)
        workout = db_session.query(Workout).one()
        assert workout.date.replace(tzinfo=None) >= before

    def test_model_supplied_user_id_is_ignored(self, registry, db_session, test_user, other_user):
        args = {**SQUATS, "userId": str(other_user.id), "user_id": str(other_user.id)}
        result = registry.execute("record_workout", json.dumps(args), test_user.id)
        assert result.ok
        workout = db_session.query(Workout).one()
        assert workout.user_id == test_user.id

    @pytest.mark.parametrize(
        "args",
        [
            {"exercises": []},
            {"exercises": [{"name": "Squat", "sets": []}]},
            {"exercises": [{"name": "", "sets": [{"repetitions": 5}]}]},
            {"exercises": [{"name": "Squat", "sets": [{"repetitions": 0, "weightKg": 100}]}]},
            {"exercises": [{"name": "Squat", "sets": [{"repetitions": 5, "weightKg": -20}]}]},
            {"exercises": [{"name": "Squat", "sets": [{"setNumber": 0}]}]},
            {"date": "last tuesday", "exercises": [{"name": "Squat", "sets": [{"repetitions": 5}]}]},
        ],
    )
    def test_invalid_arguments_write_nothing(self, registry, db_session, test_user, args):
        result = registry.execute("record_workout", json.dumps(args), test_user.id)
        assert not result.ok
        payload = json.loads(result.content)
        assert payload["success"] is False
        assert payload["error"] == "Invalid arguments for record_workout"
        assert payload["details"]
        assert _row_counts(db_session) == (0, 0, 0)

    def test_non_json_arguments(self, registry, db_session, test_user):
        result = registry.execute("record_workout", "{not json", test_user.id)
        assert not result.ok
        assert "Invalid arguments" in result.content
        assert _row_counts(db_session) == (0, 0, 0)

    def test_unauthenticated(self, registry, db_session):
        result = registry.execute("record_workout", json.dumps(SQUATS), None)
        assert not result.ok
        assert json.loads(result.content) == {"success": False, "error": "Authentication required."}
        assert _row_counts(db_session) == (0, 0, 0)

    def test_unknown_user_id_counts_as_unauthenticated(self, registry, db_session):
        result = registry.execute("record_workout", json.dumps(SQUATS), uuid4())
        assert not result.ok
        assert _row_counts(db_session) == (0, 0, 0)

    def test_executor_failure_becomes_result(self, db_session, test_user):
        def boom(db, user_id, params):
            raise RuntimeError("disk on fire")

        registry = ToolRegistry()
        registry.register(Tool(
            name="explode",
            description="always fails",
            params_model=RecordWorkoutParams,
            executor=boom,
            unauthenticated_result="no",
            failure_result=lambda exc: {"success": False, "error": "it broke"},
        ))
        result = registry.execute("explode", SQUATS, test_user.id)
        assert not result.ok
        assert result.payload == {"success": False, "error": "it broke"}


class TestGetWorkouts:
    def _seed(self, db, user, days_ago, name):
        workout_store.create_workout(
            db,
            user.id,
            RecordWorkoutParams.model_validate({
                "date": (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat(),
                "name": name,
                "exercises": [{"name": "Bench", "sets": [{"repetitions": 8, "weightKg": 60}]}],
            }),
        )

    def test_most_recent_first_and_limited(self, registry, db_session, test_user):
        for days_ago, name in [(3, "three"), (1, "one"), (2, "two")]:
            self._seed(db_session, test_user, days_ago, name)

        result = registry.execute("get_workouts", json.dumps({"limit": 2}), test_user.id)
        assert result.ok
        workouts = json.loads(result.content)
        assert [w["name"] for w in workouts] == ["one", "two"]
        assert workouts[0]["exercises"] == [
            {"name": "Bench", "sets": [{"setNumber": None, "repetitions": 8, "weightKg": 60.0}]}
        ]

    def test_default_limit_and_empty_arguments(self, registry, db_session, test_user):
        for i in range(12):
            self._seed(db_session, test_user, i, f"w{i}")
        result = registry.execute("get_workouts", "", test_user.id)
        assert len(json.loads(result.content)) == 10

    def test_limit_is_capped(self, registry, db_session, test_user, monkeypatch):
        from core.config import settings
        monkeypatch.setattr(settings, "WORKOUT_LIST_MAX_LIMIT", 2)
        for i in range(4):
            self._seed(db_session, test_user, i, f"w{i}")
        result = registry.execute("get_workouts", {"limit": 500}, test_user.id)
        assert len(json.loads(result.content)) == 2

    def test_only_callers_workouts(self, registry, db_session, test_user, other_user):
        self._seed(db_session, other_user, 0, "theirs")
        result = registry.execute("get_workouts", {"userId": str(other_user.id)}, test_user.id)
        assert json.loads(result.content) == []

    def test_non_positive_limit_rejected(self, registry, test_user):
        result = registry.execute("get_workouts", {"limit": 0}, test_user.id)
        assert not result.ok

    def test_unauthenticated(self, registry):
        result = registry.execute("get_workouts", "{}", None)
        assert not result.ok
        assert result.content == "Sorry, I couldn't verify your identity to fetch workouts."


def test_unknown_tool(registry, test_user):
    result = registry.execute("delete_everything", "{}", test_user.id)
    assert not result.ok
    assert json.loads(result.content) == {"success": False, "error": "Unknown tool: delete_everything"}
