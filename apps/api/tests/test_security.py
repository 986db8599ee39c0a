"""
Password hashing, bearer tokens and the JSON log formatter.
"""
import json
import logging
import sys
from datetime import timedelta
from uuid import uuid4

from jose import jwt

from core.config import settings
from core.logging import JSONFormatter
from core.security import TOKEN_ALGORITHM, hash_password, issue_token, password_matches, token_subject


class TestPasswords:
    def test_hash_round_trip(self):
        hashed = hash_password("correct-horse-battery")
        assert hashed != "correct-horse-battery"
        assert password_matches("correct-horse-battery", hashed)
        assert not password_matches("wrong-horse", hashed)

    def test_missing_or_garbage_hash_never_matches(self):
        assert not password_matches("anything", None)
        assert not password_matches("anything", "")
        assert not password_matches("anything", "not-a-bcrypt-hash")


class TestTokens:
    def test_subject_is_user_id(self):
        user_id = uuid4()
        issued = issue_token(user_id)
        assert token_subject(issued.access_token) == user_id
        assert issued.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_expired_token_rejected(self):
        issued = issue_token(uuid4(), lifetime=timedelta(seconds=-10))
        assert token_subject(issued.access_token) is None

    def test_wrong_key_rejected(self):
        forged = jwt.encode({"sub": str(uuid4())}, "x" * 40, algorithm=TOKEN_ALGORITHM)
        assert token_subject(forged) is None

    def test_non_uuid_subject_rejected(self):
        token = jwt.encode({"sub": "someone"}, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM)
        assert token_subject(token) is None

    def test_empty_token(self):
        assert token_subject(None) is None
        assert token_subject("") is None


class TestJSONFormatter:
    def _record(self, msg, extra_fields=None, exc_info=None):
        record = logging.LogRecord("services.chat", logging.INFO, __file__, 10, msg, (), exc_info)
        if extra_fields is not None:
            record.extra_fields = extra_fields
        return record

    def test_extra_fields_merged(self):
        line = JSONFormatter().format(self._record("Tool failed", {"tool": "get_workouts", "user_id": uuid4()}))
        entry = json.loads(line)
        assert entry["message"] == "Tool failed"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "services.chat"
        assert entry["tool"] == "get_workouts"
        assert isinstance(entry["user_id"], str)

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record("Turn failed", exc_info=sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]
