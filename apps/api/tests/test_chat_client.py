"""
Client-side chat session tests.

ChatSession runs against the real app through an httpx client bound to
TestClient, with the model scripted.
"""
import pytest

from services.chat_client import ChatClient, ChatSession, ChatStreamError, iter_sse_events
from services.chat_orchestrator import TurnOrchestrator, get_turn_orchestrator
from services.conversation_reconciler import SaveAction
from services.llm_client import Finish, ModelError, TextDelta
from services.tool_registry import build_default_registry
from fixtures.chat_fixtures import ScriptedModel, auth_headers, text_reply, tool_call


class TestSSEParsing:
    def test_split_across_chunks(self):
        chunks = [b"event: delta\ndata: {\"type\": \"del", b"ta\", \"delta\": \"hi\"}\n", b"\nevent: done\n"]
        chunks.append(b"data: {\"type\": \"done\"}\n\n")
        assert list(iter_sse_events(chunks)) == [
            {"type": "delta", "delta": "hi"},
            {"type": "done"},
        ]

    def test_crlf_and_trailing_packet(self):
        chunks = [b"data: {\"type\": \"delta\", \"delta\": \"a\"}\r\n\r\ndata: {\"type\": \"done\"}"]
        assert [e["type"] for e in iter_sse_events(chunks)] == ["delta", "done"]

    def test_non_json_packets_skipped(self):
        chunks = [b": keepalive\n\ndata: not json\n\ndata: {\"type\": \"done\"}\n\n"]
        assert list(iter_sse_events(chunks)) == [{"type": "done"}]


@pytest.fixture
def chat_client(client, test_user):
    # TestClient is an httpx.Client, so ChatClient can drive the app in-process
    client.headers.update(auth_headers(test_user))
    return ChatClient(http=client)


def _use_model(app, model):
    app.dependency_overrides[get_turn_orchestrator] = lambda: TurnOrchestrator(model, build_default_registry())


def test_session_creates_then_updates(app, chat_client):
    _use_model(app, ScriptedModel([text_reply("Hello!"), text_reply("Still here.")]))
    session = ChatSession(chat_client)

    assert session.send("hi") == "Hello!"
    assert session.last_save is SaveAction.CREATED
    conversation_id = session.conversation_id
    assert conversation_id

    assert session.send("you there?") == "Still here."
    assert session.last_save is SaveAction.UPDATED
    assert session.conversation_id == conversation_id

    stored = chat_client.get_conversation(conversation_id)
    assert [m["role"] for m in stored["messages"]] == ["user", "assistant", "user", "assistant"]
    assert len(chat_client.list_conversations()) == 1


def test_session_keeps_tool_messages(app, chat_client):
    args = {"exercises": [{"name": "Squat", "sets": [{"repetitions": 5, "weightKg": 100}]}]}
    _use_model(app, ScriptedModel([
        [TextDelta("Recording... "), tool_call("record_workout", args), Finish("tool_calls")],
        text_reply("Saved."),
    ]))
    session = ChatSession(chat_client)

    assert session.send("squats 5 at 100") == "Recording... Saved."
    assert [m["role"] for m in session.messages] == ["user", "assistant", "tool", "assistant"]
    assert session.messages[1]["content"] == "Recording... "
    assert session.messages[-1] == {"role": "assistant", "content": "Saved."}

    stored = chat_client.get_conversation(session.conversation_id)
    assert stored["messages"] == session.messages


def test_resume_does_not_resave_until_growth(app, chat_client):
    created = chat_client.create_conversation([
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ])
    session = ChatSession.resume(chat_client, created["id"])
    assert session.reconciler.saved_count == 2

    _use_model(app, ScriptedModel([text_reply("again")]))
    session.send("hi again")
    assert session.last_save is SaveAction.UPDATED
    assert len(chat_client.get_conversation(created["id"])["messages"]) == 4


def test_error_event_raises_and_still_settles(app, chat_client):
    _use_model(app, ScriptedModel([[TextDelta("par"), ModelError("boom")]]))
    session = ChatSession(chat_client)

    with pytest.raises(ChatStreamError):
        session.send("hi")
    # the turn ended; the user message alone was saved
    assert session.last_save is SaveAction.CREATED
    assert session.messages == [{"role": "user", "content": "hi"}]
