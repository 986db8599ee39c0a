"""
HTTP client for the chat API.

ChatClient wraps the endpoints (auth, /chat streaming, /conversations).
ChatSession is the client half of a conversation: it keeps the message
list, runs turns over the SSE stream, and hands the finished list to a
ConversationReconciler for saving.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

import httpx

from services.conversation_reconciler import ConversationReconciler, SaveAction

logger = logging.getLogger(__name__)


class ChatStreamError(Exception):
    """The server reported an error event mid-stream."""


def iter_sse_events(chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
    """
    Minimal SSE parser: yields the JSON payload of each event.

    Packets are separated by a blank line; multi-line data fields are joined.
    Packets whose data isn't JSON are skipped.
    """
    buf = ""

    def parse(packet: str) -> Optional[Dict[str, Any]]:
        data_lines = []
        for line in packet.splitlines():
            if line.startswith("data:"):
                v = line[5:]
                data_lines.append(v[1:] if v.startswith(" ") else v)
        data_str = "\n".join(data_lines).strip()
        if not data_str:
            return None
        try:
            obj = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        return obj if isinstance(obj, dict) else None

    for chunk in chunks:
        if not chunk:
            continue
        buf += chunk.decode("utf-8", errors="replace")
        buf = buf.replace("\r\n", "\n")
        while True:
            idx = buf.find("\n\n")
            if idx == -1:
                break
            packet, buf = buf[:idx], buf[idx + 2:]
            obj = parse(packet)
            if obj is not None:
                yield obj

    # trailing packet without delimiter
    if buf.strip():
        obj = parse(buf.strip())
        if obj is not None:
            yield obj


class ChatClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 60.0,
        http: Optional[httpx.Client] = None,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self.http.headers["Authorization"] = f"Bearer {token}"

    def close(self) -> None:
        self.http.close()

    def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        resp = self.http.post("/auth/signup", json={"name": name, "email": email, "password": password})
        resp.raise_for_status()
        return resp.json()

    def login(self, email: str, password: str) -> str:
        resp = self.http.post("/auth/login", json={"email": email, "password": password})
        resp.raise_for_status()
        token = resp.json()["access_token"]
        self.set_token(token)
        return token

    def stream_chat(self, messages: List[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
        with self.http.stream("POST", "/chat", json={"messages": messages}) as resp:
            resp.raise_for_status()
            yield from iter_sse_events(resp.iter_bytes())

    def list_conversations(self) -> List[Dict[str, Any]]:
        resp = self.http.get("/conversations")
        resp.raise_for_status()
        return resp.json()

    def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        resp = self.http.get(f"/conversations/{conversation_id}")
        resp.raise_for_status()
        return resp.json()

    def create_conversation(self, messages: List[Dict[str, Any]], title: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"messages": messages}
        if title is not None:
            body["title"] = title
        resp = self.http.post("/conversations", json=body)
        resp.raise_for_status()
        return resp.json()

    def update_conversation(
        self, conversation_id: str, messages: List[Dict[str, Any]], title: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"messages": messages}
        if title is not None:
            body["title"] = title
        resp = self.http.put(f"/conversations/{conversation_id}", json=body)
        resp.raise_for_status()
        return resp.json()


class ChatSession:
    """One open conversation on the client side."""

    def __init__(self, client: ChatClient, conversation_id: Optional[str] = None,
                 messages: Optional[List[Dict[str, Any]]] = None):
        self.client = client
        self.messages: List[Dict[str, Any]] = list(messages or [])
        self.reconciler = ConversationReconciler(client, conversation_id, self.messages)
        self.last_save: Optional[SaveAction] = None

    @classmethod
    def resume(cls, client: ChatClient, conversation_id: str) -> "ChatSession":
        conversation = client.get_conversation(conversation_id)
        return cls(client, conversation_id=str(conversation["id"]), messages=conversation["messages"])

    @property
    def conversation_id(self) -> Optional[str]:
        return self.reconciler.conversation_id

    def stream_reply(self, text: str) -> Iterator[str]:
        """Send a user message; yield assistant text as it streams in."""
        self.messages.append({"role": "user", "content": text})
        self.reconciler.begin_turn()
        parts: List[str] = []
        try:
            for event in self.client.stream_chat(self.messages):
                kind = event.get("type")
                if kind == "delta":
                    delta = event.get("delta") or ""
                    parts.append(delta)
                    yield delta
                elif kind in ("tool_call", "tool_result"):
                    # text before a tool call belongs to that assistant message
                    parts = []
                    self.messages.append(event["message"])
                elif kind == "error":
                    raise ChatStreamError(event.get("message") or "Chat stream failed")
            if parts:
                self.messages.append({"role": "assistant", "content": "".join(parts)})
        finally:
            self.last_save = self.reconciler.finish_turn(self.messages)

    def send(self, text: str) -> str:
        return "".join(self.stream_reply(text))
