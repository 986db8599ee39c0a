"""
Dogfood: chat with a running API over HTTP from the terminal.

Streams each reply as it arrives and saves the conversation the same way
the web client does (create on the first finished turn, update on growth).

Usage:
    DOGFOOD_EMAIL=me@example.com DOGFOOD_PASSWORD=... python scripts/dogfood_stream_http.py
    ... --conversation <id>   # resume an existing conversation
"""

from __future__ import annotations

import argparse
import os
import sys

import httpx

# Ensure /app is on path when executed in-container.
if "/app" not in sys.path:
    sys.path.insert(0, "/app")

from services.chat_client import ChatClient, ChatSession, ChatStreamError


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--base-url", default=os.environ.get("DOGFOOD_BASE_URL", "http://localhost:8000"))
    parser.add_argument("--conversation", help="existing conversation id to resume")
    args = parser.parse_args()

    email = os.environ.get("DOGFOOD_EMAIL")
    password = os.environ.get("DOGFOOD_PASSWORD")
    if not email or not password:
        raise RuntimeError("DOGFOOD_EMAIL and DOGFOOD_PASSWORD environment variables must be set")

    client = ChatClient(base_url=args.base_url, timeout=130.0)
    try:
        client.login(email, password)
        if args.conversation:
            session = ChatSession.resume(client, args.conversation)
            print(f"resumed {session.conversation_id} ({len(session.messages)} messages)")
        else:
            session = ChatSession(client)

        while True:
            try:
                text = input("> ").strip()
            except EOFError:
                break
            if not text:
                continue
            try:
                for delta in session.stream_reply(text):
                    print(delta, end="", flush=True)
            except (ChatStreamError, httpx.HTTPError) as e:
                print(f"\n[error] {e}")
            print()
            print(f"[save={session.last_save and session.last_save.value} id={session.conversation_id}]")
    finally:
        client.close()


if __name__ == "__main__":
    main()
