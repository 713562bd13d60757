from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from forkcast.core.config import load_client_config
from forkcast.errors import SessionNotFound
from forkcast.prompts import QUICK_ACTIONS
from forkcast.sessions.client import ChatClient
from forkcast.sessions.models import ChatSession
from forkcast.sessions.storage import LocalStorage
from forkcast.sessions.store import SessionStore


logger = logging.getLogger("forkcast.cli")

HELP_TEXT = """\
Commands:
  /new          start a new chat
  /list         list chats (current one marked with *)
  /switch N     switch to chat N from /list
  /delete N     delete chat N from /list
  /1 ... /12    send a quick action
  /help         show this help
  /quit         exit
Anything else is sent as a message."""


class TerminalRenderer:
    """Prints the transcript, appending streamed text as it grows."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out
        self._message_id: Optional[str] = None
        self._printed = 0

    def show_session(self, session: ChatSession) -> None:
        self.out.write(f"\n=== {session.title} ===\n")
        for m in session.messages:
            self.out.write(f"[{m.role}] {m.content}\n")
        self._message_id = session.messages[-1].id if session.messages else None
        self._printed = len(session.messages[-1].content) if session.messages else 0
        self.out.flush()

    def __call__(self, session: ChatSession) -> None:
        if not session.messages:
            return
        last = session.messages[-1]
        if last.id != self._message_id:
            self._message_id = last.id
            self._printed = 0
            if last.role == "user":
                return
            self.out.write(f"[{last.role}] ")
        self.out.write(last.content[self._printed:])
        self._printed = len(last.content)
        self.out.flush()

    def end_reply(self) -> None:
        self.out.write("\n")
        self.out.flush()


def parse_command(line: str) -> tuple[str, Optional[str]]:
    """Split ``/cmd arg`` input; plain text becomes ``("send", text)``."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return "send", line
    name, _, arg = stripped[1:].partition(" ")
    name = name.lower()
    if name.isdigit():
        idx = int(name) - 1
        if 0 <= idx < len(QUICK_ACTIONS):
            return "send", QUICK_ACTIONS[idx].message
        return "unknown", stripped
    if name in {"new", "list", "help", "quit", "exit"}:
        return ("quit" if name == "exit" else name), None
    if name in {"switch", "delete"}:
        return name, arg.strip() or None
    return "unknown", stripped


def _pick(store: SessionStore, arg: Optional[str]) -> ChatSession:
    try:
        return store.sessions[int(arg or "") - 1]
    except (ValueError, IndexError):
        raise SessionNotFound(arg or "")


async def run(client: ChatClient, renderer: TerminalRenderer, out: TextIO = sys.stdout) -> None:
    store = client.store
    renderer.show_session(store.current_session)
    out.write("Quick actions: " + ", ".join(f"/{i} {a.label}" for i, a in enumerate(QUICK_ACTIONS, 1)) + "\n")
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            return
        cmd, arg = parse_command(line)
        try:
            if cmd == "quit":
                return
            if cmd == "help":
                out.write(HELP_TEXT + "\n")
            elif cmd == "new":
                renderer.show_session(store.create_new_session())
            elif cmd == "list":
                for i, s in enumerate(store.sessions, 1):
                    mark = "*" if s.id == store.current_session_id else " "
                    out.write(f"{mark}{i:>3}  {s.title}  ({s.updated_at:%Y-%m-%d})\n")
            elif cmd == "switch":
                renderer.show_session(store.select_session(_pick(store, arg).id))
            elif cmd == "delete":
                store.delete_session(_pick(store, arg).id)
                renderer.show_session(store.current_session)
            elif cmd == "send":
                reply = await client.send_message(arg or "")
                if reply is not None:
                    renderer.end_reply()
                if client.error:
                    out.write(f"! {client.error}\n")
            else:
                out.write(f"Unknown command {arg}. Type /help.\n")
        except SessionNotFound as e:
            out.write(f"No chat numbered {e}. Type /list.\n")
        out.flush()


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Chat with FORKCAST-AI through the completion proxy")
    ap.add_argument("--proxy-url", help="Base URL of the chat proxy (default: FORKCAST_PROXY_URL or http://localhost:8000)")
    ap.add_argument("--storage", help="Path of the local chat history file")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    cfg = load_client_config()
    storage_path = Path(args.storage).expanduser() if args.storage else cfg.storage_path

    store = SessionStore(LocalStorage(storage_path))
    renderer = TerminalRenderer()
    client = ChatClient(store, base_url=args.proxy_url or cfg.proxy_url, on_update=renderer)
    try:
        asyncio.run(run(client, renderer))
    except KeyboardInterrupt:
        pass
    return 0
