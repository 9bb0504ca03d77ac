#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Chatdesk — Dev WebSocket Console (/ws)
--------------------------------------
Interactive console for poking at the chat server without a browser.

Roles:
- client  : behaves like the site widget. Sends `client_init` for
            --chat-id, then every typed line as a user `send_message`.
- manager : behaves like the manager console. Sends `manager_init`, then
            typed lines as manager messages to --chat-id.

Commands:
    /step KEY     attach nextStep=KEY to the next message
    /script KEY   force step KEY into the chat (send_manual_script)
    /note TEXT    set the chat's manager note
    /quit         exit

Every inbound frame is printed in a compact one-line form.
`--snapshot` skips the REPL and prints GET /status/snapshot instead.

The console reconnects automatically (3s, 6s, 9s ... capped at 30s) and
re-sends its init event after each reconnect.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import requests
import websockets
from websockets.exceptions import ConnectionClosed

DEFAULT_SERVER = "ws://127.0.0.1:4000/ws"


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Chatdesk - Dev WebSocket Console (/ws)",
    )
    parser.add_argument(
        "--server",
        type=str,
        default=DEFAULT_SERVER,
        help=f"WebSocket server URL (default: {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--role",
        choices=["client", "manager"],
        default="client",
        help="Act as the site widget (client) or the manager console.",
    )
    parser.add_argument(
        "--chat-id",
        dest="chat_id",
        type=str,
        default="dev-chat-1",
        help="Chat to talk in (default: dev-chat-1).",
    )
    parser.add_argument(
        "--snapshot",
        action="store_true",
        help="Print the current manager snapshot over HTTP and exit.",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------


@dataclass
class ConsoleState:
    role: str
    chat_id: str
    next_step: Optional[str] = None

    @property
    def sender(self) -> str:
        return "user" if self.role == "client" else "manager"


def build_frame(event: str, data: Any = None) -> Dict[str, Any]:
    return {"event": event, "data": data}


def init_frame(state: ConsoleState) -> Dict[str, Any]:
    if state.role == "client":
        return build_frame("client_init", state.chat_id)
    return build_frame("manager_init")


def parse_line(line: str, state: ConsoleState) -> Optional[Dict[str, Any]]:
    """
    Turn one typed line into a frame to send.

    Returns None for lines that only change console state (/step) or are
    empty. `/quit` is handled by the caller.
    """
    text = line.strip()
    if not text:
        return None

    if text.startswith("/step "):
        state.next_step = text[len("/step "):].strip() or None
        return None

    if text.startswith("/script "):
        return build_frame(
            "send_manual_script",
            {"chatId": state.chat_id, "stepKey": text[len("/script "):].strip()},
        )

    if text.startswith("/note "):
        return build_frame(
            "update_chat_note",
            {"chatId": state.chat_id, "note": text[len("/note "):]},
        )

    payload: Dict[str, Any] = {
        "chatId": state.chat_id,
        "sender": state.sender,
        "text": text,
    }
    if state.next_step:
        payload["nextStep"] = state.next_step
        state.next_step = None
    return build_frame("send_message", payload)


def describe_frame(frame: Dict[str, Any]) -> str:
    """One-line summary of an inbound frame."""
    event = frame.get("event")
    data = frame.get("data")

    if event == "receive_message" and isinstance(data, dict):
        line = f"[{data.get('chatId')}] {data.get('sender')}: {data.get('text') or ''}"
        options = data.get("options") or []
        if options:
            labels = ", ".join(str(o.get("text", o)) for o in options if isinstance(o, dict))
            line += f"  [{labels}]"
        return line
    if event == "message_deleted":
        return f"(message {data} deleted)"
    if isinstance(data, list):
        return f"<{event}: {len(data)} item(s)>"
    return f"<{event}: {json.dumps(data, ensure_ascii=False)[:120]}>"


def http_base_from_ws(url: str) -> str:
    """ws://host:port/ws -> http://host:port"""
    parts = urlsplit(url)
    scheme = "https" if parts.scheme == "wss" else "http"
    return urlunsplit((scheme, parts.netloc, "", "", ""))


def fetch_snapshot(server: str, timeout_s: float = 10.0) -> Dict[str, Any]:
    resp = requests.get(f"{http_base_from_ws(server)}/status/snapshot", timeout=timeout_s)
    resp.raise_for_status()
    return resp.json()


# ---------------------------------------------------------------------------
# Session loop (one connection)
# ---------------------------------------------------------------------------


async def _print_inbound(ws) -> None:
    async for raw in ws:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            print(f"\nRaw frame (not JSON): {raw}")
            continue
        print(f"\n{describe_frame(frame)}")


async def run_single_session(args: argparse.Namespace, state: ConsoleState) -> None:
    print(f"[console] server  : {args.server}")
    print(f"[console] role    : {state.role}")
    print(f"[console] chat id : {state.chat_id}")
    print("Type a message and press Enter. /step KEY, /script KEY, /note TEXT, /quit.\n")

    async with websockets.connect(args.server, ping_interval=None, ping_timeout=None) as ws:
        await ws.send(json.dumps(init_frame(state)))
        reader = asyncio.create_task(_print_inbound(ws))
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    raise KeyboardInterrupt

                if line.strip().lower() in {"/quit", "/exit"}:
                    raise KeyboardInterrupt

                frame = parse_line(line, state)
                if frame is None:
                    if state.next_step:
                        print(f"[console] next message carries nextStep={state.next_step}")
                    continue
                if reader.done():
                    # Reader ended: the server closed the connection.
                    raise ConnectionClosed(None, None)
                await ws.send(json.dumps(frame))
        finally:
            reader.cancel()


# ---------------------------------------------------------------------------
# Auto-reconnect wrapper
# ---------------------------------------------------------------------------


async def run_with_reconnect(args: argparse.Namespace) -> None:
    attempt = 0
    base_delay = 3  # seconds
    state = ConsoleState(role=args.role, chat_id=args.chat_id)

    while True:
        attempt += 1
        try:
            print(f"Connecting to '{args.server}' (attempt {attempt}) ...")
            await run_single_session(args, state)
            return
        except KeyboardInterrupt:
            print("\nBye.")
            return
        except ConnectionClosed as exc:
            print(f"\nConnection closed: {exc}")
        except OSError as exc:
            print(f"\nConnection error: {exc}")

        delay = min(base_delay * attempt, 30)
        print(f"Reconnecting in {delay} seconds... (Ctrl+C to stop)")
        await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    if args.snapshot:
        try:
            snapshot = fetch_snapshot(args.server)
        except requests.RequestException as exc:
            print(f"Snapshot request failed: {exc}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(snapshot, indent=2, ensure_ascii=False))
        return

    try:
        asyncio.run(run_with_reconnect(args))
    except KeyboardInterrupt:
        print("\nBye.")
        sys.exit(0)


if __name__ == "__main__":
    main()
