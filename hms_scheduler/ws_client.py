"""Interactive terminal client for the registration WebSocket.

Log in first (`POST /login`) and paste the returned token. Each line you type
is an action followed by optional key=value fields, e.g.

    next hospital_id=1
    next doctor_id=3
    submit patient_name="Jane Roe" patient_email=jane@example.com patient_phone=9876543210
    back
"""

import asyncio
import json
import os
import shlex
import sys

import websockets


def parse_line(line: str) -> tuple[str, dict[str, str]]:
    """Split `action k=v k2="v 2"` into the action and its fields."""
    parts = shlex.split(line)
    if not parts:
        return "", {}
    fields = {}
    for part in parts[1:]:
        key, _, value = part.partition("=")
        fields[key] = value
    return parts[0].lower(), fields


def format_reply(reply: dict) -> str:
    if "error" in reply:
        return f"Server Error: {reply['error']}"
    lines = [f"[{reply.get('step')}] {reply.get('message')}"]
    lines += [f"  ! {err}" for err in reply.get("errors") or []]
    return "\n".join(lines)


async def connect_and_register(uri: str, token: str) -> None:
    """Connect to the server and walk through the registration form."""
    try:
        async with websockets.connect(uri) as websocket:
            await send_action(websocket, token, "status")
            print(format_reply(json.loads(await websocket.recv())))

            while True:
                line = input("You: ")
                if line.strip().lower() in ["exit", "quit", "bye"]:
                    print("Ending session. Goodbye!")
                    break
                action, fields = parse_line(line)
                if not action:
                    continue
                await send_action(websocket, token, action, fields)
                print(format_reply(json.loads(await websocket.recv())))

    except websockets.exceptions.ConnectionClosedError:
        print("\nConnection closed by the server. Make sure the server is running.")
        print("To start the server, run: python -m hms_scheduler.main")
    except ConnectionRefusedError:
        print("\nCould not connect to the server. Make sure the server is running.")
        print("To start the server, run: python -m hms_scheduler.main")


async def send_action(websocket, token: str, action: str, fields: dict | None = None) -> None:
    await websocket.send(json.dumps({"token": token, "action": action, "fields": fields or {}}))


def main() -> None:
    uri = os.getenv("HMS_WS_URI", "ws://localhost:8000/ws")
    token = sys.argv[1] if len(sys.argv) > 1 else os.getenv("HMS_TOKEN") or input("Session token: ").strip()
    asyncio.run(connect_and_register(uri, token))


if __name__ == "__main__":
    main()
