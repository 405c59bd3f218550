"""
WebSocket endpoints for live editing sessions.

    /ws/sessions/{session_id}/editor    host UI: commands in, state/scroll/selection/notice events out
    /ws/sessions/{session_id}/preview   preview pane: envelope protocol (preview-ready, update-state, ...)

Both sockets of a session talk to the same server-side HostSession. The
preview socket is a Channel; the editor socket is plain JSON commands.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.services.sessions import LiveSession, session_manager
from backend.services.ws_channel import Outbox, WebSocketChannel
from engine.core.styles import UnknownElementKey, parse_declarations

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# Policy violation: the session id is not acceptable
_CLOSE_POLICY_VIOLATION = 1008

router = APIRouter(tags=["websocket"])


class CommandError(ValueError):
    """An editor command is missing a field or has one of the wrong type."""
    pass


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _string(msg: dict[str, Any], field: str) -> str:
    value = msg.get(field)
    if not isinstance(value, str):
        raise CommandError(f"{field} must be a string")
    return value


def _number(msg: dict[str, Any], field: str) -> float:
    value = msg.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CommandError(f"{field} must be a number")
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise CommandError(f"{field} must be a finite number")
    return number


def _project_id(msg: dict[str, Any]) -> int:
    value = msg.get("id")
    if isinstance(value, bool) or not isinstance(value, int):
        raise CommandError("id must be an integer")
    return value


def _properties(value: Any) -> dict[str, Any]:
    """A property set from the wire: string names, string or number values."""
    if not isinstance(value, dict):
        raise CommandError("properties must be an object")
    for name, v in value.items():
        if isinstance(v, bool) or not isinstance(v, (str, int, float)):
            raise CommandError(f"{name} must be a string or a number")
        if isinstance(v, float) and not math.isfinite(v):
            raise CommandError(f"{name} must be a finite number")
    return value


# ---------------------------------------------------------------------------
# Editor commands
# ---------------------------------------------------------------------------


async def _handle_editor_command(session: LiveSession, msg: dict[str, Any], outbox: Outbox) -> None:
    """
    Apply one editor command to the session's host.

    Raises CommandError / UnknownElementKey for bad input; the caller turns
    those into a notice for the sender. Results reach every editor through
    the host's change, selection and notice callbacks, except project.list
    which answers the sender only.
    """
    host = session.host
    msg_type = msg.get("type")

    # ── edits ────────────────────────────────────────────────────────
    if msg_type == "edit.markdown":
        host.set_markdown(_string(msg, "markdown"))

    elif msg_type == "edit.style":
        host.set_style(_string(msg, "key"), _properties(msg.get("properties")))

    elif msg_type == "edit.styles":
        styles = msg.get("styles")
        if not isinstance(styles, dict):
            raise CommandError("styles must be an object")
        host.set_styles({key: _properties(props) for key, props in styles.items()})

    elif msg_type == "edit.css":
        # Declaration text from the style panel, for the selected element unless a key is given
        key = msg.get("key") or host.document.selected_element
        host.set_style(key, parse_declarations(_string(msg, "css")))

    elif msg_type == "edit.select":
        host.select_element(_string(msg, "key"))

    elif msg_type == "edit.inspect":
        host.set_inspecting(bool(msg.get("enabled")))

    elif msg_type == "edit.relative_mode":
        width = msg.get("referenceWidth")
        if width is not None:
            width = int(_number(msg, "referenceWidth"))
        host.set_relative_mode(bool(msg.get("enabled")), width)

    # ── scrolling ────────────────────────────────────────────────────
    elif msg_type == "editor.scroll":
        session.editor_surface.report(
            _number(msg, "scrollTop"),
            _number(msg, "scrollHeight"),
            _number(msg, "clientHeight"),
        )
        host.editor_scrolled()

    # ── projects ─────────────────────────────────────────────────────
    elif msg_type == "project.save":
        name = msg.get("name")
        if name is not None and (not isinstance(name, str) or not name.strip()):
            raise CommandError("name must be a non-empty string")
        await host.save_project(name.strip() if name else None)

    elif msg_type == "project.open":
        await host.open_project(_project_id(msg))

    elif msg_type == "project.new":
        host.new_project()

    elif msg_type == "project.delete":
        await host.delete_project(_project_id(msg))

    elif msg_type == "project.list":
        projects = await host.list_projects()
        outbox.send_json(
            {
                "type": "projects",
                "projects": [
                    {"id": p.id, "name": p.name, "updatedAt": p.updated_at.isoformat()} for p in projects
                ],
            }
        )

    else:
        raise CommandError(f"Unknown command: {msg_type}")


def _valid_session_id(session_id: str) -> bool:
    return bool(_SESSION_ID_RE.match(session_id))


@router.websocket("/ws/sessions/{session_id}/editor")
async def editor_websocket(websocket: WebSocket, session_id: str) -> None:
    """
    Host UI socket.

    Protocol:
      Client → Server:  {"type": "edit.markdown", "markdown": "..."}
                        {"type": "edit.style", "key": "h1", "properties": {...}}
                        {"type": "editor.scroll", "scrollTop": n, "scrollHeight": n, "clientHeight": n}
                        {"type": "project.save", "name": "..."} ...
      Server → Client:  state | element.selected | editor.scroll_to | notice | projects

    The current state and selection are sent on connect.
    """
    if not _valid_session_id(session_id):
        await websocket.close(code=_CLOSE_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("ws: editor connected session=%s", session_id)

    session = session_manager.get(session_id)
    outbox = Outbox(websocket, name=f"editor:{session_id}")
    session.add_editor(outbox)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from editor: %r", raw[:200])
                continue
            if not isinstance(msg, dict):
                logger.warning("ws: editor message is not an object: %r", raw[:200])
                continue

            try:
                await _handle_editor_command(session, msg, outbox)
            except (CommandError, UnknownElementKey, TypeError) as e:
                logger.info("ws: editor command %s rejected: %s", msg.get("type"), e)
                outbox.send_json({"type": "notice", "level": "error", "message": str(e)})
    except WebSocketDisconnect:
        logger.info("ws: editor disconnected session=%s", session_id)
    finally:
        session.remove_editor(outbox)
        await outbox.close()
        await session_manager.release(session_id)


@router.websocket("/ws/sessions/{session_id}/preview")
async def preview_websocket(websocket: WebSocket, session_id: str) -> None:
    """
    Preview pane socket. Speaks the envelope protocol:

      Client → Server:  preview-ready | preview-scroll | element-selected
      Server → Client:  update-state | editor-scroll

    Nothing is sent until the preview announces preview-ready. A second
    preview for the same session replaces the first.
    """
    if not _valid_session_id(session_id):
        await websocket.close(code=_CLOSE_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("ws: preview connected session=%s", session_id)

    session = session_manager.get(session_id)
    channel = WebSocketChannel(websocket, name=f"preview:{session_id}")
    await session.attach_preview(channel)

    try:
        while True:
            channel.feed(await websocket.receive_text())
    except WebSocketDisconnect:
        logger.info("ws: preview disconnected session=%s", session_id)
    finally:
        session.detach_preview(channel)
        await channel.close()
        await session_manager.release(session_id)
