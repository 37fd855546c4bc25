# backend/app.py
import functools
import logging
import os

from flask import Flask, request
from flask_socketio import SocketIO, emit

from table import Delays, TrucoTable

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("TRUCO_SECRET_KEY", "dev_secret_key_truco")
app.config["PORT"] = int(os.environ.get("PORT", 5050))
app.config["CORS_ALLOWED_ORIGINS"] = os.environ.get("CORS_ALLOWED_ORIGINS", "*")
app.config["TRUCO_BOT_DELAY"] = float(os.environ.get("TRUCO_BOT_DELAY", 1.5))
app.config["TRUCO_ROUND_DELAY"] = float(os.environ.get("TRUCO_ROUND_DELAY", 1.2))
app.config["TRUCO_HAND_DELAY"] = float(os.environ.get("TRUCO_HAND_DELAY", 2.0))
socketio = SocketIO(app, cors_allowed_origins=app.config["CORS_ALLOWED_ORIGINS"])


class SocketIOScheduler:
    """Runs each delayed callback in a Socket.IO background task."""

    def __init__(self, sio):
        self.sio = sio

    def schedule(self, delay, callback):
        self.sio.start_background_task(self._run, delay, callback)

    def _run(self, delay, callback):
        self.sio.sleep(delay)
        try:
            callback()
        except Exception:
            logger.exception("Scheduled table action failed")


def dispatch(connection, event, payload):
    socketio.emit(event, payload, to=connection)


def configured_delays():
    return Delays(
        bot=app.config["TRUCO_BOT_DELAY"],
        round=app.config["TRUCO_ROUND_DELAY"],
        hand=app.config["TRUCO_HAND_DELAY"],
    )


# ── The table (one per process) ────────────────────────────────────────────────
table = None


def build_table(scheduler=None, **kwargs):
    """(Re)create the process-wide table; tests swap in their own scheduler."""
    global table
    table = TrucoTable(
        dispatcher=dispatch,
        scheduler=scheduler or SocketIOScheduler(socketio),
        delays=kwargs.pop("delays", None) or configured_delays(),
        **kwargs,
    )
    return table


build_table()


def _reply_error(result):
    emit("action_error", {"msg": result["error"]}, to=request.sid)


def _seated(handler):
    """Run ``handler(seat_index, data)`` for the caller's seat under the table lock."""
    @functools.wraps(handler)
    def wrapper(data=None):
        data = data or {}
        with table.lock:
            seat = table.seat_of(request.sid)
            if seat is None:
                emit("action_error", {"msg": "You are not seated at the table."}, to=request.sid)
                return
            result = handler(seat, data)
        if not result["success"]:
            _reply_error(result)
    return wrapper


# ── Health-check route ─────────────────────────────────────────────────────────
@app.route("/")
def status():
    return {"status": "Truco backend alive", "phase": table.phase}


# ── Socket handlers ────────────────────────────────────────────────────────────
@socketio.on("connect")
def on_connect(auth=None):
    logger.info("Client connected: %s", request.sid)
    table.join(request.sid)


@socketio.on("join")
def on_join(data=None):
    """Take a seat again after the table was reset."""
    table.join(request.sid)


@socketio.on("play_card")
@_seated
def on_play_card(seat, data):
    return table.play_card(seat, data.get("card"))


@socketio.on("call_truco")
@_seated
def on_call_truco(seat, data):
    return table.call_truco(seat)


@socketio.on("respond_truco")
@_seated
def on_respond_truco(seat, data):
    return table.respond_truco(seat, data.get("action"))


@socketio.on("forfeit")
@_seated
def on_forfeit(seat, data):
    return table.forfeit(seat)


@socketio.on("request_state")
@_seated
def on_request_state(seat, data):
    emit("state", table.view_for(seat), to=request.sid)
    return {"success": True}


@socketio.on("ping")
def on_ping(data=None):
    # keep-alive for hosts that drop idle sockets
    emit("pong", {}, to=request.sid)


@socketio.on("disconnect")
def on_disconnect(reason=None):
    logger.info("Client disconnected: %s (%s)", request.sid, reason)
    table.disconnect(request.sid)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info("Starting Truco backend on port %s", app.config["PORT"])
    socketio.run(app, host="0.0.0.0", port=app.config["PORT"], debug=False,
                 use_reloader=False, allow_unsafe_werkzeug=True)


# ── Launch locally or on Render ────────────────────────────────────────────────
if __name__ == "__main__":
    main()
