"""Socket.IO transport, driven through Flask-SocketIO's test client."""
import random

import pytest

import app as server
from table import PLAYING, WAITING, QueueScheduler


@pytest.fixture
def scheduler():
    sched = QueueScheduler()
    server.build_table(scheduler=sched, rng=random.Random(11))
    return sched


@pytest.fixture
def connect(scheduler):
    clients = []

    def _connect():
        client = server.socketio.test_client(server.app)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()


def received(client, name):
    return [m["args"][0] for m in client.get_received() if m["name"] == name]


def test_health_check(scheduler):
    response = server.app.test_client().get("/")
    assert response.status_code == 200
    assert response.get_json() == {"status": "Truco backend alive", "phase": WAITING}


def test_two_connections_start_a_game(connect):
    c0 = connect()
    assert received(c0, "waiting")[0] == {
        "position": 0,
        "teamId": 0,
        "message": "Você é o Jogador 1. Aguardando adversário...",
    }
    c1 = connect()
    assert server.table.phase == PLAYING

    start0 = received(c0, "game_start")[0]
    start1 = received(c1, "game_start")[0]
    assert start0["mySeat"] == 0 and start1["mySeat"] == 1
    assert start0["vira"] == start1["vira"]
    assert not set(start0["hand"]) & set(start1["hand"])


def test_third_connection_is_turned_away(connect):
    connect()
    connect()
    c2 = connect()
    assert [m["name"] for m in c2.get_received()] == ["table_full"]


def test_play_card_and_errors(connect):
    c0, c1 = connect(), connect()
    hand0 = received(c0, "game_start")[0]["hand"]
    received(c1, "game_start")

    c1.emit("play_card", {"card": hand0[0]})
    assert received(c1, "action_error") == [{"msg": "Não é sua vez."}]

    c0.emit("play_card", {"card": hand0[0]})
    played = received(c1, "card_played")
    assert played[0]["seatIndex"] == 0 and played[0]["card"] == hand0[0]
    assert server.table.current_seat == 1


def test_truco_over_the_wire(connect):
    c0, c1 = connect(), connect()
    c0.get_received()
    c1.get_received()

    c0.emit("call_truco")
    assert received(c1, "truco_called")[0]["newValue"] == 3
    c1.emit("respond_truco", {"action": "accept"})
    assert received(c0, "truco_response")[0]["action"] == "accept"
    assert server.table.truco.value == 3


def test_request_state_is_private(connect):
    c0, c1 = connect(), connect()
    c1.get_received()
    c1.emit("request_state")
    state = received(c1, "state")[0]
    assert state["mySeat"] == 1
    assert state["hand"] == server.table.seats[1].hand
    assert state["remainingCardsPerSeat"] == [3, 3, 3, 3]


def test_disconnect_notifies_and_resets(connect, scheduler):
    c0, c1 = connect(), connect()
    c0.get_received()
    c1.disconnect()
    assert [m["name"] for m in c0.get_received()] == ["opponent_disconnected"]
    assert server.table.phase == WAITING

    c0.emit("join")
    assert received(c0, "waiting")[0]["position"] == 0


def test_forfeit_over_the_wire(connect):
    c0, c1 = connect(), connect()
    c0.get_received()
    c1.get_received()
    c1.emit("forfeit")
    hand_end = received(c0, "hand_end")
    assert hand_end[0]["winnerTeam"] == 0 and hand_end[0]["foldedByTeam"] == 1
    assert server.table.phase == WAITING

    c1.emit("play_card", {"card": "Q_OUROS"})
    assert received(c1, "action_error") == [{"msg": "You are not seated at the table."}]


def test_ping(connect):
    c0 = connect()
    c0.get_received()
    c0.emit("ping")
    assert [m["name"] for m in c0.get_received()] == ["pong"]
