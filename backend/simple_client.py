import logging
import sys

import socketio

from bots import BotPolicy, Personality
from game_logic import MAX_STAKE, STAKES, PlayedCard

logger = logging.getLogger(__name__)

SERVER_URL = "http://localhost:5050"


class AutoPlayer:
    """
    Plays one human seat from the events that seat receives.

    ``send(event, data)`` is how intents leave: a socket emit over the network,
    or a queue when the table runs in-process.
    """

    def __init__(self, send, personality=Personality.TECHNICAL, rng=None):
        self.send = send
        self.policy = BotPolicy(personality, rng=rng)
        self.seat = None
        self.team = None
        self._reset_hand()
        self.scores = [0, 0]
        self.game_over = False

    def _reset_hand(self):
        self.hand = []
        self.current_seat = None
        self.round_cards = []
        self.rounds_won = [0, 0]
        self.truco_value = STAKES[0]
        self.truco_caller_team = None
        self.truco_pending = False
        self._calling = False

    @property
    def my_turn(self):
        return self.seat is not None and self.current_seat == self.seat and not self.truco_pending

    def handle(self, event, payload):
        handler = getattr(self, f"on_{event}", None)
        if handler is not None:
            handler(payload or {})

    def on_waiting(self, data):
        self.seat, self.team = data["position"], data["teamId"]

    def on_game_start(self, data):
        self._reset_hand()
        self.seat, self.team = data["mySeat"], data["myTeam"]
        self.hand = list(data["hand"])
        self.scores = list(data["scores"])
        self.current_seat = data["currentSeat"]
        self.game_over = False
        self._act()

    def on_card_played(self, data):
        self.round_cards.append(PlayedCard(seat=data["seatIndex"], card=data["card"], team=data["teamId"]))
        if data["seatIndex"] == self.seat and data["card"] in self.hand:
            self.hand.remove(data["card"])

    def on_turn_change(self, data):
        self.current_seat = data["currentSeat"]
        self._act()

    def on_round_end(self, data):
        self.current_seat = None
        self.rounds_won = list(data["roundsWon"])

    def on_next_round(self, data):
        self.round_cards = []
        self.current_seat = data["currentSeat"]
        self._act()

    def on_truco_called(self, data):
        self._calling = False
        self.truco_pending = True
        self.truco_value = data["newValue"]
        self.truco_caller_team = data["callerTeam"]
        if data["callerTeam"] != self.team and data["respondingSeat"] % 2 == self.team:
            action = self.policy.respond_to_truco(self.hand, self.truco_value)
            self.send("respond_truco", {"action": action})

    def on_truco_response(self, data):
        self.truco_value = data["value"]
        if data["action"] == "accept":
            self.truco_pending = False
            self._act()

    def on_hand_end(self, data):
        self.scores = list(data["scores"])
        self._reset_hand()

    def on_game_over(self, data):
        self.scores = list(data["scores"])
        self.game_over = True
        logger.info("Seat %s: game over, winner team %s, scores %s", self.seat, data["winnerTeam"], self.scores)

    def on_action_error(self, data):
        logger.warning("Seat %s: rejected (%s)", self.seat, data.get("msg"))
        if self._calling:
            # the call was refused, just play
            self._calling = self.truco_pending = False
            if self.my_turn and self.hand:
                self._play()

    def on_opponent_disconnected(self, data):
        self.seat = self.team = None
        self._reset_hand()
        self.send("join", {})

    def _act(self):
        if not self.my_turn or not self.hand:
            return
        can_raise = self.truco_value < MAX_STAKE and self.truco_caller_team != self.team
        if can_raise and self.policy.should_call_truco(self.hand, self.scores, self.team):
            self.truco_pending = self._calling = True
            self.send("call_truco", {})
            return
        self._play()

    def _play(self):
        card = self.policy.choose_card(self.hand, self.round_cards, self.team, self.rounds_won)
        self.send("play_card", {"card": card})


EVENTS = (
    "waiting", "table_full", "game_start", "turn_change", "card_played", "round_end",
    "next_round", "hand_end", "game_over", "truco_called", "truco_response",
    "opponent_disconnected", "action_error",
)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    url = sys.argv[1] if len(sys.argv) > 1 else SERVER_URL
    personality = sys.argv[2] if len(sys.argv) > 2 else Personality.TECHNICAL.value

    sio = socketio.Client()
    player = AutoPlayer(lambda event, data: sio.emit(event, data), personality)

    def make_handler(event):
        def handler(data=None):
            logger.info("[seat %s] %s -> %s", player.seat, event, data)
            player.handle(event, data)
            if event in ("game_over", "table_full"):
                sio.disconnect()
        return handler

    for event in EVENTS:
        sio.on(event, make_handler(event))

    sio.connect(url)
    sio.wait()


if __name__ == "__main__":
    main()
