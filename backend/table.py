"""
The authoritative Truco table.

``TrucoTable`` owns every piece of mutable game state: seats, hands, the round
in progress, scores and the truco wager. Intents come in through its public
methods, outbound events go out through ``dispatcher(connection, event,
payload)``, one call per human connection, with payloads built for that seat
only. Delays (bot thinking time, result display) go through ``scheduler``.

All public methods and all fired timers run under ``self.lock``. Timers are
tagged with the table ``epoch``, which changes on every deal and every reset,
so a timer that outlives its hand does nothing when it fires.
"""
import heapq
import itertools
import logging
import random
import threading
from dataclasses import dataclass

from bots import ACCEPT, FOLD, RAISE, TRUCO_ACTIONS, BotPolicy, pick_personalities
from game_logic import (
    SEATS,
    STAKES,
    WINNING_SCORE,
    PlayedCard,
    check_hand_end,
    deal_hands,
    describe_card,
    next_stake,
    previous_stake,
    resolve_round,
    tally_rounds,
)

logger = logging.getLogger(__name__)

WAITING = 'WAITING'
PLAYING = 'PLAYING'
TRUCO_PENDING = 'TRUCO_PENDING'
HAND_END = 'HAND_END'
GAME_OVER = 'GAME_OVER'

HUMAN = 'human'
BOT = 'bot'
DEFAULT_LAYOUT = (HUMAN, HUMAN, BOT, BOT)

REASON_ROUNDS = 'rounds'
REASON_FOLDED = 'folded'


@dataclass(frozen=True)
class Delays:
    bot: float = 1.5
    round: float = 1.2
    hand: float = 2.0


class QueueScheduler:
    """
    Deterministic scheduler on a virtual clock.

    Nothing runs until ``run_next``/``run_all`` is called; callbacks fire in
    due-time order, ties in scheduling order. Used by the offline simulation
    and by the tests.
    """

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._counter = itertools.count()

    @property
    def pending(self):
        return len(self._queue)

    def schedule(self, delay, callback):
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), callback))

    def run_next(self):
        if not self._queue:
            return False
        due, _, callback = heapq.heappop(self._queue)
        self.now = max(self.now, due)
        callback()
        return True

    def run_all(self, limit=1000):
        ran = 0
        while ran < limit and self.run_next():
            ran += 1
        return ran


class Seat:
    def __init__(self, index, kind):
        self.index = index
        self.team = index % 2
        self.kind = kind
        self.connection = None
        self.hand = []
        self.played_card = None
        self.policy = None
        self.name = f'Jogador {index + 1}' if kind == HUMAN else f'Bot {index + 1}'

    @property
    def is_bot(self):
        return self.kind == BOT

    def __repr__(self):
        return f'Seat({self.index}, {self.kind}, team={self.team}, conn={self.connection})'


class TrucoState:
    def __init__(self):
        self.active = False
        self.called_by_team = None
        self.value = STAKES[0]
        self.waiting_response = False
        self.responding_seat = None

    def as_dict(self):
        return {
            'active': self.active,
            'calledByTeam': self.called_by_team,
            'value': self.value,
            'waitingResponse': self.waiting_response,
            'respondingSeat': self.responding_seat,
        }


def _ok(**extra):
    return dict(success=True, **extra)


def _fail(error):
    return {'success': False, 'error': error}


class TrucoTable:
    def __init__(self, dispatcher, scheduler, delays=None, rng=None, layout=DEFAULT_LAYOUT):
        if len(layout) != SEATS:
            raise ValueError(f'A table has {SEATS} seats, layout has {len(layout)}')
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.delays = delays or Delays()
        self.rng = rng or random.Random()
        self.layout = tuple(layout)
        self.lock = threading.RLock()
        self.epoch = 0
        self._reset_state()

    # ── State ──────────────────────────────────────────────────────────────────

    def _reset_state(self):
        self.seats = [Seat(i, kind) for i, kind in enumerate(self.layout)]
        self.vira = None
        self.current_seat = None
        self.round_leader = 0
        self.round_cards = []
        self.round_results = []
        self.rounds_won = [0, 0]
        self.scores = [0, 0]
        self.truco = TrucoState()
        self.phase = WAITING
        self.hand_number = 0

    def reset(self):
        with self.lock:
            self.epoch += 1
            self._reset_state()
            logger.info("Table reset (epoch %d)", self.epoch)

    @property
    def human_seats(self):
        return [s for s in self.seats if not s.is_bot]

    def seat_of(self, connection):
        with self.lock:
            for seat in self.human_seats:
                if connection is not None and seat.connection == connection:
                    return seat.index
            return None

    def team_name(self, team):
        return ' & '.join(s.name for s in self.seats if s.team == team)

    def _first_seat_of_team(self, team):
        return next(s for s in self.seats if s.team == team)

    def view_for(self, seat_index):
        """Seat-scoped snapshot: own hand in full, other hands as card counts."""
        with self.lock:
            seat = self.seats[seat_index]
            return {
                'phase': self.phase,
                'mySeat': seat.index,
                'myTeam': seat.team,
                'hand': list(seat.hand),
                'vira': self.vira,
                'currentSeat': self.current_seat,
                'handNumber': self.hand_number,
                'roundNumber': len(self.round_results) + 1,
                'roundCards': [c.as_dict() for c in self.round_cards],
                'roundsWon': list(self.rounds_won),
                'scores': list(self.scores),
                'truco': self.truco.as_dict(),
                'seatNames': [s.name for s in self.seats],
                'remainingCardsPerSeat': [len(s.hand) for s in self.seats],
            }

    # ── Event delivery ─────────────────────────────────────────────────────────

    def _send(self, seat, event, payload):
        if seat.is_bot or seat.connection is None:
            return
        self.dispatcher(seat.connection, event, payload)

    def _broadcast(self, event, payload):
        for seat in self.human_seats:
            self._send(seat, event, payload)

    def _schedule(self, delay, action, *args):
        epoch = self.epoch

        def fire():
            with self.lock:
                if epoch != self.epoch:
                    logger.debug("Dropping stale timer %s (epoch %d, now %d)",
                                 action.__name__, epoch, self.epoch)
                    return
                action(*args)

        self.scheduler.schedule(delay, fire)

    # ── Seating ────────────────────────────────────────────────────────────────

    def join(self, connection):
        with self.lock:
            existing = self.seat_of(connection)
            if existing is not None:
                seat = self.seats[existing]
                return _ok(seat=seat.index, team=seat.team)

            free = next((s for s in self.human_seats if s.connection is None), None)
            if free is None or self.phase != WAITING:
                logger.info("Rejecting %s: table full", connection)
                self.dispatcher(connection, 'table_full', {'message': 'Mesa cheia. Tente mais tarde.'})
                return _fail('table_full')

            free.connection = connection
            logger.info("Seat %d assigned to %s", free.index, connection)
            self._send(free, 'waiting', {
                'position': free.index,
                'teamId': free.team,
                'message': f'Você é o Jogador {free.index + 1}. Aguardando adversário...',
            })

            if all(s.connection is not None for s in self.human_seats):
                self.start_game()
            return _ok(seat=free.index, team=free.team)

    def disconnect(self, connection):
        with self.lock:
            index = self.seat_of(connection)
            if index is None:
                return _fail('not_seated')
            seat = self.seats[index]
            seat.connection = None
            logger.info("Seat %d (%s) disconnected", index, connection)
            self._broadcast('opponent_disconnected', {
                'seat': index,
                'message': 'Adversário desconectado. Entre novamente para uma nova partida.',
            })
            if self.phase != WAITING:
                self.reset()
            return _ok(seat=index)

    def forfeit(self, seat_index):
        with self.lock:
            seat = self.seats[seat_index]
            if seat.is_bot or seat.connection is None:
                return _fail('Only a seated player can forfeit.')
            if self.phase in (PLAYING, TRUCO_PENDING):
                winner = 1 - seat.team
                points = self.truco.value
                self.scores[winner] += points
                logger.info("Seat %d forfeits; team %d gets %s", seat_index, winner, points)
                self._broadcast('hand_end', {
                    'winnerTeam': winner,
                    'isDraw': False,
                    'points': points,
                    'scores': list(self.scores),
                    'winnerName': self.team_name(winner),
                    'reason': REASON_FOLDED,
                    'foldedByTeam': seat.team,
                })
            for other in self.human_seats:
                if other is not seat:
                    self._send(other, 'opponent_disconnected', {
                        'seat': seat_index,
                        'message': 'Adversário desistiu. Entre novamente para uma nova partida.',
                    })
            self.reset()
            return _ok()

    # ── Game / hand lifecycle ──────────────────────────────────────────────────

    def start_game(self):
        with self.lock:
            self.scores = [0, 0]
            self.hand_number = 0
            bots = [s for s in self.seats if s.is_bot]
            for seat, personality in zip(bots, pick_personalities(self.rng, len(bots))):
                seat.policy = BotPolicy(personality, rng=self.rng)
                seat.name = personality.display_name
            logger.info("Game started. Bots: %s", [(s.index, s.policy) for s in bots])
            self._start_hand()

    def _start_hand(self):
        self.epoch += 1
        self.hand_number += 1
        deal = deal_hands(self.rng)
        self.vira = deal.vira
        for seat, hand in zip(self.seats, deal.hands):
            seat.hand = list(hand)
            seat.played_card = None
        self.round_cards = []
        self.round_results = []
        self.rounds_won = [0, 0]
        self.truco = TrucoState()
        self.round_leader = 0
        self.current_seat = 0
        self.phase = PLAYING
        logger.info("Hand %d dealt. Vira: %s", self.hand_number, self.vira)

        seat_names = [s.name for s in self.seats]
        for seat in self.human_seats:
            self._send(seat, 'game_start', {
                'hand': list(seat.hand),
                'vira': self.vira,
                'myTeam': seat.team,
                'mySeat': seat.index,
                'myTurn': self.current_seat == seat.index,
                'currentSeat': self.current_seat,
                'scores': list(self.scores),
                'seatNames': seat_names,
                'handNumber': self.hand_number,
                'trucoValue': self.truco.value,
            })
        self._schedule_bot_if_needed()

    def _end_hand(self, winner_team, is_draw, points, reason=REASON_ROUNDS, folded_by_team=None):
        if is_draw:
            self.scores[0] += points
            self.scores[1] += points
        else:
            self.scores[winner_team] += points
        self.current_seat = None
        logger.info("Hand %d ended: winner=%s draw=%s points=%s scores=%s",
                    self.hand_number, winner_team, is_draw, points, self.scores)

        payload = {
            'winnerTeam': winner_team,
            'isDraw': is_draw,
            'points': points,
            'scores': list(self.scores),
            'winnerName': None if is_draw else self.team_name(winner_team),
            'reason': reason,
        }
        if folded_by_team is not None:
            payload['foldedByTeam'] = folded_by_team
        self._broadcast('hand_end', payload)

        if max(self.scores) >= WINNING_SCORE:
            winner = 0 if self.scores[0] >= WINNING_SCORE else 1
            self.phase = GAME_OVER
            logger.info("Game over. Winner team %d, scores %s", winner, self.scores)
            self._broadcast('game_over', {'winnerTeam': winner, 'scores': list(self.scores)})
            return

        self.phase = HAND_END
        self._schedule(self.delays.hand, self._start_hand)

    def _resolve_hand(self, hand_result):
        if hand_result.is_draw:
            self._end_hand(None, True, 0.5)
        else:
            self._end_hand(hand_result.winner_team, False, self.truco.value)

    # ── Card play ──────────────────────────────────────────────────────────────

    def play_card(self, seat_index, card):
        with self.lock:
            if self.phase != PLAYING:
                return _fail('Not in card playing phase.')
            if self.current_seat != seat_index:
                return _fail('Não é sua vez.')
            seat = self.seats[seat_index]
            if card not in seat.hand:
                return _fail('Carta inválida.')
            self._play_card(seat, card)
            return _ok()

    def _play_card(self, seat, card):
        seat.hand.remove(card)
        seat.played_card = card
        self.round_cards.append(PlayedCard(seat=seat.index, card=card, team=seat.team))
        logger.debug("Seat %d (team %d) played %s", seat.index, seat.team, describe_card(card))

        self._broadcast('card_played', {
            'seatIndex': seat.index,
            'card': card,
            'teamId': seat.team,
            'seatName': seat.name,
            'remainingCardsPerSeat': [len(s.hand) for s in self.seats],
        })

        if len(self.round_cards) == SEATS:
            self._finish_round()
        else:
            self.current_seat = (self.current_seat + 1) % SEATS
            self._broadcast('turn_change', {'currentSeat': self.current_seat})
            self._schedule_bot_if_needed()

    def _finish_round(self):
        result = resolve_round(self.round_cards)
        self.round_results.append(result)
        self.rounds_won = tally_rounds(self.round_results)
        round_number = len(self.round_results)
        # nobody holds the turn while the result is on display
        self.current_seat = None
        logger.info("Round %d: %s, rounds won %s", round_number, result, self.rounds_won)

        self._broadcast('round_end', {
            'roundNumber': round_number,
            'result': result.as_dict(),
            'winnerSeat': result.winner_seat,
            'winnerName': None if result.is_draw else self.seats[result.winner_seat].name,
            'roundsWon': list(self.rounds_won),
            'scores': list(self.scores),
            'roundCards': [c.as_dict() for c in self.round_cards],
        })

        hand_result = check_hand_end(self.rounds_won, self.round_results, round_number)
        if hand_result.ended:
            self.phase = HAND_END
            self._schedule(self.delays.round, self._resolve_hand, hand_result)
        else:
            self._schedule(self.delays.round, self._start_next_round, result)

    def _start_next_round(self, last_result):
        for seat in self.seats:
            seat.played_card = None
        self.round_cards = []
        if not last_result.is_draw:
            # the winning team leads from its lowest seat
            self.round_leader = self._first_seat_of_team(last_result.winner_team).index
        self.current_seat = self.round_leader

        self._broadcast('next_round', {
            'currentSeat': self.current_seat,
            'roundNumber': len(self.round_results) + 1,
        })
        self._schedule_bot_if_needed()

    # ── Bots ───────────────────────────────────────────────────────────────────

    def _schedule_bot_if_needed(self):
        if self.phase != PLAYING or self.current_seat is None:
            return
        seat = self.seats[self.current_seat]
        if seat.is_bot:
            self._schedule(self.delays.bot, self._bot_turn, seat.index)

    def _bot_turn(self, seat_index):
        if self.phase != PLAYING or self.current_seat != seat_index:
            return
        seat = self.seats[seat_index]
        if not seat.hand:
            return

        can_raise = next_stake(self.truco.value) is not None and self.truco.called_by_team != seat.team
        if can_raise and seat.policy.should_call_truco(seat.hand, self.scores, seat.team):
            if self.call_truco(seat_index)['success']:
                return

        card = seat.policy.choose_card(seat.hand, self.round_cards, seat.team, self.rounds_won)
        self._play_card(seat, card)

    def _bot_respond(self, seat_index):
        if self.phase != TRUCO_PENDING or self.truco.responding_seat != seat_index:
            return
        seat = self.seats[seat_index]
        action = seat.policy.respond_to_truco(seat.hand, self.truco.value)
        self.respond_truco(seat_index, action)

    # ── Truco ──────────────────────────────────────────────────────────────────

    def call_truco(self, seat_index):
        with self.lock:
            if self.phase != PLAYING:
                return _fail('Truco can only be called during play.')
            if self.current_seat is None:
                return _fail('Wait for the next round.')
            seat = self.seats[seat_index]
            if self.truco.waiting_response and self.truco.called_by_team == seat.team:
                return _fail('Your team is already waiting for an answer.')
            new_value = next_stake(self.truco.value)
            if new_value is None:
                return _fail('Stake is already at the maximum.')

            self._raise_stake(seat, new_value)
            return _ok(value=new_value)

    def _raise_stake(self, seat, new_value):
        responder = self._first_seat_of_team(1 - seat.team)
        self.phase = TRUCO_PENDING
        self.truco.active = True
        self.truco.called_by_team = seat.team
        self.truco.value = new_value
        self.truco.waiting_response = True
        self.truco.responding_seat = responder.index
        logger.info("Seat %d calls truco for %d; seat %d answers", seat.index, new_value, responder.index)

        self._broadcast('truco_called', {
            'callerSeat': seat.index,
            'callerTeam': seat.team,
            'callerName': seat.name,
            'newValue': new_value,
            'respondingSeat': responder.index,
        })
        if responder.is_bot:
            self._schedule(self.delays.bot, self._bot_respond, responder.index)

    def respond_truco(self, seat_index, action):
        with self.lock:
            if self.phase != TRUCO_PENDING:
                return _fail('No truco call to answer.')
            if action not in TRUCO_ACTIONS:
                return _fail(f'Unknown truco response: {action!r}')
            seat = self.seats[seat_index]
            responder = self.seats[self.truco.responding_seat]
            if seat.team != responder.team:
                return _fail('Not your call to answer.')

            if action == RAISE and next_stake(self.truco.value) is None:
                action = ACCEPT

            self.truco.waiting_response = False
            logger.info("Seat %d answers truco (%d): %s", seat_index, self.truco.value, action)
            self._broadcast('truco_response', {
                'responderSeat': seat_index,
                'action': action,
                'value': self.truco.value,
            })

            if action == FOLD:
                points = previous_stake(self.truco.value)
                self._end_hand(self.truco.called_by_team, False, points,
                               reason=REASON_FOLDED, folded_by_team=seat.team)
            elif action == RAISE:
                self._raise_stake(seat, next_stake(self.truco.value))
            else:
                self.truco.responding_seat = None
                self.phase = PLAYING
                self._schedule_bot_if_needed()
            return _ok(action=action, value=self.truco.value)
