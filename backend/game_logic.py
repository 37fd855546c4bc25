import logging
import random
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

SUITS = ['OUROS', 'ESPADAS', 'COPAS', 'PAUS']
RANKS = ['4', '5', '6', '7', 'Q', 'J', 'K', 'A', '2', '3']
RANK_STRENGTHS = {r: i + 1 for i, r in enumerate(RANKS)}

# Only these ranks are dealt as plain cards; 4-7 survive only as manilhas.
DECK_RANKS = ['Q', 'J', 'K', 'A', '2', '3']
EXTRA_MANILHAS = ['4_PAUS', '7_COPAS', '7_OUROS']

MANILHAS = {
    '4_PAUS': 14,
    '7_COPAS': 13,
    'A_ESPADAS': 12,
    '7_OUROS': 11,
}
MANILHA_NAMES = {
    '4_PAUS': 'Zap',
    '7_COPAS': 'Copas',
    'A_ESPADAS': 'Espadilha',
    '7_OUROS': 'Pica-fumo',
}
MANILHA_MIN_STRENGTH = min(MANILHAS.values())

STAKES = (1, 3, 6, 9, 12)
MAX_STAKE = STAKES[-1]
WINNING_SCORE = 12
CARDS_PER_HAND = 3
SEATS = 4


def parse_card(card):
    """Split ``"K_OUROS"`` into ``("K", "OUROS")``; raises ValueError on junk."""
    rank, sep, suit = str(card).partition('_')
    if not sep or rank not in RANKS or suit not in SUITS:
        raise ValueError(f"Invalid card identifier: {card!r}")
    return rank, suit


def card_strength(card):
    if card in MANILHAS:
        return MANILHAS[card]
    rank = str(card).split('_')[0]
    return RANK_STRENGTHS.get(rank, 0)


def is_manilha(card):
    return card in MANILHAS


def compare_cards(card_a, card_b):
    """1 if ``card_a`` wins, -1 if ``card_b`` wins, 0 on a tie."""
    sa, sb = card_strength(card_a), card_strength(card_b)
    if sa > sb:
        return 1
    if sa < sb:
        return -1
    return 0


def describe_card(card):
    if card in MANILHA_NAMES:
        return f'{card} ({MANILHA_NAMES[card]})'
    return card


# ── Dealer ─────────────────────────────────────────────────────────────────────

def build_deck():
    deck = [f'{r}_{s}' for s in SUITS for r in DECK_RANKS]
    deck.extend(EXTRA_MANILHAS)  # A_ESPADAS is already a plain Ace
    return deck


def shuffle_deck(deck, rng=None):
    (rng or random).shuffle(deck)
    return deck


@dataclass(frozen=True)
class Deal:
    hands: Tuple[Tuple[str, ...], ...]
    vira: str


def deal_hands(rng=None):
    deck = shuffle_deck(build_deck(), rng)
    hands = tuple(
        tuple(deck[i * CARDS_PER_HAND:(i + 1) * CARDS_PER_HAND]) for i in range(SEATS)
    )
    vira = deck[SEATS * CARDS_PER_HAND]
    logger.debug("Dealt %s, vira %s", hands, vira)
    return Deal(hands=hands, vira=vira)


# ── Round / hand resolution ────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlayedCard:
    seat: int
    card: str
    team: int

    def as_dict(self):
        return {'seatIndex': self.seat, 'card': self.card, 'teamId': self.team}


@dataclass(frozen=True)
class RoundResult:
    winner_team: Optional[int]
    is_draw: bool
    winner_seat: Optional[int] = None

    def as_dict(self):
        return {'winnerTeam': self.winner_team, 'isDraw': self.is_draw}


@dataclass(frozen=True)
class HandResult:
    ended: bool
    winner_team: Optional[int] = None
    is_draw: bool = False

    def as_dict(self):
        return {'ended': self.ended, 'winnerTeam': self.winner_team, 'isDraw': self.is_draw}


HAND_CONTINUES = HandResult(ended=False)


def resolve_round(played_cards):
    """
    Decide a round from the four cards played, scanning in play order.

    A strictly stronger card takes the lead. An equal card from the other team
    turns the round into a draw; an equal card from the leader's own team
    changes nothing. Only the last tie seen counts.
    """
    if len(played_cards) != SEATS:
        raise ValueError(f"A round needs {SEATS} played cards, got {len(played_cards)}")

    best = None
    winner_team = None
    winner_seat = None
    is_draw = False
    for entry in played_cards:
        strength = card_strength(entry.card)
        if best is None or strength > best:
            best = strength
            winner_team, winner_seat = entry.team, entry.seat
            is_draw = False
        elif strength == best and entry.team != winner_team:
            is_draw = True
            winner_team, winner_seat = None, None

    return RoundResult(winner_team=winner_team, is_draw=is_draw, winner_seat=winner_seat)


def tally_rounds(round_results):
    won = [0, 0]
    for result in round_results:
        if not result.is_draw and result.winner_team is not None:
            won[result.winner_team] += 1
    return won


def check_hand_end(rounds_won, round_results, rounds_played):
    """
    Truco Paulista hand rules.

    - two round wins end the hand at once;
    - a drawn first round makes the second round decisive;
    - after three rounds: all drawn is a draw, one win each goes to the winner
      of the first decided round, anything else to the team with more wins.
    """
    w0, w1 = rounds_won
    if rounds_played > 3 or w0 + w1 > rounds_played:
        raise ValueError(f"Inconsistent round tally {rounds_won} after {rounds_played} rounds")

    if w0 >= 2:
        return HandResult(ended=True, winner_team=0)
    if w1 >= 2:
        return HandResult(ended=True, winner_team=1)

    if rounds_played == 3:
        if w0 == 0 and w1 == 0:
            return HandResult(ended=True, is_draw=True)
        if w0 == 1 and w1 == 1:
            for result in round_results:
                if not result.is_draw:
                    return HandResult(ended=True, winner_team=result.winner_team)
            return HandResult(ended=True, is_draw=True)
        return HandResult(ended=True, winner_team=0 if w0 > w1 else 1)

    if rounds_played == 2 and round_results[0].is_draw and not round_results[1].is_draw:
        return HandResult(ended=True, winner_team=round_results[1].winner_team)

    return HAND_CONTINUES


# ── Stakes ─────────────────────────────────────────────────────────────────────

def next_stake(value):
    """Next truco value after ``value``, or None at the top of the ladder."""
    if value not in STAKES or value == MAX_STAKE:
        return None
    return STAKES[STAKES.index(value) + 1]


def previous_stake(value):
    if value not in STAKES or value == STAKES[0]:
        return STAKES[0]
    return STAKES[STAKES.index(value) - 1]


def hand_strength(hand):
    """Return ``[total strength, manilha count]`` for a hand."""
    strengths = [card_strength(c) for c in hand]
    return [sum(strengths), sum(1 for s in strengths if s >= MANILHA_MIN_STRENGTH)]
