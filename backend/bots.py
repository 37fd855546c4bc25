"""
Bot personalities for the two computer seats.

Each personality is a fixed set of three decisions (which card to play,
whether to call truco, how to answer a truco call). ``BotPolicy`` routes the
calls through per-personality tables; the set of personalities is closed.
"""
import random
from enum import Enum

from game_logic import (
    MAX_STAKE,
    card_strength,
    hand_strength,
    is_manilha,
)

ACCEPT, RAISE, FOLD = 'accept', 'raise', 'fold'
TRUCO_ACTIONS = (ACCEPT, RAISE, FOLD)


class Personality(Enum):
    AGGRESSIVE = 'aggressive'
    CAUTIOUS = 'cautious'
    TECHNICAL = 'technical'
    BEGINNER = 'beginner'

    @property
    def display_name(self):
        return BOT_NAMES[self]


BOT_NAMES = {
    Personality.AGGRESSIVE: 'Tonhão',
    Personality.CAUTIOUS: 'Dona Cida',
    Personality.TECHNICAL: 'Professor',
    Personality.BEGINNER: 'Juninho',
}

# Opponent score at which a personality stops calling truco.
CAUTION_THRESHOLDS = {
    Personality.AGGRESSIVE: 10,
    Personality.CAUTIOUS: 6,
    Personality.TECHNICAL: 9,
    Personality.BEGINNER: 11,
}

BEGINNER_RANDOM_CARD_CHANCE = 0.25


def pick_personalities(rng=None, count=2):
    return (rng or random).sample(list(Personality), count)


# ── Card helpers ───────────────────────────────────────────────────────────────

def _by_strength(hand):
    return sorted(hand, key=card_strength)


def _table_status(round_cards, team):
    """Strongest strength on the table for the enemy and for our side."""
    enemy = own = -1
    for entry in round_cards:
        s = card_strength(entry.card)
        if entry.team == team:
            own = max(own, s)
        else:
            enemy = max(enemy, s)
    return enemy, own


def _winners(sorted_hand, to_beat):
    return [c for c in sorted_hand if card_strength(c) > to_beat]


def _middle_plain(sorted_hand):
    plain = [c for c in sorted_hand if not is_manilha(c)]
    if plain:
        return plain[len(plain) // 2]
    return sorted_hand[0]


# ── chooseCard ─────────────────────────────────────────────────────────────────

def _aggressive_card(hand, round_cards, team, rounds_won, rng):
    ordered = _by_strength(hand)
    enemy, _ = _table_status(round_cards, team)
    if enemy < 0:
        return ordered[-1]
    winning = _winners(ordered, enemy)
    if winning:
        return winning[-1]
    return ordered[0]


def _cautious_card(hand, round_cards, team, rounds_won, rng):
    ordered = _by_strength(hand)
    enemy, own = _table_status(round_cards, team)
    if enemy < 0 and own < 0:
        if rounds_won[team] >= 1:
            return ordered[-1]
        return ordered[0]
    if own > enemy:
        return ordered[0]
    winning = _winners(ordered, enemy)
    if winning:
        return winning[0]
    return ordered[0]


def _technical_card(hand, round_cards, team, rounds_won, rng):
    ordered = _by_strength(hand)
    enemy, own = _table_status(round_cards, team)
    if enemy < 0 and own < 0:
        if rounds_won[team] == 1:
            # one more round closes the hand
            return ordered[-1]
        return _middle_plain(ordered)
    if own > enemy:
        return ordered[0]
    winning = _winners(ordered, enemy)
    if winning:
        return winning[0]
    return ordered[0]


def _beginner_card(hand, round_cards, team, rounds_won, rng):
    if rng.random() < BEGINNER_RANDOM_CARD_CHANCE:
        return rng.choice(list(hand))
    return _technical_card(hand, round_cards, team, rounds_won, rng)


# ── shouldCallTruco ────────────────────────────────────────────────────────────

def _aggressive_call(total, manilhas, lead, rng):
    return manilhas >= 1 or total >= 20 or (lead < 0 and total >= 17)


def _cautious_call(total, manilhas, lead, rng):
    return manilhas >= 2 or (manilhas == 1 and total >= 28)


def _technical_call(total, manilhas, lead, rng):
    needed = 24 if lead >= 0 else 22
    return (manilhas >= 1 and total >= needed - 4) or total >= needed


def _beginner_call(total, manilhas, lead, rng):
    return rng.random() < 0.2 + 0.15 * manilhas


# ── respondToTruco ─────────────────────────────────────────────────────────────

def _aggressive_response(total, manilhas, value, rng):
    if manilhas >= 1 or total >= 22:
        return RAISE
    if total >= 15:
        return ACCEPT
    return FOLD


def _cautious_response(total, manilhas, value, rng):
    if manilhas >= 3 or (manilhas >= 2 and total >= 32):
        return RAISE
    if manilhas >= 2 or (manilhas == 1 and total >= 22):
        return ACCEPT
    return FOLD


def _technical_response(total, manilhas, value, rng):
    if manilhas >= 2 or total >= 26:
        return RAISE
    if manilhas >= 1 or total >= 20:
        return ACCEPT
    return FOLD


def _beginner_response(total, manilhas, value, rng):
    roll = rng.random()
    if roll < 0.2:
        return RAISE
    if roll < 0.7 or manilhas >= 1:
        return ACCEPT
    return FOLD


_CARD_CHOOSERS = {
    Personality.AGGRESSIVE: _aggressive_card,
    Personality.CAUTIOUS: _cautious_card,
    Personality.TECHNICAL: _technical_card,
    Personality.BEGINNER: _beginner_card,
}
_TRUCO_CALLERS = {
    Personality.AGGRESSIVE: _aggressive_call,
    Personality.CAUTIOUS: _cautious_call,
    Personality.TECHNICAL: _technical_call,
    Personality.BEGINNER: _beginner_call,
}
_TRUCO_RESPONDERS = {
    Personality.AGGRESSIVE: _aggressive_response,
    Personality.CAUTIOUS: _cautious_response,
    Personality.TECHNICAL: _technical_response,
    Personality.BEGINNER: _beginner_response,
}


class BotPolicy:
    def __init__(self, personality, rng=None):
        self.personality = Personality(personality)
        self.rng = rng or random.Random()

    def __repr__(self):
        return f'BotPolicy({self.personality.value})'

    def choose_card(self, hand, round_cards, team, rounds_won):
        """
        Pick a card from ``hand`` given the cards already on the table.

        ``round_cards`` holds ``PlayedCard`` entries for this round,
        ``rounds_won`` the per-team tally of the current hand. Returns None
        only when the hand is empty.
        """
        if not hand:
            return None
        card = _CARD_CHOOSERS[self.personality](hand, round_cards, team, rounds_won, self.rng)
        if card not in hand:
            raise ValueError(f"{self.personality.value} bot chose {card!r}, not in hand {hand}")
        return card

    def should_call_truco(self, hand, scores, team):
        if not hand:
            return False
        enemy_score = scores[1 - team]
        if enemy_score >= CAUTION_THRESHOLDS[self.personality]:
            return False
        total, manilhas = hand_strength(hand)
        lead = scores[team] - enemy_score
        return _TRUCO_CALLERS[self.personality](total, manilhas, lead, self.rng)

    def respond_to_truco(self, hand, value):
        total, manilhas = hand_strength(hand)
        action = _TRUCO_RESPONDERS[self.personality](total, manilhas, value, self.rng)
        if action == RAISE and value >= MAX_STAKE:
            # nothing left to raise to: keep playing if the hand is worth it
            action = ACCEPT if manilhas >= 1 or total >= 18 else FOLD
        return action
