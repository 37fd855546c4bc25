import random

import pytest

import bots
from bots import (
    ACCEPT,
    CAUTION_THRESHOLDS,
    FOLD,
    RAISE,
    BotPolicy,
    Personality,
    pick_personalities,
)
from game_logic import PlayedCard, build_deck

WEAK = ["Q_OUROS", "J_COPAS", "K_PAUS"]
MIXED = ["Q_OUROS", "2_COPAS", "7_OUROS"]
STRONG = ["4_PAUS", "7_COPAS", "A_ESPADAS"]


class FixedRng:
    """Always rolls ``roll``; choice picks the last element."""

    def __init__(self, roll):
        self.roll = roll

    def random(self):
        return self.roll

    def choice(self, seq):
        return seq[-1]


def policy(personality, rng=None):
    return BotPolicy(personality, rng=rng or random.Random(0))


def test_choose_card_always_from_hand():
    rng = random.Random(5)
    deck = build_deck()
    for personality in Personality:
        bot = policy(personality, rng)
        for _ in range(30):
            cards = rng.sample(deck, 6)
            hand, table = cards[:3], cards[3:3 + rng.randint(0, 3)]
            round_cards = [PlayedCard(seat=i, card=c, team=i % 2) for i, c in enumerate(table)]
            assert bot.choose_card(hand, round_cards, 0, [0, 0]) in hand


def test_empty_hand_gives_none():
    for personality in Personality:
        assert policy(personality).choose_card([], [], 0, [0, 0]) is None


def test_leading_cards():
    assert policy(Personality.AGGRESSIVE).choose_card(MIXED, [], 0, [0, 0]) == "7_OUROS"
    assert policy(Personality.CAUTIOUS).choose_card(MIXED, [], 0, [0, 0]) == "Q_OUROS"
    assert policy(Personality.CAUTIOUS).choose_card(MIXED, [], 0, [1, 0]) == "7_OUROS"
    # middle of the non-manilha cards
    assert policy(Personality.TECHNICAL).choose_card(MIXED, [], 0, [0, 0]) == "2_COPAS"
    assert policy(Personality.TECHNICAL).choose_card(["7_COPAS", "4_PAUS"], [], 0, [0, 0]) == "7_COPAS"


def test_following_against_enemy_card():
    enemy_k = [PlayedCard(seat=1, card="K_ESPADAS", team=1)]
    assert policy(Personality.TECHNICAL).choose_card(MIXED, enemy_k, 0, [0, 0]) == "2_COPAS"
    assert policy(Personality.CAUTIOUS).choose_card(MIXED, enemy_k, 0, [0, 0]) == "2_COPAS"
    assert policy(Personality.AGGRESSIVE).choose_card(MIXED, enemy_k, 0, [0, 0]) == "7_OUROS"


def test_cannot_win_discards_weakest():
    zap = [PlayedCard(seat=1, card="4_PAUS", team=1)]
    for personality in (Personality.AGGRESSIVE, Personality.CAUTIOUS, Personality.TECHNICAL):
        assert policy(personality).choose_card(MIXED, zap, 0, [0, 0]) == "Q_OUROS"


def test_partner_winning_discards():
    round_cards = [
        PlayedCard(seat=0, card="3_OUROS", team=0),
        PlayedCard(seat=1, card="K_ESPADAS", team=1),
    ]
    assert policy(Personality.TECHNICAL).choose_card(MIXED, round_cards, 0, [0, 0]) == "Q_OUROS"


def test_beginner_sometimes_plays_at_random():
    bot = BotPolicy(Personality.BEGINNER, rng=FixedRng(0.1))
    assert bot.choose_card(MIXED, [], 0, [0, 0]) == "7_OUROS"
    bot = BotPolicy(Personality.BEGINNER, rng=FixedRng(0.9))
    assert bot.choose_card(MIXED, [], 0, [0, 0]) == "2_COPAS"


@pytest.mark.parametrize("personality", list(Personality))
def test_no_truco_when_enemy_near_the_end(personality):
    bot = BotPolicy(personality, rng=FixedRng(0.0))
    threshold = CAUTION_THRESHOLDS[personality]
    assert not bot.should_call_truco(STRONG, [0, threshold], 0)
    assert not bot.should_call_truco(STRONG, [threshold + 1, 0], 1)


def test_truco_calls_follow_hand_strength():
    assert policy(Personality.AGGRESSIVE).should_call_truco(MIXED, [0, 0], 0)
    assert not policy(Personality.CAUTIOUS).should_call_truco(MIXED, [0, 0], 0)
    assert policy(Personality.CAUTIOUS).should_call_truco(STRONG, [0, 0], 0)
    assert policy(Personality.TECHNICAL).should_call_truco(STRONG, [0, 0], 0)
    assert not policy(Personality.TECHNICAL).should_call_truco(WEAK, [0, 0], 0)


@pytest.mark.parametrize("personality", list(Personality))
def test_never_raises_at_twelve(personality):
    bot = BotPolicy(personality, rng=FixedRng(0.0))
    assert bot.respond_to_truco(STRONG, 12) in (ACCEPT, FOLD)
    assert bot.respond_to_truco(WEAK, 12) in (ACCEPT, FOLD)


def test_truco_responses():
    assert policy(Personality.TECHNICAL).respond_to_truco(STRONG, 3) == RAISE
    assert policy(Personality.TECHNICAL).respond_to_truco(MIXED, 3) == ACCEPT
    assert policy(Personality.TECHNICAL).respond_to_truco(WEAK, 3) == FOLD
    assert policy(Personality.CAUTIOUS).respond_to_truco(MIXED, 3) == ACCEPT
    assert policy(Personality.CAUTIOUS).respond_to_truco(WEAK, 6) == FOLD
    assert policy(Personality.AGGRESSIVE).respond_to_truco(WEAK, 3) == ACCEPT


def test_pick_personalities_without_replacement():
    rng = random.Random(3)
    for _ in range(10):
        picked = pick_personalities(rng)
        assert len(picked) == 2
        assert picked[0] != picked[1]


def test_personality_from_string():
    assert BotPolicy("cautious").personality is Personality.CAUTIOUS
    assert Personality.TECHNICAL.display_name == "Professor"


def test_choice_outside_the_hand_is_an_error(monkeypatch):
    monkeypatch.setitem(bots._CARD_CHOOSERS, Personality.TECHNICAL, lambda *args: "3_OUROS")
    policy = BotPolicy(Personality.TECHNICAL, rng=random.Random(0))
    with pytest.raises(ValueError):
        policy.choose_card(["Q_OUROS", "J_COPAS"], [], 0, [0, 0])
