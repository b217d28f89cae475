"""Tests for the local matchmaking simulation."""

import random
import re

from starxo.game import AVATARS
from starxo.matchmaking import (
    MatchmakingSimulator,
    generate_game_id,
    generate_player_id,
    random_players,
)


def _simulator(scheduler, matches):
    return MatchmakingSimulator(scheduler, random.Random(7), on_matched=matches.append)


def test_generated_ids_have_four_digits():
    rng = random.Random(3)
    for _ in range(50):
        assert re.fullmatch(r"[1-9][0-9]{3}", generate_game_id(rng))
        assert re.fullmatch(r"User[1-9][0-9]{3}", generate_player_id(rng))


def test_random_players_use_stock_avatars():
    player_x, player_o = random_players(random.Random(5))
    assert (player_x.symbol, player_o.symbol) == ("X", "O")
    assert player_x.avatar in AVATARS
    assert player_o.avatar in AVATARS


def test_avatars_rotate_while_searching(scheduler):
    matches = []
    simulator = _simulator(scheduler, matches)
    simulator.start()

    scheduler.advance(0.5)
    assert simulator.avatars == list(AVATARS[1:]) + [AVATARS[0]]
    scheduler.advance(0.5)
    assert simulator.avatars == list(AVATARS[2:]) + list(AVATARS[:2])
    assert not simulator.match_found


def test_match_uses_the_displayed_avatars(scheduler):
    matches = []
    simulator = _simulator(scheduler, matches)
    simulator.start()

    scheduler.advance(3.0)
    assert simulator.match_found
    shown = list(simulator.avatars[:2])

    # The carousel is frozen once a match is announced.
    scheduler.advance(1.0)
    assert simulator.avatars[:2] == shown
    assert matches == []

    scheduler.advance(0.5)
    assert len(matches) == 1
    player_x, player_o = matches[0]
    assert (player_x.avatar, player_o.avatar) == tuple(shown)
    assert (player_x.symbol, player_o.symbol) == ("X", "O")
    assert player_x.id.startswith("User") and player_o.id.startswith("User")
    assert scheduler.pending == []


def test_cancel_before_match_never_reports(scheduler):
    matches = []
    simulator = _simulator(scheduler, matches)
    simulator.start()
    scheduler.advance(2.0)

    simulator.cancel()
    assert not simulator.searching
    scheduler.advance(10)
    assert matches == []
    assert not simulator.match_found


def test_cancel_between_match_and_reveal(scheduler):
    matches = []
    simulator = _simulator(scheduler, matches)
    simulator.start()
    scheduler.advance(3.5)
    assert simulator.match_found

    simulator.cancel()
    assert not simulator.match_found
    scheduler.advance(10)
    assert matches == []


def test_restart_resets_the_carousel(scheduler):
    matches = []
    simulator = _simulator(scheduler, matches)
    simulator.start()
    scheduler.advance(1.0)
    simulator.cancel()

    simulator.start()
    assert simulator.avatars == list(AVATARS)
