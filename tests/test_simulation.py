import copy
import random
from types import SimpleNamespace

import pytest

from pikachu_runner.policy import policy
from pikachu_runner.simulation import (
    GROUND_Y,
    JUMP_POWER,
    Obstacle,
    SCREEN_WIDTH,
    advance,
    advance_obstacle,
    apply_physics,
    check_collision,
    new_state,
    rects_overlap,
    speed_multiplier_for,
    try_jump,
)


class FixedRng:
    def __init__(self, value):
        self.value = value

    def uniform(self, low, high):
        return low + self.value * (high - low)


def test_new_state_has_documented_initial_values():
    state = new_state()
    assert (state.player.x, state.player.y) == (50, 150)
    assert (state.obstacle.x, state.obstacle.y) == (800, 150)
    assert state.player.vy == 0
    assert state.player.can_jump and not state.player.is_airborne
    assert state.obstacle.dx == -3.0
    assert state.score == 0
    assert state.speed == 1.0
    assert state.terminal is False
    assert state.frame_count == 0


def test_new_state_is_independent_each_time():
    a = new_state()
    b = new_state()
    a.player.y = 10
    a.obstacle.x = 3
    assert b.player.y == GROUND_Y
    assert b.obstacle.x == 800


def test_grounded_player_stays_clamped():
    state = new_state()
    apply_physics(state.player)
    assert state.player.y == GROUND_Y
    assert state.player.vy == 0


def test_player_y_stays_in_bounds_through_jumps():
    state = new_state()
    rng = random.Random(0)
    for frame in range(400):
        if frame % 45 == 0:
            try_jump(state)
        advance(state, rng)
        if state.terminal:
            break
        assert 0 <= state.player.y <= GROUND_Y


def test_landing_restores_jump():
    state = new_state()
    assert try_jump(state)
    apply_physics(state.player)
    assert state.player.is_airborne
    landed = False
    for _ in range(100):
        apply_physics(state.player)
        if state.player.y == GROUND_Y:
            landed = True
            break
        assert not state.player.can_jump
    assert landed
    assert state.player.vy == 0
    assert state.player.can_jump
    assert not state.player.is_airborne


def test_ceiling_clamp_keeps_player_airborne():
    state = new_state()
    try_jump(state)
    state.player.y = 5.0
    state.player.vy = -20.0
    apply_physics(state.player)
    assert state.player.y == 0
    assert state.player.vy == 0
    assert state.player.is_airborne
    assert not state.player.can_jump


def test_jump_sets_velocity_and_blocks_double_jump():
    state = new_state()
    assert try_jump(state) is True
    assert state.player.vy == JUMP_POWER
    assert state.player.is_airborne
    assert not state.player.can_jump

    state.player.vy = -3.0
    assert try_jump(state) is False
    assert state.player.vy == -3.0


def test_jump_ignored_when_terminal():
    state = new_state()
    state.terminal = True
    assert try_jump(state) is False
    assert state.player.vy == 0
    assert state.player.can_jump


def test_obstacle_moves_by_speed_multiplier():
    state = new_state()
    state.speed = 2.0
    assert advance_obstacle(state, FixedRng(0.0)) is False
    assert state.obstacle.x == pytest.approx(794.0)
    assert state.score == 0


def test_obstacle_at_exactly_negative_width_does_not_recycle():
    state = new_state()
    state.obstacle.x = -29.0
    assert advance_obstacle(state, FixedRng(0.5)) is False
    assert state.obstacle.x == -32.0
    assert state.score == 0


def test_recycle_scores_once_and_respawns_off_screen():
    state = new_state()
    state.obstacle.x = -31.0
    assert advance_obstacle(state, FixedRng(0.5)) is True
    assert state.score == 1
    assert state.obstacle.x == pytest.approx(SCREEN_WIDTH + 100.0)
    assert state.obstacle.dx == pytest.approx(-3.1)


@pytest.mark.parametrize("value", [0.0, 0.25, 0.999])
def test_respawn_within_jitter_range(value):
    state = new_state()
    state.obstacle.x = -40.0
    advance_obstacle(state, FixedRng(value))
    assert SCREEN_WIDTH <= state.obstacle.x < SCREEN_WIDTH + 200


def test_base_speed_floors_at_six():
    state = new_state()
    state.obstacle = Obstacle(x=-40.0, dx=-5.95)
    advance_obstacle(state, FixedRng(0.0))
    assert state.obstacle.dx == -6.0

    state.obstacle.x = -40.0
    advance_obstacle(state, FixedRng(0.0))
    assert state.obstacle.dx == -6.0


@pytest.mark.parametrize(
    "score, expected",
    [
        (0, 1.0), (4, 1.0),
        (5, 1.5), (9, 1.5),
        (10, 2.0), (14, 2.0),
        (15, 2.5), (19, 2.5),
        (20, 3.0), (24, 3.0),
        (25, 3.5), (29, 3.5),
        (30, 4.0), (34, 4.0),
        (35, 4.0), (1000, 4.0),
    ],
)
def test_speed_table(score, expected):
    assert speed_multiplier_for(score) == expected


def test_speed_is_non_decreasing_in_score():
    speeds = [speed_multiplier_for(s) for s in range(100)]
    assert speeds == sorted(speeds)
    assert max(speeds) == 4.0


@pytest.mark.parametrize("bad", [-1, 2.5, "3", None, True])
def test_speed_rejects_invalid_scores(bad):
    with pytest.raises(ValueError):
        speed_multiplier_for(bad)


def test_rects_overlap():
    assert rects_overlap((0, 150, 32, 32), (0, 150, 32, 48))
    assert not rects_overlap((0, 150, 32, 32), (100, 150, 32, 48))
    # Touching edges do not overlap.
    assert not rects_overlap((0, 150, 32, 32), (32, 150, 32, 48))
    assert not rects_overlap((0, 100, 32, 32), (0, 132, 32, 48))


def test_check_collision_sets_terminal():
    state = new_state()
    state.obstacle.x = 60.0
    assert check_collision(state) is True
    assert state.terminal is True


def test_no_collision_while_clearing_tree():
    state = new_state()
    state.obstacle.x = 60.0
    state.player.y = 100.0
    assert check_collision(state) is False
    assert state.terminal is False


def test_advance_into_tree_goes_terminal_and_keeps_frame():
    state = new_state()
    state.obstacle.x = 50.0
    events = advance(state, FixedRng(0.0))
    assert events.collided
    assert state.terminal
    assert state.obstacle.x == pytest.approx(47.0)
    assert state.frame_count == 1


def test_terminal_state_is_frozen():
    state = new_state()
    state.obstacle.x = 50.0
    advance(state, FixedRng(0.0))
    assert state.terminal
    snapshot = copy.deepcopy(state)

    for _ in range(10):
        events = advance(state, FixedRng(0.0))
        assert not events.recycled and not events.collided
    assert state == snapshot


def _drive(state, rng, until_score, max_frames=10000):
    env = SimpleNamespace(state=state)
    seen = []
    for _ in range(max_frames):
        if policy(env)[1] == 1:
            try_jump(state)
        before = state.score
        events = advance(state, rng)
        assert not state.terminal
        if events.recycled:
            assert state.score == before + 1
            assert state.obstacle.x >= SCREEN_WIDTH
            seen.append((state.score, state.speed))
        else:
            assert state.score == before
        if state.score >= until_score:
            return seen
    pytest.fail(f"score {until_score} not reached")


def test_end_to_end_speed_steps_up_at_five():
    state = new_state()
    rng = random.Random(42)

    seen = _drive(state, rng, until_score=1)
    assert seen == [(1, 1.0)]

    seen += _drive(state, rng, until_score=5)
    assert [score for score, _ in seen] == [1, 2, 3, 4, 5]
    assert [speed for _, speed in seen] == [1.0, 1.0, 1.0, 1.0, 1.5]
    assert state.obstacle.dx == pytest.approx(-3.5)
