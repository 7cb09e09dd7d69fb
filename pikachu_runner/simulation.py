"""
Simulation core for the Pikachu runner: one jumping player, one recycling tree.

Everything here is plain Python so it can be stepped without pygame. The
controller (``GameEnv``) owns a single ``SimulationState`` and replaces it as a
whole on reset.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# World constants
SCREEN_WIDTH = 800
GROUND_Y = 150.0
CEILING_Y = 0.0

# Player constants
PLAYER_X = 50.0
PLAYER_WIDTH = 32
PLAYER_HEIGHT = 32
GRAVITY = 0.6
JUMP_POWER = -12.0

# Obstacle constants
OBSTACLE_START_X = 800.0
OBSTACLE_Y = 150.0
OBSTACLE_WIDTH = 32
OBSTACLE_HEIGHT = 48
OBSTACLE_BASE_SPEED = -3.0
OBSTACLE_SPEED_STEP = 0.1
OBSTACLE_MAX_SPEED = -6.0
RESPAWN_JITTER = 200.0

# Difficulty. MAX_SPEED is never reached: the table tops out at 4.0.
BASE_SPEED = 1.0
MAX_SPEED = 5.0
SPEED_TABLE = (
    (30, 4.0),
    (25, 3.5),
    (20, 3.0),
    (15, 2.5),
    (10, 2.0),
    (5, 1.5),
)


@dataclass
class Player:
    x: float = PLAYER_X
    y: float = GROUND_Y
    vy: float = 0.0
    width: int = PLAYER_WIDTH
    height: int = PLAYER_HEIGHT
    is_airborne: bool = False
    can_jump: bool = True

    @property
    def rect(self):
        return (self.x, self.y, self.width, self.height)


@dataclass
class Obstacle:
    x: float = OBSTACLE_START_X
    y: float = OBSTACLE_Y
    width: int = OBSTACLE_WIDTH
    height: int = OBSTACLE_HEIGHT
    dx: float = OBSTACLE_BASE_SPEED  # negative, moves left

    @property
    def rect(self):
        return (self.x, self.y, self.width, self.height)


@dataclass
class SimulationState:
    player: Player = field(default_factory=Player)
    obstacle: Obstacle = field(default_factory=Obstacle)
    score: int = 0
    speed: float = BASE_SPEED
    terminal: bool = False
    frame_count: int = 0  # cosmetic only (idle bounce)


@dataclass(frozen=True)
class FrameEvents:
    recycled: bool = False
    collided: bool = False


def new_state():
    """Build a fresh episode. Never patch an old state in place."""
    return SimulationState()


def apply_physics(player):
    player.vy += GRAVITY
    player.y += player.vy

    if player.y >= GROUND_Y:
        player.y = GROUND_Y
        player.vy = 0.0
        player.is_airborne = False
        player.can_jump = True
    elif player.y < CEILING_Y:
        # Bump the ceiling; still airborne, still no jump.
        player.y = CEILING_Y
        player.vy = 0.0


def try_jump(state):
    """Start a jump if the player is grounded and the episode is live.

    Returns True when the jump was applied. Airborne or terminal input is
    ignored, so there is exactly one jump per ground contact.
    """
    player = state.player
    if state.terminal or not player.can_jump:
        return False

    player.vy = JUMP_POWER
    player.is_airborne = True
    player.can_jump = False
    return True


def advance_obstacle(state, rng):
    """Move the tree left; recycle it off the right edge once it leaves the screen.

    ``rng`` only needs a ``uniform(low, high)`` method. Returns True on recycle.
    """
    obstacle = state.obstacle
    obstacle.x += obstacle.dx * state.speed

    if obstacle.x < -obstacle.width:
        obstacle.x = SCREEN_WIDTH + float(rng.uniform(0.0, RESPAWN_JITTER))
        state.score += 1
        obstacle.dx = max(obstacle.dx - OBSTACLE_SPEED_STEP, OBSTACLE_MAX_SPEED)
        return True
    return False


def speed_multiplier_for(score):
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError(f"score must be an int, got {score!r}")
    if score < 0:
        raise ValueError(f"score must be non-negative, got {score}")

    for threshold, multiplier in SPEED_TABLE:
        if score >= threshold:
            return multiplier
    return BASE_SPEED


def apply_difficulty(state):
    state.speed = speed_multiplier_for(state.score)


def rects_overlap(a, b):
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    return ax < bx + bw and ax + aw > bx and ay < by + bh and ay + ah > by


def check_collision(state):
    if rects_overlap(state.player.rect, state.obstacle.rect):
        state.terminal = True
        return True
    return False


def advance(state, rng):
    """Run one frame: physics, obstacle, difficulty, collision, in that order.

    A terminal state is frozen; the call is a no-op until the controller swaps
    in a new state.
    """
    if state.terminal:
        return FrameEvents()

    apply_physics(state.player)
    recycled = advance_obstacle(state, rng)
    apply_difficulty(state)
    collided = check_collision(state)
    state.frame_count += 1

    if recycled:
        logger.debug(
            "Obstacle recycled: score=%d x=%.1f dx=%.2f speed=%.1f",
            state.score, state.obstacle.x, state.obstacle.dx, state.speed,
        )
    if collided:
        logger.info("Collision at frame %d, final score %d", state.frame_count, state.score)

    return FrameEvents(recycled=recycled, collided=collided)
