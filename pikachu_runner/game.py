import argparse
import logging
import math
import os
import time

import gymnasium as gym
from gymnasium.spaces import MultiDiscrete
import numpy as np
import pygame

from pikachu_runner.assets import gate_for_dir, sounds_for_dir
from pikachu_runner.simulation import (
    GROUND_Y,
    PLAYER_HEIGHT,
    SCREEN_WIDTH,
    advance,
    new_state,
    try_jump,
)

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

logger = logging.getLogger(__name__)


class GameEnv(gym.Env):
    metadata = {"render_modes": ["rgb_array", "human"], "render_fps": 60}

    user_guide = (
        "Controls: Space to jump (or to restart after a crash). "
        "R resets, T toggles light/dark theme."
    )

    game_description = (
        "Pikachu runs on the spot while trees roll in from the right. "
        "Jump each tree to score; every five points the trees get faster."
    )

    auto_advance = True

    def __init__(self, render_mode="rgb_array", seed=None, asset_dir=None,
                 resume_delay=0.0, time_source=time.monotonic):
        super().__init__()
        self.np_random = np.random.default_rng(seed)

        # Screen constants
        self.SCREEN_WIDTH = SCREEN_WIDTH
        self.SCREEN_HEIGHT = 200
        self.FPS = self.metadata["render_fps"]
        self.GROUND_LINE_Y = int(GROUND_Y + PLAYER_HEIGHT)

        # Rewards
        self.REWARD_SURVIVE = 0.1
        self.REWARD_RECYCLE = 1.0
        self.REWARD_CRASH = -10.0

        # Colors per theme
        self.THEMES = {
            "dark": {
                "bg": (24, 24, 32),
                "ground": (90, 90, 110),
                "text": (255, 255, 255),
            },
            "light": {
                "bg": (245, 245, 240),
                "ground": (120, 100, 80),
                "text": (0, 0, 0),
            },
        }
        self.COLOR_PLAYER_PLACEHOLDER = (128, 128, 128)
        self.COLOR_OBSTACLE_PLACEHOLDER = (0, 128, 0)
        self.COLOR_GAME_OVER = (255, 0, 0)

        self.observation_space = gym.spaces.Box(
            low=0, high=255, shape=(self.SCREEN_HEIGHT, self.SCREEN_WIDTH, 3), dtype=np.uint8
        )
        self.action_space = MultiDiscrete([5, 2, 2])

        # Pygame setup
        pygame.init()
        pygame.font.init()
        self.screen = pygame.Surface((self.SCREEN_WIDTH, self.SCREEN_HEIGHT))
        self.clock = pygame.time.Clock()
        try:
            self.font_hud = pygame.font.SysFont("Arial", 20)
            self.font_banner = pygame.font.SysFont("Arial", 28)
        except pygame.error:
            self.font_hud = pygame.font.Font(None, 24)
            self.font_banner = pygame.font.Font(None, 34)

        self.render_mode = render_mode
        self.window = None
        if render_mode == "human":
            pygame.display.set_caption("Pikachu Runner")
            self.window = pygame.display.set_mode((self.SCREEN_WIDTH, self.SCREEN_HEIGHT))

        # Presentation collaborators
        self.assets = gate_for_dir(asset_dir, clock=time_source)
        self.sounds = sounds_for_dir(asset_dir)
        self._scaled = {}
        self.theme = "dark"

        # Reset guard
        self.time_source = time_source
        self.resume_delay = resume_delay
        self._reset_pending = False
        self._resume_at = None

        self.request_reset()

    @property
    def resetting(self):
        return self._reset_pending

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        self.request_reset()
        return self._get_observation(), self._get_info()

    def request_reset(self):
        """Start a reset unless one is already in flight.

        The whole simulation state is swapped at once; resuming waits for the
        asset gate and then ``resume_delay`` seconds.
        """
        if self._reset_pending:
            logger.debug("Reset already in flight, request collapsed")
            return False

        logger.info("Resetting game")
        self.state = new_state()
        self._reset_pending = True
        self._resume_at = None
        self._poll_reset()
        return True

    def _poll_reset(self):
        if not self._reset_pending:
            return True
        if not self.assets.poll():
            return False

        now = self.time_source()
        if self._resume_at is None:
            self._resume_at = now + self.resume_delay
        if now < self._resume_at:
            return False

        self._reset_pending = False
        self._resume_at = None
        logger.info("Reset complete, resuming")
        return True

    def primary_action(self):
        """Space bar: jump while running, restart after game over."""
        if self.state.terminal:
            return "reset" if self.request_reset() else None
        if try_jump(self.state):
            self.sounds.play("jump")
            return "jump"
        return None

    def toggle_theme(self):
        self.theme = "light" if self.theme == "dark" else "dark"
        return self.theme

    def step(self, action):
        if action is not None and action[1] == 1:
            self.primary_action()

        if self._reset_pending and not self._poll_reset():
            return self._get_observation(), 0.0, False, False, self._get_info()

        if self.state.terminal:
            return self._get_observation(), 0.0, True, False, self._get_info()

        events = advance(self.state, self.np_random)

        reward = self.REWARD_SURVIVE
        if events.recycled:
            reward += self.REWARD_RECYCLE
        if events.collided:
            reward = self.REWARD_CRASH
            self.sounds.play("gameover")

        p, o = self.state.player, self.state.obstacle
        logger.debug(
            "Frame %d: player y=%.1f vy=%.1f tree x=%.1f speed=%.1fx",
            self.state.frame_count, p.y, p.vy, o.x, self.state.speed,
        )

        return (
            self._get_observation(),
            reward,
            self.state.terminal,
            False,
            self._get_info()
        )

    def _get_info(self):
        return {
            "score": self.state.score,
            "speed": self.state.speed,
            "steps": self.state.frame_count,
            "terminal": self.state.terminal,
            "resetting": self._reset_pending,
        }

    def _get_observation(self):
        colors = self.THEMES[self.theme]
        self.screen.fill(colors["bg"])
        self._render_ground(colors)
        self._render_player()
        self._render_obstacle()
        self._render_ui(colors)

        arr = pygame.surfarray.array3d(self.screen)
        return np.transpose(arr, (1, 0, 2)).astype(np.uint8)

    def _sprite(self, name, width, height):
        image = self.assets.image(name)
        if image is None:
            return None
        if name not in self._scaled:
            self._scaled[name] = pygame.transform.scale(image, (width, height))
        return self._scaled[name]

    def _render_ground(self, colors):
        pygame.draw.line(
            self.screen, colors["ground"],
            (0, self.GROUND_LINE_Y), (self.SCREEN_WIDTH, self.GROUND_LINE_Y), 2
        )

    def _render_player(self):
        p = self.state.player
        # Idle bounce while standing
        bounce = math.sin(self.state.frame_count * 0.1) * 2 if p.y == GROUND_Y else 0
        rect = pygame.Rect(int(p.x), int(p.y + bounce), p.width, p.height)

        sprite = self._sprite("pikachu", p.width, p.height)
        if sprite is not None:
            self.screen.blit(sprite, rect)
        else:
            pygame.draw.rect(self.screen, self.COLOR_PLAYER_PLACEHOLDER, rect)

    def _render_obstacle(self):
        o = self.state.obstacle
        rect = pygame.Rect(int(o.x), int(o.y), o.width, o.height)

        sprite = self._sprite("tree", o.width, o.height)
        if sprite is not None:
            self.screen.blit(sprite, rect)
        else:
            pygame.draw.rect(self.screen, self.COLOR_OBSTACLE_PLACEHOLDER, rect)

    def _render_ui(self, colors):
        score_text = self.font_hud.render(f"Score: {self.state.score}", True, colors["text"])
        self.screen.blit(score_text, (10, 10))
        speed_text = self.font_hud.render(f"Speed: {self.state.speed:.1f}x", True, colors["text"])
        self.screen.blit(speed_text, (10, 32))

        if self.state.terminal:
            for text, dy in (("Game Over!", -20), (f"Score: {self.state.score}", 20)):
                surf = self.font_banner.render(text, True, self.COLOR_GAME_OVER)
                rect = surf.get_rect(center=(self.SCREEN_WIDTH // 2, self.SCREEN_HEIGHT // 2 + dy))
                self.screen.blit(surf, rect)

    def render(self):
        obs = self._get_observation()
        if self.render_mode == "human" and self.window is not None:
            self.window.blit(self.screen, (0, 0))
            pygame.display.flip()
            self.clock.tick(self.FPS)
        return obs

    def close(self):
        pygame.quit()


def main(argv=None):
    parser = argparse.ArgumentParser(description=GameEnv.game_description)
    parser.add_argument("--assets", default=None, help="directory with pikachu.png, tree.png, jump.mp3, gameover.mp3")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--debug", action="store_true", help="log every frame")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # A real window needs a real video driver.
    if os.environ.get("SDL_VIDEODRIVER") == "dummy":
        del os.environ["SDL_VIDEODRIVER"]

    try:
        env = GameEnv(render_mode="human", seed=args.seed, asset_dir=args.assets, resume_delay=0.2)
    except pygame.error as e:
        logger.error("Cannot open a window: %s", e)
        return 1

    print(env.game_description)
    print(env.user_guide)

    env.reset(seed=args.seed)
    running = True
    while running:
        action = [0, 0, 0]
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_SPACE:
                    action[1] = 1
                elif event.key == pygame.K_r:
                    env.request_reset()
                elif event.key == pygame.K_t:
                    env.toggle_theme()

        env.step(action)
        env.render()

    env.close()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
