import logging
import time
from pathlib import Path

import pygame

logger = logging.getLogger(__name__)

IMAGE_FILES = {"pikachu": "pikachu.png", "tree": "tree.png"}
SOUND_FILES = {"jump": "jump.mp3", "gameover": "gameover.mp3"}


class AssetGate:
    """
    Readiness probe for the sprites a reset waits on.

    Polled from the frame loop. Images that fail to load are retried every
    ``retry_interval`` seconds; images that already loaded are kept.
    """

    LOADING = "loading"
    READY = "ready"
    FAILED_RETRYING = "failed_retrying"

    def __init__(self, paths=None, retry_interval=0.5, clock=time.monotonic):
        self.paths = {name: Path(p) for name, p in (paths or {}).items()}
        self.retry_interval = retry_interval
        self.clock = clock

        self.images = {}
        self.state = self.READY if not self.paths else self.LOADING
        self.attempts = 0
        self.next_attempt_at = None

    @property
    def ready(self):
        return self.state == self.READY

    def image(self, name):
        return self.images.get(name)

    def poll(self):
        if self.state == self.READY:
            return True

        now = self.clock()
        if self.next_attempt_at is not None and now < self.next_attempt_at:
            return False

        self.attempts += 1
        for name, path in self.paths.items():
            if name in self.images:
                continue
            try:
                self.images[name] = pygame.image.load(str(path))
            except (pygame.error, FileNotFoundError) as e:
                logger.warning("Image %r not loaded from %s (attempt %d): %s", name, path, self.attempts, e)

        if len(self.images) == len(self.paths):
            logger.info("All images loaded after %d attempt(s)", self.attempts)
            self.state = self.READY
            self.next_attempt_at = None
            return True

        self.state = self.FAILED_RETRYING
        self.next_attempt_at = now + self.retry_interval
        return False


class SoundBank:
    """Best-effort sound effects. Audio problems are logged, never raised."""

    def __init__(self, paths=None):
        self.paths = {name: Path(p) for name, p in (paths or {}).items()}
        self.sounds = {}
        self.enabled = False
        self._initialized = False

    def _init_mixer(self):
        self._initialized = True
        if not any(p.is_file() for p in self.paths.values()):
            return

        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init()
        except pygame.error as e:
            logger.warning("Audio disabled, mixer init failed: %s", e)
            return

        for name, path in self.paths.items():
            if not path.is_file():
                logger.warning("Sound %r missing at %s", name, path)
                continue
            try:
                self.sounds[name] = pygame.mixer.Sound(str(path))
            except pygame.error as e:
                logger.warning("Sound %r failed to load: %s", name, e)
        self.enabled = bool(self.sounds)

    def play(self, name):
        if not self._initialized:
            self._init_mixer()
        sound = self.sounds.get(name)
        if sound is None:
            return
        try:
            sound.play()
        except pygame.error as e:
            logger.warning("Audio error playing %r: %s", name, e)


def gate_for_dir(asset_dir, retry_interval=0.5, clock=time.monotonic):
    if asset_dir is None:
        return AssetGate(clock=clock)
    asset_dir = Path(asset_dir)
    paths = {name: asset_dir / filename for name, filename in IMAGE_FILES.items()}
    return AssetGate(paths, retry_interval=retry_interval, clock=clock)


def sounds_for_dir(asset_dir):
    if asset_dir is None:
        return SoundBank()
    asset_dir = Path(asset_dir)
    return SoundBank({name: asset_dir / filename for name, filename in SOUND_FILES.items()})
