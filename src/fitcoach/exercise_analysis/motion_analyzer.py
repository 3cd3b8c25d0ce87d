"""
motion_analyzer.py - Speed and smoothness of a single tracked point.
"""
import math
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from .config_utils import get_default_config, get_logger, merge_thresholds

logger = get_logger("MotionAnalyzer")


class MotionSpeed(Enum):
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"


class Smoothness(Enum):
    SMOOTH = "smooth"
    JERKY = "jerky"


@dataclass
class MotionQuality:
    speed: MotionSpeed = MotionSpeed.NORMAL
    smoothness: Smoothness = Smoothness.SMOOTH
    is_moving: bool = False
    feedback: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speed": self.speed.value,
            "smoothness": self.smoothness.value,
            "is_moving": self.is_moving,
            "feedback": self.feedback,
        }


class MotionAnalyzer:
    """Classifies a point's recent trajectory, independent of the exercise."""

    _MIN_SAMPLES = 3

    def __init__(self, config: Optional[Dict[str, Any]] = None, settings: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: Full exercise config, defaults to the packaged JSON
            settings: Overrides for the "motion" section of the config
        """
        config = config or get_default_config()
        self.settings = merge_thresholds(config["motion"], settings, "motion")
        self._samples: deque = deque(maxlen=int(self.settings["window_size"]))

    def update(self, x: float, y: float, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        if not (math.isfinite(x) and math.isfinite(y)):
            return
        self._samples.append((float(x), float(y), now))
        max_age = self.settings["max_sample_age"]
        while self._samples and now - self._samples[0][2] > max_age:
            self._samples.popleft()

    def reset(self) -> None:
        self._samples.clear()

    def analyze(self) -> MotionQuality:
        """
        Classify speed and smoothness over the trailing window.

        Speed comes from the mean per-step displacement. Smoothness comes from
        the variance of the heading change between consecutive steps; steps
        shorter than the noise floor carry no usable heading and are skipped.
        """
        if len(self._samples) < self._MIN_SAMPLES:
            return MotionQuality()

        positions = np.array([[x, y] for x, y, _ in self._samples])
        steps = np.diff(positions, axis=0)
        distances = np.linalg.norm(steps, axis=1)
        avg_step = float(np.mean(distances))
        noise_floor = self.settings["noise_floor"]

        quality = MotionQuality(is_moving=avg_step > noise_floor)
        if avg_step < self.settings["slow_threshold"]:
            quality.speed = MotionSpeed.SLOW
        elif avg_step > self.settings["fast_threshold"]:
            quality.speed = MotionSpeed.FAST

        moving_steps = steps[distances > noise_floor]
        if len(moving_steps) >= self._MIN_SAMPLES:
            headings = np.arctan2(moving_steps[:, 1], moving_steps[:, 0])
            turns = np.mod(np.diff(headings) + np.pi, 2 * np.pi) - np.pi
            variance = float(np.var(turns))
            if variance > self.settings["jerk_variance"]:
                quality.smoothness = Smoothness.JERKY
                logger.debug(f"Jerky motion: heading variance {variance:.2f}")

        if not quality.is_moving:
            quality.feedback = "no_motion"
        elif quality.speed == MotionSpeed.FAST:
            quality.feedback = "too_fast"
        elif quality.smoothness == Smoothness.JERKY:
            quality.feedback = "jerky"
        elif quality.speed == MotionSpeed.SLOW:
            quality.feedback = "too_slow"
        return quality
