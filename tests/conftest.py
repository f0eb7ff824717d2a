"""
Pytest configuration for TwiddlePID tests.

Provides controller fixtures, a loguru capture fixture and two simulated
cross-track processes.
"""

import math
import sys
from pathlib import Path
from typing import List

import pytest
from loguru import logger

# Add repo root to path for imports
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from twiddlepid import TwiddlePID


class LateralVehicle:
    """
    Kinematic bicycle model tracking a straight reference line.

    The cross-track error is the lateral offset y from the line. Steering
    is clamped to +-max_steer, and a constant heading drift stands in for
    a misaligned wheel so the integral term has something to do.
    """

    def __init__(
        self,
        speed: float = 1.0,
        wheelbase: float = 2.5,
        dt: float = 0.1,
        initial_offset: float = 1.0,
        max_steer: float = math.pi / 4,
        drift: float = 0.01,
    ):
        self.speed = speed
        self.wheelbase = wheelbase
        self.dt = dt
        self.initial_offset = initial_offset
        self.max_steer = max_steer
        self.drift = drift

        self.y = initial_offset
        self.heading = 0.0
        self.reset_count = 0

    def reset(self) -> float:
        self.y = self.initial_offset
        self.heading = 0.0
        self.reset_count += 1
        return self.y

    def update(self, output: float) -> float:
        steer = max(-self.max_steer, min(self.max_steer, output))
        self.heading += self.speed / self.wheelbase * math.tan(steer) * self.dt
        self.heading += self.drift * self.dt
        self.y += self.speed * math.sin(self.heading) * self.dt
        return self.y


class ConstantProcess:
    """Process whose error ignores the controller output entirely."""

    def __init__(self, cte: float = 1.0):
        self.cte = cte
        self.outputs: List[float] = []
        self.reset_count = 0

    def reset(self) -> float:
        self.reset_count += 1
        return self.cte

    def update(self, output: float) -> float:
        self.outputs.append(output)
        return self.cte


@pytest.fixture
def pid():
    """Controller with default gains."""
    return TwiddlePID()


@pytest.fixture
def vehicle():
    return LateralVehicle()


@pytest.fixture
def constant_process():
    return ConstantProcess(1.0)


@pytest.fixture
def log_messages():
    """Capture loguru records emitted during a test."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def feed():
    """Feed the same error sample several times."""

    def _feed(controller: TwiddlePID, cte: float, samples: int = 10) -> None:
        for _ in range(samples):
            controller.update_error(cte)

    return _feed
