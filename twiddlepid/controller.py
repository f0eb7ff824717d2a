"""
TwiddlePID - PID Controller with Online Twiddle Auto-Tuning

This module provides a cross-track error PID controller that tunes its own
gains with the twiddle (coordinate-ascent hill-climbing) algorithm. The
application feeds error samples, reads the corrective output, and calls
tune() once per evaluation window.
"""

import math
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .error_history import DEFAULT_HISTORY_SIZE, ErrorHistory
from .exceptions import ConfigurationError, InvalidMeasurementError


DEFAULT_KP = 0.25
DEFAULT_KI = 0.0025
DEFAULT_KD = 10.0


class TuningPhase(IntEnum):
    """Twiddle sub-phase of the gain currently being tuned."""

    TRY_INCREASE = 0  # Gain at its original value, +step not tried yet
    TRY_DECREASE = 1  # +step applied, waiting for its window error
    EVALUATE = 2  # -step applied, waiting for its window error
    SETTLED = 3  # Step sizes below tolerance, tuning finished


class TwiddlePID:
    """
    PID controller with an online twiddle tuner.

    Each call to tune() closes one evaluation window: the squared error
    accumulated since the previous call is compared against the best window
    seen so far, one gain is perturbed or settled, and the error terms are
    cleared for the next window.

    Usage pattern:
        pid = TwiddlePID()

        # In control loop:
        pid.update_error(cte)
        apply_output_to_actuator(pid.compute_output())

        # Every N samples:
        if not pid.tune():
            print("Tuned gains:", pid.get_gains())
    """

    def __init__(
        self,
        kp: float = DEFAULT_KP,
        ki: float = DEFAULT_KI,
        kd: float = DEFAULT_KD,
        tolerance: float = 0.2,
        initial_step: float = 1.0,
        error_scale: float = 1000.0,
        increase_factor: float = 1.1,
        decrease_factor: float = 0.9,
        history_size: int = 0,
    ):
        """
        Initialize the TwiddlePID controller.

        Args:
            kp: Proportional gain
            ki: Integral gain
            kd: Derivative gain
            tolerance: Tuning stops once the step sizes sum below this value
            initial_step: Starting perturbation for every gain
            error_scale: Divisor applied to each window's squared error sum
            increase_factor: Step multiplier after an improving perturbation
            decrease_factor: Step multiplier after both perturbations failed
            history_size: Capacity of the error history buffer, 0 disables it

        Raises:
            ConfigurationError: If any parameter is out of range
        """
        self._check_gains(kp, ki, kd)

        if not tolerance > 0:
            raise ConfigurationError("Tolerance must be positive")
        if not initial_step > 0:
            raise ConfigurationError("Initial step must be positive")
        if not error_scale > 0:
            raise ConfigurationError("Error scale must be positive")
        if not increase_factor > 1:
            raise ConfigurationError("Increase factor must be greater than 1")
        if not 0 < decrease_factor < 1:
            raise ConfigurationError("Decrease factor must be between 0 and 1")
        if history_size < 0:
            raise ConfigurationError("History size cannot be negative")

        # Tuner configuration
        self._tolerance = tolerance
        self._initial_step = initial_step
        self._error_scale = error_scale
        self._increase_factor = increase_factor
        self._decrease_factor = decrease_factor

        # Gains in (Kp, Ki, Kd) order, indexed by the tuner
        self._gains: List[float] = [float(kp), float(ki), float(kd)]
        self._step_sizes: List[float] = [initial_step] * 3

        # Error terms of the current window
        self._p_error: float = 0.0
        self._i_error: float = 0.0
        self._d_error: float = 0.0
        self._cumulative_error: float = 0.0

        # Tuner state
        self._best_error: float = 0.0
        self._is_first_run: bool = True
        self._tuning_index: int = 0
        self._phase = TuningPhase.TRY_INCREASE

        # Recorded for inspection only, never read by compute_output()
        self._history: Optional[ErrorHistory] = (
            ErrorHistory(history_size) if history_size > 0 else None
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TwiddlePID":
        """
        Create a controller from a configuration dictionary.

        Args:
            config: Configuration as returned by twiddlepid.config.load_config()

        Returns:
            Configured controller
        """
        pid_config = config["pid"]
        twiddle_config = config["twiddle"]
        history_config = config.get("history", {})

        history_size = 0
        if history_config.get("enabled", False):
            history_size = history_config.get("size", DEFAULT_HISTORY_SIZE)

        return cls(
            kp=pid_config["kp"],
            ki=pid_config["ki"],
            kd=pid_config["kd"],
            tolerance=twiddle_config["tolerance"],
            initial_step=twiddle_config["initial_step"],
            error_scale=twiddle_config["error_scale"],
            increase_factor=twiddle_config["increase_factor"],
            decrease_factor=twiddle_config["decrease_factor"],
            history_size=history_size,
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.reset()

    def update_error(self, cte: float) -> None:
        """
        Feed a new cross-track error sample.

        Args:
            cte: Current measured deviation

        Raises:
            InvalidMeasurementError: If cte is NaN or infinite
        """
        if not math.isfinite(cte):
            raise InvalidMeasurementError(f"Cross-track error must be finite, got {cte}")

        self._d_error = cte - self._p_error
        self._p_error = cte
        self._cumulative_error += cte * cte
        self._i_error += cte

        if self._history is not None:
            self._history.push(cte)

    def compute_output(self) -> float:
        """
        Get the corrective signal for the current error terms.

        Returns:
            -(Kp * P + Ki * I + Kd * D)
        """
        kp, ki, kd = self._gains
        return -(kp * self._p_error + ki * self._i_error + kd * self._d_error)

    def tune(self) -> bool:
        """
        Close the current evaluation window and advance the twiddle tuner.

        Returns:
            True while tuning should continue, False once the step sizes
            have converged below the tolerance
        """
        factors_total = self.get_step_sizes_total()

        if factors_total < self._tolerance:
            self._phase = TuningPhase.SETTLED
            logger.info(
                f"Finished twiddle - {self._format_state(factors_total)}"
            )
            return False

        self._cumulative_error /= self._error_scale

        if self._is_first_run:
            self._best_error = self._cumulative_error
            self._is_first_run = False

        logger.debug(f"Twiddling - {self._format_state(factors_total)}")

        index = self._tuning_index
        if self._phase == TuningPhase.TRY_INCREASE:
            self._gains[index] += self._step_sizes[index]
            self._phase = TuningPhase.TRY_DECREASE
        elif self._cumulative_error < self._best_error:
            self._best_error = self._cumulative_error
            self._step_sizes[index] *= self._increase_factor
            self._advance_index()
        elif self._phase == TuningPhase.TRY_DECREASE:
            # Undo +step and apply -step in one move
            self._gains[index] -= 2 * self._step_sizes[index]
            self._phase = TuningPhase.EVALUATE
        else:
            self._gains[index] += self._step_sizes[index]
            self._step_sizes[index] *= self._decrease_factor
            self._advance_index()

        self._clear_window()
        return True

    def _advance_index(self) -> None:
        """Move on to the next gain with a fresh trial cycle."""
        self._phase = TuningPhase.TRY_INCREASE
        self._tuning_index = (self._tuning_index + 1) % 3

    def _clear_window(self) -> None:
        self._p_error = 0.0
        self._i_error = 0.0
        self._d_error = 0.0
        self._cumulative_error = 0.0

    def _format_state(self, factors_total: float) -> str:
        kp, ki, kd = self._gains
        return (
            f"[{kp:.6g}, {ki:.6g}, {kd:.6g}] "
            f"CErr={self._cumulative_error:.6g} BErr={self._best_error:.6g} "
            f"Up={self.perturb_up_flag} Down={self.perturb_down_flag} "
            f"Phase={self._phase.name} Index={self._tuning_index} "
            f"Steps={factors_total:.6g}"
        )

    @staticmethod
    def _check_gains(kp: float, ki: float, kd: float) -> None:
        if not (math.isfinite(kp) and math.isfinite(ki) and math.isfinite(kd)):
            raise ConfigurationError("PID gains must be finite")

    def set_tunings(self, kp: float, ki: float, kd: float) -> None:
        """
        Replace the PID gains.

        The tuner state is left alone, so calling this mid-tuning makes the
        current trial compare windows run under different gains.

        Raises:
            ConfigurationError: If any gain is not finite
        """
        self._check_gains(kp, ki, kd)

        if self._phase not in (TuningPhase.TRY_INCREASE, TuningPhase.SETTLED):
            logger.warning("Gains changed while a twiddle trial is in progress")

        self._gains = [float(kp), float(ki), float(kd)]

    def reset(self) -> None:
        """Reset error terms, history and the tuner, keeping the current gains."""
        self._clear_window()
        self._step_sizes = [self._initial_step] * 3
        self._best_error = 0.0
        self._is_first_run = True
        self._tuning_index = 0
        self._phase = TuningPhase.TRY_INCREASE

        if self._history is not None:
            self._history.clear()

    # Query methods
    def get_kp(self) -> float:
        """Get proportional gain."""
        return self._gains[0]

    def get_ki(self) -> float:
        """Get integral gain."""
        return self._gains[1]

    def get_kd(self) -> float:
        """Get derivative gain."""
        return self._gains[2]

    def get_gains(self) -> Tuple[float, float, float]:
        """Get gains as (Kp, Ki, Kd) tuple."""
        return (self._gains[0], self._gains[1], self._gains[2])

    def get_step_sizes(self) -> Tuple[float, float, float]:
        """Get the twiddle perturbation sizes in gain order."""
        return (self._step_sizes[0], self._step_sizes[1], self._step_sizes[2])

    def get_step_sizes_total(self) -> float:
        """Get the sum of the perturbation sizes."""
        return sum(self._step_sizes)

    def get_tuning_index(self) -> int:
        """Get the index of the gain currently being tuned."""
        return self._tuning_index

    def get_phase(self) -> TuningPhase:
        """Get the current twiddle sub-phase."""
        return self._phase

    def get_best_error(self) -> Optional[float]:
        """Get the lowest scaled window error seen, None before the first window."""
        if self._is_first_run:
            return None
        return self._best_error

    def get_cumulative_error(self) -> float:
        """Get the squared error accumulated in the current window."""
        return self._cumulative_error

    def get_p_error(self) -> float:
        """Get proportional error term."""
        return self._p_error

    def get_i_error(self) -> float:
        """Get integral error term."""
        return self._i_error

    def get_d_error(self) -> float:
        """Get derivative error term."""
        return self._d_error

    def get_tolerance(self) -> float:
        """Get the step-size sum below which tuning stops."""
        return self._tolerance

    def get_error_history(self) -> Optional[ErrorHistory]:
        """Get the error history buffer, None when disabled."""
        return self._history

    def is_tuning_complete(self) -> bool:
        """Check whether the step sizes have converged below the tolerance."""
        return self.get_step_sizes_total() < self._tolerance

    @property
    def perturb_up_flag(self) -> bool:
        """True once +step has been tried for the current gain."""
        return self._phase in (TuningPhase.TRY_DECREASE, TuningPhase.EVALUATE)

    @property
    def perturb_down_flag(self) -> bool:
        """True once -step has been tried for the current gain."""
        return self._phase == TuningPhase.EVALUATE

    def get_tuning_progress(self) -> Dict[str, Any]:
        """Get a snapshot of the tuner state."""
        return {
            "gains": self.get_gains(),
            "step_sizes": self.get_step_sizes(),
            "step_sizes_total": self.get_step_sizes_total(),
            "tolerance": self._tolerance,
            "best_error": self.get_best_error(),
            "cumulative_error": self._cumulative_error,
            "tuning_index": self._tuning_index,
            "phase": self._phase.name,
            "complete": self.is_tuning_complete(),
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        kp, ki, kd = self._gains
        return (
            f"TwiddlePID(Kp={kp:.3f}, Ki={ki:.3f}, Kd={kd:.3f}, "
            f"phase={self._phase.name}, index={self._tuning_index})"
        )
