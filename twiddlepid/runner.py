"""
TwiddleRunner - Evaluation window driver for TwiddlePID.

Feeds cross-track error samples through a controller and closes a twiddle
evaluation window every samples_per_window samples. When driving a
CrossTrackProcess, the process is reset at each window boundary so that
every candidate set of gains is evaluated from the same starting state.
"""

from typing import Any, Dict, Optional

from loguru import logger

from .controller import TwiddlePID
from .exceptions import ConfigurationError, TuningError
from .process_base import CrossTrackProcess


class TwiddleRunner:
    """
    Window bookkeeping around a TwiddlePID controller.

    Usage:
        runner = TwiddleRunner(TwiddlePID(), samples_per_window=200)

        # In control loop:
        steering = runner.step(cte)
        if runner.is_tuning_complete():
            ...

    Or, with a simulated process:
        runner.run(process, max_steps=1_000_000)
    """

    def __init__(
        self,
        controller: TwiddlePID,
        samples_per_window: int = 100,
        max_windows: Optional[int] = None,
    ):
        """
        Initialize the runner.

        Args:
            controller: Controller to drive and tune
            samples_per_window: Samples accumulated before each tune() call
            max_windows: Windows allowed before giving up, None for no limit

        Raises:
            ConfigurationError: If samples_per_window or max_windows is not positive
        """
        if samples_per_window <= 0:
            raise ConfigurationError("Samples per window must be positive")
        if max_windows is not None and max_windows <= 0:
            raise ConfigurationError("Max windows must be positive")

        self._controller = controller
        self._samples_per_window = samples_per_window
        self._max_windows = max_windows

        self._samples_in_window: int = 0
        self._windows_completed: int = 0

    @classmethod
    def from_config(
        cls, controller: TwiddlePID, config: Dict[str, Any]
    ) -> "TwiddleRunner":
        """Create a runner from the twiddle section of a configuration."""
        twiddle_config = config["twiddle"]
        return cls(
            controller,
            samples_per_window=twiddle_config.get("samples_per_window", 100),
            max_windows=twiddle_config.get("max_windows"),
        )

    def step(self, cte: float) -> float:
        """
        Process one error sample.

        The output is computed before the window is closed, so the sample
        that completes a window still gets a valid correction.

        Args:
            cte: Current cross-track error

        Returns:
            Controller output for this sample

        Raises:
            TuningError: If max_windows windows closed without convergence
        """
        self._controller.update_error(cte)
        output = self._controller.compute_output()

        if self._controller.is_tuning_complete():
            return output

        self._samples_in_window += 1
        if self._samples_in_window >= self._samples_per_window:
            self._close_window()

        return output

    def _close_window(self) -> None:
        self._samples_in_window = 0

        if self._controller.tune():
            self._windows_completed += 1

            if not self._controller.is_tuning_complete():
                if (
                    self._max_windows is not None
                    and self._windows_completed >= self._max_windows
                ):
                    logger.error(
                        f"Twiddle did not converge within {self._max_windows} windows "
                        f"(step total {self._controller.get_step_sizes_total():.4g})"
                    )
                    raise TuningError(
                        f"Twiddle did not converge within {self._max_windows} windows"
                    )
                return

            # The last shrink crossed the tolerance, settle without another window
            self._controller.tune()

        kp, ki, kd = self._controller.get_gains()
        logger.info(
            f"Twiddle converged after {self._windows_completed} windows: "
            f"Kp={kp:.6g}, Ki={ki:.6g}, Kd={kd:.6g}"
        )

    def run(self, process: CrossTrackProcess, max_steps: int) -> bool:
        """
        Drive a process until tuning converges or max_steps samples elapse.

        The process is reset at the start and after every closed window.

        Args:
            process: Simulated or physical loop returning cross-track error
            max_steps: Upper bound on samples fed to the controller

        Returns:
            True if tuning converged, False if max_steps ran out first

        Raises:
            TuningError: If max_windows windows closed without convergence
        """
        if not isinstance(process, CrossTrackProcess):
            raise ConfigurationError("Process must provide update() and reset()")

        cte = process.reset()
        for _ in range(max_steps):
            if self._controller.is_tuning_complete():
                break

            windows_before = self._windows_completed
            output = self.step(cte)

            if self._windows_completed != windows_before:
                cte = process.reset()
            else:
                cte = process.update(output)

        complete = self._controller.is_tuning_complete()
        if not complete:
            logger.warning(f"Twiddle still running after {max_steps} steps")
        return complete

    def get_controller(self) -> TwiddlePID:
        """Get the driven controller."""
        return self._controller

    def get_samples_per_window(self) -> int:
        """Get the number of samples in each evaluation window."""
        return self._samples_per_window

    def get_samples_in_window(self) -> int:
        """Get the number of samples accumulated in the open window."""
        return self._samples_in_window

    def get_windows_completed(self) -> int:
        """Get the number of windows that advanced the tuner."""
        return self._windows_completed

    def is_tuning_complete(self) -> bool:
        """Check if the controller's tuning has converged."""
        return self._controller.is_tuning_complete()

    def __repr__(self) -> str:
        status = "complete" if self.is_tuning_complete() else "tuning"
        return (
            f"TwiddleRunner(windows={self._windows_completed}, "
            f"samples_per_window={self._samples_per_window}, status={status})"
        )
