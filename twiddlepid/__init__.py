"""
TwiddlePID - PID Controller with Online Twiddle Auto-Tuning

A cross-track error PID controller that tunes its own gains with the
twiddle coordinate-ascent algorithm, one evaluation window at a time.

Licensed under the MIT License.
"""

from .config import (
    create_default_config,
    load_config,
    merge_config,
    save_config,
    validate_config,
)
from .controller import TuningPhase, TwiddlePID
from .error_history import ErrorHistory
from .exceptions import (
    ConfigurationError,
    InvalidMeasurementError,
    TuningError,
    TwiddlePIDError,
)
from .process_base import CrossTrackProcess
from .runner import TwiddleRunner

__version__ = "1.0.0"
__author__ = "TwiddlePID Contributors"
__license__ = "MIT"

__all__ = [
    "TwiddlePID",
    "TuningPhase",
    "TwiddleRunner",
    "ErrorHistory",
    "CrossTrackProcess",
    "TwiddlePIDError",
    "ConfigurationError",
    "InvalidMeasurementError",
    "TuningError",
    "create_default_config",
    "load_config",
    "save_config",
    "validate_config",
    "merge_config",
]
