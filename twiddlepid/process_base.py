from typing import Protocol, runtime_checkable

@runtime_checkable
class CrossTrackProcess(Protocol):
    def update(self, output: float) -> float:
        """Apply a controller output and return the resulting cross-track error"""
        ...

    def reset(self) -> float:
        """Restore initial conditions and return the initial cross-track error"""
        ...
