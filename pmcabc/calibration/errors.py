from __future__ import annotations

from typing import Any, Dict, Optional


class PMCError(Exception):
    """A round-level failure that aborts the run."""

    def __init__(
        self,
        message: str,
        step: Optional[int] = None,
        state: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.state = dict(state or {})

    def at_step(self, step: int, state: Dict[str, Any]) -> "PMCError":
        """Attach the round index and a snapshot of the driver state."""
        self.step = step
        self.state = {**state, **self.state}
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.step is not None:
            message = f"step {self.step}: {message}"
        if self.state:
            details = ", ".join(f"{k}={v}" for k, v in self.state.items())
            message = f"{message} ({details})"
        return message


class DegenerateWeightsError(PMCError):
    """Importance weights collapsed: the kernel has no support overlap with the prior."""


class KernelCovarianceError(PMCError):
    """The weighted covariance has non-finite entries."""


class PerturbationError(PMCError):
    """No non-negative perturbation was found within the retry cap."""
