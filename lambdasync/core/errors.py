"""
Custom exception classes.

Every failure raised by the reconciler derives from DeployError and names the
function or layer it concerns, plus the phase that failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lambdasync.core.report import ApplyReport


class DeployError(Exception):
    """Base exception class for the reconciler."""

    pass


class ConfigError(DeployError):
    """Raised when the deploy document or dependency manifest is unusable."""

    pass


class RunnerError(DeployError):
    """Raised when an external command (package installer) fails."""

    pass


class PlatformError(DeployError):
    """Raised when a platform call fails for a reason other than not-found."""

    def __init__(self, operation: str, target: str, code: str, message: str):
        self.operation = operation
        self.target = target
        self.code = code
        self.message = message
        super().__init__(f"{operation} failed for {target}: {code}: {message}")


class CollectionError(DeployError):
    """Raised when observed state cannot be collected. Nothing has been mutated yet."""

    def __init__(self, target: str, cause: Exception):
        self.target = target
        self.cause = cause
        super().__init__(f"Failed to collect state of {target}: {cause}")


class SettleFailedError(DeployError):
    """The platform reported a failed update while settling."""

    def __init__(self, function_name: str, reason: str | None, attempts: int):
        self.function_name = function_name
        self.reason = reason
        self.attempts = attempts
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Function {function_name} update failed after {attempts} polls{detail}"
        )


class SettleTimeoutError(DeployError, TimeoutError):
    """The function never reached a terminal state within the retry policy."""

    def __init__(self, function_name: str, attempts: int):
        self.function_name = function_name
        self.attempts = attempts
        super().__init__(
            f"Function {function_name} did not settle after {attempts} polls"
        )


class DeadlineExceededError(DeployError, TimeoutError):
    """The overall run deadline expired at a suspension point."""

    def __init__(self, target: str, operation: str):
        self.target = target
        self.operation = operation
        super().__init__(f"Run deadline exceeded during {operation} for {target}")


class ApplyError(DeployError):
    """Raised when applying the plan fails for one function (or the layer)."""

    def __init__(
        self,
        target: str,
        phase: str,
        cause: Exception,
        report: ApplyReport | None = None,
    ):
        self.target = target
        self.phase = phase
        self.cause = cause
        self.report = report
        super().__init__(f"Apply failed for {target} during {phase}: {cause}")


class PruneError(DeployError):
    """Raised when deleting a function version or layer version fails.

    ``apply_report`` is set when the failure follows a successful apply in the
    same run, so the published versions are still reported.
    """

    def __init__(
        self,
        target: str,
        version: str | int,
        cause: Exception,
        apply_report: ApplyReport | None = None,
    ):
        self.target = target
        self.version = version
        self.cause = cause
        self.apply_report = apply_report
        super().__init__(f"Failed to prune {target} version {version}: {cause}")
