"""Step execution backends."""

from uni_flow.chain.backend.base import StepExecutor
from uni_flow.chain.backend.subprocess_executor import SubprocessStepExecutor, strip_ansi

__all__ = [
    "StepExecutor",
    "SubprocessStepExecutor",
    "strip_ansi",
]
