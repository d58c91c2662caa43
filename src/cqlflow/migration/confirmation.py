"""Confirmation oracles for destructive migration steps."""

from typing import Callable, Optional

from cqlflow.logging import get_logger

logger = get_logger(__name__)


def is_approved(answer: Optional[str]) -> bool:
    """Only ``y`` (any case, surrounding whitespace ignored) approves."""
    return str(answer or "").strip().lower() == "y"


class ConsoleConfirmation:
    """Prompts on the terminal.

    Args:
        input_func: Reads one answer line; defaults to the builtin ``input``
    """

    def __init__(self, input_func: Optional[Callable[[str], str]] = None):
        self._input = input_func or input

    def ask(self, prompt: str) -> str:
        return self._input(f"{prompt} (y/n): ")


class AutoApproveConfirmation:
    """Approves every step; for unattended runs."""

    def ask(self, prompt: str) -> str:
        logger.info("migration.confirmation.auto_approved", extra={"prompt": prompt})
        return "y"
