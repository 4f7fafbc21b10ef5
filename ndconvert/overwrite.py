"""Decide whether an existing destination may be overwritten."""

from __future__ import annotations

import sys
from typing import Callable, Dict, Optional, TextIO

from .enums import OverwriteDecision
from .errors import DatasetIOError, OverwriteAborted
from .io import exists as dataset_exists
from .logging import get_logger

logger = get_logger(__name__)


class OverwriteGuard:
    """
    Overwrite policy for destinations.

    ``no_overwrite`` wins over ``overwrite``; with neither flag the user is
    asked. Decisions reached by prompting are remembered per path, so the
    user is asked at most once for each destination.

    Args:
        overwrite: Replace existing destinations without asking
        no_overwrite: Never replace existing destinations
        exists: Existence probe; :func:`ndconvert.io.exists` by default
        input_stream: Where answers are read from; ``sys.stdin`` (looked up
            at call time) by default

    Examples:
        >>> guard = OverwriteGuard(no_overwrite=True, exists=lambda p: True)
        >>> guard.evaluate("out.tif") is OverwriteDecision.ABORT
        True
    """

    def __init__(
        self,
        overwrite: bool = False,
        no_overwrite: bool = False,
        exists: Optional[Callable[[str], bool]] = None,
        input_stream: Optional[TextIO] = None,
    ):
        self.overwrite = overwrite
        self.no_overwrite = no_overwrite
        self._exists = exists or dataset_exists
        self._input_stream = input_stream
        self._decisions: Dict[str, OverwriteDecision] = {}

    def _destination_exists(self, path: str) -> bool:
        try:
            return bool(self._exists(path))
        except DatasetIOError:
            raise
        except OSError as exc:
            raise DatasetIOError(f"Cannot query destination: {exc}") from exc

    def evaluate(self, path: str) -> OverwriteDecision:
        """Decision for ``path`` from the flags alone, without prompting."""
        path = str(path)
        if not self._destination_exists(path):
            return OverwriteDecision.PROCEED
        if self.no_overwrite:
            return OverwriteDecision.ABORT
        if self.overwrite:
            return OverwriteDecision.PROCEED
        return OverwriteDecision.NEEDS_PROMPT

    def check(self, path: str) -> OverwriteDecision:
        """
        Final decision for ``path``, prompting the user when flags don't decide.

        Any answer not starting with ``n``, including an empty line or end of
        input, means yes.

        Returns:
            PROCEED or ABORT
        """
        path = str(path)
        if path in self._decisions:
            return self._decisions[path]
        decision = self.evaluate(path)
        if decision is OverwriteDecision.NEEDS_PROMPT:
            logger.warning("destination %s exists.", path)
            logger.warning("Do you want to overwrite it? ([y]/n)")
            stream = self._input_stream or sys.stdin
            answer = stream.readline().strip()
            decision = (
                OverwriteDecision.ABORT
                if answer.lower().startswith("n")
                else OverwriteDecision.PROCEED
            )
            self._decisions[path] = decision
        return decision

    def ensure(self, path: str) -> None:
        """
        Raise unless ``path`` may be written.

        Raises:
            OverwriteAborted: If overwriting was declined
            DatasetIOError: If existence cannot be determined
        """
        if self.check(path) is OverwriteDecision.ABORT:
            raise OverwriteAborted(
                f"Output file {path} exists and overwriting was declined."
            )
