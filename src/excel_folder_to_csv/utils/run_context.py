"""Run ID management for tying log records to one conversion run.

Every conversion run gets an identifier that is stored in a context
variable for the duration of the run and injected into log records by
``RunIdFilter``.
"""

import contextvars
import uuid
from typing import Optional


class RunContext:
    """Context manager that scopes a run ID to the current execution context.

    Example:
        >>> with RunContext() as run_id:
        ...     RunContext.get_run_id() == run_id
        True
    """

    _context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
        "run_id", default=None
    )

    @classmethod
    def get_run_id(cls) -> Optional[str]:
        """Get the run ID of the current context, or None outside a run."""
        return cls._context.get()

    @classmethod
    def generate_run_id(cls) -> str:
        """Generate a short run ID."""
        return uuid.uuid4().hex[:12]

    def __init__(self, run_id: Optional[str] = None):
        """Initialize context manager.

        Args:
            run_id: Optional run ID. If None, a new one is generated.
        """
        self.run_id = run_id or self.generate_run_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = self._context.set(self.run_id)
        return self.run_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            self._context.reset(self._token)
            self._token = None
