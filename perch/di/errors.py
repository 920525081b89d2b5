"""
DI-specific error types with rich diagnostics.
"""

from typing import List, Optional


class DIError(Exception):
    """Base exception for DI errors."""
    pass


class ProviderNotFoundError(DIError):
    """Provider not found for requested token."""

    def __init__(
        self,
        token: str,
        requested_by: Optional[str] = None,
    ):
        self.token = token
        self.requested_by = requested_by

        msg = f"No provider found for token={token}"
        if requested_by:
            msg += f"\nRequested by: {requested_by}"
        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register a provider for {token}"
        msg += "\n  - Enable autowire=True on the container for concrete classes"

        super().__init__(msg)


class DependencyCycleError(DIError):
    """Circular dependency detected."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle

        msg = "Detected dependency cycle:"
        for i, token in enumerate(cycle):
            arrow = " -> " if i < len(cycle) - 1 else ""
            msg += f"\n  {token}{arrow}"

        super().__init__(msg)
