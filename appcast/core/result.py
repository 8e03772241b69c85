"""Result type for explicit error handling.

Every release step returns either ``Ok(value)`` or ``Err(error)`` so the
orchestrator can stop at the first failure without try/except blocks.

Usage:
    match read_bundle_version(bundle):
        case Ok(version):
            console.info(f"version {version}")
        case Err(error):
            console.error(error.message)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """A successful step carrying its value."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """A failed step carrying its error."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
