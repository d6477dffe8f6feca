"""Exception hierarchy.

Validation errors are raised before any construction starts and carry the
full list of human-readable problems.  Conflicts and rejected inputs are not
errors: they are reported as data on the result objects.
"""

from __future__ import annotations


class CompilabError(Exception):
    """Base class for all library errors."""


class ValidationError(CompilabError, ValueError):
    """Input rejected before construction.

    Attributes:
        errors: Every problem found, in the order it was detected.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class RegexValidationError(ValidationError):
    """Malformed regular expression."""


class GrammarValidationError(ValidationError):
    """Malformed grammar (missing start symbol, unclassified symbol, ...)."""


class AutomatonValidationError(ValidationError):
    """Automaton that breaks a structural invariant or lacks initial/final states."""


class RegexSyntaxError(CompilabError, ValueError):
    """The postfix token stream could not be folded into a single tree."""


class ConvergenceError(CompilabError, RuntimeError):
    """An iterative algorithm exceeded its iteration cap."""

    def __init__(self, algorithm: str, limit: int) -> None:
        self.algorithm = algorithm
        self.limit = limit
        super().__init__(f"{algorithm} did not converge within {limit} iterations")
