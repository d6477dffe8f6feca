"""Analysis configuration."""

from __future__ import annotations

from dataclasses import dataclass

_VALID_MINIMIZATIONS = {"none", "partition", "significant"}
_VALID_LR_METHODS = {"lr0", "slr", "lr1", "lalr"}


@dataclass
class AnalysisConfig:
    """Limits and defaults shared by every algorithm.

    Attributes:
        max_iterations: Cap for fixed-point loops (FIRST/FOLLOW, LEADING/TRAILING,
            partition refinement).  Exceeding it raises ``ConvergenceError``.
        max_factoring_rounds: Cap for left-factoring rounds.
        max_parse_steps: Cap on steps taken by the LL, LR and precedence parsers.
            A parse that hits the cap is rejected.
        enumeration_max_length: Default maximum length for language enumeration.
        enumeration_max_count: Default maximum number of enumerated strings.
        default_minimization: ``"none"``, ``"partition"`` or ``"significant"``.
        default_lr_method: ``"lr0"``, ``"slr"``, ``"lr1"`` or ``"lalr"``.
    """

    max_iterations: int = 1000
    max_factoring_rounds: int = 100
    max_parse_steps: int = 10_000

    # Language enumeration.
    enumeration_max_length: int = 5
    enumeration_max_count: int = 100

    # Defaults for the service and CLI.
    default_minimization: str = "partition"
    default_lr_method: str = "slr"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate configuration values, raising ``ValueError`` on invalid settings."""
        if self.default_minimization not in _VALID_MINIMIZATIONS:
            raise ValueError(
                f"Unsupported default_minimization: {self.default_minimization!r}. "
                f"Choose from {sorted(_VALID_MINIMIZATIONS)}"
            )
        if self.default_lr_method not in _VALID_LR_METHODS:
            raise ValueError(
                f"Unsupported default_lr_method: {self.default_lr_method!r}. "
                f"Choose from {sorted(_VALID_LR_METHODS)}"
            )
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.max_factoring_rounds < 1:
            raise ValueError(
                f"max_factoring_rounds must be >= 1, got {self.max_factoring_rounds}"
            )
        if self.max_parse_steps < 1:
            raise ValueError(f"max_parse_steps must be >= 1, got {self.max_parse_steps}")
        if self.enumeration_max_length < 0:
            raise ValueError(
                f"enumeration_max_length must be >= 0, got {self.enumeration_max_length}"
            )
        if self.enumeration_max_count < 1:
            raise ValueError(
                f"enumeration_max_count must be >= 1, got {self.enumeration_max_count}"
            )


DEFAULT_CONFIG = AnalysisConfig()
