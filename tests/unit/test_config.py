"""Unit tests for AnalysisConfig and the error hierarchy."""

from __future__ import annotations

import pytest

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import (
    AutomatonValidationError,
    CompilabError,
    ConvergenceError,
    GrammarValidationError,
    RegexValidationError,
)


class TestAnalysisConfigDefaults:
    def test_defaults(self) -> None:
        cfg = AnalysisConfig()
        assert cfg.max_iterations == 1000
        assert cfg.max_factoring_rounds == 100
        assert cfg.max_parse_steps == 10_000
        assert cfg.enumeration_max_length == 5
        assert cfg.enumeration_max_count == 100
        assert cfg.default_minimization == "partition"
        assert cfg.default_lr_method == "slr"

    def test_default_instance(self) -> None:
        assert DEFAULT_CONFIG == AnalysisConfig()

    def test_custom_values(self) -> None:
        cfg = AnalysisConfig(
            max_iterations=10,
            max_parse_steps=50,
            default_minimization="none",
            default_lr_method="lalr",
        )
        assert cfg.max_iterations == 10
        assert cfg.max_parse_steps == 50
        assert cfg.default_minimization == "none"
        assert cfg.default_lr_method == "lalr"


class TestAnalysisConfigValidation:
    def test_invalid_minimization(self) -> None:
        with pytest.raises(ValueError, match="default_minimization"):
            AnalysisConfig(default_minimization="hopcroft")

    def test_invalid_lr_method(self) -> None:
        with pytest.raises(ValueError, match="default_lr_method"):
            AnalysisConfig(default_lr_method="glr")

    def test_max_iterations_zero(self) -> None:
        with pytest.raises(ValueError, match="max_iterations"):
            AnalysisConfig(max_iterations=0)

    def test_max_factoring_rounds_zero(self) -> None:
        with pytest.raises(ValueError, match="max_factoring_rounds"):
            AnalysisConfig(max_factoring_rounds=0)

    def test_max_parse_steps_zero(self) -> None:
        with pytest.raises(ValueError, match="max_parse_steps"):
            AnalysisConfig(max_parse_steps=0)

    def test_negative_enumeration_length(self) -> None:
        with pytest.raises(ValueError, match="enumeration_max_length"):
            AnalysisConfig(enumeration_max_length=-1)

    def test_zero_enumeration_length_is_valid(self) -> None:
        assert AnalysisConfig(enumeration_max_length=0).enumeration_max_length == 0

    def test_enumeration_count_zero(self) -> None:
        with pytest.raises(ValueError, match="enumeration_max_count"):
            AnalysisConfig(enumeration_max_count=0)


class TestErrors:
    def test_validation_errors_join_messages(self) -> None:
        exc = RegexValidationError(["first problem", "second problem"])
        assert exc.errors == ["first problem", "second problem"]
        assert str(exc) == "first problem; second problem"

    def test_validation_errors_are_value_errors(self) -> None:
        for cls in (RegexValidationError, GrammarValidationError, AutomatonValidationError):
            assert issubclass(cls, ValueError)
            assert issubclass(cls, CompilabError)

    def test_convergence_error_message(self) -> None:
        exc = ConvergenceError("FIRST computation", 3)
        assert exc.algorithm == "FIRST computation"
        assert exc.limit == 3
        assert str(exc) == "FIRST computation did not converge within 3 iterations"
