"""Input validation for multi-line editing."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

_OPENING = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_OPENING.values())


class ValidationKind(enum.Enum):
    """The outcome of validating the current input."""

    INCOMPLETE = "incomplete"
    INVALID = "invalid"
    VALID = "valid"


@dataclass(frozen=True)
class ValidationResult:
    """Result of a validation with an optional message for the user."""

    kind: ValidationKind
    message: Optional[str] = None

    @staticmethod
    def incomplete() -> "ValidationResult":
        """Input is not finished yet."""
        return ValidationResult(ValidationKind.INCOMPLETE)

    @staticmethod
    def invalid(message: Optional[str] = None) -> "ValidationResult":
        """Input is wrong and must be fixed by the user."""
        return ValidationResult(ValidationKind.INVALID, message)

    @staticmethod
    def valid(message: Optional[str] = None) -> "ValidationResult":
        """Input is accepted."""
        return ValidationResult(ValidationKind.VALID, message)

    def is_valid(self) -> bool:
        return self.kind is ValidationKind.VALID

    def has_message(self) -> bool:
        return (
            self.kind in (ValidationKind.VALID, ValidationKind.INVALID)
            and self.message is not None
        )


class ValidationContext:
    """Gives a validator access to the user input."""

    def __init__(self, input: str) -> None:
        self._input = input

    def input(self) -> str:
        """Return the user input."""
        return self._input


class Validator:
    """Decides whether pressing Enter ends the current editing session.

    The default implementation accepts every input.
    """

    def validate(self, ctx: ValidationContext) -> ValidationResult:
        return ValidationResult.valid()

    def validate_while_typing(self) -> bool:
        """Whether validation runs while typing rather than only on Enter."""
        return False


class MatchingBracketValidator(Validator):
    """Accepts input only when its brackets are balanced."""

    def validate(self, ctx: ValidationContext) -> ValidationResult:
        return validate_brackets(ctx.input())


def validate_brackets(input: str) -> ValidationResult:
    """Check that (), [] and {} in ``input`` are properly nested."""
    stack: list[str] = []
    for c in input:
        if c in _OPENING:
            stack.append(c)
        elif c in _CLOSING:
            if not stack:
                return ValidationResult.invalid(
                    f"Mismatched brackets: {c!r} is unpaired"
                )
            wanted = stack.pop()
            if _OPENING[wanted] != c:
                return ValidationResult.invalid(
                    f"Mismatched brackets: {wanted!r} is not properly closed"
                )
    if stack:
        return ValidationResult.incomplete()
    return ValidationResult.valid()