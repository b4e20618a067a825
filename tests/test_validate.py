import pytest

from linekit.validate import (
    MatchingBracketValidator,
    ValidationContext,
    ValidationKind,
    ValidationResult,
    Validator,
    validate_brackets,
)


@pytest.mark.parametrize("text", ["", "abc", "()", "([]{})", "f(a[1], {b})"])
def test_balanced_is_valid(text):
    result = validate_brackets(text)
    assert result.is_valid()
    assert result.message is None


@pytest.mark.parametrize("text", ["(", "([", "{[()]", "f(a"])
def test_unclosed_is_incomplete(text):
    result = validate_brackets(text)
    assert result.kind is ValidationKind.INCOMPLETE
    assert not result.is_valid()
    assert not result.has_message()


def test_mismatched_closing_message():
    result = validate_brackets("([)")
    assert result.kind is ValidationKind.INVALID
    assert result.message == "Mismatched brackets: '[' is not properly closed"
    assert result.has_message()


def test_unpaired_closing_message():
    result = validate_brackets("a)")
    assert result.kind is ValidationKind.INVALID
    assert result.message == "Mismatched brackets: ')' is unpaired"


def test_first_error_wins_over_later_incomplete():
    result = validate_brackets("]((((")
    assert result.kind is ValidationKind.INVALID
    assert "unpaired" in result.message


def test_has_message_variants():
    assert ValidationResult.valid("ok").has_message()
    assert ValidationResult.invalid("bad").has_message()
    assert not ValidationResult.valid().has_message()
    assert not ValidationResult.invalid().has_message()
    assert not ValidationResult.incomplete().has_message()


def test_is_valid_only_for_valid():
    assert ValidationResult.valid("x").is_valid()
    assert not ValidationResult.invalid("x").is_valid()
    assert not ValidationResult.incomplete().is_valid()


def test_context_returns_input():
    ctx = ValidationContext("hello (")
    assert ctx.input() == "hello ("


def test_default_validator_accepts_everything():
    v = Validator()
    result = v.validate(ValidationContext("((("))
    assert result == ValidationResult.valid()
    assert v.validate_while_typing() is False


def test_matching_bracket_validator_uses_context():
    v = MatchingBracketValidator()
    assert v.validate(ValidationContext("[1, 2]")).is_valid()
    assert v.validate(ValidationContext("[1, 2")).kind is ValidationKind.INCOMPLETE
    assert v.validate(ValidationContext("[1, 2)")).message == (
        "Mismatched brackets: '[' is not properly closed"
    )
    assert v.validate_while_typing() is False