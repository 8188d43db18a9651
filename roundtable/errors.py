"""Exceptions raised by the iteration loop."""


class RoundtableError(Exception):
    """Base for all Roundtable errors."""


class InvalidInputError(RoundtableError, ValueError):
    """Raised when a required argument is missing or malformed."""


class EmptySelectionError(InvalidInputError):
    """Raised when round feedback is submitted with no points selected."""

    def __init__(self) -> None:
        super().__init__("Select at least one validation result before submitting")


class MaxRoundsReachedError(RoundtableError):
    """Raised when advancing would exceed the configured round limit."""

    def __init__(self, current_round: int, max_rounds: int) -> None:
        self.current_round = current_round
        self.max_rounds = max_rounds
        super().__init__(
            f"Round {current_round} of {max_rounds} reached; generate a report instead"
        )
