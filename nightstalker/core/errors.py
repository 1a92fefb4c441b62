"""Exception types raised by the engine and the session layer."""


class NightstalkerError(Exception):
    """Base class for all nightstalker errors."""


class InvalidChoiceError(NightstalkerError, ValueError):
    """A choice reached the resolver without passing the sanitizer."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid choice: " + "; ".join(problems))


class ChoiceCountError(NightstalkerError, ValueError):
    """The generator proposed the wrong number of choices."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} choices, got {actual}")


class RulesConfigError(NightstalkerError, ValueError):
    """A rules file or preset could not be loaded."""


class StoryGenerationError(NightstalkerError):
    """The narrative generator failed to produce a usable story segment."""


class SessionError(NightstalkerError):
    """The session controller was asked to do something out of order."""
