"""
domain.exceptions - Custom exception hierarchy for the agent orchestrator.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class PlanningError(DomainError):
    """Raised when a plan cannot be produced or parsed."""


class ToolNotFoundError(DomainError, KeyError):
    """Raised when a tool name is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class ToolExecutionError(DomainError):
    """Raised inside a tool when its backing service fails."""


class DraftingError(DomainError):
    """Raised when the text-generation backend cannot produce a draft."""


class ScheduleParseError(DomainError):
    """Raised when a natural-language schedule is not recognised."""

    def __init__(self, text: str):
        super().__init__(f'Could not parse schedule: "{text}"')
        self.text = text


class TaskNotFoundError(DomainError):
    """Raised when no scheduled task matches an id or name."""

    def __init__(self, key: str):
        super().__init__(f'Task not found: "{key}"')
        self.key = key


class RepositoryError(DomainError):
    """Raised when a database operation fails."""
