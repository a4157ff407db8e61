"""
Recipe, command and binding exceptions.
"""

from typing import List, Optional

from recipe_agent.exceptions.base import RecipeAgentError


class RecipeError(RecipeAgentError):
    """Base exception for recipe execution errors."""
    pass


class RecipeValidationError(RecipeError):
    """A recipe (or a command inside it) does not match the JSON contract."""
    pass


class CommandError(RecipeError):
    """
    A command could not be carried out.
    
    Attributes:
        command: The command type that failed
    """
    
    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.command = command


class BindingMissingError(CommandError):
    """A command needs a binding that is not defined for this site."""
    
    def __init__(self, message: str, binding: str, command: Optional[str] = None):
        super().__init__(message, command)
        self.binding = binding


class UnknownCommandError(CommandError):
    """The interpreter has no handler for the command. Never repaired."""
    
    def __init__(self, command_type: str):
        super().__init__(f"Unknown command type: {command_type}", command_type)
        self.command_type = command_type


class BindingError(RecipeAgentError):
    """Base exception for binding discovery, validation and storage."""
    pass


class BindingValidationError(BindingError):
    """
    A bindings record failed validation.
    
    Attributes:
        errors: The validator's error messages
    """
    
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, {"errors": errors} if errors else None)
        self.errors = errors or []


class BindingDiscoveryError(BindingError):
    """The LLM could not produce a usable bindings record."""
    pass


class StaleBindingsError(BindingError):
    """
    A bindings write lost an optimistic version check.
    
    Raised by a store when the stored record changed since the writer
    loaded it.
    """
    
    def __init__(self, binding_id: str, expected: int, actual: int):
        super().__init__(
            f"Bindings {binding_id} changed concurrently "
            f"(expected version {expected}, found {actual})",
            {"binding_id": binding_id, "expected": expected, "actual": actual},
        )
        self.binding_id = binding_id
        self.expected = expected
        self.actual = actual
