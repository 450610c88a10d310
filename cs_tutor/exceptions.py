"""
Custom Exception Hierarchy for the CS Tutor API

Exception Hierarchy:
    TutorError (base)
    ├── TutorRequestError
    ├── AuthenticationError
    ├── RateLimitExceededError
    ├── LLMError
    │   └── LLMServiceError
    ├── AgentError
    │   └── AgentExecutionError
    ├── GenerationTimeoutError
    ├── PromptError
    │   └── PromptTemplateError
    └── ConfigurationError

Entitlement denials are not exceptions: the resolver returns an
AccessDenied value and the endpoint renders it.

Usage:
    from cs_tutor.exceptions import AgentExecutionError

    try:
        reply = await agent.run(...)
    except AgentExecutionError:
        reply = await direct.respond(...)
"""

from typing import Optional


# ===========================================
# Base Exception
# ===========================================


class TutorError(Exception):
    """
    Base exception for all tutor API errors.

    All custom exceptions in the application inherit from this class,
    making it easy to catch all application-specific errors.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ===========================================
# Request Errors
# ===========================================


class TutorRequestError(TutorError):
    """Raised when a tutor request body is missing or malformed."""

    pass


class AuthenticationError(TutorError):
    """Raised when the bearer token is missing, invalid or expired."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class RateLimitExceededError(TutorError):
    """Raised when a caller exceeds the per-window request budget."""

    def __init__(self, retry_after: int):
        """
        Initialize rate limit error.

        Args:
            retry_after: Seconds until the caller's window resets
        """
        super().__init__(f"Too many requests. Retry after {retry_after}s")
        self.retry_after = retry_after


# ===========================================
# LLM Errors
# ===========================================


class LLMError(TutorError):
    """Base exception for LLM-related errors."""

    pass


class LLMServiceError(LLMError):
    """Raised when LLM API call fails."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        attempts: Optional[int] = None,
    ):
        """
        Initialize LLM service error.

        Args:
            message: Error message
            model_name: Name of the model that failed
            attempts: Number of attempts made
        """
        super().__init__(message)
        self.model_name = model_name
        self.attempts = attempts


# ===========================================
# Agent Errors
# ===========================================


class AgentError(TutorError):
    """Base exception for agent-related errors."""

    def __init__(self, agent_name: str, message: str, details: Optional[dict] = None):
        """
        Initialize agent error.

        Args:
            agent_name: Name of the agent that failed
            message: Error message
            details: Optional additional details
        """
        formatted_message = f"[{agent_name}] {message}"
        super().__init__(formatted_message, details)
        self.agent_name = agent_name


class AgentExecutionError(AgentError):
    """Raised when the tool-calling loop is abandoned."""

    pass


class GenerationTimeoutError(TutorError):
    """Raised when reply generation exceeds the request deadline."""

    def __init__(self, timeout_seconds: float):
        message = f"Tutor reply timed out after {timeout_seconds:g}s"
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


# ===========================================
# Prompt Errors
# ===========================================


class PromptError(TutorError):
    """Base exception for prompt-related errors."""

    pass


class PromptTemplateError(PromptError):
    """Raised when prompt template rendering fails."""

    def __init__(self, template_name: str, missing_vars: list[str]):
        """
        Initialize prompt template error.

        Args:
            template_name: Name of the template
            missing_vars: List of missing template variables
        """
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message)
        self.template_name = template_name
        self.missing_vars = missing_vars


# ===========================================
# Configuration Errors
# ===========================================


class ConfigurationError(TutorError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, config_key: str, reason: str):
        """
        Initialize configuration error.

        Args:
            config_key: Configuration key that is invalid
            reason: Reason for the error
        """
        message = f"{config_key} {reason}"
        super().__init__(message)
        self.config_key = config_key
        self.reason = reason
