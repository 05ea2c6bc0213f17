from .ai_gateway import AIGateway
from .completion import AIUnavailableError, CompletionError, CompletionErrorKind, TextCompletion
from .gemini_client import GeminiClient
from .resilience import ResiliencePolicy

__all__ = [
    "AIGateway",
    "AIUnavailableError",
    "CompletionError",
    "CompletionErrorKind",
    "GeminiClient",
    "ResiliencePolicy",
    "TextCompletion",
]
