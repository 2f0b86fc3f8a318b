import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from functools import wraps
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel

from app.models.slides import ImageInput, ModelProvider
from config import ENV, PROJECT_ROOT

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Type variable for the return type of decorated functions
T = TypeVar("T")

PROVIDER_LABELS = {
    ModelProvider.OPENAI: "OpenAI",
    ModelProvider.GEMINI: "Gemini",
    ModelProvider.ANTHROPIC: "Claude",
}

OPERATION_EXPLAIN = "analyzing image"
OPERATION_SUMMARISE = "summarizing"


class MissingApiKeyError(ValueError):
    """Raised when a provider is invoked without its API key configured."""


class ProviderErrorKind(str, Enum):
    """Classified causes of a failed provider call."""

    MISSING_KEY = "missing_key"
    INVALID_KEY = "invalid_key"
    PERMISSION_DENIED = "permission_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


class ProviderError(BaseModel):
    """Structured cause of a failed explain or summarise call."""

    provider: ModelProvider
    operation: str
    kind: ProviderErrorKind
    message: str

    @property
    def sentinel(self) -> str:
        """Render the error the way it is shown to users, always prefixed with "Error"."""
        return f"Error {self.operation} with {PROVIDER_LABELS[self.provider]}: {self.message}"


class ProviderResult(BaseModel):
    """Outcome of a provider call: either the generated text or a ProviderError."""

    provider: ModelProvider
    text: Optional[str] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def sentinel(self) -> str:
        if self.error is not None:
            return self.error.sentinel
        return self.text or ""

    @classmethod
    def success(cls, provider: ModelProvider, text: str) -> "ProviderResult":
        return cls(provider=provider, text=text)

    @classmethod
    def failure(
        cls,
        provider: ModelProvider,
        operation: str,
        kind: ProviderErrorKind,
        message: str,
    ) -> "ProviderResult":
        return cls(
            provider=provider,
            error=ProviderError(
                provider=provider, operation=operation, kind=kind, message=message
            ),
        )


def classify_error_message(message: str) -> ProviderErrorKind:
    """Classify a vendor error from its message text.

    Used where a vendor SDK does not expose a typed exception for the cause.
    """
    lowered = message.lower()
    if "api key" in lowered or "api_key" in lowered:
        return ProviderErrorKind.INVALID_KEY
    if "permission" in lowered or "access" in lowered:
        return ProviderErrorKind.PERMISSION_DENIED
    if "quota" in lowered or "limit" in lowered:
        return ProviderErrorKind.QUOTA_EXCEEDED
    if (
        "network" in lowered
        or "connect" in lowered
        or "fetch failed" in lowered
        or "timeout" in lowered
        or "timed out" in lowered
    ):
        return ProviderErrorKind.NETWORK
    return ProviderErrorKind.UNKNOWN


def describe_error(kind: ProviderErrorKind, detail: str) -> str:
    """Get the user-facing message for a classified provider error."""
    if kind == ProviderErrorKind.MISSING_KEY:
        return detail
    if kind == ProviderErrorKind.INVALID_KEY:
        return "Invalid or missing API key. Please check your environment variables."
    if kind == ProviderErrorKind.PERMISSION_DENIED:
        return "Permission denied. Your API key may not have access to this model."
    if kind == ProviderErrorKind.QUOTA_EXCEEDED:
        return "API quota exceeded. Please try again later."
    if kind == ProviderErrorKind.NETWORK:
        return (
            "Network error. Please check your internet connection or try a different AI model. "
            f"Error details: {detail}"
        )
    return detail or "Unknown error"


class PromptLogger:
    """Utility class for logging provider prompts in development."""

    @staticmethod
    def log_prompt(provider: ModelProvider, prompt: str) -> None:
        """Append a prompt to a local log file named after the provider.

        Args:
            provider: The provider the prompt is sent to
            prompt: The prompt text to log
        """
        if ENV != "d":
            return

        # Get calling function information
        caller_frame = inspect.currentframe().f_back
        caller_function = caller_frame.f_code.co_name
        caller_filename = Path(caller_frame.f_code.co_filename).name
        caller_line = caller_frame.f_lineno
        caller_info = f"{caller_filename}:{caller_function}:{caller_line}"

        logs_dir = Path(PROJECT_ROOT) / "logs"
        logs_dir.mkdir(exist_ok=True)
        log_file_path = logs_dir / f"{provider.value}.log"

        timestamp = datetime.utcnow().isoformat()
        log_entry = f"[{timestamp}] [{caller_info}]\n\n{prompt}\n\n\n\n"

        try:
            with open(log_file_path, "a", encoding="utf-8") as log_file:
                log_file.write(log_entry)
        except OSError as e:
            logger.error(f"Failed to write to log file {log_file_path}: {str(e)}")


class VisionRouterService(ABC):
    """Abstract base class for vision provider services."""

    provider: ModelProvider

    @staticmethod
    def retry_on_transient_errors(
        is_transient: Callable[[Exception], bool],
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """
        Decorator that retries an async function if it raises a transient error.

        The delay grows linearly: backoff_seconds * attempt.

        Args:
            is_transient: Function that takes the exception and returns True if it is worth retrying
            max_retries: Maximum number of retry attempts (default: 2)
            backoff_seconds: Base delay between attempts

        Returns:
            Decorated async function that re-raises the last error once retries are exhausted
        """

        def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @wraps(func)
            async def wrapper(*args, **kwargs) -> T:
                attempt = 0
                while True:
                    try:
                        result: T = await func(*args, **kwargs)
                        if attempt > 0:
                            logger.warning(
                                f"Function {func.__name__} succeeded on attempt {attempt + 1}"
                            )
                        return result
                    except Exception as e:
                        logger.warning(
                            f"Exception in {func.__name__}, attempt {attempt + 1}/{max_retries + 1}: {str(e)}"
                        )
                        if attempt >= max_retries or not is_transient(e):
                            raise
                        attempt += 1
                        logger.info(
                            f"Retrying {func.__name__} ({attempt}/{max_retries})..."
                        )
                        await asyncio.sleep(backoff_seconds * attempt)

            return wrapper

        return decorator

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self.provider]

    def _failure(
        self, operation: str, kind: ProviderErrorKind, detail: str
    ) -> ProviderResult:
        return ProviderResult.failure(
            self.provider, operation, kind, describe_error(kind, detail)
        )

    @abstractmethod
    async def explain(self, image: ImageInput) -> ProviderResult:
        """Produce a detailed natural-language explanation of an image."""
        pass

    @abstractmethod
    async def summarise(
        self, explanation: str, message: str = "", caption: str = ""
    ) -> ProviderResult:
        """Condense an explanation into Markdown slide text with a # Title line."""
        pass
