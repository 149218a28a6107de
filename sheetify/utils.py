"""Utility functions for sheetify."""

import logging
import os
import uuid

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

PLACEHOLDER_KEYS = {
    "your_openai_api_key_here",
    "your_api_key_here",
    "sk-your-api-key-here",
    "replace_with_your_api_key",
    "your-openai-api-key",
    "put_your_api_key_here",
}


def validate_api_key() -> str:
    """Validate OpenAI API key from environment variables.

    Returns:
        The valid API key string

    Raises:
        ConfigurationError: If the API key is missing, empty or a placeholder
    """
    api_key = os.getenv("OPENAI_API_KEY")

    if api_key is None:
        raise ConfigurationError(
            "OPENAI_API_KEY not found in environment variables. "
            "Please set your OpenAI API key in the .env file or environment."
        )

    api_key = api_key.strip()

    if not api_key:
        raise ConfigurationError(
            "OPENAI_API_KEY is empty. "
            "Please set a valid OpenAI API key in the .env file or environment."
        )

    if api_key.lower() in PLACEHOLDER_KEYS:
        raise ConfigurationError(
            f"OPENAI_API_KEY appears to be a placeholder value: '{api_key}'. "
            "Please replace it with your actual OpenAI API key from "
            "https://platform.openai.com/account/api-keys"
        )

    if not api_key.startswith("sk-"):
        logger.warning(
            "API key does not start with 'sk-'. "
            "Please verify it's a valid OpenAI API key."
        )

    return api_key


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def new_id() -> str:
    """Opaque identifier for sessions and one-shot sheets."""
    return uuid.uuid4().hex
