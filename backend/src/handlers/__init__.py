"""Entry points for Digest: the Lambda API handler and the CLI."""

from .api_handler import api_handler
from .cli_handler import main

__all__ = [
    "api_handler",
    "main",
]
