"""
Errors raised by the source-management API.

Scanning, caching and reconciliation report expected failures as values;
these exceptions only cover lookups the caller asked for by name.
"""


class AiReadyError(Exception):
    """Base class for ai-ready errors."""


class SourceNotFoundError(AiReadyError):
    def __init__(self, identifier: str):
        super().__init__(f"Repository not found: {identifier}")
        self.identifier = identifier


class SourceExistsError(AiReadyError):
    def __init__(self, identifier: str, name: str):
        super().__init__(f"Repository already configured: {name}")
        self.identifier = identifier
        self.name = name
