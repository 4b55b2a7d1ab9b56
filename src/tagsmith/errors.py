"""Exception types raised by tagsmith."""

from pathlib import Path
from typing import Optional, Union


class TagsmithError(Exception):
    """Base exception for tagsmith errors. Carries the offending path, if known."""
    kind = 'error'

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} (file: {self.path})"
        return self.message


class MissingFileError(TagsmithError):
    """Raised when the target file does not exist."""
    kind = 'file_not_found'


class NotReadableError(TagsmithError):
    """Raised when the target file cannot be read."""
    kind = 'not_readable'


class NotWritableError(TagsmithError):
    """Raised when the target file cannot be written."""
    kind = 'not_writable'


class FileTooLargeError(TagsmithError):
    """Raised when the target file exceeds Config.MAX_FILE_SIZE."""
    kind = 'too_large'


class UnsupportedFormatError(TagsmithError):
    """Raised when no codec handles the file extension."""
    kind = 'unsupported_format'


class InvalidContainerError(TagsmithError):
    """Raised when a container is corrupted (bad signature, truncated blocks)."""
    kind = 'invalid_container'


class WriteError(TagsmithError):
    """Raised when writing the rebuilt file fails."""
    kind = 'write_failed'
