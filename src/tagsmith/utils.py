"""
Utility functions and configuration for tagsmith.
"""

import os
import sys
import logging
from pathlib import Path
from typing import List
from logging.handlers import RotatingFileHandler
from threading import Lock

# ---------- Constants ----------
EXIT_CODE_SUCCESS = 0
EXIT_CODE_ERROR = 1
EXIT_CODE_USAGE = 2
EXIT_CODE_NO_FILES = 3
EXIT_CODE_PERMISSION = 4
EXIT_CODE_DISK_FULL = 5
EXIT_CODE_INTERRUPTED = 130

MIME_JPEG = 'image/jpeg'
MIME_PNG = 'image/png'

_TRUTHY = ('1', 'true', 'yes')

# ---------- Configuration ----------
class Config:
    """Configuration management with validation."""
    MAX_FILE_SIZE = 500 * 1024 * 1024  # 500MB

    # Written into every Vorbis Comment block we build
    VENDOR_STRING = 'tagsmith'

    # When True, new FLAC album art replaces existing PICTURE blocks
    # instead of being appended next to them.
    REPLACE_PICTURES = False

    # COMM frames are written like any other text frame ([0x03][text]) unless
    # this is set, which switches to the ID3v2.4 comment layout (language
    # code and description before the text) that tag readers expect.
    ID3_STANDARD_COMMENTS = False

    # Multithreading configuration
    # Default: CPU count + 4, max 32 to safely handle IO-bound and CPU-bound mix
    MAX_WORKERS = min(32, (os.cpu_count() or 1) + 4)
    MIN_FILES_FOR_PARALLEL = 10
    PROGRESS_LOCK = Lock()

    LOG_DIR = 'logs'
    DEFAULT_VERBOSE = False

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        if cls.MAX_FILE_SIZE <= 0:
            raise ValueError("MAX_FILE_SIZE must be positive")
        if cls.MAX_WORKERS <= 0:
            raise ValueError("MAX_WORKERS must be positive")
        if cls.MIN_FILES_FOR_PARALLEL <= 0:
            raise ValueError("MIN_FILES_FOR_PARALLEL must be positive")
        if not cls.VENDOR_STRING:
            raise ValueError("VENDOR_STRING cannot be empty")
        if not cls.LOG_DIR:
            raise ValueError("LOG_DIR cannot be empty")

    @classmethod
    def load_from_env(cls) -> None:
        """Load configuration from environment variables, updating class attributes."""
        if os.getenv('TAGSMITH_MAX_FILE_SIZE'):
            cls.MAX_FILE_SIZE = int(os.getenv('TAGSMITH_MAX_FILE_SIZE'))
        if os.getenv('TAGSMITH_MAX_WORKERS'):
            cls.MAX_WORKERS = int(os.getenv('TAGSMITH_MAX_WORKERS'))
        if os.getenv('TAGSMITH_MIN_PARALLEL'):
            cls.MIN_FILES_FOR_PARALLEL = int(os.getenv('TAGSMITH_MIN_PARALLEL'))
        if os.getenv('TAGSMITH_VENDOR'):
            cls.VENDOR_STRING = os.getenv('TAGSMITH_VENDOR')
        if os.getenv('TAGSMITH_LOG_DIR'):
            cls.LOG_DIR = os.getenv('TAGSMITH_LOG_DIR')
        if 'TAGSMITH_REPLACE_PICTURES' in os.environ:
            cls.REPLACE_PICTURES = os.environ['TAGSMITH_REPLACE_PICTURES'].strip().lower() in _TRUTHY
        if 'TAGSMITH_ID3_STANDARD_COMMENTS' in os.environ:
            cls.ID3_STANDARD_COMMENTS = os.environ['TAGSMITH_ID3_STANDARD_COMMENTS'].strip().lower() in _TRUTHY
        if 'TAGSMITH_VERBOSE' in os.environ:
            cls.DEFAULT_VERBOSE = os.environ['TAGSMITH_VERBOSE'].strip().lower() in _TRUTHY
        cls.validate()

# Thread-safe output helpers
def print_progress_safe(message: str = '', **kwargs) -> None:
    """Thread-safe print function for progress updates."""
    with Config.PROGRESS_LOCK:
        print(message, **kwargs)

# ---------- Logging Setup ----------
def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rotation and proper formatting."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create logs directory if it doesn't exist
    log_dir = Path(Config.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Use rotating file handler
    file_handler = RotatingFileHandler(
        log_dir / 'tagsmith.log',
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            file_handler
        ]
    )

# ---------- Small Helpers ----------
def join_for_printing(lst: List[str]) -> str:
    """Join list for display, showing '(none)' for empty lists."""
    return '(none)' if not lst else '; '.join(lst)

def detect_mime_type(image: bytes) -> str:
    """
    Guess an image MIME type from its leading bytes.

    Only JPEG and PNG are recognised; anything else is reported as JPEG,
    which is what most players assume for untyped cover art.

    Examples:
        >>> detect_mime_type(b'\\x89PNG\\r\\n\\x1a\\n')
        'image/png'
        >>> detect_mime_type(b'GIF89a')
        'image/jpeg'
    """
    if len(image) >= 2 and image[0] == 0xFF and image[1] == 0xD8:
        return MIME_JPEG
    # A PNG signature is 8 bytes long; shorter buffers can't be a PNG
    if len(image) >= 8 and image[:4] == b'\x89PNG':
        return MIME_PNG
    return MIME_JPEG

def normalize_extension(ext: str) -> str:
    """Lowercase an extension and make sure it starts with a dot."""
    ext = ext.strip().lower()
    if ext and not ext.startswith('.'):
        ext = '.' + ext
    return ext
