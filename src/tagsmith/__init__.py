"""tagsmith: write MP3 and FLAC metadata without touching the audio."""

__version__ = "0.1.0"

from .core import (
    TagWriter,
    SUPPORTED_EXT,
    write_tags,
    write_tag,
    write_common_tags,
    clear_tags,
    is_supported,
    supported_extensions,
)
from .errors import (
    TagsmithError,
    MissingFileError,
    NotReadableError,
    NotWritableError,
    FileTooLargeError,
    UnsupportedFormatError,
    InvalidContainerError,
    WriteError,
)
from .tags import Tag, TagKind, CommonTags, tags_from_mapping
from .id3 import Mp3Codec
from .flac import FlacCodec
from .utils import Config
from .processor import process_file, process_files, validate_file, verify_written, collect_files_generator
from .batch import process_batch, set_fields

__all__ = [
    "TagWriter",
    "SUPPORTED_EXT",
    "write_tags",
    "write_tag",
    "write_common_tags",
    "clear_tags",
    "is_supported",
    "supported_extensions",
    "TagsmithError",
    "MissingFileError",
    "NotReadableError",
    "NotWritableError",
    "FileTooLargeError",
    "UnsupportedFormatError",
    "InvalidContainerError",
    "WriteError",
    "Tag",
    "TagKind",
    "CommonTags",
    "tags_from_mapping",
    "Mp3Codec",
    "FlacCodec",
    "Config",
    "process_file",
    "process_files",
    "validate_file",
    "verify_written",
    "collect_files_generator",
    "process_batch",
    "set_fields",
]
