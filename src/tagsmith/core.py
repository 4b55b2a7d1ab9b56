"""
TagWriter - Unified API for writing music file metadata.
Handles MP3 (ID3v2.4) and FLAC (Vorbis comments + PICTURE blocks).

Each write reads the whole file, rebuilds it in memory with the codec
registered for its extension and overwrites the original path. There is
no temp-file-and-rename step.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Union

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
from .flac import FlacCodec
from .id3 import Mp3Codec
from .tags import Tag, tags_from_mapping
from .utils import Config

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Codec(Protocol):
    """What a container codec must provide to be registered with a TagWriter."""
    name: str
    extensions: Iterable[str]

    def supports_file(self, path: PathLike) -> bool: ...

    def write_tags(self, data: bytes, tags: Iterable[Tag]) -> bytes: ...

    def clear_tags(self, data: bytes) -> bytes: ...


def default_codecs() -> List[Codec]:
    return [Mp3Codec(), FlacCodec()]


def validate_target(path: PathLike) -> Path:
    """
    Check that path is an existing, readable, writable regular file.

    Raises:
        MissingFileError, NotReadableError, NotWritableError, FileTooLargeError
    """
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise MissingFileError("File does not exist", path)

    try:
        with open(path, 'rb') as f:
            f.read(1)
    except OSError as e:
        raise NotReadableError(f"Cannot read file: {e}", path) from e

    if not os.access(path, os.W_OK):
        raise NotWritableError("File is not writable", path)

    size = path.stat().st_size
    if size > Config.MAX_FILE_SIZE:
        raise FileTooLargeError(f"File too large ({size} bytes)", path)
    return path


class TagWriter:
    """
    Writes tags to audio files, picking the codec from the file extension.

    Examples:
        >>> writer = TagWriter()
        >>> writer.is_supported('song.FLAC')
        True
        >>> sorted(writer.supported_extensions)
        ['.flac', '.mp3']
    """

    def __init__(self, codecs: Optional[Iterable[Codec]] = None):
        self._codecs: Dict[str, Codec] = {}
        for codec in (default_codecs() if codecs is None else codecs):
            for ext in codec.extensions:
                self._codecs[ext.lower()] = codec

    @property
    def supported_extensions(self) -> Set[str]:
        return set(self._codecs)

    def codec_for(self, path: PathLike) -> Codec:
        """Return the codec for path, or raise UnsupportedFormatError."""
        ext = Path(path).suffix.lower()
        codec = self._codecs.get(ext)
        if codec is None:
            supported = ', '.join(sorted(self._codecs))
            raise UnsupportedFormatError(
                f"Unsupported file format: {ext or '(none)'}. Supported formats: {supported}", path)
        return codec

    def is_supported(self, path: PathLike) -> bool:
        return Path(path).suffix.lower() in self._codecs

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise NotReadableError(f"Cannot read file: {e}", path) from e

    def _transform(self, path: PathLike, transform) -> bytes:
        """Validate path and run transform(codec, data); return the new bytes."""
        codec = self.codec_for(path)
        path = validate_target(path)
        data = self._read(path)
        try:
            return transform(codec, data)
        except TagsmithError as e:
            if e.path is None:
                e.path = str(path)
            raise
        except ValueError as e:
            # e.g. a frame too big for a synchsafe length, or text that can't be encoded
            raise WriteError(f"Cannot encode metadata: {e}", path) from e

    def _write(self, path: Path, data: bytes) -> None:
        try:
            path.write_bytes(data)
        except OSError as e:
            raise WriteError(f"Failed to write file: {e}", path) from e

    def render(self, path: PathLike, tags: Iterable[Tag]) -> bytes:
        """Return what write_tags would write to path, without touching the file."""
        tags = list(tags)
        return self._transform(path, lambda codec, data: codec.write_tags(data, tags))

    def render_clear(self, path: PathLike) -> bytes:
        """Return what clear_tags would write to path, without touching the file."""
        return self._transform(path, lambda codec, data: codec.clear_tags(data))

    def write_tags(self, path: PathLike, tags: Iterable[Tag]) -> None:
        """
        Replace the metadata of path with tags.

        Existing tags are discarded; the audio payload is kept byte for byte.

        Raises:
            TagsmithError: (or a subclass) if the file can't be handled.
        """
        new_data = self.render(path, tags)
        self._write(Path(path), new_data)
        logger.info(f"Successfully wrote metadata to: {path}")

    def write_tag(self, path: PathLike, tag: Tag) -> None:
        """Write a single tag (same as write_tags with one element)."""
        self.write_tags(path, [tag])

    def write_common_tags(self, path: PathLike, fields: Dict[str, Any]) -> None:
        """Write tags given as a plain {key: value} mapping."""
        self.write_tags(path, tags_from_mapping(fields))

    def clear_tags(self, path: PathLike) -> None:
        """Remove all metadata the codec for path knows how to remove."""
        new_data = self.render_clear(path)
        self._write(Path(path), new_data)
        logger.info(f"Cleared metadata in: {path}")


# ---------- Module-level API ----------
_default_writer = TagWriter()

SUPPORTED_EXT = _default_writer.supported_extensions


def write_tags(path: PathLike, tags: Iterable[Tag]) -> None:
    _default_writer.write_tags(path, tags)


def write_tag(path: PathLike, tag: Tag) -> None:
    _default_writer.write_tag(path, tag)


def write_common_tags(path: PathLike, fields: Dict[str, Any]) -> None:
    _default_writer.write_common_tags(path, fields)


def clear_tags(path: PathLike) -> None:
    _default_writer.clear_tags(path)


def render(path: PathLike, tags: Iterable[Tag]) -> bytes:
    return _default_writer.render(path, tags)


def is_supported(path: PathLike) -> bool:
    return _default_writer.is_supported(path)


def supported_extensions() -> Set[str]:
    return _default_writer.supported_extensions


__all__ = [
    'Codec',
    'TagWriter',
    'SUPPORTED_EXT',
    'validate_target',
    'write_tags',
    'write_tag',
    'write_common_tags',
    'clear_tags',
    'render',
    'is_supported',
    'supported_extensions',
    'TagsmithError',
    'MissingFileError',
    'NotReadableError',
    'NotWritableError',
    'FileTooLargeError',
    'UnsupportedFormatError',
    'InvalidContainerError',
    'WriteError',
]
