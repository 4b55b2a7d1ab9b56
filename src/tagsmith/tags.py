"""
Tag value model shared by every codec.

A tag is a ``(key, value, kind)`` record. The kind decides how a codec
encodes the value, so construction checks that value and kind agree.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple, Union

TagValue = Union[str, bytes, int, float]


class TagKind(Enum):
    """Kinds of tag values."""
    TEXT = 'text'
    BINARY = 'binary'
    NUMBER = 'number'


class CommonTags:
    """Well-known tag keys understood by both codecs."""
    TITLE = 'TITLE'
    ARTIST = 'ARTIST'
    ALBUM = 'ALBUM'
    ALBUMARTIST = 'ALBUMARTIST'
    DATE = 'DATE'
    YEAR = 'YEAR'
    GENRE = 'GENRE'
    TRACK = 'TRACKNUMBER'
    TRACKTOTAL = 'TRACKTOTAL'
    DISC = 'DISCNUMBER'
    DISCTOTAL = 'DISCTOTAL'
    COMMENT = 'COMMENT'
    COMPOSER = 'COMPOSER'
    PERFORMER = 'PERFORMER'
    CONDUCTOR = 'CONDUCTOR'
    LYRICIST = 'LYRICIST'
    COPYRIGHT = 'COPYRIGHT'
    ENCODEDBY = 'ENCODEDBY'
    BPM = 'BPM'
    MOOD = 'MOOD'
    ISRC = 'ISRC'
    BARCODE = 'BARCODE'
    CATALOGNUMBER = 'CATALOGNUMBER'
    LABEL = 'LABEL'
    LYRICS = 'LYRICS'
    ALBUMART = 'ALBUMART'


def is_album_art_key(key: str) -> bool:
    """Return True if key names embedded cover art (case-insensitive)."""
    return key.strip().upper() == CommonTags.ALBUMART


@dataclass(frozen=True)
class Tag:
    """
    A single metadata entry.

    Use the ``text``, ``binary`` and ``number`` constructors rather than
    building instances by hand:

        >>> Tag.text('TITLE', 'Blue in Green')
        Tag(key='TITLE', value='Blue in Green', kind=<TagKind.TEXT: 'text'>)
        >>> Tag.number('TRACKNUMBER', 3).as_text()
        '3'
    """
    key: str
    value: TagValue
    kind: TagKind = TagKind.TEXT

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise ValueError(f"Tag key must be a non-empty string, got {self.key!r}")
        if not isinstance(self.kind, TagKind):
            raise TypeError(f"Tag kind must be a TagKind, got {self.kind!r}")

        if self.kind is TagKind.TEXT:
            if not isinstance(self.value, str):
                raise TypeError(f"Text tag {self.key} needs a str value, got {type(self.value).__name__}")
        elif self.kind is TagKind.BINARY:
            if not isinstance(self.value, (bytes, bytearray, memoryview)):
                raise TypeError(f"Binary tag {self.key} needs a bytes value, got {type(self.value).__name__}")
            # Normalise to immutable bytes so the dataclass stays hashable
            object.__setattr__(self, 'value', bytes(self.value))
        elif self.kind is TagKind.NUMBER:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise TypeError(f"Number tag {self.key} needs an int or float value, got {type(self.value).__name__}")

    @classmethod
    def text(cls, key: str, value: str) -> 'Tag':
        """Creates a text tag."""
        return cls(key, value, TagKind.TEXT)

    @classmethod
    def binary(cls, key: str, value: bytes) -> 'Tag':
        """Creates a binary tag (for album art)."""
        return cls(key, value, TagKind.BINARY)

    @classmethod
    def number(cls, key: str, value: Union[int, float]) -> 'Tag':
        """Creates a number tag."""
        return cls(key, value, TagKind.NUMBER)

    @property
    def is_album_art(self) -> bool:
        return self.kind is TagKind.BINARY and is_album_art_key(self.key)

    def as_text(self) -> str:
        """Render a text or number tag as the string a codec will store."""
        if self.kind is TagKind.BINARY:
            raise TypeError(f"Binary tag {self.key} has no text form")
        return str(self.value)

    def __str__(self) -> str:
        if self.kind is TagKind.BINARY:
            return f"{self.key}=<{len(self.value)} bytes>"
        return f"{self.key}={self.value}"


def tags_from_mapping(fields: Dict[str, Any]) -> List[Tag]:
    """
    Build tags from a plain mapping, choosing each kind from the value type.

    ``str`` becomes text, ``int``/``float`` number, bytes-like binary.
    Anything else is stringified into a text tag.
    """
    out = []
    for key, value in fields.items():
        if isinstance(value, str):
            out.append(Tag.text(key, value))
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            out.append(Tag.number(key, value))
        elif isinstance(value, (bytes, bytearray, memoryview)):
            out.append(Tag.binary(key, value))
        else:
            out.append(Tag.text(key, str(value)))
    return out


def parse_assignment(expr: str) -> Tuple[str, str]:
    """Split a ``KEY=VALUE`` expression. The value may itself contain '='."""
    if not expr or '=' not in expr:
        raise ValueError(f"expected KEY=VALUE, got {expr!r}")
    key, value = expr.split('=', 1)
    key = key.strip()
    if not key:
        raise ValueError(f"tag key cannot be empty in {expr!r}")
    return key, value
