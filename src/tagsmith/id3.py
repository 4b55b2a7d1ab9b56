"""
ID3v2.4 tag writer for MP3 files.

Everything here works on raw bytes. An existing ID3v2 tag at the start of
the file is discarded as a whole and replaced by a freshly built v2.4
tag; the MPEG audio frames that follow are never looked at.
"""

import logging
from typing import Iterable, Optional

from .tags import Tag, TagKind
from .utils import Config, detect_mime_type

logger = logging.getLogger(__name__)

ID3_SIGNATURE = b'ID3'
ID3_VERSION = b'\x04\x00'
HEADER_SIZE = 10
FOOTER_SIZE = 10
FLAG_FOOTER = 0x10

SYNCHSAFE_MAX = (1 << 28) - 1

ENCODING_LATIN1 = 0x00
ENCODING_UTF8 = 0x03
PICTURE_FRONT_COVER = 0x03

# Language code for comments: "XXX" is the ID3 code for "unknown"
COMMENT_LANGUAGE = b'XXX'

TXXX = 'TXXX'
COMM = 'COMM'
APIC = 'APIC'
TDRC = 'TDRC'

# Maps well-known tag keys (uppercased) to ID3v2.4 frame IDs.
# Keys not listed here are stored in user-defined TXXX frames.
FRAME_IDS = {
    'TITLE': 'TIT2',
    'ARTIST': 'TPE1',
    'ALBUM': 'TALB',
    'ALBUMARTIST': 'TPE2',
    'DATE': TDRC,
    'YEAR': TDRC,
    'GENRE': 'TCON',
    'TRACKNUMBER': 'TRCK',
    'DISCNUMBER': 'TPOS',
    'COMMENT': COMM,
    'COMPOSER': 'TCOM',
    'PERFORMER': 'TPE3',
    'CONDUCTOR': 'TPE3',
    'LYRICIST': 'TEXT',
    'COPYRIGHT': 'TCOP',
    'ENCODEDBY': 'TENC',
    'BPM': 'TBPM',
    'MOOD': 'TMOO',
    'ISRC': 'TSRC',
    'ALBUMART': APIC,
}


def frame_id_for(key: str) -> str:
    """Return the frame ID used for a tag key, TXXX for unknown keys."""
    return FRAME_IDS.get(key.strip().upper(), TXXX)


# ---------- Synchsafe integers ----------
def encode_synchsafe(value: int) -> bytes:
    """
    Encode a 28-bit integer as 4 synchsafe bytes (7 data bits per byte).

        >>> encode_synchsafe(257)
        b'\\x00\\x00\\x02\\x01'
    """
    if not 0 <= value <= SYNCHSAFE_MAX:
        raise ValueError(f"{value} does not fit in a 28-bit synchsafe integer")
    return bytes((
        (value >> 21) & 0x7F,
        (value >> 14) & 0x7F,
        (value >> 7) & 0x7F,
        value & 0x7F,
    ))


def decode_synchsafe(data: bytes, offset: int = 0) -> int:
    """Decode the 4 synchsafe bytes starting at offset."""
    b0, b1, b2, b3 = data[offset:offset + 4]
    return ((b0 & 0x7F) << 21) | ((b1 & 0x7F) << 14) | ((b2 & 0x7F) << 7) | (b3 & 0x7F)


# ---------- Stripping ----------
def existing_tag_size(data: bytes) -> int:
    """
    Length of the ID3v2 tag at the start of data, header and footer included.

    Returns 0 when there is no tag, or when the declared size does not
    leave any bytes after it (the tag is then considered malformed and the
    whole buffer is treated as audio).
    """
    if len(data) < HEADER_SIZE or data[:3] != ID3_SIGNATURE:
        return 0

    total = decode_synchsafe(data, 6) + HEADER_SIZE
    if data[5] & FLAG_FOOTER:
        total += FOOTER_SIZE

    if total < len(data):
        return total
    logger.debug(f"ID3v2 tag claims {total} bytes in a {len(data)} byte file; keeping everything as audio")
    return 0


def strip_id3v2(data: bytes) -> bytes:
    """Return data without its leading ID3v2 tag (if any)."""
    size = existing_tag_size(data)
    if size:
        logger.debug(f"Stripping existing ID3v2 tag of {size} bytes")
        return bytes(data[size:])
    return bytes(data)


# ---------- Frame building ----------
def _text_payload(text: str) -> bytes:
    return bytes((ENCODING_UTF8,)) + text.encode('utf-8')


def _user_text_payload(description: str, text: str) -> bytes:
    return (bytes((ENCODING_UTF8,)) + description.encode('utf-8') + b'\x00'
            + text.encode('utf-8'))


def _comment_payload(text: str) -> bytes:
    """COMM body with a language code and an empty description (ID3v2.4 layout)."""
    return (bytes((ENCODING_UTF8,)) + COMMENT_LANGUAGE + b'\x00'
            + text.encode('utf-8'))


def _picture_payload(image: bytes) -> bytes:
    mime = detect_mime_type(image)
    return (bytes((ENCODING_LATIN1,)) + mime.encode('latin-1') + b'\x00'
            + bytes((PICTURE_FRONT_COVER,)) + b'\x00' + image)


def frame_payload(tag: Tag) -> Optional[bytes]:
    """
    Encode the body of the frame for a tag.

    Returns None for combinations ID3 can't represent here: binary values
    for anything but album art, and album art given as text.
    """
    frame_id = frame_id_for(tag.key)

    if tag.kind is TagKind.BINARY:
        if frame_id == APIC:
            return _picture_payload(tag.value)
        return None

    if tag.kind in (TagKind.TEXT, TagKind.NUMBER):
        text = tag.as_text()
        if frame_id == TXXX:
            return _user_text_payload(tag.key, text)
        if frame_id == COMM and Config.ID3_STANDARD_COMMENTS:
            return _comment_payload(text)
        if frame_id == APIC:
            return None
        return _text_payload(text)

    raise ValueError(f"Unhandled tag kind: {tag.kind}")


def build_frame(tag: Tag) -> bytes:
    """Build a complete frame (header + payload), or b'' if the tag is dropped."""
    payload = frame_payload(tag)
    if payload is None:
        logger.debug(f"Dropping tag {tag.key} ({tag.kind.value}): no ID3 frame for it")
        return b''

    frame_id = frame_id_for(tag.key)
    return frame_id.encode('ascii') + encode_synchsafe(len(payload)) + b'\x00\x00' + payload


def build_id3v2_tag(tags: Iterable[Tag]) -> bytes:
    """Build an ID3v2.4 tag (header + frames, no padding) for tags."""
    frames = b''.join(build_frame(tag) for tag in tags)
    header = ID3_SIGNATURE + ID3_VERSION + b'\x00' + encode_synchsafe(len(frames))
    return header + frames


# ---------- Codec ----------
class Mp3Codec:
    """Writes ID3v2.4 tags into MP3 data."""

    name = 'mp3'
    extensions = ('.mp3',)

    def supports_file(self, path) -> bool:
        return str(path).lower().endswith(self.extensions)

    def write_tags(self, data: bytes, tags: Iterable[Tag]) -> bytes:
        """Replace any ID3v2 tag in data with one built from tags."""
        audio = strip_id3v2(data)
        tag = build_id3v2_tag(tags)
        logger.debug(f"Built ID3v2.4 tag of {len(tag)} bytes over {len(audio)} audio bytes")
        return tag + audio

    def clear_tags(self, data: bytes) -> bytes:
        """Remove the ID3v2 tag, leaving only the audio."""
        return strip_id3v2(data)
