"""
FLAC metadata writer.

A FLAC file is the ``fLaC`` signature, a list of metadata blocks and the
audio frames. Each block has a 4-byte header: one byte holding the
"last block" bit and a 7-bit block type, then a 24-bit big-endian length.

Tags go into the VORBIS_COMMENT block (type 4) and cover art into
PICTURE blocks (type 6). Every other block, and the audio, is copied
through untouched. Block edits are pure functions over tuples of
immutable FlacBlock values.
"""

import logging
import struct
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidContainerError, WriteError
from .tags import Tag, TagKind, is_album_art_key
from .utils import Config, detect_mime_type

logger = logging.getLogger(__name__)

FLAC_SIGNATURE = b'fLaC'
BLOCK_HEADER_SIZE = 4
MAX_BLOCK_SIZE = (1 << 24) - 1

BLOCK_STREAMINFO = 0
BLOCK_PADDING = 1
BLOCK_APPLICATION = 2
BLOCK_SEEKTABLE = 3
BLOCK_VORBIS_COMMENT = 4
BLOCK_CUESHEET = 5
BLOCK_PICTURE = 6

PICTURE_FRONT_COVER = 3

# Maps well-known tag keys (uppercased) to Vorbis comment field names.
# Vorbis comments accept arbitrary field names, so unknown keys are
# simply uppercased.
VORBIS_FIELDS = {
    'TITLE': 'TITLE',
    'ARTIST': 'ARTIST',
    'ALBUM': 'ALBUM',
    'ALBUMARTIST': 'ALBUMARTIST',
    'DATE': 'DATE',
    'YEAR': 'DATE',
    'GENRE': 'GENRE',
    'TRACKNUMBER': 'TRACKNUMBER',
    'TRACKTOTAL': 'TRACKTOTAL',
    'DISCNUMBER': 'DISCNUMBER',
    'DISCTOTAL': 'DISCTOTAL',
    'COMMENT': 'COMMENT',
    'COMPOSER': 'COMPOSER',
    'PERFORMER': 'PERFORMER',
    'CONDUCTOR': 'CONDUCTOR',
    'LYRICIST': 'LYRICIST',
    'COPYRIGHT': 'COPYRIGHT',
    'ENCODEDBY': 'ENCODEDBY',
    'BPM': 'BPM',
    'MOOD': 'MOOD',
    'ISRC': 'ISRC',
    'BARCODE': 'BARCODE',
    'CATALOGNUMBER': 'CATALOGNUMBER',
    'LABEL': 'LABEL',
    'LYRICS': 'LYRICS',
}


def vorbis_field_for(key: str) -> str:
    """Return the Vorbis comment field name for a tag key."""
    upper = key.strip().upper()
    return VORBIS_FIELDS.get(upper, upper)


@dataclass(frozen=True)
class FlacBlock:
    """One metadata block."""
    type: int
    is_last: bool
    data: bytes

    def header(self) -> bytes:
        """The 4-byte on-disk header for this block."""
        if len(self.data) > MAX_BLOCK_SIZE:
            raise WriteError(
                f"Metadata block of type {self.type} is {len(self.data)} bytes, "
                f"over the {MAX_BLOCK_SIZE} byte limit")
        flag = 0x80 if self.is_last else 0x00
        return bytes((flag | (self.type & 0x7F),)) + struct.pack('>I', len(self.data))[1:]


@dataclass(frozen=True)
class FlacContainer:
    """A parsed FLAC file: its metadata blocks and the raw audio after them."""
    blocks: Tuple[FlacBlock, ...]
    audio: bytes

    def blocks_of_type(self, block_type: int) -> List[FlacBlock]:
        return [b for b in self.blocks if b.type == block_type]


# ---------- Parsing / serialization ----------
def parse_flac(data: bytes) -> FlacContainer:
    """
    Split FLAC data into metadata blocks and audio.

    Raises:
        InvalidContainerError: missing signature, a block header cut short,
            or a block running past the end of the data.
    """
    if len(data) < 8 or data[:4] != FLAC_SIGNATURE:
        raise InvalidContainerError("Invalid FLAC file format")

    blocks = []
    offset = len(FLAC_SIGNATURE)
    end = len(data)

    while offset < end:
        if offset + BLOCK_HEADER_SIZE > end:
            raise InvalidContainerError(f"Truncated metadata block header at offset {offset}")

        header = data[offset]
        is_last = bool(header & 0x80)
        block_type = header & 0x7F
        size = int.from_bytes(data[offset + 1:offset + 4], 'big')
        offset += BLOCK_HEADER_SIZE

        if offset + size > end:
            raise InvalidContainerError(
                f"Metadata block of type {block_type} at offset {offset - BLOCK_HEADER_SIZE} "
                f"declares {size} bytes but only {end - offset} remain")

        blocks.append(FlacBlock(block_type, is_last, bytes(data[offset:offset + size])))
        offset += size

        if is_last:
            break

    return FlacContainer(tuple(blocks), bytes(data[offset:]))


def serialize_flac(container: FlacContainer) -> bytes:
    """Rebuild the file bytes from a container."""
    parts = [FLAC_SIGNATURE]
    for block in container.blocks:
        parts.append(block.header())
        parts.append(block.data)
    parts.append(container.audio)
    return b''.join(parts)


# ---------- Block payloads ----------
def build_vorbis_comment(tags: Iterable[Tag], vendor: Optional[str] = None) -> bytes:
    """
    Build a VORBIS_COMMENT block body from the text and number tags.

    Binary tags are skipped; album art is written as PICTURE blocks
    instead. FLAC omits the framing bit Ogg Vorbis puts at the end.
    """
    if vendor is None:
        vendor = Config.VENDOR_STRING

    comments = []
    for tag in tags:
        if tag.kind is TagKind.BINARY:
            if not tag.is_album_art:
                logger.debug(f"Dropping binary tag {tag.key}: Vorbis comments only hold text")
            continue
        if is_album_art_key(tag.key):
            logger.debug(f"Dropping text tag {tag.key}: album art must be binary")
            continue
        comments.append(f"{vorbis_field_for(tag.key)}={tag.as_text()}".encode('utf-8'))

    vendor_bytes = vendor.encode('utf-8')
    parts = [struct.pack('<I', len(vendor_bytes)), vendor_bytes, struct.pack('<I', len(comments))]
    for comment in comments:
        parts.append(struct.pack('<I', len(comment)))
        parts.append(comment)
    return b''.join(parts)


def build_picture(image: bytes) -> bytes:
    """Build a PICTURE block body holding image as the front cover."""
    mime = detect_mime_type(image).encode('ascii')
    return b''.join((
        struct.pack('>2I', PICTURE_FRONT_COVER, len(mime)),
        mime,
        struct.pack('>I', 0),  # description length
        struct.pack('>4I', 0, 0, 0, 0),  # width, height, depth, colors used
        struct.pack('>I', len(image)),
        image,
    ))


# ---------- Block list transforms ----------
def seal(blocks: Sequence[FlacBlock]) -> Tuple[FlacBlock, ...]:
    """Return blocks with the last-block flag set on the final block only."""
    final = len(blocks) - 1
    return tuple(
        b if b.is_last == (i == final) else replace(b, is_last=(i == final))
        for i, b in enumerate(blocks)
    )


def replace_vorbis_comment(blocks: Sequence[FlacBlock], payload: bytes) -> Tuple[FlacBlock, ...]:
    """
    Put payload into the VORBIS_COMMENT block.

    An existing block is rewritten where it stands, keeping its last-block
    flag. Without one, a new block is appended as the last block.
    """
    out = []
    found = False
    for block in blocks:
        if block.type != BLOCK_VORBIS_COMMENT:
            out.append(block)
        elif not found:
            out.append(replace(block, data=payload))
            found = True
        else:
            logger.warning("Dropping duplicate VORBIS_COMMENT block")

    if not found:
        out = [replace(b, is_last=False) if b.is_last else b for b in out]
        out.append(FlacBlock(BLOCK_VORBIS_COMMENT, True, payload))
        logger.debug("Appended new VORBIS_COMMENT block")
    return seal(out)


def append_picture(blocks: Sequence[FlacBlock], payload: bytes) -> Tuple[FlacBlock, ...]:
    """Append a PICTURE block after every existing block."""
    out = [replace(b, is_last=False) if b.is_last else b for b in blocks]
    out.append(FlacBlock(BLOCK_PICTURE, True, payload))
    return tuple(out)


def drop_pictures(blocks: Sequence[FlacBlock]) -> Tuple[FlacBlock, ...]:
    """Remove every PICTURE block."""
    return seal([b for b in blocks if b.type != BLOCK_PICTURE])


# ---------- Codec ----------
class FlacCodec:
    """Writes Vorbis comments and cover art into FLAC data."""

    name = 'flac'
    extensions = ('.flac',)

    def supports_file(self, path) -> bool:
        return str(path).lower().endswith(self.extensions)

    def write_tags(self, data: bytes, tags: Iterable[Tag]) -> bytes:
        """
        Rewrite the metadata of FLAC data.

        The Vorbis comment is replaced with one holding only the given
        text-like tags. Each album art tag then appends a PICTURE block.

        Raises:
            InvalidContainerError: data is not a well-formed FLAC stream.
        """
        tags = list(tags)
        container = parse_flac(data)

        blocks = replace_vorbis_comment(container.blocks, build_vorbis_comment(tags))

        art = [t for t in tags if t.is_album_art]
        if art and Config.REPLACE_PICTURES:
            blocks = drop_pictures(blocks)
        for tag in art:
            blocks = append_picture(blocks, build_picture(tag.value))
        if art:
            logger.debug(f"Appended {len(art)} PICTURE block(s)")

        return serialize_flac(FlacContainer(seal(blocks), container.audio))

    def clear_tags(self, data: bytes) -> bytes:
        """Empty the Vorbis comment (vendor string only). The block is kept."""
        return self.write_tags(data, [])
