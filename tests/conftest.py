"""
Pytest configuration and shared fixtures.
"""

import os
import signal
import struct
import pytest

from tagsmith.utils import Config

# ---------- Constants ----------

# Fake MPEG audio: a frame sync followed by filler. Codecs never decode it.
MP3_AUDIO = b'\xFF\xFB\x90\x00' + bytes(range(256)) * 4

# ID3v2.3 tag with a single TIT2 "HI" frame (v2.3 frame sizes are plain big-endian)
ID3V23_TAG = (
    b'ID3\x03\x00\x00\x00\x00\x00\x0D'
    b'TIT2\x00\x00\x00\x03\x00\x00' b'\x00HI'
)

# STREAMINFO: 4096-sample blocks, 44.1 kHz, stereo, 16 bit, 44100 samples
STREAMINFO = (
    struct.pack('>HH', 4096, 4096)
    + b'\x00\x00\x00' + b'\x00\x00\x00'
    + b'\x0A\xC4\x42'
    + b'\xF0\x00\x00\xAC\x44'
    + b'\x00' * 16
)

FLAC_AUDIO = b'\xFF\xF8\x69\x08' + b'\x01\x02\x03\x04\x05\x06'

JPEG_BYTES = b'\xFF\xD8\xFF\xE0\x00\x10JFIF\x00' + b'\x11' * 64 + b'\xFF\xD9'
PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00\x00\x00\x0DIHDR' + b'\x22' * 48

# ---------- Helper Functions ----------

def build_flac(blocks, audio=FLAC_AUDIO):
    """Build FLAC bytes from (type, is_last, data) triples."""
    out = [b'fLaC']
    for block_type, is_last, data in blocks:
        out.append(bytes(((0x80 if is_last else 0) | block_type,)))
        out.append(struct.pack('>I', len(data))[1:])
        out.append(data)
    out.append(audio)
    return b''.join(out)

def vorbis_comment(vendor, comments):
    """Build a VORBIS_COMMENT body by hand, for comparing against codec output."""
    vendor = vendor.encode('utf-8')
    out = [struct.pack('<I', len(vendor)), vendor, struct.pack('<I', len(comments))]
    for c in comments:
        c = c.encode('utf-8')
        out.append(struct.pack('<I', len(c)))
        out.append(c)
    return b''.join(out)

# ---------- Fixtures ----------

@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep Config changes and TAGSMITH_* env vars from leaking between tests."""
    saved = {
        name: getattr(Config, name)
        for name in ('MAX_FILE_SIZE', 'VENDOR_STRING', 'REPLACE_PICTURES', 'MAX_WORKERS',
                     'MIN_FILES_FOR_PARALLEL', 'LOG_DIR', 'DEFAULT_VERBOSE', 'ID3_STANDARD_COMMENTS')
    }
    for var in list(os.environ):
        if var.startswith('TAGSMITH_'):
            monkeypatch.delenv(var)
    monkeypatch.setenv('TAGSMITH_LOG_DIR', str(tmp_path / 'logs'))
    Config.LOG_DIR = str(tmp_path / 'logs')
    yield
    for name, value in saved.items():
        setattr(Config, name, value)

@pytest.fixture
def restore_signals():
    """main() installs and then resets SIGINT/SIGTERM handlers; put pytest's back."""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)

@pytest.fixture
def minimal_flac():
    """Signature + one STREAMINFO block (last) + 10 bytes of audio."""
    return build_flac([(0, True, STREAMINFO)])

@pytest.fixture
def tagged_flac():
    """STREAMINFO, a Vorbis comment, a SEEKTABLE and PADDING (last)."""
    return build_flac([
        (0, False, STREAMINFO),
        (4, False, vorbis_comment('reference libFLAC 1.4.3', ['TITLE=Old', 'ARTIST=Someone'])),
        (3, False, b'\x00' * 18),
        (1, True, b'\x00' * 32),
    ])

@pytest.fixture
def mp3_file(tmp_path):
    path = tmp_path / "song.mp3"
    path.write_bytes(ID3V23_TAG + MP3_AUDIO)
    return path

@pytest.fixture
def flac_file(tmp_path, minimal_flac):
    path = tmp_path / "song.flac"
    path.write_bytes(minimal_flac)
    return path

@pytest.fixture
def tagged_flac_file(tmp_path, tagged_flac):
    path = tmp_path / "tagged.flac"
    path.write_bytes(tagged_flac)
    return path

@pytest.fixture
def art_file(tmp_path):
    path = tmp_path / "cover.png"
    path.write_bytes(PNG_BYTES)
    return path

@pytest.fixture
def temp_audio_dir(tmp_path, minimal_flac):
    """Create a temporary directory with small audio files."""
    audio_dir = tmp_path / "audio"
    audio_dir.mkdir()

    for i in range(3):
        (audio_dir / f"track_{i:02d}.mp3").write_bytes(ID3V23_TAG + MP3_AUDIO)
        (audio_dir / f"track_{i:02d}.flac").write_bytes(minimal_flac)
    (audio_dir / "notes.txt").write_text("not audio")

    # Add a subdirectory with more files
    subdir = audio_dir / "sub"
    subdir.mkdir()
    (subdir / "sub_track.mp3").write_bytes(MP3_AUDIO)

    return audio_dir
