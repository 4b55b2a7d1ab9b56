"""Tests for tagsmith.core (TagWriter and the module-level API)."""

import os
import logging
import pytest
from pathlib import Path
from unittest.mock import patch

import tagsmith
from tagsmith.core import (
    TagWriter,
    validate_target,
    write_tags,
    write_tag,
    write_common_tags,
    clear_tags,
    render,
    is_supported,
    supported_extensions,
)
from tagsmith.errors import (
    TagsmithError,
    MissingFileError,
    NotWritableError,
    FileTooLargeError,
    UnsupportedFormatError,
    InvalidContainerError,
    WriteError,
)
from tagsmith.flac import parse_flac, BLOCK_VORBIS_COMMENT, BLOCK_PICTURE
from tagsmith.id3 import decode_synchsafe
from tagsmith.tags import Tag
from tagsmith.utils import Config

from conftest import MP3_AUDIO, FLAC_AUDIO, JPEG_BYTES, vorbis_comment

running_as_root = hasattr(os, 'geteuid') and os.geteuid() == 0


class TestDispatch:
    """Codec selection by extension."""

    def test_supported_extensions(self):
        assert supported_extensions() == {'.mp3', '.flac'}
        assert tagsmith.SUPPORTED_EXT == {'.mp3', '.flac'}

    @pytest.mark.parametrize("name,expected", [
        ('song.mp3', True),
        ('SONG.MP3', True),
        ('dir/track.Flac', True),
        ('song.ogg', False),
        ('song.m4a', False),
        ('mp3', False),
        ('', False),
    ])
    def test_is_supported(self, name, expected):
        assert is_supported(name) is expected

    def test_codec_for(self):
        writer = TagWriter()
        assert writer.codec_for('a.mp3').name == 'mp3'
        assert writer.codec_for('a.FLAC').name == 'flac'

    def test_custom_codec_registration(self, tmp_path):
        class UpperCodec:
            name = 'upper'
            extensions = ('.TXT',)

            def supports_file(self, path):
                return str(path).lower().endswith('.txt')

            def write_tags(self, data, tags):
                return data.upper()

            def clear_tags(self, data):
                return data.lower()

        writer = TagWriter([UpperCodec()])
        assert writer.supported_extensions == {'.txt'}
        path = tmp_path / 'note.txt'
        path.write_bytes(b'abc')
        writer.write_tags(path, [Tag.text('TITLE', 'x')])
        assert path.read_bytes() == b'ABC'
        with pytest.raises(UnsupportedFormatError):
            writer.write_tags(tmp_path / 'song.mp3', [])


class TestWrite:
    """Writing tags to files on disk."""

    def test_write_mp3(self, mp3_file):
        write_tags(mp3_file, [Tag.text('TITLE', 'New'), Tag.number('TRACKNUMBER', 4)])
        data = mp3_file.read_bytes()
        assert data[:5] == b'ID3\x04\x00'
        assert data[decode_synchsafe(data, 6) + 10:] == MP3_AUDIO

    def test_write_flac(self, flac_file):
        write_tags(str(flac_file), [Tag.text('ARTIST', 'X'), Tag.binary('ALBUMART', JPEG_BYTES)])
        container = parse_flac(flac_file.read_bytes())
        assert [b.type for b in container.blocks] == [0, BLOCK_VORBIS_COMMENT, BLOCK_PICTURE]
        assert container.blocks[1].data == vorbis_comment(Config.VENDOR_STRING, ['ARTIST=X'])
        assert container.audio == FLAC_AUDIO

    def test_write_tag(self, flac_file):
        write_tag(flac_file, Tag.text('GENRE', 'Jazz'))
        container = parse_flac(flac_file.read_bytes())
        assert container.blocks[1].data == vorbis_comment(Config.VENDOR_STRING, ['GENRE=Jazz'])

    def test_write_common_tags(self, flac_file):
        write_common_tags(flac_file, {'TITLE': 'So What', 'TRACKNUMBER': 1})
        container = parse_flac(flac_file.read_bytes())
        assert container.blocks[1].data == vorbis_comment(
            Config.VENDOR_STRING, ['TITLE=So What', 'TRACKNUMBER=1'])

    def test_write_replaces_previous_tags(self, tagged_flac_file):
        write_tags(tagged_flac_file, [Tag.text('ALBUM', 'Kind of Blue')])
        container = parse_flac(tagged_flac_file.read_bytes())
        assert container.blocks[1].data == vorbis_comment(Config.VENDOR_STRING, ['ALBUM=Kind of Blue'])

    def test_write_logs_success(self, mp3_file, caplog):
        with caplog.at_level(logging.INFO, logger='tagsmith.core'):
            write_tags(mp3_file, [Tag.text('TITLE', 'x')])
        assert "Successfully wrote metadata to" in caplog.text

    def test_clear_mp3(self, mp3_file):
        clear_tags(mp3_file)
        assert mp3_file.read_bytes() == MP3_AUDIO

    def test_clear_flac(self, tagged_flac_file):
        clear_tags(tagged_flac_file)
        container = parse_flac(tagged_flac_file.read_bytes())
        assert container.blocks[1].data == vorbis_comment(Config.VENDOR_STRING, [])

    def test_render_leaves_file_alone(self, mp3_file):
        before = mp3_file.read_bytes()
        out = render(mp3_file, [Tag.text('TITLE', 'x')])
        assert mp3_file.read_bytes() == before
        assert out.endswith(MP3_AUDIO)
        assert out != before

    def test_render_clear(self, mp3_file):
        assert TagWriter().render_clear(mp3_file) == MP3_AUDIO


class TestErrors:
    """Failures surface as TagsmithError subclasses carrying the path."""

    def test_missing_file(self, tmp_path):
        path = tmp_path / 'gone.mp3'
        with pytest.raises(MissingFileError) as exc:
            write_tags(path, [Tag.text('TITLE', 'x')])
        assert exc.value.path == str(path)
        assert exc.value.kind == 'file_not_found'
        assert str(path) in str(exc.value)

    def test_directory_is_missing_file(self, tmp_path):
        folder = tmp_path / 'album.mp3'
        folder.mkdir()
        with pytest.raises(MissingFileError):
            validate_target(folder)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / 'song.ogg'
        path.write_bytes(b'OggS')
        with pytest.raises(UnsupportedFormatError) as exc:
            write_tags(path, [Tag.text('TITLE', 'x')])
        assert exc.value.path == str(path)
        assert '.ogg' in exc.value.message
        assert '.flac, .mp3' in exc.value.message

    def test_unsupported_checked_before_existence(self, tmp_path):
        with pytest.raises(UnsupportedFormatError):
            write_tags(tmp_path / 'missing.wav', [])

    def test_invalid_flac_gets_path(self, tmp_path):
        path = tmp_path / 'broken.flac'
        path.write_bytes(b'not a flac file at all')
        with pytest.raises(InvalidContainerError) as exc:
            write_tags(path, [Tag.text('TITLE', 'x')])
        assert exc.value.path == str(path)
        assert "(file: " in str(exc.value)
        # Nothing was written
        assert path.read_bytes() == b'not a flac file at all'

    def test_truncated_flac(self, tmp_path, minimal_flac):
        path = tmp_path / 'cut.flac'
        path.write_bytes(minimal_flac[:20])
        with pytest.raises(InvalidContainerError):
            write_tags(path, [Tag.text('TITLE', 'x')])

    def test_too_large(self, mp3_file):
        Config.MAX_FILE_SIZE = 10
        with pytest.raises(FileTooLargeError) as exc:
            write_tags(mp3_file, [Tag.text('TITLE', 'x')])
        assert exc.value.kind == 'too_large'

    @pytest.mark.skipif(running_as_root, reason="root can write read-only files")
    def test_not_writable(self, mp3_file):
        mp3_file.chmod(0o444)
        try:
            with pytest.raises(NotWritableError):
                write_tags(mp3_file, [Tag.text('TITLE', 'x')])
        finally:
            mp3_file.chmod(0o644)

    def test_write_failure_wrapped(self, mp3_file):
        disk_full = OSError(28, 'No space left on device')
        with patch.object(Path, 'write_bytes', side_effect=disk_full):
            with pytest.raises(WriteError) as exc:
                write_tags(mp3_file, [Tag.text('TITLE', 'x')])
        assert exc.value.kind == 'write_failed'
        assert exc.value.__cause__ is disk_full

    def test_unencodable_frame_wrapped(self, mp3_file):
        # Shrink the synchsafe range so an ordinary title overflows it
        before = mp3_file.read_bytes()
        with patch('tagsmith.id3.SYNCHSAFE_MAX', 16):
            with pytest.raises(WriteError) as exc:
                write_tags(mp3_file, [Tag.text('TITLE', 'x' * 40)])
        assert exc.value.path == str(mp3_file)
        assert isinstance(exc.value.__cause__, ValueError)
        assert mp3_file.read_bytes() == before

    def test_codec_value_error_wrapped(self, tmp_path):
        class FailingCodec:
            name = 'failing'
            extensions = ('.bin',)

            def supports_file(self, path):
                return True

            def write_tags(self, data, tags):
                raise ValueError("cannot encode")

            def clear_tags(self, data):
                return data

        path = tmp_path / 'data.bin'
        path.write_bytes(b'abc')
        with pytest.raises(WriteError) as exc:
            TagWriter([FailingCodec()]).write_tags(path, [])
        assert exc.value.path == str(path)
        assert "cannot encode" in exc.value.message

    def test_all_errors_share_base(self):
        for cls in (MissingFileError, NotWritableError, FileTooLargeError,
                    UnsupportedFormatError, InvalidContainerError, WriteError):
            assert issubclass(cls, TagsmithError)

    def test_error_without_path(self):
        err = InvalidContainerError("bad")
        assert err.path is None
        assert str(err) == "bad"
