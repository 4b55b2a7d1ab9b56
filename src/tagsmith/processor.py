"""
File processing logic for tagsmith.
"""

import os
import logging
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Tuple, Optional, Any, Generator, Iterable
import signal
import sys

import mutagen
import mutagen.id3 as id3
import mutagen.flac as flac

from .core import TagWriter, SUPPORTED_EXT
from .id3 import frame_id_for, build_frame, existing_tag_size, TXXX, COMM, APIC, TDRC
from .flac import vorbis_field_for
from .tags import Tag, TagKind, is_album_art_key
from .utils import Config, print_progress_safe, EXIT_CODE_INTERRUPTED

logger = logging.getLogger(__name__)

ProcessResultType = Dict[str, Any]

_writer = TagWriter()

# ---------- Signal Handlers ----------
def register_signal_handlers():
    """Register signal handlers for graceful shutdown on Ctrl+C/SIGTERM."""
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, shutting down gracefully...")
        sys.exit(EXIT_CODE_INTERRUPTED)

    # Only register on platforms that support it (Windows has limited signal support)
    if sys.platform != "win32":
        try:
            signal.signal(signal.SIGINT, signal_handler)
            signal.signal(signal.SIGTERM, signal_handler)
        except ValueError:
            # Signals can only be installed from the main thread
            logger.debug("Signal handlers not installed outside the main thread")

def unregister_signal_handlers():
    """Unregister signal handlers (restore defaults)."""
    if sys.platform != "win32":
        try:
            signal.signal(signal.SIGINT, signal.SIG_DFL)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
        except ValueError:
            logger.debug("Signal handlers not restored outside the main thread")

# ---------- File Validation ----------
def validate_file(path: Path) -> Tuple[bool, str]:
    """Comprehensive file validation."""
    try:
        if not path.exists():
            return False, "File does not exist"
        if not path.is_file():
            return False, "Path is not a file"

        file_size = path.stat().st_size
        if file_size > Config.MAX_FILE_SIZE:
            return False, f"File too large ({file_size} bytes)"
        if file_size == 0:
            return False, "File is empty"

        if not os.access(path, os.R_OK):
            return False, "No read permission"
        if not os.access(path, os.W_OK):
            return False, "No write permission"

        ext = path.suffix.lower()
        if ext not in SUPPORTED_EXT:
            return False, f"Unsupported file extension: {ext}"

        return True, "Valid"
    except OSError as e:
        return False, f"Validation error: {e}"

# ---------- Verification ----------
def _id3_values(tags: id3.ID3, tag: Tag) -> List[str]:
    """Text values mutagen reads back for the frame a tag was written to."""
    frame_id = frame_id_for(tag.key)
    if frame_id == TXXX:
        return [str(x) for f in tags.getall(TXXX) if f.desc == tag.key for x in f.text]
    if frame_id == COMM:
        return [str(x) for f in tags.getall(COMM) for x in f.text]
    frame = tags.get(frame_id)
    if frame is None:
        return []
    return [str(x) for x in getattr(frame, 'text', [])]

def _checked_raw(tag: Tag) -> bool:
    """Frames whose text mutagen doesn't hand back verbatim."""
    frame_id = frame_id_for(tag.key)
    # TDRC text is reparsed as a timestamp; a plain COMM body is read as language + description
    return frame_id == TDRC or (frame_id == COMM and not Config.ID3_STANDARD_COMMENTS)

def _verify_id3(path: Path, tags: List[Tag]) -> Dict[str, bool]:
    try:
        loaded = id3.ID3(str(path))
    except id3.ID3NoHeaderError:
        loaded = None

    raw_tag = None
    results = {}
    for tag in tags:
        if tag.kind is TagKind.BINARY:
            if tag.is_album_art:
                results[tag.key] = loaded is not None and bool(loaded.getall(APIC))
            continue
        if is_album_art_key(tag.key):
            continue
        if _checked_raw(tag):
            if raw_tag is None:
                data = path.read_bytes()
                raw_tag = data[:existing_tag_size(data)]
            results[tag.key] = build_frame(tag) in raw_tag
            continue
        # Frames holding several values for one ID (e.g. PERFORMER and CONDUCTOR
        # both map to TPE3) keep the last write, so compare against any value.
        got = _id3_values(loaded, tag) if loaded is not None else []
        results[tag.key] = tag.as_text() in got
    return results

def _verify_flac(path: Path, tags: List[Tag]) -> Dict[str, bool]:
    loaded = flac.FLAC(str(path))
    comments = loaded.tags

    results = {}
    for tag in tags:
        if tag.kind is TagKind.BINARY:
            if tag.is_album_art:
                results[tag.key] = bool(loaded.pictures)
            continue
        if is_album_art_key(tag.key):
            continue
        field = vorbis_field_for(tag.key)
        got = comments.get(field, []) if comments is not None else []
        results[tag.key] = tag.as_text() in got
    return results

def verify_written(path: Path, expected: Iterable[Tag]) -> Dict[str, bool]:
    """Verify that tags were written correctly by reading the file back with mutagen."""
    path = Path(path)
    tags = list(expected)
    try:
        if path.suffix.lower() == '.flac':
            return _verify_flac(path, tags)
        return _verify_id3(path, tags)
    except (mutagen.MutagenError, OSError) as e:
        logger.error(f"Verification failed for {path}: {e}")
        return {tag.key: False for tag in tags}

# ---------- Process One File ----------
def process_file(path: str,
                 tags: Iterable[Tag],
                 *,
                 clear: bool = False,
                 dry_run: bool = False,
                 verify: bool = True,
                 writer: Optional[TagWriter] = None) -> ProcessResultType:
    """Process a single file with comprehensive error handling."""
    file_path = Path(path)
    ext = file_path.suffix.lower()
    writer = writer or _writer
    tags = list(tags)

    # Check extension (fast, no I/O)
    if not writer.is_supported(file_path):
        return {
            'path': str(file_path),
            'error': f"Unsupported file extension: {ext}",
            'passed': False,
            'ext': ext
        }

    record = {
        'path': str(file_path),
        'ext': ext,
        'tags': [str(t) for t in tags],
        'wrote': False,
        'verified': {},
        'error': None,
        'exception': None,
        'size_before': None,
        'size_after': None,
    }

    is_valid, validation_msg = validate_file(file_path)
    if not is_valid:
        return {**record, 'error': f'file validation failed: {validation_msg}', 'passed': False}

    record['size_before'] = file_path.stat().st_size

    try:
        if dry_run:
            new_data = writer.render_clear(file_path) if clear else writer.render(file_path, tags)
            record['size_after'] = len(new_data)
            return {**record, 'passed': True, 'note': 'dry-run'}

        if clear:
            writer.clear_tags(file_path)
        else:
            writer.write_tags(file_path, tags)
        record['wrote'] = True
        record['size_after'] = file_path.stat().st_size
        logger.debug(f"Successfully wrote metadata to: {path}")
    except Exception as e:
        return {**record, 'error': f'write failed: {e}', 'exception': e, 'passed': False}

    # Verify (optional)
    if verify and not clear:
        record['verified'] = verify_written(file_path, tags)
        record['passed'] = all(record['verified'].values())
        if not record['passed']:
            logger.warning(f"Verification failed for {file_path}: {record['verified']}")
    else:
        record['passed'] = True

    return record

# ---------- Many Files ----------
def _process_files_parallel(
    files: List[Path],
    tags: List[Tag],
    *,
    max_workers: Optional[int] = None,
    verbose: bool = False,
    **kwargs
) -> List[ProcessResultType]:
    """Process multiple files using a thread pool. Each file goes to exactly one worker."""
    if max_workers is None:
        max_workers = Config.MAX_WORKERS

    total_files = len(files)
    results = []
    completed = 0

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_file = {
            executor.submit(process_file, str(file_path), tags, **kwargs): file_path
            for file_path in files
        }

        for future in as_completed(future_to_file):
            file_path = future_to_file[future]
            completed += 1

            try:
                result = future.result()
            except Exception as e:
                result = {
                    'path': str(file_path),
                    'error': f'Unexpected error: {e}',
                    'exception': e,
                    'passed': False,
                    'ext': file_path.suffix.lower()
                }
            results.append(result)

            if verbose:
                print_progress_safe(
                    f"Progress: {completed}/{total_files} ({completed/total_files*100:.1f}%) - {file_path.name}",
                    end='\r'
                )
                if result.get('error'):
                    print_progress_safe(f"\n  ERROR: {result['error']}")

    if verbose:
        print_progress_safe()  # Newline after progress

    return results

def process_files(
    files: Iterable[Path],
    tags: Iterable[Tag],
    *,
    max_workers: Optional[int] = None,
    use_parallel: bool = True,
    verbose: bool = False,
    **kwargs
) -> List[ProcessResultType]:
    """
    Smart dispatcher that chooses between parallel and sequential processing.

    Extra keyword arguments (clear, dry_run, verify, writer) are passed on
    to process_file.
    """
    files_list = [Path(f) for f in files]
    tags = list(tags)
    total_files = len(files_list)

    if total_files == 0:
        return []

    should_use_parallel = (
        use_parallel and
        total_files >= Config.MIN_FILES_FOR_PARALLEL and
        max_workers != 1
    )

    if should_use_parallel:
        workers = max_workers or Config.MAX_WORKERS
        logger.info(f"Using parallel processing with {workers} workers")
        return _process_files_parallel(files_list, tags, max_workers=workers, verbose=verbose, **kwargs)

    logger.info("Using sequential processing")
    results = []
    for i, file_path in enumerate(files_list, 1):
        if verbose:
            print(f"Progress: {i}/{total_files} ({i/total_files*100:.1f}%)", end='\r' if i < total_files else '\n')

        result = process_file(str(file_path), tags, **kwargs)
        results.append(result)

        if verbose and result.get('error'):
            print(f"  ERROR: {result['error']}")

    return results

def collect_files_generator(path: Path, recursive: bool = False, ext_set: Optional[set] = None) -> Generator[Path, None, None]:
    """Generator to collect files efficiently without loading all into memory."""
    path = Path(path)
    if path.is_file():
        yield path
        return

    walker = path.rglob('*') if recursive else path.glob('*')

    for item in sorted(walker):
        if item.is_file():
            ext = item.suffix.lower()
            if ext_set and ext not in ext_set:
                continue
            if ext in SUPPORTED_EXT:
                yield item
