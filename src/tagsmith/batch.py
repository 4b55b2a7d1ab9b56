"""High-level Python API for batch processing files with tagsmith."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union, Iterable
import logging

from .processor import collect_files_generator, process_files
from .tags import Tag, tags_from_mapping
from .utils import normalize_extension

logger = logging.getLogger(__name__)

# Core batch processing logic
def process_batch(
    path: Union[str, Path],
    tags: Iterable[Tag],
    *,
    clear: bool = False,
    recursive: bool = False,
    extensions: Optional[List[str]] = None,
    dry_run: bool = False,
    verbose: bool = False,
    max_workers: Optional[int] = None,
    use_parallel: bool = True,
    verify: bool = True
) -> Dict[str, Any]:
    """
    Write the same tags to every supported audio file under path.

    Supports parallel processing for large batches, automatically using multiple
    threads when beneficial unless disabled.

    Args:
        path: Directory or file path to process
        tags: Tags to write (replacing existing metadata)
        clear: If True, remove metadata instead of writing tags
        recursive: If True, search subdirectories
        extensions: List of file extensions to include (e.g. ['.mp3', '.flac'])
        dry_run: If True, build the new files in memory without writing
        verbose: If True, show detailed progress
        max_workers: Number of parallel workers (None = auto)
        use_parallel: If False, disable parallel processing
        verify: If True, verify writes by reading back metadata

    Returns:
        Dict with keys: processed, successful, failed, results

    Examples:
        >>> from tagsmith import Tag
        >>> from tagsmith.batch import process_batch
        >>> result = process_batch('/music', [Tag.text('ALBUM', 'Kind of Blue')])
        >>> print(f"Processed {result['successful']} files")
    """
    if verbose:
        logging.basicConfig(level=logging.INFO)

    path = Path(path)
    ext_set = {normalize_extension(e) for e in extensions} if extensions else None

    files = list(collect_files_generator(path, recursive=recursive, ext_set=ext_set))

    if not files:
        logger.warning("No matching files found")
        return {"processed": 0, "successful": 0, "failed": 0, "results": []}

    results = process_files(
        files,
        list(tags),
        max_workers=max_workers,
        use_parallel=use_parallel,
        verbose=verbose,
        clear=clear,
        dry_run=dry_run,
        verify=verify
    )

    return {
        "processed": len(results),
        "successful": sum(1 for r in results if r.get('passed', False)),
        "failed": sum(1 for r in results if not r.get('passed', False)),
        "results": results
    }

# Convenience wrappers
def set_fields(
    path: Union[str, Path],
    fields: Dict[str, Any],
    **kwargs
) -> Dict[str, Any]:
    """
    Convenience function to write a plain {key: value} mapping.

    Value types pick the tag kind: str is text, int/float is a number and
    bytes is binary (use the ALBUMART key for cover art).

    Examples:
        >>> from tagsmith.batch import set_fields
        >>> result = set_fields(
        ...     '/music',
        ...     fields={'ARTIST': 'Miles Davis', 'DATE': '1959', 'TRACKNUMBER': 3},
        ...     recursive=True,
        ...     dry_run=True
        ... )
    """
    if not fields:
        raise ValueError("No fields given")
    return process_batch(path, tags_from_mapping(fields), **kwargs)
