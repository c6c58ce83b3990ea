"""
Filesystem operations.

- Enumerating a directory tree into a flat list of FileItems
- Copying a single file with modification time preservation
- Creating directories recursively
"""

import contextlib
import errno
import logging
import os
import stat
from pathlib import Path

from .checksums import BUFFER_SIZE
from .errors import (
    DirectoryCreationFailedError,
    EnumerationFailedError,
    ReadError,
    WriteError,
)
from .models import FileItem


def enumerate_tree(source: Path, destination_root: Path) -> list[FileItem]:
    """
    Walk ``source`` recursively and build one FileItem per entry.

    A directory's item always precedes its descendants. Entries within a
    directory are visited in name order, so the result is deterministic.

    Parameters
    ----------
    source : Path
        Root directory to enumerate
    destination_root : Path
        Root that replaces ``source`` in each destination path

    Returns
    -------
    list[FileItem]
        Flat list of PENDING items (plus FAILED ones, see Notes)

    Raises
    ------
    EnumerationFailedError
        If ``source`` itself cannot be listed

    Notes
    -----
    A subdirectory that cannot be listed keeps its own item, marked FAILED,
    and produces no descendants. An entry whose metadata cannot be read
    (e.g. a dangling symlink) is likewise recorded as a FAILED item. Symlinks
    are never followed into: a link to a directory becomes a size-0 file item
    whose copy later fails with a read error.
    """
    items: list[FileItem] = []
    _walk(Path(source), Path(), Path(destination_root), items)
    logging.debug(f"Enumerated {len(items)} entries under {source}")
    return items


def _walk(
    directory: Path,
    rel_path: Path,
    destination_root: Path,
    items: list[FileItem],
) -> None:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise EnumerationFailedError(directory, cause=e) from e

    for entry in entries:
        entry_rel = rel_path / entry.name
        item = FileItem(
            source_path=Path(entry.path),
            destination_path=destination_root / entry_rel,
        )
        items.append(item)

        try:
            item.is_dir = entry.is_dir(follow_symlinks=False)
            entry_stat = entry.stat()
        except OSError as e:
            item.mark_failed(EnumerationFailedError(entry.path, cause=e))
            logging.warning(f"Cannot read metadata of {entry.path}: {e}")
            continue

        item.last_modified = entry_stat.st_mtime
        if not item.is_dir:
            # A symlink to a directory is not traversed and contributes no bytes
            if not stat.S_ISDIR(entry_stat.st_mode):
                item.file_size = entry_stat.st_size
            continue

        try:
            _walk(item.source_path, entry_rel, destination_root, items)
        except EnumerationFailedError as e:
            item.mark_failed(e)
            logging.warning(f"{e} ({e.cause})")


def ensure_dir_exists(path: Path) -> None:
    """
    Create ``path`` and any missing parents.

    Raises
    ------
    DirectoryCreationFailedError
        If the path exists but is not a directory, or cannot be created
    """
    path = Path(path)
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        mode = None
    except OSError as e:
        raise DirectoryCreationFailedError(path, cause=e) from e

    if mode is not None:
        if stat.S_ISDIR(mode):
            return
        raise DirectoryCreationFailedError(
            path,
            cause=NotADirectoryError(
                errno.ENOTDIR, "Path exists but is not a directory", str(path)
            ),
        )

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationFailedError(path, cause=e) from e


def ensure_parent_dir_exists(path: Path) -> None:
    """
    Create the parent directory of ``path`` if it is missing.

    Raises
    ------
    DirectoryCreationFailedError
        If the parent exists but is not a directory, or cannot be created
    """
    parent = Path(path).parent
    if parent == Path(path):
        return
    ensure_dir_exists(parent)


def copy_file_with_metadata(
    src: Path,
    dst: Path,
    buffer_size: int = BUFFER_SIZE,
) -> int:
    """
    Copy one file's bytes to ``dst`` and carry over its modification time.

    Parameters
    ----------
    src : Path
        Source file
    dst : Path
        Destination file, overwritten if present
    buffer_size : int, default=BUFFER_SIZE
        Chunk size for streaming

    Returns
    -------
    int
        Number of bytes written

    Raises
    ------
    DirectoryCreationFailedError
        If the destination's parent cannot be created
    ReadError
        If the source cannot be opened or read
    WriteError
        If the destination cannot be created or written, or is ``src`` itself
    """
    ensure_parent_dir_exists(dst)

    try:
        src_file = open(src, "rb")
    except OSError as e:
        raise ReadError(src, cause=e) from e

    with src_file:
        try:
            src_stat = os.fstat(src_file.fileno())
        except OSError as e:
            raise ReadError(src, cause=e) from e

        # Opening dst for writing would truncate src
        if _is_same_file(src_stat, dst):
            raise WriteError(dst, f"Destination is the same file as the source: {dst}")

        try:
            dst_file = open(dst, "wb")
        except OSError as e:
            raise WriteError(dst, cause=e) from e

        try:
            bytes_copied = _stream(src_file, dst_file, src, dst, buffer_size)
        except BaseException:
            # Buffered data may fail to flush again; the first error wins
            with contextlib.suppress(OSError):
                dst_file.close()
            raise

        try:
            dst_file.close()
        except OSError as e:
            raise WriteError(dst, cause=e) from e

    # Timestamp preservation is best effort
    with contextlib.suppress(OSError):
        os.utime(dst, ns=(src_stat.st_atime_ns, src_stat.st_mtime_ns))

    return bytes_copied


def _is_same_file(src_stat: os.stat_result, dst: Path) -> bool:
    try:
        dst_stat = os.stat(dst)
    except OSError:
        return False
    return os.path.samestat(src_stat, dst_stat)


def _stream(src_file, dst_file, src: Path, dst: Path, buffer_size: int) -> int:
    bytes_copied = 0
    while True:
        try:
            chunk = src_file.read(buffer_size)
        except OSError as e:
            raise ReadError(src, cause=e) from e
        if not chunk:
            break
        try:
            dst_file.write(chunk)
        except OSError as e:
            raise WriteError(dst, cause=e) from e
        bytes_copied += len(chunk)

    try:
        dst_file.flush()
    except OSError as e:
        raise WriteError(dst, cause=e) from e
    return bytes_copied
