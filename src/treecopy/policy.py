"""Overwrite policy decisions."""

import logging

from .models import FileItem, OverwritePolicy


def should_copy(
    destination_exists: bool,
    policy: OverwritePolicy,
    source_size: int,
    destination_size: int | None,
) -> bool:
    """
    Decide whether a file is copied under ``policy``.

    Parameters
    ----------
    destination_exists : bool
        Whether something already exists at the destination path
    policy : OverwritePolicy
        Configured overwrite policy
    source_size : int
        Size of the source file in bytes
    destination_size : int | None
        Size of the existing destination, None if it could not be read

    Returns
    -------
    bool
        True to copy, False to skip

    Notes
    -----
    A missing destination is always copied. An unreadable destination size
    means "attempt the copy". ASK has no interactive prompt here and behaves
    like SKIP.
    """
    if not destination_exists:
        return True

    if policy == OverwritePolicy.OVERWRITE:
        return True
    elif policy in (OverwritePolicy.SKIP, OverwritePolicy.ASK):
        return False
    elif policy == OverwritePolicy.SMART_UPDATE:
        if destination_size is None:
            return True
        return destination_size != source_size
    raise ValueError(f"Unknown overwrite policy: {policy}")


def decide_for_item(item: FileItem, policy: OverwritePolicy) -> bool:
    """
    Apply ``should_copy`` to an item by probing its destination.

    Directories are always copied, since files placed below them need them.
    A destination that cannot be inspected is copied under every policy; any
    real problem with it then surfaces as the item's copy error.
    """
    if item.is_dir:
        return True

    destination = item.destination_path
    try:
        destination_size = destination.stat().st_size
    except (FileNotFoundError, NotADirectoryError):
        return should_copy(False, policy, item.file_size, None)
    except OSError as e:
        # Unknown destination state: let the copy attempt report the failure
        logging.debug(f"Cannot stat destination {destination}: {e}")
        return should_copy(False, policy, item.file_size, None)

    return should_copy(True, policy, item.file_size, destination_size)
