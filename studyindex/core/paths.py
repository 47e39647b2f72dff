"""Path helpers for collection keys and folder paths.

Collection keys are POSIX-style paths relative to the collections root,
e.g. ``japanese/words/verbs.json``. Folders never carry leading or
trailing slashes; the root folder is the empty string.
"""

import re

_UNDERSCORE_RUNS = re.compile(r"[_-]+")


def normalize_folder_path(folder: str | None) -> str:
    """Strip leading and trailing slashes from a folder path."""
    return str(folder or "").strip("/")


def split_path(path: str | None) -> list[str]:
    """Split a path into its non-empty segments."""
    return [part for part in str(path or "").split("/") if part]


def dirname(path: str | None) -> str:
    """Parent folder of a path, ``""`` for top-level items."""
    parts = split_path(path)
    if len(parts) <= 1:
        return ""
    return "/".join(parts[:-1])


def basename(path: str | None) -> str:
    """Last segment of a path."""
    parts = split_path(path)
    return parts[-1] if parts else ""


def top_folder(path: str | None) -> str:
    """First segment of a path."""
    parts = split_path(path)
    return parts[0] if parts else ""


def join_path(folder: str, name: str) -> str:
    """Join a folder and a child name, handling the root folder."""
    folder = normalize_folder_path(folder)
    return f"{folder}/{name}" if folder else name


def is_under(path: str, folder: str) -> bool:
    """Check whether ``path`` lives somewhere below ``folder``.

    Every path is under the root folder.
    """
    folder = normalize_folder_path(folder)
    if not folder:
        return True
    return str(path or "").startswith(f"{folder}/")


def ancestor_folders(path: str) -> list[str]:
    """All folders containing ``path``, from the root down.

    Args:
        path: Collection key or folder path

    Returns:
        List starting with ``""`` and ending with the path's own folder
    """
    parts = split_path(path)[:-1]
    folders = [""]
    for i in range(1, len(parts) + 1):
        folders.append("/".join(parts[:i]))
    return folders


def title_from_filename(filename: str | None) -> str:
    """Human title for a file name: ``verbs_godan.json`` -> ``verbs godan``."""
    name = str(filename or "")
    if name.lower().endswith(".json"):
        name = name[: -len(".json")]
    return _UNDERSCORE_RUNS.sub(" ", name).strip()
