"""
Readers and writers for the flat package-list files kept in the
repository's ``config/`` directory.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Union

GROUP_PREFIX = "group:"
VSCODE_BREW_PREFIX = "vscode "


@dataclass
class DnfSelection:
    groups: List[str] = field(default_factory=list)
    packages: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.groups and not self.packages


def clean_lines(lines: Iterable[str]) -> List[str]:
    """Trim each line and drop blank lines and ``#`` comments."""
    cleaned = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        cleaned.append(line)
    return cleaned


def read_list_file(path: Union[str, Path]) -> List[str]:
    path = Path(path)
    try:
        return clean_lines(path.read_text().splitlines())
    except OSError:
        return []


def parse_dnf_packages(lines: Iterable[str]) -> DnfSelection:
    """
    ``group:<name>`` lines select DNF groups; every other line holds one
    or more whitespace separated package names.
    """
    selection = DnfSelection()
    for line in clean_lines(lines):
        if line.startswith(GROUP_PREFIX):
            group = line[len(GROUP_PREFIX):].strip()
            if group:
                selection.groups.append(group)
        else:
            selection.packages.extend(line.split())
    return selection


def filter_brewfile(text: str) -> str:
    """Remove VS Code extension entries from a Brewfile dump."""
    kept = [line for line in text.splitlines() if not line.startswith(VSCODE_BREW_PREFIX)]
    return "\n".join(kept) + "\n" if kept else ""


def merge_unique_sorted(*sources: Iterable[str]) -> List[str]:
    merged = set()
    for source in sources:
        merged.update(item.strip() for item in source if item.strip())
    return sorted(merged)


def list_appimages(directory: Union[str, Path]) -> List[str]:
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.lower().endswith(".appimage")
    )


def write_list_file(path: Union[str, Path], items: Iterable[str]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    items = list(items)
    path.write_text("\n".join(items) + "\n" if items else "")


def is_non_empty_file(path: Union[str, Path]) -> bool:
    path = Path(path)
    return path.is_file() and path.stat().st_size > 0


def replace_file(path: Union[str, Path], content: str) -> None:
    """Write content beside path, then rename it over path in one step."""
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as tmp_file:
            tmp_file.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
