"""Directory listing helpers shared by the generators."""

from pathlib import Path

from avd_generator.errors import SourceListingError


def get_all_files(directory: Path) -> list[Path]:
    """Regular files directly inside directory, sorted by name."""
    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        raise SourceListingError(directory, exc.strerror or exc) from exc
    return [p for p in entries if p.is_file()]


def get_all_files_of_kind(directory: Path, include: str, exclude: str = "") -> list[Path]:
    """Files whose name contains include and (when given) does not contain exclude."""
    return [
        p for p in get_all_files(directory)
        if include in p.name and not (exclude and exclude in p.name)
    ]


def get_all_files_recursive(directory: Path, suffix: str) -> list[Path]:
    """Files ending in suffix anywhere below directory, sorted by path."""
    if not directory.is_dir():
        raise SourceListingError(directory, "not a directory")
    try:
        return sorted(p for p in directory.rglob(f"*{suffix}") if p.is_file())
    except OSError as exc:
        raise SourceListingError(directory, exc.strerror or exc) from exc


def is_safe_file_name(name: str) -> bool:
    """True when name can be used as one path segment below an output directory."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


def is_within(path: Path, directory: Path) -> bool:
    """True when path stays inside directory once both are resolved."""
    try:
        path.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True
