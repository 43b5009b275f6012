"""Rules that scrub environment-specific frames out of a traceback.

Each rule recognises the frames of one component (the test runner, the
Python standard library), rewrites their location to a fixed placeholder
with an unknown line, then collapses every consecutive run of such frames
into a single marker line. How deep pytest or asyncio happen to call into
the test therefore never shows up in the normalised output.
"""

from __future__ import annotations

import importlib.metadata
import importlib.util
import os
import posixpath
import re
import sysconfig
from dataclasses import dataclass

from . import constants
from .stack_types import StackEntry, StackFrame, StackText

_FROZEN_MODULE = re.compile(r"^<frozen (?P<module>[^>]+)>$")


def _normpath(path: str) -> str:
    return os.path.normcase(os.path.normpath(path))


def _under(filename: str, directory: str) -> str | None:
    """Path of *filename* relative to *directory*, or None if outside it."""
    if filename == directory:
        return ""
    prefix = directory.rstrip(os.sep) + os.sep
    if filename.startswith(prefix):
        return filename[len(prefix):].replace(os.sep, "/")
    return None


@dataclass(frozen=True)
class InternalFrameRule:
    """Classifies, rewrites and collapses the frames of one component.

    ``roots`` pairs each install directory with the label it keeps under the
    placeholder; ``excluded`` directories never match even when inside a root.
    """

    marker: str
    placeholder: str
    roots: tuple[tuple[str, str], ...]
    excluded: tuple[str, ...] = ()
    match_frozen: bool = False

    def relative_path(self, filename: str) -> str | None:
        if self.match_frozen:
            frozen = _FROZEN_MODULE.match(filename)
            if frozen:
                return frozen.group("module")
        normalised = _normpath(filename)
        if any(_under(normalised, excluded) is not None for excluded in self.excluded):
            return None
        for root, label in self.roots:
            relative = _under(normalised, root)
            if relative is not None:
                return posixpath.join(label, relative) if label else relative
        return None

    def is_rewritten(self, entry: StackEntry) -> bool:
        return isinstance(entry, StackFrame) and entry.filename.startswith(
            self.placeholder + "/"
        )

    def rewrite(self, entries: list[StackEntry]) -> list[StackEntry]:
        for entry in entries:
            if not isinstance(entry, StackFrame):
                continue
            relative = self.relative_path(entry.filename)
            if relative is None:
                continue
            entry.filename = f"{self.placeholder}/{relative}"
            entry.lineno = constants.UNKNOWN_POSITION
            entry.colno = None
            entry.show_column = False
        return entries

    def collapse(self, entries: list[StackEntry]) -> list[StackEntry]:
        collapsed: list[StackEntry] = []
        run: list[StackFrame] = []

        def flush():
            if run:
                collapsed.append(
                    StackText(f"{run[0].indent}{self.marker}{run[-1].trailing_line_ending}")
                )
                run.clear()

        for entry in entries:
            if self.is_rewritten(entry):
                run.append(entry)
                continue
            flush()
            collapsed.append(entry)
        flush()
        return collapsed

    def apply(self, entries: list[StackEntry]) -> list[StackEntry]:
        return self.collapse(self.rewrite(entries))


def _with_realpaths(roots: list[tuple[str, str]]) -> tuple[tuple[str, str], ...]:
    seen: dict[str, str] = {}
    for directory, label in roots:
        for candidate in (directory, os.path.realpath(directory)):
            seen.setdefault(_normpath(candidate), label)
    return tuple(seen.items())


def _package_directory(name: str) -> str | None:
    spec = importlib.util.find_spec(name)
    if spec is None:
        return None
    if spec.submodule_search_locations:
        return list(spec.submodule_search_locations)[0]
    return os.path.dirname(spec.origin) if spec.origin else None


def _is_pytest_distribution(entry_point) -> bool:
    dist = getattr(entry_point, "dist", None)
    if dist is None:
        return False
    return re.sub(r"[-_.]+", "-", dist.name).lower().startswith("pytest-")


def runner_packages() -> list[str]:
    """pytest, pluggy and the top-level packages of installed pytest-* plugins.

    Plugins shipped inside a general-purpose library (e.g. ``anyio``) are
    left out so that the library's own frames are not mistaken for the runner's.
    """
    packages = list(constants.TEST_RUNNER_PACKAGES)
    for entry_point in importlib.metadata.entry_points(group=constants.PYTEST_PLUGIN_GROUP):
        if not _is_pytest_distribution(entry_point):
            continue
        package = entry_point.module.partition(".")[0]
        if package not in packages:
            packages.append(package)
    return packages


def runner_frame_rule() -> InternalFrameRule:
    """Frames from pytest itself, its plugin manager and its plugins."""
    roots = []
    for package in runner_packages():
        directory = _package_directory(package)
        if directory is not None:
            roots.append((directory, package))
    return InternalFrameRule(
        marker=constants.PYTEST_MARKER,
        placeholder=constants.PYTEST_PLACEHOLDER,
        roots=_with_realpaths(roots),
    )


def python_frame_rule() -> InternalFrameRule:
    """Frames from the standard library, including frozen modules, but not site-packages."""
    paths = sysconfig.get_paths()
    stdlib_dirs = {paths["stdlib"], paths.get("platstdlib", paths["stdlib"])}
    excluded = {paths["purelib"], paths["platlib"]}
    for directory in stdlib_dirs:
        excluded.update(
            os.path.join(directory, name) for name in ("site-packages", "dist-packages")
        )
    return InternalFrameRule(
        marker=constants.PYTHON_MARKER,
        placeholder=constants.PYTHON_PLACEHOLDER,
        roots=_with_realpaths([(directory, "") for directory in stdlib_dirs]),
        excluded=tuple(root for root, _ in _with_realpaths([(d, "") for d in excluded])),
        match_frozen=True,
    )


def default_rules() -> list[InternalFrameRule]:
    return [runner_frame_rule(), python_frame_rule()]
