"""
=============================================================================
CALL-TRACE FILTERING
=============================================================================

Diagnostics show the frames that matter to the application author. Frames
from the Python standard library ("core") and from this adapter package are
folded: each consecutive run of them collapses into a single line.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    BEFORE / AFTER                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   asyncio/events.py        _run             ┐                       │
    │   asyncio/tasks.py         __step           ├─► 3 frames folded     │
    │   httpadapter/core/...     handle_request   ┘                       │
    │   app/handlers.py          list_users       ──► kept                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The decision is an explicit allow/deny list on package names so it does not
depend on how a particular interpreter lays out its frames. Allow wins over
deny.

=============================================================================
"""

import functools
import importlib.util
import os
import sysconfig
import traceback
from dataclasses import dataclass
from types import TracebackType
from typing import List, Optional, Tuple, Union

CORE = "core"

_STDLIB_DIRS = tuple(
    os.path.normcase(os.path.abspath(path))
    for path in {sysconfig.get_paths()["stdlib"], sysconfig.get_paths()["platstdlib"]}
)

Trace = Union[TracebackType, traceback.StackSummary, None]


def frame_package(filename: str) -> Optional[str]:
    """
    Classify a frame's file as "core" (standard library or frozen/builtin
    code), or return None for anything else.
    """
    if filename.startswith("<"):
        return CORE
    normalized = os.path.normcase(os.path.abspath(filename))
    parts = normalized.split(os.sep)
    if "site-packages" in parts or "dist-packages" in parts:
        return None
    if normalized.startswith(_STDLIB_DIRS):
        return CORE
    return None


@functools.lru_cache(maxsize=None)
def package_dirs(name: str) -> Tuple[str, ...]:
    """
    Directories holding the importable package ``name``.

    Returns an empty tuple when the package is not installed.
    """
    try:
        spec = importlib.util.find_spec(name)
    except (ImportError, ValueError):
        return ()
    if spec is None:
        return ()
    if spec.submodule_search_locations:
        locations = list(spec.submodule_search_locations)
    elif spec.origin:
        locations = [os.path.dirname(spec.origin)]
    else:
        return ()
    return tuple(
        os.path.join(os.path.normcase(os.path.abspath(path)), "")
        for path in locations
    )


def _in_packages(filename: str, names: Tuple[str, ...]) -> bool:
    normalized = os.path.normcase(os.path.abspath(filename))
    return any(normalized.startswith(package_dirs(name)) for name in names if package_dirs(name))


@dataclass(frozen=True)
class TraceFilter:
    """
    Folds uninteresting frames out of a call trace.

    Attributes:
        deny_packages: Package names whose frames are folded.
        allow_packages: Package names that are always kept.
        fold_core: Fold standard-library and frozen frames.
    """

    deny_packages: Tuple[str, ...] = ("httpadapter",)
    allow_packages: Tuple[str, ...] = ()
    fold_core: bool = True

    def is_folded(self, frame: traceback.FrameSummary) -> bool:
        if _in_packages(frame.filename, self.allow_packages):
            return False
        if self.fold_core and frame_package(frame.filename) == CORE:
            return True
        return _in_packages(frame.filename, self.deny_packages)

    def extract(self, trace: Trace) -> traceback.StackSummary:
        """Turn a traceback (or None, meaning "here") into frame summaries."""
        if trace is None:
            return traceback.StackSummary.from_list(traceback.extract_stack()[:-1])
        if isinstance(trace, traceback.StackSummary):
            return trace
        return traceback.extract_tb(trace)

    def format(self, trace: Trace) -> str:
        """
        Render ``trace`` with folded runs collapsed.

        Each folded run becomes one line naming how many frames it hides and
        the last of them, which is the frame that called into user code.
        """
        lines: List[str] = []
        run: List[traceback.FrameSummary] = []

        def flush() -> None:
            if not run:
                return
            last = run[-1]
            plural = "s" if len(run) != 1 else ""
            lines.append(
                f"  ... {len(run)} frame{plural} folded "
                f"(last: {os.path.basename(last.filename)} in {last.name})\n"
            )
            run.clear()

        for frame in self.extract(trace):
            if self.is_folded(frame):
                run.append(frame)
                continue
            flush()
            lines.extend(traceback.StackSummary.from_list([frame]).format())
        flush()
        return "".join(lines).rstrip("\n")
