"""Polling file watcher that serialises change-triggered repair cycles."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Sequence

__all__ = ["FileSnapshot", "PollingWatcher", "diff_snapshots", "take_snapshot"]

LOGGER = logging.getLogger(__name__)

FileSnapshot = Dict[Path, tuple[int, int]]


def take_snapshot(directories: Iterable[Path]) -> FileSnapshot:
    """Record ``(mtime_ns, size)`` for every file below the existing ``directories``."""
    snapshot: FileSnapshot = {}
    for directory in directories:
        if not directory.is_dir():
            continue
        for path in directory.rglob("*"):
            try:
                stat = path.stat()
            except OSError:
                # Removed between listing and stat; the next poll reports it.
                continue
            if path.is_file():
                snapshot[path] = (stat.st_mtime_ns, stat.st_size)
    return snapshot


def diff_snapshots(before: FileSnapshot, after: FileSnapshot) -> list[Path]:
    """Return added, modified and removed paths, sorted."""
    changed = {path for path, state in after.items() if before.get(path) != state}
    changed.update(path for path in before if path not in after)
    return sorted(changed)


@dataclass(slots=True)
class PollingWatcher:
    """Watch directory trees and hand each batch of changes to a callback.

    The callback runs on the polling thread, so runs never overlap. It may
    return the paths it wrote itself; those are folded into the new baseline,
    while any other edit made during the run is queued for the next batch.
    """

    directories: Sequence[Path]
    interval: float = 1.0
    sleep: Callable[[float], None] = time.sleep
    _baseline: FileSnapshot = field(default_factory=dict, init=False)

    def start(self) -> None:
        self._baseline = take_snapshot(self.directories)
        LOGGER.debug("Watching %d file(s) in %s", len(self._baseline), ", ".join(map(str, self.directories)))

    def poll(self) -> list[Path]:
        """Return the paths changed since the baseline and advance the baseline."""
        current = take_snapshot(self.directories)
        changed = diff_snapshots(self._baseline, current)
        self._baseline = current
        return changed

    def rebaseline(self, own_writes: Iterable[Path] = ()) -> list[Path]:
        """Absorb ``own_writes`` into the baseline and return the other pending edits."""
        before = self._baseline
        after = take_snapshot(self.directories)
        written = {Path(path).resolve() for path in own_writes}
        pending = [path for path in diff_snapshots(before, after) if path.resolve() not in written]
        baseline = dict(after)
        for path in pending:
            if path in before:
                baseline[path] = before[path]
            else:
                baseline.pop(path, None)
        self._baseline = baseline
        if pending:
            LOGGER.debug("Queued %d edit(s) made during the last run", len(pending))
        return pending

    def watch(
        self,
        on_change: Callable[[list[Path]], Optional[Iterable[Path]]],
        *,
        max_batches: Optional[int] = None,
    ) -> int:
        """Poll until ``max_batches`` change batches were handled (forever when ``None``)."""
        self.start()
        handled = 0
        while max_batches is None or handled < max_batches:
            self.sleep(self.interval)
            changed = self.poll()
            if not changed:
                continue
            own_writes = on_change(changed)
            handled += 1
            self.rebaseline(own_writes or ())
        return handled
