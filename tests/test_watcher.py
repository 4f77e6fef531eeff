from __future__ import annotations

from pathlib import Path

from aipair.tools.watcher import PollingWatcher, diff_snapshots, take_snapshot


def test_snapshot_diff_reports_added_modified_and_removed(tmp_path: Path) -> None:
    kept = tmp_path / "Kept.java"
    edited = tmp_path / "Edited.java"
    removed = tmp_path / "Removed.java"
    for path in (kept, edited, removed):
        path.write_text("class X {}", encoding="utf-8")
    before = take_snapshot([tmp_path])

    edited.write_text("class Edited { int x; }", encoding="utf-8")
    removed.unlink()
    added = tmp_path / "nested" / "Added.java"
    added.parent.mkdir()
    added.write_text("class Added {}", encoding="utf-8")

    assert diff_snapshots(before, take_snapshot([tmp_path])) == sorted([edited, removed, added])


def test_missing_directories_are_ignored(tmp_path: Path) -> None:
    assert take_snapshot([tmp_path / "src", tmp_path / "test"]) == {}


def test_watch_serialises_callbacks_and_absorbs_their_writes(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    external_edits = iter([src / "First.java", src / "Second.java"])
    batches: list[list[Path]] = []

    def fake_sleep(_: float) -> None:
        path = next(external_edits, None)
        if path is not None:
            path.write_text("class A {}", encoding="utf-8")

    def on_change(changed: list[Path]) -> list[Path]:
        batches.append(changed)
        # Simulates the repair cycle rewriting a source file.
        generated = src / f"Generated{len(batches)}.java"
        generated.write_text("class G {}", encoding="utf-8")
        return [generated]

    watcher = PollingWatcher([src], interval=0, sleep=fake_sleep)
    handled = watcher.watch(on_change, max_batches=2)

    assert handled == 2
    assert batches == [[src / "First.java"], [src / "Second.java"]]


def test_edits_made_during_a_run_are_queued_for_the_next_batch(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    existing = src / "Existing.java"
    existing.write_text("class Existing {}", encoding="utf-8")
    first_edit = iter([src / "First.java"])
    batches: list[list[Path]] = []

    def fake_sleep(_: float) -> None:
        path = next(first_edit, None)
        if path is not None:
            path.write_text("class A {}", encoding="utf-8")

    def on_change(changed: list[Path]) -> list[Path]:
        batches.append(changed)
        if len(batches) > 1:
            return []
        generated = src / "Generated.java"
        generated.write_text("class G {}", encoding="utf-8")
        # A person keeps editing while the cycle runs.
        existing.write_text("class Existing { int edited; }", encoding="utf-8")
        (src / "New.java").write_text("class New {}", encoding="utf-8")
        return [generated]

    watcher = PollingWatcher([src], interval=0, sleep=fake_sleep)
    watcher.watch(on_change, max_batches=2)

    assert batches == [[src / "First.java"], sorted([existing, src / "New.java"])]


def test_rebaseline_without_own_writes_queues_every_edit(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    watcher = PollingWatcher([src], interval=0)
    watcher.start()
    (src / "Edited.java").write_text("class Edited {}", encoding="utf-8")

    assert watcher.rebaseline() == [src / "Edited.java"]
    assert watcher.poll() == [src / "Edited.java"]
    assert watcher.poll() == []
