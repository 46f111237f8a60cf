"""Tests for full reconciliation passes."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from conftest import FakeCategorizer, snapshot_tree

from linkshelf.classification import ClassificationError
from linkshelf.config.models import DEFAULT_ALLOWED_ROOTS
from linkshelf.organization.models import LinkOutcome
from linkshelf.state import LedgerError, MemoryLedger, SQLiteLedger
from linkshelf.sync import ReconcileService

SCENARIO = {
    "Nichijou.S01E01.mkv": ["Anime"],
    "Blame!": ["Anime/Blame!"],
}


def _service(
    source: Path,
    target: Path,
    categorizer: FakeCategorizer,
    ledger=None,
    **kwargs,
) -> ReconcileService:
    return ReconcileService(
        source_root=source,
        target_root=target,
        categorizer=categorizer,
        ledger=ledger if ledger is not None else MemoryLedger(),
        allowed_roots=DEFAULT_ALLOWED_ROOTS,
        dry_run=kwargs.pop("dry_run", False),
        **kwargs,
    )


def test_pass_builds_expected_links(roots: tuple[Path, Path]) -> None:
    source, target = roots
    ledger = MemoryLedger()

    result = _service(source, target, FakeCategorizer(SCENARIO), ledger).run_pass()

    file_link = target / "Anime" / "Nichijou.S01E01.mkv"
    folder_link = target / "Anime" / "Blame!"
    assert os.readlink(file_link) == str(source.resolve() / "Nichijou.S01E01.mkv")
    assert os.readlink(folder_link) == str(source.resolve() / "Blame!")
    assert result.counts()["created"] == 2
    assert sorted(result.marked) == ["Blame!", "Nichijou.S01E01.mkv"]
    assert ledger.is_processed("Blame!")


def test_second_pass_with_nothing_new_is_skipped(roots: tuple[Path, Path]) -> None:
    source, target = roots
    categorizer = FakeCategorizer(SCENARIO)
    service = _service(source, target, categorizer)
    service.run_pass()
    before = snapshot_tree(target)

    result = service.run_pass()

    assert result.skipped is True
    assert len(categorizer.calls) == 1
    assert snapshot_tree(target) == before


def test_new_entry_reclassifies_everything_and_converges(roots: tuple[Path, Path]) -> None:
    source, target = roots
    categorizer = FakeCategorizer({**SCENARIO, "Akira.mkv": ["Movies"]})
    service = _service(source, target, categorizer)
    service.run_pass()
    first = snapshot_tree(target)

    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    result = service.run_pass()

    assert categorizer.calls[-1] == ["Akira.mkv", "Blame!", "Nichijou.S01E01.mkv"]
    assert result.cleanup is not None
    assert len(result.cleanup.removed_links) == 2
    after = snapshot_tree(target)
    assert {key: value for key, value in after.items() if key in first} == first
    assert after["Movies/Akira.mkv"].startswith("link:")


def test_identical_passes_yield_identical_trees(roots: tuple[Path, Path]) -> None:
    source, target = roots
    _service(source, target, FakeCategorizer(SCENARIO)).run_pass()
    first = snapshot_tree(target)

    _service(source, target, FakeCategorizer(SCENARIO)).run_pass()

    assert snapshot_tree(target) == first


def test_moved_category_removes_stale_link_and_empty_folder(roots: tuple[Path, Path]) -> None:
    source, target = roots
    _service(source, target, FakeCategorizer({"Blame!": ["Anime/Blame!"]})).run_pass()

    _service(source, target, FakeCategorizer({"Blame!": ["Manga/Blame!"]})).run_pass()

    assert not (target / "Anime").exists()
    assert (target / "Manga" / "Blame!").is_symlink()


def test_oracle_omission_still_marks_processed(roots: tuple[Path, Path]) -> None:
    source, target = roots
    ledger = MemoryLedger()
    categorizer = FakeCategorizer({"Blame!": ["Manga/Blame!"]})

    result = _service(source, target, categorizer, ledger).run_pass()

    assert ledger.is_processed("Nichijou.S01E01.mkv")
    assert [link.entry for link in result.links] == ["Blame!"]


def test_disallowed_target_is_skipped(roots: tuple[Path, Path]) -> None:
    source, target = roots
    ledger = MemoryLedger()

    result = _service(
        source, target, FakeCategorizer({"Blame!": ["Downloads/Random"]}), ledger
    ).run_pass()

    assert [link.outcome for link in result.links] == [LinkOutcome.REJECTED]
    assert not (target / "Downloads").exists()
    assert ledger.is_processed("Blame!")


def test_oracle_failure_leaves_state_untouched(roots: tuple[Path, Path]) -> None:
    source, target = roots
    _service(source, target, FakeCategorizer(SCENARIO)).run_pass()
    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    before = snapshot_tree(target)
    ledger = MemoryLedger(["Blame!", "Nichijou.S01E01.mkv"])

    with pytest.raises(ClassificationError):
        _service(source, target, FakeCategorizer(fail=True), ledger).run_pass()

    assert snapshot_tree(target) == before
    assert not ledger.is_processed("Akira.mkv")


def test_listing_failure_propagates(tmp_path: Path) -> None:
    target = tmp_path / "target"
    target.mkdir()

    with pytest.raises(OSError):
        _service(tmp_path / "missing", target, FakeCategorizer(SCENARIO)).run_pass()


def test_real_files_in_target_survive(roots: tuple[Path, Path]) -> None:
    source, target = roots
    (target / "Anime").mkdir()
    (target / "Anime" / "Nichijou.S01E01.mkv").write_text("mine", encoding="utf-8")

    result = _service(source, target, FakeCategorizer(SCENARIO)).run_pass()

    assert (target / "Anime" / "Nichijou.S01E01.mkv").read_text(encoding="utf-8") == "mine"
    outcomes = {link.entry: link.outcome for link in result.links}
    assert outcomes["Nichijou.S01E01.mkv"] is LinkOutcome.CONFLICT
    assert outcomes["Blame!"] is LinkOutcome.CREATED


def test_dry_run_is_pure(roots: tuple[Path, Path]) -> None:
    source, target = roots
    _service(source, target, FakeCategorizer({"Blame!": ["Manga/Blame!"]})).run_pass()
    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    before = snapshot_tree(target)
    ledger = MemoryLedger()

    result = _service(
        source, target, FakeCategorizer(SCENARIO), ledger, dry_run=True
    ).run_pass()

    assert snapshot_tree(target) == before
    assert ledger.count() == 0
    assert result.dry_run is True
    assert LinkOutcome.PLANNED in {link.outcome for link in result.links}


def test_new_policy_classifies_only_new_entries_without_cleaning(
    roots: tuple[Path, Path],
) -> None:
    source, target = roots
    ledger = MemoryLedger()
    _service(source, target, FakeCategorizer(SCENARIO), ledger).run_pass()
    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    categorizer = FakeCategorizer({"Akira.mkv": ["Movies"]})

    result = _service(source, target, categorizer, ledger, reclassify="new").run_pass()

    assert categorizer.calls == [["Akira.mkv"]]
    assert result.cleanup is None
    assert (target / "Anime" / "Blame!").is_symlink()
    assert (target / "Movies" / "Akira.mkv").is_symlink()


def test_ledger_write_errors_are_per_item(roots: tuple[Path, Path]) -> None:
    source, target = roots

    class FlakyLedger(MemoryLedger):
        def mark_processed(self, name: str) -> None:
            if name == "Blame!":
                raise LedgerError("disk full")
            super().mark_processed(name)

    ledger = FlakyLedger()

    result = _service(source, target, FakeCategorizer(SCENARIO), ledger).run_pass()

    assert result.marked == ["Nichijou.S01E01.mkv"]
    assert any("disk full" in error for error in result.errors)
    assert (target / "Anime" / "Blame!").is_symlink()


def test_sqlite_ledger_inside_target_survives_cleanup(roots: tuple[Path, Path]) -> None:
    source, target = roots
    ledger_path = target / ".linkshelf" / "ledger.db"
    categorizer = FakeCategorizer({**SCENARIO, "Akira.mkv": ["Movies"]})
    _service(source, target, categorizer, SQLiteLedger(ledger_path)).run_pass()

    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    _service(source, target, categorizer, SQLiteLedger(ledger_path)).run_pass()

    assert ledger_path.exists()
    assert SQLiteLedger(ledger_path).is_processed("Akira.mkv")


def test_undecodable_entry_name_does_not_abort_pass(roots: tuple[Path, Path]) -> None:
    source, target = roots
    try:
        os.mkdir(os.fsencode(source) + b"/bad\xffname")
    except OSError:
        pytest.skip("filesystem rejects names that are not valid UTF-8")
    odd = os.fsdecode(b"bad\xffname")
    ledger_path = target / ".linkshelf" / "ledger.db"
    categorizer = FakeCategorizer(SCENARIO)

    result = _service(source, target, categorizer, SQLiteLedger(ledger_path)).run_pass()

    assert odd in result.listed
    assert result.errors == []
    assert (target / "Anime" / "Blame!").is_symlink()
    assert (target / "Anime" / "Nichijou.S01E01.mkv").is_symlink()
    assert SQLiteLedger(ledger_path).is_processed(odd)

    again = _service(source, target, categorizer, SQLiteLedger(ledger_path)).run_pass()

    assert again.skipped is True
    assert len(categorizer.calls) == 1


def test_dry_run_plan_matches_applied_pass(roots: tuple[Path, Path]) -> None:
    source, target = roots
    categorizer = FakeCategorizer({**SCENARIO, "Akira.mkv": ["Movies"]})
    _service(source, target, categorizer, MemoryLedger()).run_pass()
    (source / "Akira.mkv").write_text("film", encoding="utf-8")
    ledger = MemoryLedger(["Blame!", "Nichijou.S01E01.mkv"])

    planned = _service(source, target, categorizer, ledger, dry_run=True).run_pass()
    applied = _service(source, target, categorizer, ledger).run_pass()

    assert {link.outcome for link in planned.links} == {LinkOutcome.PLANNED}
    assert {link.outcome for link in applied.links} == {LinkOutcome.CREATED}
    assert planned.counts()["planned"] == applied.counts()["created"] == 3
