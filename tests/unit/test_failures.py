from __future__ import annotations

import os
from pathlib import Path

import pytest

from aipair.failures import class_to_test_path, extract_test_files, owning_class


@pytest.mark.parametrize(
    ("failure", "expected"),
    [
        ("testFoo(org.ex.ThingTest)", "org.ex.ThingTest"),
        ("TestFoo(org.ex.ThingTest)", "org.ex.ThingTest"),
        ("nested.method.name(org.ex.ThingTest)", "org.ex.ThingTest"),
        ("first(a.B) second(c.D)", "a.B"),
    ],
)
def test_owning_class_uses_first_parenthesis_group(failure: str, expected: str) -> None:
    assert owning_class(failure) == expected


def test_owning_class_drops_lowercase_method_segment() -> None:
    assert owning_class("a.b.Thing.testFoo") == "a.b.Thing"


def test_owning_class_keeps_uppercase_last_segment() -> None:
    assert owning_class("a.b.Thing") == "a.b.Thing"


def test_malformed_failure_still_produces_a_path(tmp_path: Path) -> None:
    assert owning_class("") == ""
    files = extract_test_files([""], tmp_path, ".java")
    assert len(files) == 1
    assert files[0].content == ""
    assert files[0].path == tmp_path / ".java"


def test_extract_test_files_scenario_preserves_order_and_duplicates(tmp_path: Path) -> None:
    failures = [
        "testFoo(org.ex.ThingTest)",
        "org.ex.OtherTest.testBar",
        "testBaz(org.ex.ThingTest)",
    ]

    files = extract_test_files(failures, tmp_path, ".java")

    expected = [
        tmp_path / "org" / "ex" / "ThingTest.java",
        tmp_path / "org" / "ex" / "OtherTest.java",
        tmp_path / "org" / "ex" / "ThingTest.java",
    ]
    assert [source.path for source in files] == expected


def test_extract_test_files_reads_existing_and_blanks_missing(tmp_path: Path) -> None:
    target = class_to_test_path("org.ex.ThingTest", tmp_path, ".java")
    target.parent.mkdir(parents=True)
    target.write_text("class ThingTest {}\n", encoding="utf-8")

    files = extract_test_files(["testFoo(org.ex.ThingTest)", "org.ex.MissingTest.testBar"], tmp_path, ".java")

    assert files[0].content == "class ThingTest {}\n"
    assert files[1].content == ""
    assert not files[1].path.exists()


def test_extract_test_files_empty_input(tmp_path: Path) -> None:
    assert extract_test_files([], tmp_path, ".java") == []
    assert list(tmp_path.iterdir()) == []


def test_class_to_test_path_uses_platform_separator(tmp_path: Path) -> None:
    path = class_to_test_path("org.ex.ThingTest", tmp_path, ".kt")
    assert str(path).endswith(os.sep.join(["org", "ex", "ThingTest.kt"]))


def test_extract_test_files_tolerates_latin1_sources(tmp_path: Path) -> None:
    target = class_to_test_path("org.ex.ThingTest", tmp_path, ".java")
    target.parent.mkdir(parents=True)
    target.write_bytes("// café\nclass ThingTest {}\n".encode("latin-1"))

    files = extract_test_files(["testFoo(org.ex.ThingTest)"], tmp_path, ".java")

    assert files[0].content == "// caf�\nclass ThingTest {}\n"
