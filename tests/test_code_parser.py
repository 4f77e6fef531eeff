from __future__ import annotations

import re
import textwrap
from pathlib import Path

import pytest

from aipair.tools.code_parser import (
    CodeApplicationError,
    apply_generated_code,
    parse_generated_code,
)

MIXED_OUTPUT = textwrap.dedent(
    """
    Here is the fix.

    **File: `src/main/java/org/ex/Thing.java`**
    ```java
    package org.ex;

    public class Thing {
        public int answer() { return 42; }
    }
    ```

    And a new helper, no header:

    ```java
    package org.ex.util;

    final class Helper {}
    ```
    """
)


def test_parse_pairs_blocks_with_nearest_header() -> None:
    blocks = parse_generated_code(MIXED_OUTPUT)

    assert [block.header_path for block in blocks] == ["src/main/java/org/ex/Thing.java", None]
    assert blocks[0].language == "java"
    assert blocks[0].content.startswith("package org.ex;")
    assert blocks[0].content.endswith("}\n")


def test_apply_writes_header_and_package_derived_targets(java_project) -> None:
    result = apply_generated_code(java_project.root, java_project.scratch, ".java", MIXED_OUTPUT)

    thing = java_project.root / "src" / "main" / "java" / "org" / "ex" / "Thing.java"
    helper = java_project.root / "src" / "main" / "java" / "org" / "ex" / "util" / "Helper.java"
    assert [path.resolve() for path in result.written] == [thing.resolve(), helper.resolve()]
    assert "return 42" in thing.read_text(encoding="utf-8")
    assert helper.read_text(encoding="utf-8").startswith("package org.ex.util;")


def test_existing_file_is_archived_before_overwrite(java_project) -> None:
    result = apply_generated_code(java_project.root, java_project.scratch, ".java", MIXED_OUTPUT)

    assert len(result.archived) == 1
    archived = result.archived[0]
    assert archived.parent == java_project.scratch / "archive" / "versions" / "org" / "ex"
    assert re.fullmatch(r"Thing_\d{8}T\d{9}Z\.java", archived.name)
    assert "return 0" in archived.read_text(encoding="utf-8")


def test_headerless_test_class_lands_in_test_root(java_project) -> None:
    generated = textwrap.dedent(
        """
        ```java
        package org.ex;

        import org.junit.jupiter.api.Test;

        class ThingTest {
            @Test
            void testAnswer() {}
        }
        ```
        """
    )

    result = apply_generated_code(
        java_project.root,
        java_project.scratch,
        ".java",
        generated,
        test_root=java_project.test_dir,
    )

    assert result.written == [java_project.test_dir / "org" / "ex" / "ThingTest.java"]


def test_header_escaping_project_root_is_rejected(java_project) -> None:
    generated = "File: ../outside.java\n```java\nclass Outside {}\n```\n"

    with pytest.raises(CodeApplicationError) as excinfo:
        apply_generated_code(java_project.root, java_project.scratch, ".java", generated)

    assert excinfo.value.details == {"path": "../outside.java"}
    assert not (java_project.root.parent / "outside.java").exists()


def test_rejected_block_leaves_earlier_blocks_unwritten(java_project) -> None:
    generated = textwrap.dedent(
        """
        File: src/main/java/A.java
        ```java
        public class A {}
        ```

        File: src/main/java/org/ex/Thing.java
        ```java
        package org.ex;

        public class Thing { public int answer() { return 42; } }
        ```

        File: ../escape/B.java
        ```java
        public class B {}
        ```
        """
    )
    thing = java_project.root / "src" / "main" / "java" / "org" / "ex" / "Thing.java"
    original = thing.read_text(encoding="utf-8")

    with pytest.raises(CodeApplicationError):
        apply_generated_code(java_project.root, java_project.scratch, ".java", generated)

    assert not (java_project.root / "src" / "main" / "java" / "A.java").exists()
    assert thing.read_text(encoding="utf-8") == original
    assert not (java_project.scratch / "archive").exists()


def test_output_without_code_is_an_error(java_project) -> None:
    with pytest.raises(CodeApplicationError) as excinfo:
        apply_generated_code(java_project.root, java_project.scratch, ".java", "I could not fix this.")

    assert excinfo.value.details["blocks"] == 0


def test_non_java_blocks_need_a_header(tmp_path: Path) -> None:
    generated = "```kotlin\nfun main() {}\n```\n"

    with pytest.raises(CodeApplicationError) as excinfo:
        apply_generated_code(tmp_path, tmp_path / "tmp", ".kt", generated)

    assert excinfo.value.details["skipped"] == 1
