"""Unit tests for the unified diff parser."""

from pathlib import Path

import pytest

from testimpact.core import ChangedLine, ChangeType, DiffParser, Hunk


MODIFIED_DIFF = """\
diff --git a/tests/login.spec.ts b/tests/login.spec.ts
index 1111111..2222222 100644
--- a/tests/login.spec.ts
+++ b/tests/login.spec.ts
@@ -4 +4 @@ test('logs in', async ({ page }) => {
-  await page.goto('/old');
+  await page.goto('/login');
@@ -10,0 +11,2 @@ test('logs in', async ({ page }) => {
+  await page.fill('#user', 'ada');
+  await page.fill('#pass', 'secret');
@@ -20,2 +22,0 @@ test('logs out', async ({ page }) => {
-  await page.click('#logout');
-  await expect(page).toHaveURL('/');
"""

ADDED_DIFF = """\
diff --git a/src/helpers.ts b/src/helpers.ts
new file mode 100644
index 0000000..3333333
--- /dev/null
+++ b/src/helpers.ts
@@ -0,0 +1,3 @@
+export function add(a: number, b: number) {
+  return a + b;
+}
"""

DELETED_DIFF = """\
diff --git a/tests/old.spec.ts b/tests/old.spec.ts
deleted file mode 100644
index 4444444..0000000
--- a/tests/old.spec.ts
+++ /dev/null
@@ -1,3 +0,0 @@
-test('old behaviour', async () => {
-  expect(true).toBe(true);
-});
"""


class TestModifiedFiles:
    """Tests for files changed in place."""

    def test_modified_file_defaults_to_mod(self):
        """A file without mode markers is MOD."""
        diffs = DiffParser().parse(MODIFIED_DIFF)

        assert len(diffs) == 1
        assert diffs[0].file_path == "tests/login.spec.ts"
        assert diffs[0].change_type is ChangeType.MOD

    def test_hunk_headers_are_parsed(self):
        """Hunk lengths default to 1 when the comma count is omitted."""
        hunks = DiffParser().parse(MODIFIED_DIFF)[0].hunks

        assert hunks == [
            Hunk(old_start=4, old_lines=1, new_start=4, new_lines=1),
            Hunk(old_start=10, old_lines=0, new_start=11, new_lines=2),
            Hunk(old_start=20, old_lines=2, new_start=22, new_lines=0),
        ]

    def test_added_lines_use_new_line_numbers(self):
        """Added lines are numbered in the post-commit file."""
        diff = DiffParser().parse(MODIFIED_DIFF)[0]

        assert [line.line_number for line in diff.added_lines] == [4, 11, 12]
        assert diff.added_lines[1].content == "  await page.fill('#user', 'ada');"

    def test_deleted_lines_use_old_line_numbers(self):
        """Removed lines are kept with their pre-commit numbers."""
        diff = DiffParser().parse(MODIFIED_DIFF)[0]

        assert diff.deleted_lines == [
            ChangedLine(4, "  await page.goto('/old');", is_deleted=True),
            ChangedLine(20, "  await page.click('#logout');", is_deleted=True),
            ChangedLine(21, "  await expect(page).toHaveURL('/');", is_deleted=True),
        ]

    def test_pure_deletion_hunk_is_a_point_span(self):
        """A zero-length hunk collapses to its insertion point."""
        hunk = DiffParser().parse(MODIFIED_DIFF)[0].hunks[2]

        assert hunk.new_span == (22, 22)
        assert hunk.overlaps(20, 25)
        assert not hunk.overlaps(23, 30)


class TestFileModes:
    """Tests for added and deleted files."""

    def test_new_file_is_add(self):
        """The new file mode marker makes the file ADD."""
        diff = DiffParser().parse(ADDED_DIFF)[0]

        assert diff.change_type is ChangeType.ADD
        assert diff.file_path == "src/helpers.ts"
        assert [line.line_number for line in diff.added_lines] == [1, 2, 3]

    def test_deleted_file_keeps_old_path(self):
        """A deleted file is reported under its a/ path, not /dev/null."""
        diff = DiffParser().parse(DELETED_DIFF)[0]

        assert diff.change_type is ChangeType.DEL
        assert diff.file_path == "tests/old.spec.ts"

    def test_deleted_file_content_is_retained(self):
        """Every line of a deleted file is recorded as deleted."""
        diff = DiffParser().parse(DELETED_DIFF)[0]

        assert len(diff.deleted_lines) == 3
        assert diff.added_lines == []
        assert diff.deleted_lines[0].content == "test('old behaviour', async () => {"

    def test_dev_null_marker_alone_sets_change_type(self):
        """Without a mode line the /dev/null marker decides."""
        text = (
            "diff --git a/a.ts b/a.ts\n"
            "--- a/a.ts\n"
            "+++ /dev/null\n"
            "@@ -1 +0,0 @@\n"
            "-export const a = 1;\n"
        )
        diff = DiffParser().parse(text)[0]

        assert diff.change_type is ChangeType.DEL
        assert diff.file_path == "a.ts"

    def test_conflicting_markers_prefer_mode_and_warn(self, caplog):
        """A mode marker wins over a disagreeing /dev/null marker."""
        text = (
            "diff --git a/a.ts b/a.ts\n"
            "new file mode 100644\n"
            "--- a/a.ts\n"
            "+++ /dev/null\n"
            "@@ -0,0 +1 @@\n"
            "+export const a = 1;\n"
        )
        with caplog.at_level("WARNING"):
            diff = DiffParser().parse(text)[0]

        assert diff.change_type is ChangeType.ADD
        assert "Conflicting diff header markers" in caplog.text


class TestMultipleFiles:
    """Tests for diffs spanning several files."""

    def test_files_are_returned_in_order(self):
        """Each file header flushes the previous file."""
        diffs = DiffParser().parse(MODIFIED_DIFF + ADDED_DIFF + DELETED_DIFF)

        assert [d.file_path for d in diffs] == ["tests/login.spec.ts", "src/helpers.ts", "tests/old.spec.ts"]
        assert [d.change_type for d in diffs] == [ChangeType.MOD, ChangeType.ADD, ChangeType.DEL]

    def test_header_state_resets_between_files(self):
        """Hunks and lines do not leak into the next file."""
        diffs = DiffParser().parse(ADDED_DIFF + MODIFIED_DIFF)

        assert len(diffs[0].hunks) == 1
        assert len(diffs[1].hunks) == 3

    def test_binary_file_has_no_hunks(self):
        """Entries without hunks still produce a FileDiff."""
        text = (
            "diff --git a/logo.png b/logo.png\n"
            "new file mode 100644\n"
            "index 0000000..5555555\n"
            "Binary files /dev/null and b/logo.png differ\n"
        )
        diff = DiffParser().parse(text)[0]

        assert diff.change_type is ChangeType.ADD
        assert diff.hunks == []

    def test_preamble_is_ignored(self):
        """Text before the first file header is skipped."""
        diffs = DiffParser().parse("commit abc\nAuthor: someone\n\n" + ADDED_DIFF)

        assert len(diffs) == 1

    def test_no_newline_marker_is_ignored(self):
        """The no-newline marker is not a content line."""
        text = ADDED_DIFF + "\\ No newline at end of file\n"
        diff = DiffParser().parse(text)[0]

        assert len(diff.changed_lines) == 3

    def test_empty_diff(self):
        """Empty input yields no files."""
        assert DiffParser().parse("") == []


class TestPaths:
    """Tests for path handling."""

    def test_quoted_paths_are_unquoted(self):
        """Paths git quotes because of spaces are unquoted."""
        text = (
            'diff --git "a/my tests/a b.spec.ts" "b/my tests/a b.spec.ts"\n'
            '--- "a/my tests/a b.spec.ts"\n'
            '+++ "b/my tests/a b.spec.ts"\n'
            "@@ -1 +1 @@\n"
            "-test('a', () => {});\n"
            "+test('b', () => {});\n"
        )
        diff = DiffParser().parse(text)[0]

        assert diff.file_path == "my tests/a b.spec.ts"

    def test_parse_file_reads_patch(self, tmp_path: Path):
        """A saved patch file parses like the equivalent text."""
        patch_path = tmp_path / "change.patch"
        patch_path.write_text(ADDED_DIFF, encoding="utf-8")

        diffs = DiffParser().parse_file(str(patch_path))

        assert diffs[0].file_path == "src/helpers.ts"

    def test_parse_file_missing(self, tmp_path: Path):
        """A missing patch file raises."""
        with pytest.raises(FileNotFoundError):
            DiffParser().parse_file(str(tmp_path / "missing.patch"))
