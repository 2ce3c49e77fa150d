from __future__ import annotations

from prlens.review.diff_parser import iter_added_lines
from prlens.review.diff_parser import parse_diff_files
from prlens.review.diff_parser import split_diff_by_file
from prlens.review.diff_parser import total_additions
from prlens.review.diff_parser import total_deletions

DIFF = "\n".join(
    [
        "diff --git a/src/app.py b/src/app.py",
        "index 1111111..2222222 100644",
        "--- a/src/app.py",
        "+++ b/src/app.py",
        "@@ -1,3 +1,4 @@",
        " import os",
        "-x = 1",
        "+x = 2",
        "+y = 3",
        " print(x)",
        "diff --git a/dev/null b/infra/main.tf",
        "new file mode 100644",
        "--- /dev/null",
        "+++ b/infra/main.tf",
        "@@ -0,0 +1,2 @@",
        '+resource "aws_instance" "web" {',
        "+}",
        "diff --git a/old.js b/old.js",
        "deleted file mode 100644",
        "--- a/old.js",
        "+++ /dev/null",
        "@@ -1,2 +0,0 @@",
        "-const a = 1;",
        "-module.exports = a;",
    ]
)


def test_iter_added_lines_hunk_line_numbers() -> None:
    diff = "\n".join(
        [
            "@@ -1,3 +1,4 @@",
            " line1",
            "-line2",
            "+line2_new",
            "+line3_new",
            " line4",
        ]
    )
    assert [line_no for line_no, _ in iter_added_lines(diff=diff)] == [2, 3]


def test_parse_diff_files_one_record_per_header() -> None:
    records = parse_diff_files(diff=DIFF)
    assert [r.path for r in records] == ["src/app.py", "infra/main.tf", "old.js"]
    assert [r.status for r in records] == ["modified", "added", "deleted"]


def test_parse_diff_files_counts_exclude_path_lines() -> None:
    records = parse_diff_files(diff=DIFF)
    assert (records[0].additions, records[0].deletions) == (2, 1)
    assert (records[1].additions, records[1].deletions) == (2, 0)
    assert (records[2].additions, records[2].deletions) == (0, 2)
    assert total_additions(records) == 4
    assert total_deletions(records) == 3


def test_parse_diff_files_empty_input() -> None:
    assert parse_diff_files(diff="") == []
    assert parse_diff_files(diff="just some text\nwithout headers") == []


def test_parse_diff_files_is_idempotent() -> None:
    assert parse_diff_files(diff=DIFF) == parse_diff_files(diff=DIFF)


def test_split_diff_by_file_keeps_order_and_content() -> None:
    fragments = split_diff_by_file(diff=DIFF)
    assert [path for path, _ in fragments] == ["src/app.py", "infra/main.tf", "old.js"]
    assert fragments[1][1].startswith("diff --git a/dev/null b/infra/main.tf")
    assert "aws_instance" in fragments[1][1]
    assert "aws_instance" not in fragments[0][1]


def test_iter_added_lines_tracks_hunk_line_numbers() -> None:
    added = list(iter_added_lines(diff=DIFF))
    assert added[0] == (2, "x = 2")
    assert added[1] == (3, "y = 3")
    assert added[2] == (1, 'resource "aws_instance" "web" {')


def test_malformed_hunk_header_does_not_stop_scan() -> None:
    diff = "\n".join(["@@ -1", "+x = 1", "@@ -5,1 +7,2 @@", "+y = 2"])
    assert list(iter_added_lines(diff=diff)) == [(0, "x = 1"), (7, "y = 2")]
