from snapback.ignore import (
    ALWAYS_IGNORE,
    bookkeeping_patterns,
    is_excluded,
    merge_patterns,
    resolve_patterns,
)


def test_exact_segment_matches_at_any_depth():
    assert is_excluded("node_modules", ["node_modules"])
    assert is_excluded("node_modules/lodash/index.js", ["node_modules"])
    assert is_excluded("packages/web/node_modules/x.js", ["node_modules"])


def test_no_substring_matching():
    assert not is_excluded("node_modules_backup/a.js", ["node_modules"])
    assert not is_excluded("builder/main.py", ["build"])
    assert not is_excluded("src/rebuild.txt", ["build"])


def test_star_glob_matches_within_one_segment():
    assert is_excluded("logs/app.log", ["*.log"])
    assert is_excluded("cache-v2", ["cache-*"])
    assert not is_excluded("app.log.txt", ["*.log"])


def test_glob_treats_regex_characters_literally():
    assert is_excluded("a+b.txt", ["a+b.txt"])
    assert not is_excluded("aab.txt", ["a+b.txt"])
    assert is_excluded("file(1).bak", ["*(1).bak"])


def test_multi_segment_pattern_needs_contiguous_segments():
    patterns = ["src/gen"]
    assert is_excluded("src/gen", patterns)
    assert is_excluded("src/gen/a.py", patterns)
    assert is_excluded("vendor/src/gen/a.py", patterns)
    assert not is_excluded("gen/a.py", patterns)
    assert not is_excluded("src/other/gen/a.py", patterns)


def test_backslash_separators_are_normalized():
    assert is_excluded("sub\\node_modules\\a.js", ["node_modules"])
    assert is_excluded("src/gen/a.py", ["src\\gen"])


def test_empty_and_root_patterns_match_nothing():
    assert not is_excluded("a.txt", [""])
    assert not is_excluded("a.txt", ["/"])
    assert not is_excluded("", ["a.txt"])


def test_decision_is_stable_across_calls():
    patterns = ["dist", "*.tmp"]
    first = [is_excluded(p, patterns) for p in ("dist/a", "x.tmp", "keep.txt")]
    second = [is_excluded(p, patterns) for p in ("dist/a", "x.tmp", "keep.txt")]
    assert first == second == [True, True, False]


def test_merge_patterns_keeps_first_occurrence_order():
    assert merge_patterns(["a", "b"], ["b", "c"], ["a"]) == ["a", "b", "c"]


def test_resolve_patterns_reads_ignore_file(project):
    (project / ".snapbackignore").write_text("# scratch\n\n*.tmp\nnode_modules\n", encoding="utf-8")

    patterns = resolve_patterns(project, ["node_modules"])

    assert patterns == ["node_modules", "*.tmp", *ALWAYS_IGNORE]


def test_bookkeeping_includes_storage_dir_inside_project(project):
    assert bookkeeping_patterns(project, project / "var" / "snaps") == [*ALWAYS_IGNORE, "var/snaps"]
    # Default storage name is already always ignored.
    assert resolve_patterns(project, [], project / ".snapback") == list(ALWAYS_IGNORE)


def test_bookkeeping_ignores_storage_outside_project(project, tmp_path):
    assert bookkeeping_patterns(project, tmp_path / "elsewhere") == list(ALWAYS_IGNORE)


def test_default_storage_dir_is_listed_once(project):
    assert bookkeeping_patterns(project, project / ".snapback") == list(ALWAYS_IGNORE)
