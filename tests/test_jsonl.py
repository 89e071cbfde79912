"""JSONL corpus loading and conversion."""

import json

import pytest

from trpc_sveltekit_mcp.config import BUNDLED_DATA_DIR
from trpc_sveltekit_mcp.jsonl import (
    append_jsonl,
    convert_json_to_jsonl,
    count_jsonl_lines,
    load_corpora,
    load_jsonl_dir,
    read_jsonl,
    scan_jsonl_files,
    to_jsonl,
    validate_jsonl,
    write_jsonl,
)


def test_read_skips_blank_lines(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"a": 1}\n\n   \n{"a": 2}\n', encoding="utf-8")
    assert read_jsonl(p) == [{"a": 1}, {"a": 2}]


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_jsonl(tmp_path / "nope.jsonl")


def test_invalid_line_raises_with_line_number(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"a": 1}\n{oops\n', encoding="utf-8")
    with pytest.raises(ValueError, match="line 2"):
        read_jsonl(p)


def test_invalid_line_skipped_without_validation(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"a": 1}\n{oops\n{"a": 3}\n', encoding="utf-8")
    assert read_jsonl(p, validate=False) == [{"a": 1}, {"a": 3}]


def test_write_append_count(tmp_path):
    p = tmp_path / "out.jsonl"
    write_jsonl(p, [{"q": "ü"}, {"q": "b"}])
    append_jsonl(p, {"q": "c"})
    assert count_jsonl_lines(p) == 3
    assert read_jsonl(p)[0] == {"q": "ü"}
    assert "ü" in p.read_text(encoding="utf-8")
    assert count_jsonl_lines(tmp_path / "missing.jsonl") == 0


def test_to_jsonl_one_object_per_line():
    assert to_jsonl([{"a": 1}, [2]]).splitlines() == ['{"a": 1}', "[2]"]


def test_validate(tmp_path):
    good = tmp_path / "good.jsonl"
    good.write_text('{"a": 1}\n', encoding="utf-8")
    bad = tmp_path / "bad.jsonl"
    bad.write_text("not json\n", encoding="utf-8")
    assert validate_jsonl(good) == (True, [])
    ok, errors = validate_jsonl(bad)
    assert not ok
    assert len(errors) == 1


def test_scan_is_sorted_and_filtered(tmp_path):
    for name in ("b.jsonl", "a.jsonl", "notes.txt"):
        (tmp_path / name).write_text("", encoding="utf-8")
    assert [p.name for p in scan_jsonl_files(tmp_path)] == ["a.jsonl", "b.jsonl"]
    assert scan_jsonl_files(tmp_path / "missing") == []


def test_load_dir_skips_broken_files(tmp_path):
    (tmp_path / "a.jsonl").write_text('{"n": 1}\n', encoding="utf-8")
    (tmp_path / "b.jsonl").write_text("broken\n", encoding="utf-8")
    (tmp_path / "c.jsonl").write_text('{"n": 3}\n', encoding="utf-8")
    assert load_jsonl_dir(tmp_path) == [{"n": 1}, {"n": 3}]


def test_load_corpora(data_dir):
    knowledge, examples = load_corpora(data_dir)
    assert len(knowledge) == 3
    assert len(examples) == 2
    assert knowledge[0]["question"] == "What is a router?"


def test_bundled_corpora_are_valid():
    knowledge, examples = load_corpora(BUNDLED_DATA_DIR)
    assert knowledge
    assert examples
    assert all({"question", "answer"} <= set(k) for k in knowledge)
    assert all({"instruction", "output"} <= set(e) for e in examples)


def test_convert_json_to_jsonl(tmp_path):
    src = tmp_path / "in.json"
    src.write_text(json.dumps([{"a": 1}, {"a": 2}]), encoding="utf-8")
    dst = tmp_path / "out.jsonl"
    assert convert_json_to_jsonl(src, dst) == 2
    assert read_jsonl(dst) == [{"a": 1}, {"a": 2}]


def test_convert_rejects_non_array(tmp_path):
    src = tmp_path / "in.json"
    src.write_text('{"a": 1}', encoding="utf-8")
    with pytest.raises(ValueError, match="array"):
        convert_json_to_jsonl(src, tmp_path / "out.jsonl")
