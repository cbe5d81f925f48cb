import os

import pytest

from sink import TranscriptSink

def read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()

def test_reset_then_append(tmp_path):
    sink = TranscriptSink(str(tmp_path / "out.txt"))
    sink.reset()
    sink.append("First paragraph.")
    sink.append("Second paragraph.")
    assert read(sink.output_path) == "First paragraph.\n\nSecond paragraph.\n\n"

def test_reset_discards_previous_run(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("stale output from an earlier run\n\n", encoding="utf-8")
    sink = TranscriptSink(str(path))
    sink.reset()
    sink.append("X")
    assert read(str(path)) == "X\n\n"

def test_reset_is_idempotent(tmp_path):
    sink = TranscriptSink(str(tmp_path / "out.txt"))
    sink.reset()
    sink.reset()
    sink.append("X")
    assert read(sink.output_path) == "X\n\n"

def test_reset_creates_parent_folder(tmp_path):
    sink = TranscriptSink(str(tmp_path / "nested" / "dir" / "out.txt"))
    sink.reset()
    assert os.path.isfile(sink.output_path)

def test_append_empty_paragraph(tmp_path):
    sink = TranscriptSink(str(tmp_path / "out.txt"))
    sink.reset()
    sink.append("")
    assert read(sink.output_path) == "\n\n"

def test_write_errors_propagate(tmp_path):
    sink = TranscriptSink(str(tmp_path))
    with pytest.raises(OSError):
        sink.append("text")
