"""Tests for ospec.utils.stack: stack capture and labelling."""

from __future__ import annotations

import re
import runpy
from pathlib import Path

import ospec
from ospec.utils.stack import (
    DEFAULT_FILE_PATTERN,
    DEFAULT_LABEL_PATTERN,
    capture_stack,
    ensure_stack_trace,
    get_stack_name,
)

_PACKAGE_DIR = Path(ospec.__file__).resolve().parent

# ── get_stack_name ────────────────────────────────────────────────────


class TestGetStackName:
    def test_first_matching_frame_wins(self) -> None:
        stack = ["/src/app/specs/test_math.py:12", "/src/app/runner.py:40"]
        assert get_stack_name(stack, DEFAULT_LABEL_PATTERN) == "test_math.py:12"

    def test_custom_pattern_skips_non_matching_frames(self) -> None:
        stack = ["/lib/helpers.py:3", "/proj/tests/test_io.py:88"]
        pattern = re.compile(r"(test_\w+\.py:\d+)$")
        assert get_stack_name(stack, pattern) == "test_io.py:88"

    def test_accepts_string_pattern(self) -> None:
        assert get_stack_name(["/a/b/spec.py:7"], r"/(\w+\.py):\d+$") == "spec.py"

    def test_no_match_returns_none(self) -> None:
        assert get_stack_name(["<frozen runpy>", "no line here"], DEFAULT_LABEL_PATTERN) is None

    def test_empty_stack_returns_none(self) -> None:
        assert get_stack_name([], DEFAULT_LABEL_PATTERN) is None

    def test_windows_paths(self) -> None:
        assert get_stack_name([r"C:\proj\spec.py:7"], DEFAULT_LABEL_PATTERN) == "spec.py:7"

    def test_file_pattern_drops_line(self) -> None:
        assert get_stack_name(["/x/y/suite.py:91"], DEFAULT_FILE_PATTERN) == "suite.py"

    def test_deterministic(self) -> None:
        stack = ["/a/one.py:1", "/a/two.py:2"]
        assert get_stack_name(stack, DEFAULT_LABEL_PATTERN) == get_stack_name(
            list(stack), DEFAULT_LABEL_PATTERN
        )


# ── ensure_stack_trace ────────────────────────────────────────────────


class TestEnsureStackTrace:
    def test_populates_missing_traceback(self) -> None:
        error = ValueError("fresh")
        assert error.__traceback__ is None

        result = ensure_stack_trace(error)

        assert result is error
        assert result.__traceback__ is not None

    def test_keeps_existing_traceback(self) -> None:
        try:
            raise KeyError("raised")
        except KeyError as exc:
            original = exc.__traceback__
            assert ensure_stack_trace(exc).__traceback__ is original


# ── capture_stack ─────────────────────────────────────────────────────


class TestCaptureStack:
    def test_innermost_frame_is_caller(self) -> None:
        frames = capture_stack(skip_paths=[_PACKAGE_DIR])

        filename, _, line = frames[0].rpartition(":")
        assert filename.endswith("test_stack.py")
        assert line.isdigit()

    def test_without_skip_includes_library_frames(self) -> None:
        frames = capture_stack()

        assert Path(frames[0].rpartition(":")[0]).parent.name == "utils"

    def test_labels_caller_with_default_pattern(self) -> None:
        label = get_stack_name(capture_stack(skip_paths=[_PACKAGE_DIR]), DEFAULT_LABEL_PATTERN)

        assert label is not None
        assert label.startswith("test_stack.py:")

    def test_sibling_directory_sharing_prefix_is_kept(self, tmp_path: Path) -> None:
        skipped = tmp_path / "ospec"
        skipped.mkdir()
        sibling = tmp_path / "ospec_specs"
        sibling.mkdir()
        spec_file = sibling / "my_spec.py"
        spec_file.write_text(
            "from ospec.utils.stack import capture_stack\n"
            "FRAMES = capture_stack(skip_paths=[SKIP])\n",
            encoding="utf-8",
        )

        namespace = runpy.run_path(str(spec_file), init_globals={"SKIP": str(skipped)})

        assert any(frame.endswith("my_spec.py:2") for frame in namespace["FRAMES"])

    def test_frames_inside_skipped_directory_are_dropped(self, tmp_path: Path) -> None:
        skipped = tmp_path / "ospec"
        skipped.mkdir()
        inner = skipped / "helper.py"
        inner.write_text(
            "from ospec.utils.stack import capture_stack\n"
            "FRAMES = capture_stack(skip_paths=[SKIP])\n",
            encoding="utf-8",
        )

        namespace = runpy.run_path(str(inner), init_globals={"SKIP": str(skipped)})

        assert not any("helper.py" in frame for frame in namespace["FRAMES"])
