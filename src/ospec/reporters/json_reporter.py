"""JSON reporter: the result tree as a structured document."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ospec.models.result import GroupResult

if TYPE_CHECKING:
    from pathlib import Path

    from ospec.models.result import CaseResult, HookFailureRecord, RunResult

logger = logging.getLogger(__name__)


class JSONReporter:
    """Serialize a :class:`RunResult` for downstream tooling."""

    def generate(self, output_path: Path, result: RunResult) -> Path:
        """Write the JSON report to *output_path* and return it."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.generate_string(result), encoding="utf-8")
        logger.info("JSON report written to %s", output_path)
        return output_path

    def generate_string(self, result: RunResult) -> str:
        return json.dumps(build_report(result), indent=2, ensure_ascii=False, default=str)


def build_report(result: RunResult) -> dict[str, Any]:
    """Build the JSON report structure."""
    root = result.root
    return {
        "tool": "ospec",
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "summary": {
            "total": root.total,
            "passed": root.passed,
            "failed": root.failed,
            "timed_out": root.timed_out,
            "skipped": root.skipped,
            "hook_failures": root.hook_failed,
            "duration_ms": result.duration_ms,
            "success": result.success,
            "bailed": result.bailed,
            "pending_timed_out": result.pending_timed_out,
        },
        "tree": _serialize_group(root),
    }


def _serialize_group(group: GroupResult) -> dict[str, Any]:
    return {
        "type": "spec",
        "name": group.name,
        "counts": {
            "passed": group.passed,
            "failed": group.failed,
            "timed_out": group.timed_out,
            "skipped": group.skipped,
        },
        "hook_failures": [_serialize_hook_failure(failure) for failure in group.hook_failures],
        "children": [
            _serialize_group(child) if isinstance(child, GroupResult) else _serialize_case(child)
            for child in group.children
        ],
    }


def _serialize_case(case: CaseResult) -> dict[str, Any]:
    return {
        "type": "test",
        "name": case.name,
        "status": case.status.value,
        "duration_ms": case.duration_ms,
        "failure_message": case.failure_message,
    }


def _serialize_hook_failure(failure: HookFailureRecord) -> dict[str, Any]:
    return {
        "kind": failure.kind,
        "case": failure.case,
        "message": str(failure.error),
    }
