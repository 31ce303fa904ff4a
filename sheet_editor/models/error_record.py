from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for contained-error logging.

Rule evaluation, plugin lifecycle and hook dispatch errors never abort the
user's action. They are logged and, when an error log buffer is attached,
kept as structured records that follow
``sheet_editor/logging/error_log_schema.json``.
"""

__all__ = [
    "ErrorRecord",
    "RULE_EVALUATION_ERROR",
    "PLUGIN_INIT_ERROR",
    "PLUGIN_CLEANUP_ERROR",
    "HOOK_HANDLER_ERROR",
    "SUBSCRIBER_ERROR",
]

RULE_EVALUATION_ERROR = "RULE_EVALUATION_ERROR"
PLUGIN_INIT_ERROR = "PLUGIN_INIT_ERROR"
PLUGIN_CLEANUP_ERROR = "PLUGIN_CLEANUP_ERROR"
HOOK_HANDLER_ERROR = "HOOK_HANDLER_ERROR"
SUBSCRIBER_ERROR = "SUBSCRIBER_ERROR"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        component: Subsystem that contained the error (registry, conditional_format, ...)
        source: Plugin id, rule id or hook name the error belongs to
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Exception text
    """
    timestamp: str  # ISO8601 UTC
    component: str
    source: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(component: str, source: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            component=component,
            source=source,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
