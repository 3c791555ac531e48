import pytest

from n8n_xray.errors import NoRunDataError
from n8n_xray.summary import summarize_execution, wall_clock_seconds


def test_summary_counts_every_node(arena_factory, record_factory):
    arena = arena_factory(
        {
            "Trigger": {"startTime": 0, "output": [{"a": 1}, {"a": 2}]},
            "Fetch": {"startTime": 10, "executionStatus": "error"},
            "Skipped": {"runs": []},
        }
    )
    summary = summarize_execution(record_factory(arena, status="error"))

    assert summary.total_nodes == 3
    assert summary.successful_nodes == 1
    assert summary.failed_nodes == 2
    assert summary.error_count == 1
    assert summary.classification == "errors"
    assert summary.node_statuses["Trigger"].item_count == 2
    assert summary.node_statuses["Skipped"].status == "unknown"
    assert summary.execution_time_seconds == 3


def test_clean_execution_is_noerrors(linear_record):
    summary = summarize_execution(linear_record)
    assert summary.classification == "noerrors"
    assert summary.error_count == 0
    assert list(summary.node_statuses) == ["End", "Start"]


def test_failed_execution_without_node_errors_is_errors(linear_record):
    record = linear_record.model_copy(update={"status": "crashed"})
    assert summarize_execution(record).classification == "errors"


def test_summary_requires_run_data(record_factory):
    with pytest.raises(NoRunDataError):
        summarize_execution(record_factory([{"resultData": "1"}, {}]))


def test_wall_clock_seconds():
    assert wall_clock_seconds("2025-09-08T10:00:00Z", "2025-09-08T10:01:30Z") == 90
    assert wall_clock_seconds(None, "2025-09-08T10:01:30Z") is None
    assert wall_clock_seconds("garbage", "2025-09-08T10:01:30Z") is None
