import asyncio
import json

import pytest
from typer.testing import CliRunner

import n8n_xray.cli as cli
import n8n_xray.persistence as persistence
from n8n_xray.cli import app
from n8n_xray.constants import END_SENTINEL
from n8n_xray.errors import ExecutionNotFoundError
from n8n_xray.persistence import InMemoryBacktraceRepository
from n8n_xray.sources import FetchedExecution

runner = CliRunner()


def _setup_repo() -> InMemoryBacktraceRepository:
    repo = InMemoryBacktraceRepository()
    persistence._repository_instance = repo
    return repo


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("N8N_XRAY_CONFIG", str(tmp_path / "absent.yaml"))


@pytest.fixture
def trace_file(tmp_path, linear_record, workflow_data):
    path = tmp_path / "trace-696.json"
    path.write_text(
        json.dumps(
            {
                "id": "696",
                "workflowId": "wf-1",
                "status": "success",
                "finished": True,
                "data": linear_record.raw_data,
                "workflowData": workflow_data,
            }
        )
    )
    return path


def test_analyze_from_file_writes_report(trace_file, tmp_path):
    _setup_repo()
    report = tmp_path / "xray.json"
    result = runner.invoke(
        app,
        ["--log-level", "ERROR", "analyze", "--from-file", str(trace_file), "-o", str(report)],
    )
    assert result.exit_code == 0, result.output
    assert "X-ray report saved to" in result.output

    document = json.loads(report.read_text())
    assert [s["node_name"] for s in document["data_flow"]] == ["Start", "End"]
    assert document["data_flow"][-1]["goes_to"] == END_SENTINEL


def test_analyze_persist_then_show(trace_file):
    repo = _setup_repo()
    result = runner.invoke(
        app,
        ["--log-level", "ERROR", "analyze", "--from-file", str(trace_file), "--mode", "persist"],
    )
    assert result.exit_code == 0, result.output
    assert "Stored backtrace for execution 696: 2 steps" in result.output
    assert len(asyncio.run(repo.get_backtrace("696"))) == 2

    shown = runner.invoke(app, ["--log-level", "ERROR", "backtrace", "show", "696"])
    assert shown.exit_code == 0, shown.output
    assert "Backtrace 696: 2 steps" in shown.output
    assert "- 0: Start [0f6c5a2e-2f0c-4d43-9a55-1c2b3d4e5f60] -> End" in shown.output
    assert f"- 1: End [9b1d2c3e-4f5a-4b6c-8d7e-0f1a2b3c4d5e] -> {END_SENTINEL}" in shown.output

    listed = runner.invoke(app, ["--log-level", "ERROR", "backtrace", "list"])
    assert "696" in listed.output


def test_analyze_failure_exits_nonzero(tmp_path):
    _setup_repo()
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"id": "700", "status": "error", "data": None}))

    result = runner.invoke(app, ["--log-level", "ERROR", "analyze", "--from-file", str(path)])
    assert result.exit_code == 1
    assert "NoRunDataError" in result.output


def test_analyze_requires_an_execution():
    _setup_repo()
    result = runner.invoke(app, ["--log-level", "ERROR", "analyze"])
    assert result.exit_code == 1


def test_backtrace_show_missing_and_empty_list():
    _setup_repo()
    missing = runner.invoke(app, ["--log-level", "ERROR", "backtrace", "show", "nope"])
    assert missing.exit_code == 1
    assert "Backtrace not found" in missing.output

    listed = runner.invoke(app, ["--log-level", "ERROR", "backtrace", "list"])
    assert listed.exit_code == 0
    assert "No backtraces found" in listed.output


def test_backtrace_delete(trace_file):
    repo = _setup_repo()
    runner.invoke(
        app,
        ["--log-level", "ERROR", "analyze", "--from-file", str(trace_file), "--mode", "persist"],
    )
    result = runner.invoke(app, ["--log-level", "ERROR", "backtrace", "delete", "696"])
    assert "Deleted 2 steps for execution 696" in result.output
    assert asyncio.run(repo.get_backtrace("696")) == []


class StubSource:
    def __init__(self, executions):
        self.executions = executions

    async def fetch(self, execution_id):
        if execution_id not in self.executions:
            raise ExecutionNotFoundError("The requested execution was not found", 404)
        return self.executions[execution_id]


def test_batch_reports_each_execution(monkeypatch, linear_record):
    _setup_repo()
    source = StubSource({"696": FetchedExecution(linear_record)})
    monkeypatch.setattr(cli, "get_source", lambda config, client=None: source)

    result = runner.invoke(app, ["--log-level", "ERROR", "batch", "696", "404"])
    assert result.exit_code == 1
    assert "696\tok\t2 steps" in result.output
    assert "404\tfailed\tExecutionNotFoundError" in result.output


def test_node_command(monkeypatch, linear_record):
    _setup_repo()
    source = StubSource({"696": FetchedExecution(linear_record)})
    monkeypatch.setattr(cli, "get_source", lambda config, client=None: source)

    result = runner.invoke(app, ["--log-level", "ERROR", "node", "696", "Start"])
    assert result.exit_code == 0, result.output
    assert '"greeting": "hi"' in result.output

    missing = runner.invoke(app, ["--log-level", "ERROR", "node", "696", "Ghost"])
    assert missing.exit_code == 1
    assert "node not found in run data" in missing.output


def test_summary_command(monkeypatch, linear_record):
    _setup_repo()
    source = StubSource({"696": FetchedExecution(linear_record)})
    monkeypatch.setattr(cli, "get_source", lambda config, client=None: source)

    result = runner.invoke(app, ["--log-level", "ERROR", "summary", "696"])
    assert result.exit_code == 0, result.output
    assert '"classification": "noerrors"' in result.output


def test_analyze_corrupt_execution_data_fails_cleanly(tmp_path):
    _setup_repo()
    path = tmp_path / "corrupt.json"
    path.write_text(json.dumps({"id": "701", "data": '[{"runData": "1"}, {'}))

    result = runner.invoke(app, ["--log-level", "ERROR", "analyze", "--from-file", str(path)])
    assert result.exit_code == 1
    assert "MalformedTraceError" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_analyze_unreadable_file_fails_cleanly(tmp_path):
    _setup_repo()
    path = tmp_path / "page.json"
    path.write_text("<html>n8n editor</html>")

    result = runner.invoke(app, ["--log-level", "ERROR", "analyze", "--from-file", str(path)])
    assert result.exit_code == 1
    assert "Cannot read execution file" in result.output
