import httpx
import pytest

from n8n_xray.analyze import ExecutionAnalyzer, OutputMode
from n8n_xray.client import N8nApiClient
from n8n_xray.config import N8nConfig
from n8n_xray.contracts import NodeExecutionRecord, NotFound
from n8n_xray.errors import ExecutionNotFoundError, UpstreamFetchError
from n8n_xray.persistence import InMemoryBacktraceRepository
from n8n_xray.sources import ApiExecutionSource, FetchedExecution


class StubSource:
    """Serve prepared executions; unknown ids fail like the REST API does."""

    def __init__(self, executions: dict[str, FetchedExecution]):
        self.executions = executions

    async def fetch(self, execution_id: str) -> FetchedExecution:
        if execution_id not in self.executions:
            raise ExecutionNotFoundError("The requested execution was not found", 404)
        return self.executions[execution_id]


@pytest.fixture
def source(linear_record, record_factory, workflow_data):
    return StubSource(
        {
            "696": FetchedExecution(linear_record, workflow_data),
            "700": FetchedExecution(record_factory(None, execution_id="700")),
            "701": FetchedExecution(
                record_factory([{"runData": "5"}], execution_id="701")
            ),
        }
    )


@pytest.mark.asyncio
async def test_report_mode_returns_flow(source):
    repo = InMemoryBacktraceRepository()
    result = await ExecutionAnalyzer(source, repo).analyze("696")

    assert result.ok
    assert result.flow.execution_info.total_nodes == 2
    assert result.persisted_steps is None
    assert await repo.list_execution_ids() == []


@pytest.mark.asyncio
async def test_persist_mode_stores_backtrace(source):
    repo = InMemoryBacktraceRepository()
    result = await ExecutionAnalyzer(source, repo).analyze("696", OutputMode.PERSIST)

    assert result.ok
    assert result.persisted_steps == 2
    assert result.warnings == []
    rows = await repo.get_backtrace("696")
    assert [r.node_name for r in rows] == ["Start", "End"]


@pytest.mark.asyncio
async def test_trace_failures_are_typed_results(source):
    analyzer = ExecutionAnalyzer(source, InMemoryBacktraceRepository())

    no_data = await analyzer.analyze("700")
    malformed = await analyzer.analyze("701")

    assert not no_data.ok
    assert no_data.error_type == "NoRunDataError"
    assert not malformed.ok
    assert malformed.error_type == "MalformedTraceError"


@pytest.mark.asyncio
async def test_failed_persist_keeps_existing_rows(source, linear_record, workflow_data):
    repo = InMemoryBacktraceRepository()
    analyzer = ExecutionAnalyzer(source, repo)
    await analyzer.analyze("696", OutputMode.PERSIST)

    broken = linear_record.model_copy(update={"raw_data": [{"runData": "99"}]})
    result = await analyzer.persist_record(broken, workflow_data)

    assert not result.ok
    assert len(await repo.get_backtrace("696")) == 2


@pytest.mark.asyncio
async def test_fetch_failure_propagates_for_single_execution(source):
    with pytest.raises(UpstreamFetchError):
        await ExecutionAnalyzer(source, InMemoryBacktraceRepository()).analyze("404")


@pytest.mark.asyncio
async def test_analyze_many_continues_past_failures(source):
    analyzer = ExecutionAnalyzer(source, InMemoryBacktraceRepository())
    results = await analyzer.analyze_many(["404", "700", "696"])

    assert [r.execution_id for r in results] == ["404", "700", "696"]
    assert results[0].error_type == "ExecutionNotFoundError"
    assert results[1].error_type == "NoRunDataError"
    assert results[2].ok


@pytest.mark.asyncio
async def test_node_lookup(source):
    analyzer = ExecutionAnalyzer(source)
    found = await analyzer.node("696", "End")
    missing = await analyzer.node("696", "Ghost")

    assert isinstance(found, NodeExecutionRecord)
    assert found.input == [{"json": {"greeting": "hi"}}]
    assert isinstance(missing, NotFound)


@pytest.mark.asyncio
async def test_summary(source):
    summary = await ExecutionAnalyzer(source).summary("696")
    assert summary.classification == "noerrors"


def test_fetching_requires_source():
    with pytest.raises(ValueError):
        ExecutionAnalyzer()._require_source()


@pytest.mark.asyncio
async def test_corrupt_execution_data_does_not_stop_the_batch(linear_record):
    executions = {
        "/api/v1/executions/1": {"id": "1", "data": '[{"runData": "1"}, {'},
        "/api/v1/executions/2": {"id": "2", "data": linear_record.raw_data},
        "/api/v1/executions/3": {"workflowId": "wf-1", "data": []},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=executions[request.url.path])

    client = N8nApiClient(
        N8nConfig(base_url="http://n8n.test"), transport=httpx.MockTransport(handler)
    )
    async with client:
        analyzer = ExecutionAnalyzer(ApiExecutionSource(client), InMemoryBacktraceRepository())
        results = await analyzer.analyze_many(["1", "2", "3"])

    assert [r.execution_id for r in results] == ["1", "2", "3"]
    assert results[0].error_type == "MalformedTraceError"
    assert "not valid JSON" in results[0].error
    assert results[1].ok
    assert results[2].error_type == "UpstreamFetchError"
