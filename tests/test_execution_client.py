"""
Tests for the Piston execution client against a mocked transport.
"""

import asyncio
import json
from typing import Optional

import httpx
import pytest

from common.exceptions import InfrastructureError, ValidationError
from modules.execution_client import ExecutionClient, PistonExecutionClient
from modules.languages import ensure_supported, prepare_source


def _client(handler, **kwargs) -> PistonExecutionClient:
    return PistonExecutionClient(
        base_url="http://piston.test/api/v2/piston/",
        transport=httpx.MockTransport(handler),
        **kwargs
    )


def _run(client, language="python", stdin="", time_limit=2.0, memory_mb=256):
    return asyncio.run(client.run(
        "print(input())",
        language,
        stdin,
        time_limit,
        memory_mb
    ))


def _ok(run: dict, compile_stage: Optional[dict] = None) -> httpx.Response:
    body = {"language": "python", "version": "3.10.0", "run": run}
    if compile_stage is not None:
        body["compile"] = compile_stage
    return httpx.Response(200, json=body)


def test_request_payload_and_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return _ok({"stdout": "", "stderr": "", "code": 0, "signal": None})

    client = _client(handler, api_key="secret", compile_timeout_seconds=5)
    _run(client, language="java", stdin="5", time_limit=1.5, memory_mb=128)

    body = seen["body"]
    assert seen["url"] == "http://piston.test/api/v2/piston/execute"
    assert seen["auth"] == "secret"
    assert body["language"] == "java"
    assert body["files"][0]["name"] == "Main.java"
    assert body["stdin"] == "5"
    assert body["run_timeout"] == 1500
    assert body["compile_timeout"] == 5000
    assert body["run_memory_limit"] == 128 * 1024 * 1024


def test_successful_run():
    def handler(request):
        return _ok({
            "stdout": "3\n",
            "stderr": "",
            "code": 0,
            "signal": None,
            "wall_time": 12,
            "memory": 1024,
        })

    result = _run(_client(handler), stdin="3")

    assert result.stdout == "3\n"
    assert result.exit_code == 0
    assert result.duration_ms == 12
    assert not result.timed_out
    assert not result.memory_exceeded


def test_compile_failure():
    def handler(request):
        return _ok(
            {"stdout": "", "stderr": "", "code": None, "signal": None},
            compile_stage={
                "stdout": "",
                "stderr": "main.c:1:1: error: unknown type",
                "output": "main.c:1:1: error: unknown type",
                "code": 1,
            }
        )

    result = _run(_client(handler), language="c")

    assert result.compile_output == "main.c:1:1: error: unknown type"
    assert result.exit_code == 1


def test_timeout_status():
    def handler(request):
        return _ok({
            "stdout": "",
            "stderr": "",
            "code": None,
            "signal": "SIGKILL",
            "status": "TO",
        })

    assert _run(_client(handler)).timed_out


def test_memory_limit_reported():
    def handler(request):
        return _ok({
            "stdout": "",
            "stderr": "",
            "code": None,
            "signal": "SIGKILL",
            "memory": 64 * 1024 * 1024,
            "wall_time": 30,
        })

    result = _run(_client(handler), memory_mb=64)

    assert result.memory_exceeded
    assert not result.timed_out


def test_internal_service_status_raises():
    def handler(request):
        return _ok({"stdout": "", "stderr": "", "code": None, "status": "XX"})

    with pytest.raises(InfrastructureError):
        _run(_client(handler))


def test_http_error_raises():
    def handler(request):
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(InfrastructureError):
        _run(_client(handler))


def test_malformed_response_raises():
    def handler(request):
        return httpx.Response(400, json={"message": "runtime unknown"})

    with pytest.raises(InfrastructureError):
        _run(_client(handler))

    def missing_run(request):
        return httpx.Response(200, json={"message": "runtime unknown"})

    with pytest.raises(InfrastructureError):
        _run(_client(missing_run))


def test_hard_deadline_returns_timed_out():
    async def handler(request):
        await asyncio.sleep(2)
        return _ok({"stdout": "late", "stderr": "", "code": 0})

    client = _client(handler, grace_seconds=0.05)
    result = _run(client, time_limit=0.05)

    assert result.timed_out
    assert result.exit_code is None
    assert result.stdout == ""


def test_language_validation():
    assert ensure_supported(" Python ") == "python"
    with pytest.raises(ValidationError):
        ensure_supported("brainfuck")


def test_source_preparation():
    assert prepare_source("if x:\n\treturn 1  ", "python") == "if x:\n    return 1"
    java = "public class Solution {\n}"
    assert prepare_source(java, "java") == "public class Main {\n}"


def test_compiled_languages_get_compile_budget():
    client = PistonExecutionClient(
        base_url="http://piston.test",
        grace_seconds=2.0,
        compile_timeout_seconds=10.0
    )

    assert client.hard_deadline(1.5, "python") == 3.5
    assert client.hard_deadline(1.5, "cpp") == 13.5
    assert client.hard_deadline(1.5, "java") == 13.5


def test_slow_compile_within_budget_is_not_timed_out():
    async def handler(request):
        await asyncio.sleep(0.2)
        return _ok(
            {"stdout": "7\n", "stderr": "", "code": 0},
            compile_stage={"stdout": "", "stderr": "", "code": 0}
        )

    client = _client(
        handler,
        grace_seconds=0.05,
        compile_timeout_seconds=1.0
    )
    result = _run(client, language="cpp", time_limit=0.05)

    assert not result.timed_out
    assert result.stdout == "7\n"


def test_execution_client_is_abstract():
    with pytest.raises(TypeError):
        ExecutionClient()
