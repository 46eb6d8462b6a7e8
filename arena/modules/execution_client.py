"""
Client for the external code execution capability.

The execution service is a Piston compatible HTTP API. Every call is
bounded by a hard deadline of the question time limit plus a grace
period, plus the compile timeout for compiled languages; when it
expires the request is cancelled and a timed out result is returned
instead of waiting on the service.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from common.exceptions import InfrastructureError
from modules.languages import COMPILED_LANGUAGES, file_name, prepare_source

logger = logging.getLogger(__name__)

# Piston run stage status codes
_STATUS_TIMEOUT = "TO"
_STATUS_INTERNAL = "XX"


class ExecutionResult(BaseModel):
    """Raw outcome of one execution."""

    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = 0
    signal: Optional[str] = None
    timed_out: bool = False
    memory_exceeded: bool = False
    compile_output: Optional[str] = None
    duration_ms: int = 0


class ExecutionClient(ABC):
    """Interface of the execution capability consumed by the judge."""

    @abstractmethod
    async def run(
        self,
        code: str,
        language: str,
        stdin: str,
        time_limit_seconds: float,
        memory_limit_mb: int
    ) -> ExecutionResult:
        """
        Execute code once against the given stdin.

        Raises:
            InfrastructureError: If the execution service itself fails
        """


class PistonExecutionClient(ExecutionClient):
    """
    Execution client for the Piston API.

    Args:
        base_url: Piston API base URL (``.../api/v2/piston``)
        api_key: Optional Authorization header value
        grace_seconds: Added to the time limit to form the hard deadline
        compile_timeout_seconds: Compile stage limit forwarded to Piston,
            also added to the hard deadline of compiled languages
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        grace_seconds: float = 2.0,
        compile_timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.grace_seconds = grace_seconds
        self.compile_timeout_seconds = compile_timeout_seconds
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = self.api_key
        return headers

    def hard_deadline(self, time_limit_seconds: float, language: str) -> float:
        """Seconds a single call may take before it is cancelled."""
        deadline = time_limit_seconds + self.grace_seconds
        if language in COMPILED_LANGUAGES:
            deadline += self.compile_timeout_seconds
        return deadline

    def build_payload(
        self,
        code: str,
        language: str,
        stdin: str,
        time_limit_seconds: float,
        memory_limit_mb: int
    ) -> dict:
        """Build the Piston ``/execute`` request body."""
        return {
            "language": language,
            "version": "*",
            "files": [
                {
                    "name": file_name(language),
                    "content": prepare_source(code, language),
                }
            ],
            "stdin": stdin,
            "compile_timeout": int(self.compile_timeout_seconds * 1000),
            "run_timeout": int(time_limit_seconds * 1000),
            "run_memory_limit": memory_limit_mb * 1024 * 1024,
        }

    async def run(
        self,
        code: str,
        language: str,
        stdin: str,
        time_limit_seconds: float,
        memory_limit_mb: int
    ) -> ExecutionResult:
        payload = self.build_payload(
            code,
            language,
            stdin,
            time_limit_seconds,
            memory_limit_mb
        )
        deadline = self.hard_deadline(time_limit_seconds, language)
        started = time.monotonic()

        try:
            body = await asyncio.wait_for(
                self._post(payload, deadline),
                timeout=deadline
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Execution exceeded hard deadline of {deadline:.1f}s "
                f"({language})"
            )
            return ExecutionResult(
                exit_code=None,
                timed_out=True,
                duration_ms=int((time.monotonic() - started) * 1000)
            )

        elapsed_ms = int((time.monotonic() - started) * 1000)
        return self.parse_response(
            body,
            time_limit_seconds,
            memory_limit_mb,
            elapsed_ms
        )

    async def _post(self, payload: dict, deadline: float) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=deadline,
                transport=self.transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/execute",
                    headers=self._headers(),
                    json=payload
                )
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise asyncio.TimeoutError() from e
        except httpx.HTTPStatusError as e:
            raise InfrastructureError(
                f"Execution service responded with status "
                f"{e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise InfrastructureError(
                f"Execution service request failed: {e}"
            ) from e
        except ValueError as e:
            raise InfrastructureError(
                "Execution service returned invalid JSON"
            ) from e

    @staticmethod
    def parse_response(
        body: dict,
        time_limit_seconds: float,
        memory_limit_mb: int,
        elapsed_ms: int
    ) -> ExecutionResult:
        """
        Map a Piston response onto an ExecutionResult.

        Raises:
            InfrastructureError: If the response is malformed or reports
                an internal service failure
        """
        if not isinstance(body, dict) or "run" not in body:
            message = body.get("message") if isinstance(body, dict) else None
            raise InfrastructureError(
                f"Unexpected execution service response: {message or body!r}"
            )

        compile_stage = body.get("compile") or {}
        if compile_stage and compile_stage.get("code") not in (0, None):
            return ExecutionResult(
                stdout="",
                stderr=compile_stage.get("stderr")
                or compile_stage.get("output")
                or "",
                exit_code=compile_stage.get("code"),
                compile_output=compile_stage.get("output")
                or compile_stage.get("stderr")
                or "",
                duration_ms=elapsed_ms
            )

        run = body["run"] or {}
        status = run.get("status")
        if status == _STATUS_INTERNAL:
            raise InfrastructureError(
                f"Execution service internal error: {run.get('message')}"
            )

        wall_time = run.get("wall_time")
        duration_ms = int(wall_time) if wall_time is not None else elapsed_ms

        timed_out = status == _STATUS_TIMEOUT or (
            run.get("signal") == "SIGKILL"
            and duration_ms >= time_limit_seconds * 1000
        )
        memory_used = run.get("memory")
        memory_exceeded = (
            memory_used is not None
            and memory_used >= memory_limit_mb * 1024 * 1024
        )

        return ExecutionResult(
            stdout=run.get("stdout") or "",
            stderr=run.get("stderr") or "",
            exit_code=run.get("code"),
            signal=run.get("signal"),
            timed_out=timed_out,
            memory_exceeded=memory_exceeded,
            duration_ms=duration_ms
        )
