"""
Remote Agent Client

Async client for the planner, executor, multi-executor, verifier and critic
agents. Each call is a single JSON POST; responses are validated against the
agent's schema before anything downstream sees them.

Calls are attempted exactly once. Timeouts are whatever the transport is
configured with and surface as AgentTimeoutError.
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as SchemaValidationError

from multiagent.agent.errors import OrchestrationError
from multiagent.agent.schemas import (
    AgentModel,
    PlannerRequest, PlannerResponse,
    ExecutorRequest, ExecutorResponse,
    MultiExecutorRequest, MultiExecutorResponse,
    VerifierRequest, VerifierResponse,
    CriticRequest, CriticResponse,
)
from multiagent.core.config import settings

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


# ==================== Custom Exceptions ====================

class AgentCallError(OrchestrationError):
    """Base exception for failed agent calls."""
    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(message)
        self.endpoint = endpoint


class AgentConnectionError(AgentCallError):
    """Could not reach the agent."""
    pass


class AgentTimeoutError(AgentCallError):
    """The agent did not answer within the transport timeout."""
    pass


class AgentHTTPError(AgentCallError):
    """The agent answered with a non-success status."""
    def __init__(
        self,
        message: str,
        endpoint: str = "",
        status_code: int = 0,
        response_body: Optional[str] = None
    ):
        super().__init__(message, endpoint)
        self.status_code = status_code
        self.response_body = response_body


class AgentResponseError(AgentCallError):
    """The agent's body was not JSON or did not match its schema."""
    pass


class AgentClient:
    """
    Async client for the remote agent endpoints.

    Features:
    - One shared httpx.AsyncClient per instance
    - Typed request/response records per agent
    - Custom exceptions for the different failure modes
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        endpoints: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the agent client.

        Args:
            base_url: Base URL the agent endpoints live under
            timeout: Request timeout in seconds
            endpoints: Overrides for the per-agent endpoint paths
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.agent_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.agent_timeout_seconds
        self.endpoints = {
            "planner": settings.planner_endpoint,
            "executor": settings.executor_endpoint,
            "multi_executor": settings.multi_executor_endpoint,
            "verifier": settings.verifier_endpoint,
            "critic": settings.critic_endpoint,
        }
        self.endpoints.update(endpoints or {})
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    def _parse_error_response(self, response: httpx.Response) -> str:
        """Parse error message from response."""
        try:
            data = response.json()
            if isinstance(data, dict):
                return data.get("message") or data.get("error") or str(data)
            return str(data)
        except ValueError:
            return response.text or response.reason_phrase or f"HTTP {response.status_code}"

    async def call(self, agent: str, request: AgentModel, response_model: Type[ResponseT]) -> ResponseT:
        """
        POST a request to an agent and validate the answer.

        Args:
            agent: Key into self.endpoints
            request: Typed request record
            response_model: Schema the response must satisfy

        Returns:
            Validated response record

        Raises:
            AgentConnectionError: If the agent is unreachable
            AgentTimeoutError: If the transport timed out
            AgentHTTPError: If the agent returned a non-2xx status
            AgentResponseError: If the body is not valid for the agent
        """
        endpoint = self.endpoints[agent]
        client = await self._get_client()

        try:
            response = await client.post(f"/{endpoint}", json=request.to_payload())
        except httpx.TimeoutException as e:
            raise AgentTimeoutError(f"{agent} timed out after {self.timeout}s", endpoint) from e
        except httpx.RequestError as e:
            raise AgentConnectionError(f"Failed to reach {agent} at {self.base_url}: {e}", endpoint) from e

        if response.status_code >= 400:
            message = self._parse_error_response(response)
            raise AgentHTTPError(
                f"{agent.capitalize()} failed: {message}",
                endpoint,
                status_code=response.status_code,
                response_body=response.text
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AgentResponseError(f"{agent} returned a non-JSON body", endpoint) from e

        try:
            return response_model.model_validate(data)
        except SchemaValidationError as e:
            logger.warning(f"Malformed {agent} response: {e.errors()}")
            raise AgentResponseError(f"{agent} returned a malformed response: {e.error_count()} errors", endpoint) from e

    async def plan(self, request: PlannerRequest) -> PlannerResponse:
        return await self.call("planner", request, PlannerResponse)

    async def execute_task(self, request: ExecutorRequest) -> ExecutorResponse:
        return await self.call("executor", request, ExecutorResponse)

    async def execute_tasks(self, request: MultiExecutorRequest) -> MultiExecutorResponse:
        return await self.call("multi_executor", request, MultiExecutorResponse)

    async def verify(self, request: VerifierRequest) -> VerifierResponse:
        return await self.call("verifier", request, VerifierResponse)

    async def critique(self, request: CriticRequest) -> CriticResponse:
        return await self.call("critic", request, CriticResponse)

    async def ping(self, timeout: float = 5.0) -> bool:
        """Whether the agent host answers at all. Any HTTP status counts."""
        client = await self._get_client()
        try:
            await client.get("/", timeout=timeout)
            return True
        except httpx.HTTPError as e:
            logger.debug(f"Agent host {self.base_url} unreachable: {e}")
            return False

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
