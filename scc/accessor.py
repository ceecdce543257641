"""IaC validation service client.

Submits a plan file to the validation service, polls the resulting
long-running operation until it completes and returns the reported
violations. Submit and poll share a single wall-clock deadline.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError as PydanticValidationError

from scc.google_auth import TokenProvider
from shared.constants import (
    ACTION_VERSION,
    RETRIABLE_ERROR_CODES,
    SCAN_FILE_MAX_SIZE_BYTES,
    user_agent,
    validate_endpoint_path,
)
from shared.exceptions import ScanError, ScanTimeoutError
from shared.schemas import IaC, IaCRequest, IaCValidationReport, Operation, Severity, Violation

logger = logging.getLogger(__name__)

SUBMIT_ERROR_CONTEXT = "encountered error while requesting scan"
POLL_ERROR_CONTEXT = "encountered error while performing scan operation"


def current_time_millis() -> float:
    return time.time() * 1000


# --- Retry decisions ---


@dataclass(frozen=True)
class Retry:
    """Repeat the request after ``after`` seconds."""

    after: float


@dataclass(frozen=True)
class Succeed:
    """The response is usable."""

    body: str


@dataclass(frozen=True)
class Fail:
    """The response is a non-retryable error."""

    error: ScanError


def backoff_seconds(attempt: int) -> int:
    """Exponential backoff interval for a zero-based attempt number."""
    return 2**attempt


def next_action(status_code: int, body: str, attempt: int) -> Retry | Succeed | Fail:
    """Decide what to do with a response.

    Args:
        status_code: HTTP status of the response
        body: Response body text
        attempt: Zero-based attempt number of the request that produced it

    Returns:
        Retry for retryable statuses, Fail for other errors, else Succeed
    """
    if status_code in RETRIABLE_ERROR_CODES:
        return Retry(after=backoff_seconds(attempt))
    if status_code >= 400:
        return Fail(ScanError(status_code, f"statusCode : ({status_code}), message : {body}"))
    return Succeed(body=body)


@dataclass
class ScanState:
    """Attempt counter scoped to one scan call."""

    attempt: int = 0

    def next_attempt(self) -> int:
        attempt = self.attempt
        self.attempt += 1
        return attempt

    def reset(self) -> None:
        self.attempt = 0


# --- Response validation ---


def parse_operation(data: Any) -> Operation:
    """Parse an operation payload returned by the service."""
    try:
        return Operation.model_validate(data)
    except PydanticValidationError as e:
        raise ScanError(
            500,
            f"[Internal Error] Validation Service Endpoint Returned malformed operation: {e}",
        ) from e


def validate_operation(operation: Operation) -> IaCValidationReport:
    """Check a completed operation and extract its validation report.

    Raises:
        ScanError: If the operation failed or its response is incomplete
    """
    if operation.error is not None:
        raise ScanError(
            operation.error.code or 500,
            f"Returned Error Response with following error: {operation.error.message or ''}",
        )
    if operation.response is None:
        raise ScanError(500, "[Internal Error] Polling Validation Service Endpoint Timed Out")

    report = operation.response.iac_validation_report
    if report is None:
        raise ScanError(
            500,
            "[Internal Error] Validation Endpoint Returned Response with invalid validationReport",
        )

    for violation in report.violations or []:
        missing = [
            field
            for field, value in (("assetId", violation.asset_id), ("policyId", violation.policy_id))
            if not value
        ]
        if missing:
            raise ScanError(
                500,
                "[Internal Error] Validation Service Endpoint Returned invalid violations "
                f"with missing key attributes: {', '.join(missing)}, "
                f"policyId : {violation.policy_id}, assetId : {violation.asset_id}",
            )
    return report


def normalize_report(report: IaCValidationReport) -> IaCValidationReport:
    """Default missing violation severities to UNSPECIFIED."""
    violations = [
        violation
        if violation.severity is not None
        else violation.model_copy(update={"severity": Severity.UNSPECIFIED})
        for violation in report.violations or []
    ]
    return report.model_copy(update={"violations": violations})


class IaCAccessor:
    """Client for the IaC validation long-running operation API.

    The HTTP client and token provider are owned by the caller; the accessor
    never closes them. Build a new accessor for every scan.
    """

    def __init__(
        self,
        base_url: str,
        organization_id: str,
        scan_timeout: int,
        scan_start_time: float,
        http_client: httpx.AsyncClient,
        auth: TokenProvider,
        version: str = ACTION_VERSION,
        clock: Callable[[], float] = current_time_millis,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the accessor.

        Args:
            base_url: Validation service endpoint
            organization_id: Organization the plan is validated against
            scan_timeout: Maximum scan duration in milliseconds
            scan_start_time: Epoch milliseconds at which scanning started
            http_client: Transport used for every request
            auth: Source of bearer tokens
            version: Action version, used in the user agent
            clock: Returns the current epoch time in milliseconds
            sleep: Awaitable sleep taking seconds
        """
        self.base_url = base_url.rstrip("/")
        self.organization_id = organization_id
        self.scan_start_time = scan_start_time
        self.deadline = scan_start_time + scan_timeout
        self.version = version
        self.http_client = http_client
        self.auth = auth
        self._clock = clock
        self._sleep = sleep

    def _should_retry(self) -> bool:
        return self._clock() < self.deadline

    async def _get_headers(self) -> dict[str, str]:
        token = await self.auth.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": user_agent(self.version),
        }

    async def _request(
        self,
        state: ScanState,
        method: str,
        url: str,
        error_context: str,
        content: bytes | None = None,
    ) -> Any:
        """Send a request, retrying retryable statuses until the deadline.

        Returns:
            Decoded JSON body of the first non-retryable success
        """
        headers = await self._get_headers()

        while self._should_retry():
            attempt = state.next_attempt()
            try:
                response = await self.http_client.request(method, url, content=content, headers=headers)
            except httpx.HTTPError as e:
                logger.debug(f"Failed to {method} {url}: {e}")
                raise ScanError(500, f"{error_context} {e}") from e

            action = next_action(response.status_code, response.text, attempt)
            if isinstance(action, Retry):
                logger.debug(
                    f"{method} {url} returned {response.status_code}, retrying in {action.after}s"
                )
                await self._sleep(action.after)
                continue
            if isinstance(action, Fail):
                logger.debug(f"Failed to {method} {url}: {action.error.message}")
                raise ScanError(action.error.status_code, f"{error_context} {action.error.message}")

            try:
                return response.json()
            except ValueError as e:
                raise ScanError(500, f"{error_context} invalid JSON in response: {e}") from e

        raise ScanTimeoutError()

    def _validate_plan_size(self, plan: bytes) -> None:
        if len(plan) > SCAN_FILE_MAX_SIZE_BYTES:
            raise ScanError(
                400,
                f"[Invalid Request] Violations : Found Scan File with size : {len(plan)} Bytes, "
                f"Max limit : {SCAN_FILE_MAX_SIZE_BYTES} Bytes",
            )

    async def get_operation(self, name: str, state: ScanState | None = None) -> Operation:
        """Fetch an operation by name.

        Args:
            name: Operation name, of the format ``.../operations/{id}``
            state: Attempt counter of the enclosing scan
        """
        data = await self._request(
            state or ScanState(),
            "GET",
            f"{self.base_url}/{name}",
            POLL_ERROR_CONTEXT,
        )
        return parse_operation(data)

    async def _poll_operation(self, state: ScanState, name: str) -> Operation:
        while self._should_retry():
            interval = backoff_seconds(state.attempt)
            operation = await self.get_operation(name, state)
            if operation.done:
                return operation
            logger.debug(f"Operation {name} not done, polling again in {interval}s")
            await self._sleep(interval)

        raise ScanTimeoutError()

    async def _create_operation(self, state: ScanState, plan: bytes) -> Operation:
        self._validate_plan_size(plan)
        request = IaCRequest(
            parent=self.organization_id,
            iac=IaC(tf_plan=base64.b64encode(plan).decode("ascii")),
        )
        url = self.base_url + validate_endpoint_path(self.organization_id)

        logger.debug("Calling IaC validation service to start scanning")
        data = await self._request(
            state,
            "POST",
            url,
            SUBMIT_ERROR_CONTEXT,
            content=request.model_dump_json().encode("utf-8"),
        )
        operation = parse_operation(data)
        if not operation.name:
            raise ScanError(
                500,
                "[Internal Error] Validation Service Endpoint Returned operation without a name",
            )
        return operation

    async def scan_report(self, plan: bytes | str) -> IaCValidationReport:
        """Scan a plan file and return the full validation report.

        Args:
            plan: Plan file contents

        Returns:
            Report whose violations all carry a severity

        Raises:
            ScanError: Wrapping any failure, with the innermost status code
        """
        if isinstance(plan, str):
            plan = plan.encode("utf-8")

        logger.debug(f"IaC scanning invoked at: {self.scan_start_time}")
        state = ScanState()
        try:
            created = await self._create_operation(state, plan)
            logger.debug(f"Operation to start scanning created, name: {created.name}")

            # Polling gets its own attempt budget; only the deadline is shared
            state.reset()
            logger.debug("Polling IaC validation service for violations")
            operation = await self._poll_operation(state, created.name)

            report = validate_operation(operation)
            logger.debug("Received scanning response from IaC validation service")
            return normalize_report(report)
        except ScanTimeoutError as e:
            raise ScanTimeoutError(f"Failed to scan file due to following error: {e.message}") from e
        except ScanError as e:
            raise ScanError(
                e.status_code, f"Failed to scan file due to following error: {e.message}"
            ) from e
        except Exception as e:
            raise ScanError(500, f"Failed to scan file due to following error: {e}") from e

    async def scan(self, plan: bytes | str) -> list[Violation]:
        """Scan a plan file and return its violations."""
        report = await self.scan_report(plan)
        return list(report.violations or [])
