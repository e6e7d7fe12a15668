# /*
# Copyright 2026 The Mesh Sandbox Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Ingress readiness: wait for a load balancer address, then probe it once.

The load balancer address of the ingress gateway is assigned asynchronously
by whichever provider runs next to the cluster, so :func:`await_endpoint`
retries the lookup on a fixed schedule. Once an address is known a single
HTTP request (:func:`validate_http_response`) confirms the application is
answering; that probe is never retried.
"""

from __future__ import annotations

import enum
import json
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

import requests
from rich.panel import Panel
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from mesh_sandbox import console, logger
from mesh_sandbox.config import AppConfig
from mesh_sandbox.constants import DEFAULT_PROBE_MARKER, INGRESS_GATEWAY_SERVICE, NS_ISTIO_SYSTEM
from mesh_sandbox.utils import run_kubectl


class ReadinessState(enum.Enum):
    """Where an ingress readiness check stands."""

    AWAITING_ADDRESS = "awaiting-address"
    PROBING = "probing"
    READY = "ready"
    TIMED_OUT = "timed-out"
    PROBE_FAILED = "probe-failed"


# ============================================================================
# Errors
# ============================================================================

class EndpointNotReady(Exception):
    """The lookup ran but the endpoint has no address yet."""


class EndpointTimeoutError(TimeoutError):
    """No address was found within the attempt budget.

    Attributes:
        attempts: Number of lookups performed.
        waited: Total seconds spent sleeping between lookups.
    """

    state = ReadinessState.TIMED_OUT

    def __init__(self, attempts: int, waited: float, description: str = "endpoint") -> None:
        self.attempts = attempts
        self.waited = waited
        super().__init__(
            f"Timed out waiting for {description} address after {attempts} attempts "
            f"({waited:g}s of waiting)"
        )


class ProbeValidationError(Exception):
    """The probe request ran but the expected response was not seen.

    Attributes:
        url: URL that was requested.
        reason: Which condition was not met.
        hint: Suggested next step for the operator, if any.
    """

    state = ReadinessState.PROBE_FAILED

    def __init__(self, url: str, reason: str, hint: str | None = None) -> None:
        self.url = url
        self.reason = reason
        self.hint = hint
        message = f"Validation of {url} failed: {reason}"
        if hint:
            message += f" (hint: {hint})"
        super().__init__(message)


# ============================================================================
# Polling
# ============================================================================

def await_endpoint(
    lookup: Callable[[], str | None],
    max_attempts: int,
    delay: float,
    *,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "endpoint",
) -> str:
    """Call *lookup* until it yields an address or the attempt budget runs out.

    Any exception raised by *lookup* counts as "no address yet". There is no
    sleep after the attempt that finds the address, nor after the last one.

    Args:
        lookup: Returns the address, or None/empty while it is not assigned.
        max_attempts: Total number of lookups allowed (at least 1).
        delay: Seconds to sleep between lookups.
        sleep: Sleep function, replaceable for tests.
        description: What is being waited for, used in messages.

    Returns:
        The first non-empty address returned by *lookup*.

    Raises:
        ValueError: If *max_attempts* is less than 1.
        EndpointTimeoutError: If every lookup came back empty.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    waited = 0.0

    def _sleep(seconds: float) -> None:
        nonlocal waited
        waited += seconds
        sleep(seconds)

    def _attempt() -> str:
        address = lookup()
        if not address:
            raise EndpointNotReady(f"{description} has no address yet")
        return address

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug("%s lookup attempt %d failed: %s", description, retry_state.attempt_number, exc)
        console.print(
            f"[yellow]   {description} not ready (attempt {retry_state.attempt_number}/{max_attempts}), "
            f"retrying in {delay:g}s...[/yellow]"
        )

    retryer = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        retry=retry_if_exception_type(Exception),
        before_sleep=_before_sleep,
        sleep=_sleep,
    )
    try:
        return retryer(_attempt)
    except RetryError as err:
        raise EndpointTimeoutError(err.last_attempt.attempt_number, waited, description) from err


def lookup_ingress_address(
    namespace: str = NS_ISTIO_SYSTEM,
    service: str = INGRESS_GATEWAY_SERVICE,
) -> str | None:
    """Return the load balancer IP (or hostname) of *service*, if assigned.

    Args:
        namespace: Namespace of the gateway service.
        service: Name of the gateway service.

    Returns:
        The first ingress IP or hostname, or None while none is assigned or
        the service cannot be read.
    """
    ok, stdout, stderr = run_kubectl(["get", "svc", service, "-n", namespace, "-o", "json"])
    if not ok:
        logger.debug("kubectl get svc %s failed: %s", service, stderr.strip())
        return None
    ingress = json.loads(stdout).get("status", {}).get("loadBalancer", {}).get("ingress") or []
    if not ingress:
        return None
    return ingress[0].get("ip") or ingress[0].get("hostname") or None


# ============================================================================
# Probe
# ============================================================================

def validate_http_response(
    address: str,
    path: str,
    timeout: float,
    marker: str = DEFAULT_PROBE_MARKER,
) -> str:
    """Issue a single GET against ``http://<address>/<path>`` and extract *marker*.

    Args:
        address: Host or IP to probe.
        path: Request path, with or without a leading slash.
        timeout: Request timeout in seconds.
        marker: Regular expression the body must contain.

    Returns:
        The first substring of the body matching *marker*.

    Raises:
        ProbeValidationError: If the request fails or times out, or the body
            does not contain *marker*.
    """
    url = f"http://{address}/{path.lstrip('/')}"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.Timeout as err:
        raise ProbeValidationError(
            url, f"no response within {timeout:g}s",
            hint="the gateway may still be starting; try again shortly",
        ) from err
    except requests.RequestException as err:
        raise ProbeValidationError(
            url, f"connection failed: {err}",
            hint="check that the load balancer address is reachable from this host",
        ) from err

    match = re.search(marker, response.text)
    if match is None:
        raise ProbeValidationError(
            url, f"HTTP {response.status_code} response does not contain {marker!r}",
            hint="check the Bookinfo gateway and virtual service with 'kubectl get gateway,virtualservice'",
        )
    return match.group(0)


# ============================================================================
# Ingress verification
# ============================================================================

@dataclass(frozen=True)
class IngressReadiness:
    """Outcome of a successful ingress check."""

    address: str
    marker: str
    state: ReadinessState = ReadinessState.READY

    @property
    def url(self) -> str:
        return f"http://{self.address}"


def verify_ingress(
    app_cfg: AppConfig,
    lookup: Callable[[], str | None] = lookup_ingress_address,
    sleep: Callable[[float], None] = time.sleep,
) -> IngressReadiness:
    """Wait for the ingress gateway address, then probe the application once.

    Args:
        app_cfg: Application config with polling and probe settings.
        lookup: Address lookup, defaults to the Istio ingress gateway.
        sleep: Sleep function, replaceable for tests.

    Returns:
        The discovered address and the extracted marker.

    Raises:
        EndpointTimeoutError: If no address was assigned in time.
        ProbeValidationError: If the application did not answer as expected.
    """
    console.print(Panel.fit("Verifying ingress", style="bold blue"))

    logger.info("readiness: %s", ReadinessState.AWAITING_ADDRESS.value)
    address = await_endpoint(
        lookup,
        app_cfg.lb_max_attempts,
        app_cfg.lb_poll_interval_seconds,
        sleep=sleep,
        description=INGRESS_GATEWAY_SERVICE,
    )
    console.print(f"[green]\u2705 Load balancer address: {address}[/green]")

    logger.info("readiness: %s", ReadinessState.PROBING.value)
    marker = validate_http_response(
        address, app_cfg.probe_path, app_cfg.probe_timeout_seconds, app_cfg.probe_marker,
    )
    console.print(f"[green]\u2705 Application answered with {marker}[/green]")

    logger.info("readiness: %s", ReadinessState.READY.value)
    return IngressReadiness(address=address, marker=marker)
