from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Collection, Mapping
from typing import Any

from nisqa.catalog.types import Binding, DataType, Implementation, Parameter, Target
from nisqa.errors import RemoteServiceError
from nisqa.targeting.interfaces import ExecutionReporter, PluginBundle
from nisqa.targeting.types import CircuitInformation
from nisqa.util.http import HttpClient, json_body
from nisqa.util.polling import poll_until

LOGGER = logging.getLogger(__name__)


class ServiceCapabilityPlugin:
    """Capability plugin backed by a transpilation/execution web service.

    The service transpiles with ``POST /transpile`` and starts executions with
    ``POST /execute``, answering the location of a result resource that is
    polled until it reports ``complete``.
    """

    def __init__(
        self,
        name: str,
        client: HttpClient,
        *,
        ecosystems: Collection[str],
        parameters: Collection[str] = (),
        poll_interval: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._name = name
        self.client = client
        self._ecosystems = tuple(sorted({ecosystem.lower() for ecosystem in ecosystems}))
        self._parameters = tuple(
            Parameter(name=param, type=DataType.string, description=f"Parameter for the {name} service")
            for param in parameters
        )
        self.poll_interval = poll_interval
        self._sleep = sleep

    @property
    def plugin_id(self) -> str:
        return self._name

    @property
    def display_name(self) -> str:
        return f"{self._name} service"

    def supported_ecosystems(self) -> Collection[str]:
        return self._ecosystems

    def required_parameters(self) -> Collection[Parameter]:
        return self._parameters

    def analyze(
        self, implementation: Implementation, target: Target, binding: Binding
    ) -> CircuitInformation:
        request = _request_body(implementation, target, binding)
        try:
            response = self.client.request("POST", "transpile", json=request)
            payload = json_body(response, f"{self.display_name} transpile")
            if not isinstance(payload, Mapping):
                raise RemoteServiceError(f"{self.display_name} transpile: expected a JSON object")
            return CircuitInformation.from_payload(payload)
        except (RemoteServiceError, ValueError) as exc:
            LOGGER.warning(
                "Transpiling %s for %s with %s failed: %s",
                implementation.id,
                target.id,
                self.display_name,
                exc,
            )
            return CircuitInformation.failure(str(exc))

    def execute(
        self,
        implementation: Implementation,
        target: Target,
        binding: Binding,
        reporter: ExecutionReporter,
    ) -> None:
        request = _request_body(implementation, target, binding)
        try:
            response = self.client.request("POST", "execute", json=request)
        except RemoteServiceError as exc:
            LOGGER.error("Connection to %s failed: %s", self.display_name, exc)
            reporter.failed(f"Connection to {self.display_name} failed.")
            return
        location = response.headers.get("Location")
        if not response.ok or not location:
            LOGGER.error(
                "%s did not accept the execution (HTTP %d)", self.display_name, response.status_code
            )
            reporter.failed(f"Connection to {self.display_name} failed.")
            return

        reporter.running(f"Pending for execution on {self.display_name} ...")

        def fetch() -> Mapping[str, Any] | None:
            payload = json_body(self.client.request("GET", location), f"{self.display_name} poll")
            if not isinstance(payload, Mapping):
                raise RemoteServiceError(f"{self.display_name} poll: expected a JSON object")
            return payload if payload.get("complete") else None

        # failures while polling propagate and fail the record
        payload = poll_until(fetch, interval=self.poll_interval, sleep=self._sleep)
        assert payload is not None
        shots = payload.get("shots", 0)
        if isinstance(shots, bool) or not isinstance(shots, int):
            raise RemoteServiceError(f"{self.display_name} answered a non-integer shot count")
        result = payload.get("result")
        reporter.finished(result if isinstance(result, str) else json.dumps(result), shots)


def service_plugin_bundle(
    services: Mapping[str, Any], *, sleep: Callable[[float], None] = time.sleep
) -> PluginBundle:
    """Build one :class:`ServiceCapabilityPlugin` per configured service.

    ``services`` maps a plugin name to an object with ``url``, ``ecosystems``,
    ``parameters``, ``poll_interval`` and ``timeout`` attributes.
    """
    plugins = [
        ServiceCapabilityPlugin(
            name,
            HttpClient(service.url, timeout=service.timeout),
            ecosystems=service.ecosystems,
            parameters=service.parameters,
            poll_interval=service.poll_interval,
            sleep=sleep,
        )
        for name, service in sorted(services.items())
    ]
    return PluginBundle(plugins=plugins)


def _request_body(implementation: Implementation, target: Target, binding: Binding) -> dict[str, object]:
    return {
        "impl_url": implementation.file_location,
        "impl_language": implementation.ecosystem,
        "qpu_name": target.name,
        "provider": target.provider,
        "input_params": {
            name: {"type": value.type.value, "rawValue": value.raw}
            for name, value in binding.items()
        },
    }
