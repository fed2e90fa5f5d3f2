from __future__ import annotations

import logging
from collections.abc import Mapping

import requests

from nisqa.errors import RemoteServiceError, RuleEngineUnavailableError, RuleEvaluationError
from nisqa.rules.interfaces import RuleSet
from nisqa.util.http import HttpClient

LOGGER = logging.getLogger(__name__)


class HttpRuleOracle:
    """Rule oracle living in a separate rule-engine service.

    ``PUT {url}/rule-sets/{id}`` registers a rule set, ``DELETE`` on the same
    path drops it, and ``POST {url}/query`` answers ``{"result": ...}`` for a
    rule and a string binding.
    """

    def __init__(self, client: HttpClient) -> None:
        self.client = client

    def activate(self, rule_set: RuleSet) -> None:
        response = self._send(
            "PUT", f"rule-sets/{rule_set.id}", {"rules": list(rule_set.rules)}
        )
        if not response.ok:
            raise RuleEvaluationError(
                f"rule engine rejected rule set `{rule_set.id}` (HTTP {response.status_code})"
            )

    def deactivate(self, rule_set_id: str) -> None:
        response = self._send("DELETE", f"rule-sets/{rule_set_id}", None)
        if response.status_code == 404:
            return
        if not response.ok:
            raise RuleEvaluationError(
                f"rule engine could not drop rule set `{rule_set_id}` (HTTP {response.status_code})"
            )

    def query(self, rule: str, binding: Mapping[str, str]) -> bool | int | float:
        response = self._send("POST", "query", {"rule": rule, "binding": dict(binding)})
        if not response.ok:
            raise RuleEvaluationError(
                f"rule engine could not evaluate `{rule}` (HTTP {response.status_code})"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RuleEvaluationError(f"rule engine answered non-JSON for `{rule}`") from exc
        if not isinstance(payload, Mapping) or "result" not in payload:
            raise RuleEvaluationError(f"rule engine answer for `{rule}` has no `result` field")
        result = payload["result"]
        if not isinstance(result, (bool, int, float)):
            raise RuleEvaluationError(f"rule engine answered {result!r} for `{rule}`")
        return result

    def _send(self, method: str, path: str, body: object) -> requests.Response:
        try:
            return self.client.request(method, path, json=body)
        except RemoteServiceError as exc:
            LOGGER.error("Rule engine at %s is unreachable: %s", self.client.base_url, exc)
            raise RuleEngineUnavailableError(
                f"rule engine at {self.client.base_url} is unreachable: {exc.message}"
            ) from exc
