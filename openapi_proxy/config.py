"""Proxy configuration.

Built once at startup, usually from the environment, and passed explicitly
to the context builder, request builder and dispatcher.

Environment variables:
  OPENAPI_PROXY_BASE_URL     target origin (required by from_env)
  OPENAPI_PROXY_ORG_ID       organization-scope identifier
  OPENAPI_PROXY_ORG_HEADER   header carrying it (default X-Org-Id)
  OPENAPI_PROXY_ORG_HEADER_ALWAYS  "1" to send that header on every request
  OPENAPI_PROXY_TIMEOUT      request timeout in seconds; "none" disables it
  OPENAPI_PROXY_TAG_PREFIX   "1" to register one tool per tag as {tag}_{operationId}
  OPENAPI_PROXY_ON_CONFLICT  overwrite | error | suffix
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .models import FamilyPolicy
from .registry import ConflictPolicy

DEFAULT_ORG_HEADER = "X-Org-Id"
DEFAULT_TIMEOUT = 30.0

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ProxyConfig:
    base_url: str
    org_id: str | None = None
    org_header: str = DEFAULT_ORG_HEADER
    org_header_always: bool = False
    timeout: float | None = DEFAULT_TIMEOUT
    tag_prefix: bool = False
    on_conflict: ConflictPolicy = "overwrite"
    family_policies: tuple[FamilyPolicy, ...] = ()

    def policy_for(self, path: str) -> FamilyPolicy | None:
        """First family policy matching a path template."""
        for policy in self.family_policies:
            if policy.matches(path):
                return policy
        return None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        family_policies: tuple[FamilyPolicy, ...] = (),
    ) -> ProxyConfig:
        env = os.environ if environ is None else environ
        base_url = env.get("OPENAPI_PROXY_BASE_URL", "").strip()
        if not base_url:
            raise ValueError("OPENAPI_PROXY_BASE_URL must be set")

        raw_timeout = env.get("OPENAPI_PROXY_TIMEOUT", "").strip().lower()
        if raw_timeout in ("none", "0"):
            timeout = None
        elif raw_timeout:
            timeout = float(raw_timeout)
        else:
            timeout = DEFAULT_TIMEOUT

        on_conflict = env.get("OPENAPI_PROXY_ON_CONFLICT", "overwrite").strip().lower()
        if on_conflict not in ("overwrite", "error", "suffix"):
            raise ValueError(f"OPENAPI_PROXY_ON_CONFLICT must be overwrite, error or suffix, not {on_conflict!r}")

        return cls(
            base_url=base_url.rstrip("/"),
            org_id=env.get("OPENAPI_PROXY_ORG_ID") or None,
            org_header=env.get("OPENAPI_PROXY_ORG_HEADER") or DEFAULT_ORG_HEADER,
            org_header_always=env.get("OPENAPI_PROXY_ORG_HEADER_ALWAYS", "").strip().lower() in _TRUE,
            timeout=timeout,
            tag_prefix=env.get("OPENAPI_PROXY_TAG_PREFIX", "").strip().lower() in _TRUE,
            on_conflict=on_conflict,
            family_policies=family_policies,
        )
