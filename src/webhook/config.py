from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from src.mutator.decision import EXCLUDED_NAMESPACES

from .review import DEFAULT_RESOURCE_KIND

ENV_PREFIX = "WEBHOOK_"
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class ServerOptions:
    port: int = 443
    tls_cert_file: str = "/etc/webhook/certs/cert.pem"
    tls_key_file: str = "/etc/webhook/certs/key.pem"
    annotation_cfg_file: str = "/etc/config/default-annotations.json"
    host: str = "0.0.0.0"
    resource_kind: str = DEFAULT_RESOURCE_KIND
    excluded_namespaces: FrozenSet[str] = field(default_factory=lambda: EXCLUDED_NAMESPACES)
    stamp_status: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerOptions":
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> Optional[str]:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value if value else None

        port = get("PORT")
        namespaces = get("EXCLUDED_NAMESPACES")
        stamp = get("STAMP_STATUS")
        try:
            port_value = int(port) if port is not None else defaults.port
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}PORT must be an integer, got {port!r}") from exc
        return cls(
            port=port_value,
            tls_cert_file=get("TLS_CERT_FILE") or defaults.tls_cert_file,
            tls_key_file=get("TLS_KEY_FILE") or defaults.tls_key_file,
            annotation_cfg_file=get("ANNOTATION_CFG_FILE") or defaults.annotation_cfg_file,
            host=get("HOST") or defaults.host,
            resource_kind=get("RESOURCE_KIND") or defaults.resource_kind,
            excluded_namespaces=(
                parse_namespaces(namespaces) if namespaces is not None else defaults.excluded_namespaces
            ),
            stamp_status=stamp.strip().lower() in _TRUE_VALUES if stamp is not None else defaults.stamp_status,
            log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
        )


def parse_namespaces(value: str) -> FrozenSet[str]:
    return frozenset(part.strip() for part in value.split(",") if part.strip())


__all__ = ["ENV_PREFIX", "ServerOptions", "parse_namespaces"]
