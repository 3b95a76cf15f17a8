from __future__ import annotations

import json
import logging
import os
import signal
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import uvicorn
import yaml

from src.common.errors import ConfigError, PatchError, UnmarshalError
from src.mutator.decision import EXCLUDED_NAMESPACES, should_mutate
from src.mutator.patch import apply_patch, build_patch
from src.policy.table import PolicyStore, read_policy_document

from .config import ServerOptions, parse_namespaces
from .review import describe_object
from .server import create_app

logger = logging.getLogger(__name__)

app = typer.Typer(help="Mutating admission webhook applying default annotations to named Ingresses.")


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(levelname)s: %(message)s")


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", help="Webhook server port."),
    tls_cert_file: Optional[Path] = typer.Option(
        None,
        "--tls-cert-file",
        help="File containing the x509 Certificate for HTTPS.",
    ),
    tls_key_file: Optional[Path] = typer.Option(
        None,
        "--tls-key-file",
        help="File containing the x509 private key to --tls-cert-file.",
    ),
    annotation_cfg_file: Optional[Path] = typer.Option(
        None,
        "--annotation-cfg-file",
        help="File containing default annotations for each named ingress.",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    excluded_namespaces: Optional[str] = typer.Option(
        None,
        "--excluded-namespaces",
        help="Comma separated namespaces that are never mutated.",
    ),
    stamp_status: Optional[bool] = typer.Option(
        None,
        "--stamp-status/--no-stamp-status",
        help="Also set the status annotation to 'mutated' in every patch.",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    options = ServerOptions.from_env()
    overrides: Dict[str, Any] = {}
    if port is not None:
        overrides["port"] = port
    if tls_cert_file is not None:
        overrides["tls_cert_file"] = str(tls_cert_file)
    if tls_key_file is not None:
        overrides["tls_key_file"] = str(tls_key_file)
    if annotation_cfg_file is not None:
        overrides["annotation_cfg_file"] = str(annotation_cfg_file)
    if host is not None:
        overrides["host"] = host
    if excluded_namespaces is not None:
        overrides["excluded_namespaces"] = parse_namespaces(excluded_namespaces)
    if stamp_status is not None:
        overrides["stamp_status"] = stamp_status
    if log_level is not None:
        overrides["log_level"] = log_level.upper()
    options = replace(options, **overrides)
    _configure_logging(options.log_level)

    for label, path in (("certificate", options.tls_cert_file), ("key", options.tls_key_file)):
        if not os.access(path, os.R_OK):
            logger.error("Failed to load key pair: TLS %s file %s is not readable", label, path)
            raise typer.Exit(code=1)

    store = PolicyStore(options.annotation_cfg_file)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda _signum, _frame: store.reload())

    logger.info("Server started on %s:%d", options.host, options.port)
    uvicorn.run(
        create_app(options=options, store=store),
        host=options.host,
        port=options.port,
        ssl_certfile=options.tls_cert_file,
        ssl_keyfile=options.tls_key_file,
        log_level=options.log_level.lower(),
    )


@app.command("show-policy")
def show_policy(
    policy: Path = typer.Option(
        Path("/etc/config/default-annotations.json"),
        "--policy",
        "-p",
        help="Policy document (JSON or YAML).",
    ),
) -> None:
    try:
        table = read_policy_document(policy)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(json.dumps(table.to_list(), indent=2))


@app.command()
def preview(
    policy: Path = typer.Option(..., "--policy", "-p", help="Policy document (JSON or YAML)."),
    manifest: Path = typer.Option(..., "--manifest", "-m", help="Resource manifest to evaluate."),
    namespace: str = typer.Option(
        "default",
        "--namespace",
        "-n",
        help="Namespace assumed when the manifest does not set one.",
    ),
    stamp_status: bool = typer.Option(
        False,
        "--stamp-status/--no-stamp-status",
        help="Also set the status annotation to 'mutated' in the patch.",
    ),
) -> None:
    try:
        table = read_policy_document(policy)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    document = _load_manifest(manifest)
    try:
        descriptor = describe_object(document, fallback_namespace=namespace)
    except UnmarshalError as exc:
        raise typer.BadParameter(str(exc)) from exc

    required = should_mutate(
        descriptor.namespace,
        descriptor.name,
        descriptor.annotations,
        EXCLUDED_NAMESPACES,
        table,
    )
    result: Dict[str, Any] = {"name": descriptor.name, "namespace": descriptor.namespace, "mutate": required}
    if required:
        patch = build_patch(descriptor.name, descriptor.annotations, table, stamp_status=stamp_status)
        try:
            patched = apply_patch(document, patch)
        except PatchError as exc:
            raise typer.BadParameter(str(exc)) from exc
        result["patch"] = patch
        result["manifest"] = patched
    typer.echo(json.dumps(result, indent=2))


def _load_manifest(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            documents = [doc for doc in yaml.safe_load_all(handle) if doc is not None]
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Manifest file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise typer.BadParameter(f"Manifest is not valid YAML: {exc}") from exc
    if not documents or not isinstance(documents[0], dict):
        raise typer.BadParameter("Manifest must contain a mapping")
    return documents[0]


if __name__ == "__main__":  # pragma: no cover
    app()
