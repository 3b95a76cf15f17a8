import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from src.webhook import cli as webhook_cli
from src.webhook.config import ServerOptions

POLICY = [
    {
        "ingressName": "test-ingress",
        "defaultAnnotations": {
            "ingress.citrix.com/secure-port": "4443",
            "ingress.citrix.com/insecure-port": "81",
        },
    }
]

INGRESS_MANIFEST = """\
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: test-ingress
  annotations:
    ingress.citrix.com/secure-port: "9443"
spec:
  defaultBackend:
    service:
      name: web
      port:
        number: 80
"""


class WebhookCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.base = Path(self.tmpdir.name)
        self.policy_path = self.base / "default-annotations.json"
        self.policy_path.write_text(json.dumps(POLICY), encoding="utf-8")
        self.manifest_path = self.base / "ingress.yaml"
        self.manifest_path.write_text(INGRESS_MANIFEST, encoding="utf-8")

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_show_policy_prints_parsed_table(self) -> None:
        result = self.runner.invoke(webhook_cli.app, ["show-policy", "--policy", str(self.policy_path)])
        self.assertEqual(result.exit_code, 0, result.output)
        table = json.loads(result.output)
        self.assertEqual(table[0]["targetName"], "test-ingress")

    def test_show_policy_rejects_invalid_document(self) -> None:
        bad = self.base / "bad.json"
        bad.write_text(json.dumps([{"targetName": "x", "defaultAnnotations": {"port": 1}}]), encoding="utf-8")
        result = self.runner.invoke(webhook_cli.app, ["show-policy", "--policy", str(bad)])
        self.assertNotEqual(result.exit_code, 0)

    def test_preview_applies_defaults(self) -> None:
        result = self.runner.invoke(
            webhook_cli.app,
            ["preview", "--policy", str(self.policy_path), "--manifest", str(self.manifest_path)],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        body = json.loads(result.output)
        self.assertTrue(body["mutate"])
        self.assertEqual(body["namespace"], "default")
        annotations = body["manifest"]["metadata"]["annotations"]
        self.assertEqual(annotations["ingress.citrix.com/secure-port"], "4443")
        self.assertEqual(annotations["ingress.citrix.com/insecure-port"], "81")
        self.assertEqual(body["manifest"]["spec"]["defaultBackend"]["service"]["name"], "web")

    def test_preview_in_system_namespace_skips(self) -> None:
        result = self.runner.invoke(
            webhook_cli.app,
            [
                "preview",
                "--policy",
                str(self.policy_path),
                "--manifest",
                str(self.manifest_path),
                "--namespace",
                "kube-system",
            ],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        body = json.loads(result.output)
        self.assertFalse(body["mutate"])
        self.assertNotIn("patch", body)

    def test_serve_refuses_to_start_without_tls_files(self) -> None:
        with mock.patch.object(webhook_cli.uvicorn, "run") as run:
            result = self.runner.invoke(
                webhook_cli.app,
                [
                    "serve",
                    "--tls-cert-file",
                    str(self.base / "missing-cert.pem"),
                    "--tls-key-file",
                    str(self.base / "missing-key.pem"),
                    "--annotation-cfg-file",
                    str(self.policy_path),
                ],
            )
        self.assertEqual(result.exit_code, 1)
        run.assert_not_called()

    def test_serve_runs_uvicorn_with_tls(self) -> None:
        cert = self.base / "cert.pem"
        key = self.base / "key.pem"
        cert.write_text("cert", encoding="utf-8")
        key.write_text("key", encoding="utf-8")
        with mock.patch.object(webhook_cli.uvicorn, "run") as run, mock.patch.object(
            webhook_cli.signal, "signal"
        ):
            result = self.runner.invoke(
                webhook_cli.app,
                [
                    "serve",
                    "--port",
                    "8443",
                    "--tls-cert-file",
                    str(cert),
                    "--tls-key-file",
                    str(key),
                    "--annotation-cfg-file",
                    str(self.policy_path),
                ],
            )
        self.assertEqual(result.exit_code, 0, result.output)
        kwargs = run.call_args.kwargs
        self.assertEqual(kwargs["port"], 8443)
        self.assertEqual(kwargs["ssl_certfile"], str(cert))
        self.assertEqual(kwargs["ssl_keyfile"], str(key))


class ServerOptionsTests(unittest.TestCase):
    def test_defaults_match_deployment_layout(self) -> None:
        options = ServerOptions.from_env({})
        self.assertEqual(options.port, 443)
        self.assertEqual(options.annotation_cfg_file, "/etc/config/default-annotations.json")
        self.assertEqual(options.excluded_namespaces, frozenset({"kube-system", "kube-public"}))
        self.assertFalse(options.stamp_status)

    def test_environment_overrides(self) -> None:
        options = ServerOptions.from_env(
            {
                "WEBHOOK_PORT": "8443",
                "WEBHOOK_EXCLUDED_NAMESPACES": "kube-system, ingress-system",
                "WEBHOOK_STAMP_STATUS": "true",
                "WEBHOOK_RESOURCE_KIND": "Service",
                "WEBHOOK_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(options.port, 8443)
        self.assertEqual(options.excluded_namespaces, frozenset({"kube-system", "ingress-system"}))
        self.assertTrue(options.stamp_status)
        self.assertEqual(options.resource_kind, "Service")
        self.assertEqual(options.log_level, "DEBUG")

    def test_invalid_port_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ServerOptions.from_env({"WEBHOOK_PORT": "https"})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
