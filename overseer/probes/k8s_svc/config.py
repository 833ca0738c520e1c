"""Configuration for the Kubernetes service probe."""

import base64
import binascii
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, SecretStr, ValidationError

from overseer.probes.base import ProbeError
from overseer.probes.k8s_svc.models import Kubeconfig

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
KUBECONFIG_ENV_VAR = "KUBE_CONFIG_PATH"


class K8sConfig(BaseModel):
    """Location of and credentials for the Kubernetes API."""

    api_base_url: str = "https://kubernetes.default.svc"
    token: SecretStr = SecretStr("")
    ca_file: Path | None = None
    # PEM certificates, from certificate-authority-data
    ca_data: str | None = None
    # Only for clusters reached through a trusted proxy or in tests
    verify_tls: bool = True

    @classmethod
    def from_kubeconfig(cls, path: Path) -> "K8sConfig":
        """Read the server, token and CA of the current context of a kubeconfig file.

        Relative certificate and token paths are resolved against the
        directory holding the file. Client certificate authentication is
        not supported.

        Raises:
            ProbeError: If the file is unreadable, malformed or lacks the
                current context

        """
        try:
            with path.open() as f:
                content = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ProbeError(f"Failed to read kubeconfig {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ProbeError(f"Invalid kubeconfig {path}: {exc}") from exc

        try:
            cluster, user = Kubeconfig.model_validate(content).current()
        except (ValidationError, LookupError) as exc:
            raise ProbeError(f"Invalid kubeconfig {path}: {exc}") from exc

        base_dir = path.parent
        ca_file = None
        if cluster.certificate_authority:
            ca_file = base_dir / cluster.certificate_authority

        ca_data = None
        if cluster.certificate_authority_data:
            try:
                ca_data = base64.b64decode(
                    cluster.certificate_authority_data, validate=True
                ).decode()
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise ProbeError(
                    f"Invalid certificate-authority-data in {path}: {exc}"
                ) from exc

        token = user.token or ""
        if not token and user.token_file:
            token_path = base_dir / user.token_file
            try:
                token = token_path.read_text().strip()
            except OSError as exc:
                raise ProbeError(
                    f"Failed to read token file {token_path}: {exc}"
                ) from exc

        return cls(
            api_base_url=cluster.server,
            token=SecretStr(token),
            ca_file=ca_file,
            ca_data=ca_data,
            verify_tls=not cluster.insecure_skip_tls_verify,
        )

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] = os.environ,
        account_dir: Path = SERVICE_ACCOUNT_DIR,
    ) -> "K8sConfig":
        """Locate the API, in order of preference.

        1. The kubeconfig file named by $KUBE_CONFIG_PATH
        2. $KUBE_API_URL and $KUBE_TOKEN
        3. The in-cluster service account

        Raises:
            ProbeError: If none is available

        """
        if kubeconfig := environ.get(KUBECONFIG_ENV_VAR):
            return cls.from_kubeconfig(Path(kubeconfig))

        if api_url := environ.get("KUBE_API_URL"):
            return cls(
                api_base_url=api_url,
                token=SecretStr(environ.get("KUBE_TOKEN", "")),
                verify_tls=environ.get("KUBE_INSECURE", "") != "true",
            )

        host = environ.get("KUBERNETES_SERVICE_HOST")
        token_file = account_dir / "token"
        if not host or not token_file.exists():
            raise ProbeError(
                "Not running inside a cluster and neither KUBE_CONFIG_PATH "
                "nor KUBE_API_URL is set"
            )

        if ":" in host:
            host = f"[{host}]"
        port = environ.get("KUBERNETES_SERVICE_PORT", "443")
        ca_file = account_dir / "ca.crt"
        return cls(
            api_base_url=f"https://{host}:{port}",
            token=SecretStr(token_file.read_text().strip()),
            ca_file=ca_file if ca_file.exists() else None,
        )
