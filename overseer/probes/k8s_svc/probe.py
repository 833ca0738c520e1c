"""Kubernetes service probe implementation."""

import logging
import ssl
from collections.abc import Callable, Mapping
from dataclasses import dataclass

import aiohttp

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test
from overseer.probes.base import Probe, ProbeError
from overseer.probes.k8s_svc.config import K8sConfig
from overseer.probes.k8s_svc.models import Endpoints

log = logging.getLogger(__name__)

DEFAULT_MIN_ENDPOINTS = 1


def split_service(target: str) -> tuple[str, str]:
    """Split a ``namespace/service`` target."""
    namespace, sep, service = target.partition("/")
    if not sep or not namespace or not service or "/" in service:
        raise ProbeError(
            f"not a valid namespace-name/service-name target provided: {target}"
        )
    return namespace, service


@dataclass(frozen=True, kw_only=True)
class K8sServiceProbe(Probe):
    """Checks that a service has at least ``min-endpoints`` ready addresses."""

    config_loader: Callable[[], K8sConfig] = K8sConfig.from_environment

    def arguments(self) -> Mapping[str, str]:
        return {"min-endpoints": r"^[0-9]+$"}

    def should_resolve_hostname(self) -> bool:
        return False

    def example(self) -> str:
        return """
K8SSvc Tester
-------------
 The Kubernetes service tester checks that a k8s service has at least
 the specified number of endpoints (default >= 1).

 This test is invoked via input like so:

    namespace-name/service-name must run k8s-svc

 The number of min endpoints that need to be available can be set with:

    # Requires minimum 2 endpoints to be available for the test to succeed
    namespace-name/service-name must run k8s-svc with min-endpoints 2

 Outside a cluster, set KUBE_CONFIG_PATH to a kubeconfig file, or
 KUBE_API_URL and KUBE_TOKEN.
"""

    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        namespace, service = split_service(target)
        minimum = self.int_argument(test, "min-endpoints", DEFAULT_MIN_ENDPOINTS)

        endpoints = await self.fetch_endpoints(
            self.config_loader(), namespace, service, options.timeout
        )

        if endpoints.ready_count < minimum:
            raise ProbeError(
                f"number of available endpoints ({endpoints.ready_count}) "
                f"is lower than min defined ({minimum})"
            )

    async def fetch_endpoints(
        self, config: K8sConfig, namespace: str, service: str, timeout: float
    ) -> Endpoints:
        """Read the Endpoints object of a service."""
        headers = {"Accept": "application/json"}
        if token := config.token.get_secret_value():
            headers["Authorization"] = f"Bearer {token}"

        tls: ssl.SSLContext | bool = config.verify_tls
        if config.verify_tls and (config.ca_file or config.ca_data):
            tls = ssl.create_default_context(
                cafile=str(config.ca_file) if config.ca_file else None,
                cadata=config.ca_data,
            )

        url = f"/api/v1/namespaces/{namespace}/endpoints/{service}"
        log.debug("Reading %s from %s", url, config.api_base_url)

        async with aiohttp.ClientSession(
            base_url=config.api_base_url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as session:
            async with session.get(url, ssl=tls) as response:
                if response.status != 200:
                    text = await response.text()
                    raise ProbeError(
                        f"Failed to read endpoints of {namespace}/{service}: "
                        f"{response.status} {text}"
                    )
                data = await response.json()

        return Endpoints.model_validate(data)
