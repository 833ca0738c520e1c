"""Kubernetes service endpoint-count probe module."""

from overseer.probes.k8s_svc.config import K8sConfig
from overseer.probes.k8s_svc.probe import K8sServiceProbe

__all__ = ["K8sConfig", "K8sServiceProbe"]
