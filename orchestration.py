#!/usr/bin/env python3
"""
Orchestration metadata derived from the environment a scheduler injects.

Two different lookups live here and must stay separate:
- pod_info() reads a fixed set of variables and fills gaps with a sentinel.
- kubernetes_info() scans every variable name against prefix/substring rules.
"""

from dataclasses import dataclass
from typing import Dict

from fact_aggregators import safe_read

UNAVAILABLE = "No disponible"

K8S_PREFIX = "KUBERNETES_"
K8S_SUBSTRINGS = ("SERVICE_", "POD_")


@dataclass(frozen=True)
class PodInfo:
    hostname: str
    pod_name: str
    pod_namespace: str
    pod_ip: str
    node_name: str
    service_name: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "hostname": self.hostname,
            "podName": self.pod_name,
            "podNamespace": self.pod_namespace,
            "podIP": self.pod_ip,
            "nodeName": self.node_name,
            "serviceName": self.service_name,
        }

    def summary(self) -> Dict[str, str]:
        """The identity fields shown on the index page."""
        data = self.to_dict()
        del data["serviceName"]
        return data


def _or_unavailable(environ, key):
    return environ.get(key) or UNAVAILABLE


def pod_info(provider) -> PodInfo:
    environ = safe_read(provider, "environ", {})
    return PodInfo(
        hostname=safe_read(provider, "hostname") or UNAVAILABLE,
        pod_name=_or_unavailable(environ, "POD_NAME"),
        pod_namespace=_or_unavailable(environ, "POD_NAMESPACE"),
        pod_ip=_or_unavailable(environ, "POD_IP"),
        node_name=_or_unavailable(environ, "NODE_NAME"),
        service_name=_or_unavailable(environ, "SERVICE_NAME"),
    )


def is_kubernetes_var(name: str) -> bool:
    return name.startswith(K8S_PREFIX) or any(part in name for part in K8S_SUBSTRINGS)


def kubernetes_info(provider) -> Dict[str, str]:
    """Every environment variable that looks like cluster or service wiring."""
    environ = safe_read(provider, "environ", {})
    return {key: value for key, value in environ.items() if is_kubernetes_var(key)}
