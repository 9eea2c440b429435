#!/usr/bin/env python3
"""
Fact Aggregators
Shape raw provider reads into the JSON records served by the web agent.

Each aggregator takes a PlatformFactsProvider and returns a frozen snapshot.
Aggregators are total: when a provider read fails, the failure is logged and a
placeholder is used instead of raising to the caller.
"""

import ipaddress
import logging
import math
import socket
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

# Variables exposed by /env, in response order
RELEVANT_ENV_VARS = (
    "HOSTNAME",
    "KUBERNETES_SERVICE_HOST",
    "KUBERNETES_SERVICE_PORT",
    "KUBERNETES_PORT",
    "KUBERNETES_PORT_443_TCP",
    "KUBERNETES_PORT_443_TCP_ADDR",
    "KUBERNETES_PORT_443_TCP_PORT",
    "KUBERNETES_PORT_443_TCP_PROTO",
    "KUBERNETES_SERVICE_PORT_HTTPS",
    "POD_NAME",
    "POD_NAMESPACE",
    "POD_IP",
    "NODE_NAME",
    "SERVICE_NAME",
    "SERVICE_PORT",
    "SERVICE_HOST",
    "PORT",
    "NODE_ENV",
    "PATH",
    "HOME",
    "USER",
    "PWD",
)

FAMILY_NAMES = {
    socket.AF_INET: "IPv4",
    socket.AF_INET6: "IPv6",
}


def safe_read(provider, name, default=None):
    """Call ``provider.<name>()``, logging and substituting ``default`` on failure."""
    try:
        return getattr(provider, name)()
    except Exception as e:
        logger.warning(f"Platform read '{name}' failed: {e}")
        return default


def bytes_to_mb(value: int) -> int:
    """Convert bytes to whole megabytes, rounding to nearest."""
    return int(math.floor(value / BYTES_PER_MB + 0.5))


@dataclass(frozen=True)
class SystemSnapshot:
    hostname: Optional[str]
    platform: Optional[str]
    arch: Optional[str]
    release: Optional[str]
    type: Optional[str]
    uptime: int
    total_memory: int
    free_memory: int
    cpus: int
    load_average: Tuple[float, float, float]
    network_interfaces: Tuple[str, ...]
    user_info: Optional[Dict[str, object]]
    homedir: Optional[str]
    tmpdir: Optional[str]
    endianness: Optional[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "hostname": self.hostname,
            "platform": self.platform,
            "arch": self.arch,
            "release": self.release,
            "type": self.type,
            "uptime": self.uptime,
            "totalMemory": self.total_memory,
            "freeMemory": self.free_memory,
            "cpus": self.cpus,
            "loadAverage": list(self.load_average),
            "networkInterfaces": list(self.network_interfaces),
            "userInfo": dict(self.user_info) if self.user_info is not None else None,
            "homedir": self.homedir,
            "tmpdir": self.tmpdir,
            "endianness": self.endianness,
        }


@dataclass(frozen=True)
class EnvironmentSnapshot:
    variables: Tuple[Tuple[str, str], ...]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.variables)


@dataclass(frozen=True)
class ProcessSnapshot:
    pid: int
    ppid: int
    version: Optional[str]
    platform: Optional[str]
    arch: Optional[str]
    title: Optional[str]
    argv: Tuple[str, ...]
    exec_path: Optional[str]
    cwd: Optional[str]
    memory_usage: Optional[Dict[str, int]]
    cpu_usage: Dict[str, int]
    uptime: float
    versions: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "pid": self.pid,
            "ppid": self.ppid,
            "version": self.version,
            "platform": self.platform,
            "arch": self.arch,
            "title": self.title,
            "argv": list(self.argv),
            "execPath": self.exec_path,
            "cwd": self.cwd,
            "memoryUsage": dict(self.memory_usage) if self.memory_usage is not None else None,
            "cpuUsage": dict(self.cpu_usage),
            "uptime": self.uptime,
            "versions": dict(self.versions),
        }


@dataclass(frozen=True)
class AddressRecord:
    address: str
    netmask: Optional[str]
    family: str
    mac: str
    internal: bool
    cidr: Optional[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "address": self.address,
            "netmask": self.netmask,
            "family": self.family,
            "mac": self.mac,
            "internal": self.internal,
            "cidr": self.cidr,
        }


@dataclass(frozen=True)
class NetworkSnapshot:
    interfaces: Tuple[Tuple[str, Tuple[AddressRecord, ...]], ...]

    def to_dict(self) -> Dict[str, List[Dict[str, object]]]:
        return {
            name: [record.to_dict() for record in records]
            for name, records in self.interfaces
        }


def system_facts(provider) -> SystemSnapshot:
    """Host identity, memory, load and user facts."""
    uptime = safe_read(provider, "uptime", 0)
    return SystemSnapshot(
        hostname=safe_read(provider, "hostname"),
        platform=safe_read(provider, "os_platform"),
        arch=safe_read(provider, "arch"),
        release=safe_read(provider, "release"),
        type=safe_read(provider, "os_type"),
        uptime=int(math.floor(uptime)),
        total_memory=bytes_to_mb(safe_read(provider, "total_memory", 0)),
        free_memory=bytes_to_mb(safe_read(provider, "free_memory", 0)),
        cpus=safe_read(provider, "cpu_count", 0),
        load_average=tuple(float(v) for v in safe_read(provider, "load_average", (0.0, 0.0, 0.0))),
        network_interfaces=tuple(safe_read(provider, "network_interfaces", {})),
        user_info=safe_read(provider, "user_info"),
        homedir=safe_read(provider, "home_dir"),
        tmpdir=safe_read(provider, "tmp_dir"),
        endianness=safe_read(provider, "endianness"),
    )


def environment_facts(provider) -> EnvironmentSnapshot:
    """Allow-listed environment variables that are set to a non-empty value."""
    environ = safe_read(provider, "environ", {})
    return EnvironmentSnapshot(
        variables=tuple(
            (key, environ[key]) for key in RELEVANT_ENV_VARS
            if isinstance(environ.get(key), str) and environ[key]
        )
    )


def process_facts(provider) -> ProcessSnapshot:
    """Facts about the serving process and the runtime it embeds."""
    user, system = safe_read(provider, "cpu_times", (0.0, 0.0))
    return ProcessSnapshot(
        pid=safe_read(provider, "pid", 0),
        ppid=safe_read(provider, "ppid", 0),
        version=safe_read(provider, "runtime_version"),
        platform=safe_read(provider, "os_platform"),
        arch=safe_read(provider, "arch"),
        title=safe_read(provider, "title"),
        argv=tuple(safe_read(provider, "argv", ())),
        exec_path=safe_read(provider, "executable"),
        cwd=safe_read(provider, "cwd"),
        memory_usage=safe_read(provider, "memory_usage"),
        cpu_usage={
            "user": int(round(user * 1_000_000)),
            "system": int(round(system * 1_000_000)),
        },
        uptime=float(safe_read(provider, "process_uptime", 0.0)),
        versions=dict(safe_read(provider, "component_versions", {})),
    )


def cidr_notation(address: str, netmask: Optional[str]) -> Optional[str]:
    """Return ``address/prefixlen`` or None when the netmask is unusable."""
    if not netmask:
        return None
    bare = address.split("%", 1)[0]
    try:
        mask = ipaddress.ip_address(netmask)
        prefix = bin(int(mask)).count("1")
        interface = ipaddress.ip_interface(f"{bare}/{prefix}")
    except ValueError:
        return None
    # non-contiguous masks have no prefix form
    if interface.netmask != mask:
        return None
    return f"{bare}/{prefix}"


def network_facts(provider) -> NetworkSnapshot:
    """Per-interface address records, in the order the provider reports them."""
    interfaces = safe_read(provider, "network_interfaces", {})
    return NetworkSnapshot(
        interfaces=tuple(
            (
                name,
                tuple(
                    AddressRecord(
                        address=entry.address,
                        netmask=entry.netmask,
                        family=FAMILY_NAMES.get(entry.family, str(entry.family)),
                        mac=entry.mac,
                        internal=entry.internal,
                        cidr=cidr_notation(entry.address, entry.netmask),
                    )
                    for entry in entries
                ),
            )
            for name, entries in interfaces.items()
        )
    )
