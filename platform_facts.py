#!/usr/bin/env python3
"""
Platform Facts Provider
Reads raw host, process, network and environment values for the aggregators.

The aggregators never touch ``os.environ`` or psutil directly; they call a
provider instance instead, so tests can hand them a fake with fixed values.

Package Requirements:
- psutil for memory, load, interface and process statistics
- Standard library: socket, platform, os, sys, pwd, tempfile
"""

import ipaddress
import os
import platform
import pwd
import socket
import sqlite3
import ssl
import sys
import tempfile
import time
import unicodedata
import zlib
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pyexpat import EXPAT_VERSION
from typing import Dict, List, Optional, Tuple

import psutil

# psutil reports the link-layer address under a platform specific family
LINK_FAMILIES = tuple(
    family for family in (getattr(socket, "AF_PACKET", None), getattr(psutil, "AF_LINK", None))
    if family is not None
)


@dataclass(frozen=True)
class RawAddress:
    """One address entry of an interface, as the OS reports it."""

    address: str
    netmask: Optional[str]
    family: int
    mac: str
    internal: bool


class PlatformFactsProvider:
    """Read-only access to the facts of the running host and process.

    Every method performs a fresh read; nothing is cached between calls.
    """

    def __init__(self, environ=None):
        self._environ = environ

    # Host

    def hostname(self) -> str:
        return socket.gethostname()

    def os_platform(self) -> str:
        return sys.platform

    def arch(self) -> str:
        return platform.machine()

    def release(self) -> str:
        return platform.release()

    def os_type(self) -> str:
        return platform.system()

    def uptime(self) -> float:
        """Seconds since boot."""
        return time.time() - psutil.boot_time()

    def total_memory(self) -> int:
        return psutil.virtual_memory().total

    def free_memory(self) -> int:
        return psutil.virtual_memory().available

    def cpu_count(self) -> int:
        return psutil.cpu_count() or 0

    def load_average(self) -> Tuple[float, float, float]:
        return psutil.getloadavg()

    def network_interfaces(self) -> Dict[str, List[RawAddress]]:
        """Map each interface to its IPv4/IPv6 entries, in the order psutil lists them."""
        interfaces = {}
        for name, entries in psutil.net_if_addrs().items():
            mac = "00:00:00:00:00:00"
            for entry in entries:
                if entry.family in LINK_FAMILIES and entry.address:
                    mac = entry.address.lower().replace("-", ":")
                    break
            addresses = [
                RawAddress(
                    address=entry.address.split("%", 1)[0],
                    netmask=entry.netmask,
                    family=entry.family,
                    mac=mac,
                    internal=_is_loopback(entry.address),
                )
                for entry in entries
                if entry.family in (socket.AF_INET, socket.AF_INET6)
            ]
            # link-only interfaces have nothing to report
            if addresses:
                interfaces[name] = addresses
        return interfaces

    def user_info(self) -> Dict[str, object]:
        entry = pwd.getpwuid(os.getuid())
        return {
            "username": entry.pw_name,
            "uid": entry.pw_uid,
            "gid": entry.pw_gid,
            "shell": entry.pw_shell,
            "homedir": entry.pw_dir,
        }

    def home_dir(self) -> str:
        return os.path.expanduser("~")

    def tmp_dir(self) -> str:
        return tempfile.gettempdir()

    def endianness(self) -> str:
        return sys.byteorder

    def environ(self) -> Dict[str, str]:
        """A copy of the process environment."""
        source = os.environ if self._environ is None else self._environ
        return dict(source)

    # Process

    def pid(self) -> int:
        return os.getpid()

    def ppid(self) -> int:
        return os.getppid()

    def runtime_version(self) -> str:
        return platform.python_version()

    def title(self) -> str:
        return psutil.Process().name()

    def argv(self) -> List[str]:
        return list(sys.argv)

    def executable(self) -> str:
        return sys.executable

    def cwd(self) -> str:
        return os.getcwd()

    def memory_usage(self) -> Dict[str, int]:
        """Resident, heap and external memory of this process, in bytes.

        ``data`` (data + stack segment) stands in for the heap and ``shared``
        (memory mapped from shared libraries and files) for external memory.
        Both are Linux fields and read as 0 elsewhere.
        """
        info = psutil.Process().memory_info()
        return {
            "rss": info.rss,
            "data": getattr(info, "data", 0),
            "shared": getattr(info, "shared", 0),
        }

    def cpu_times(self) -> Tuple[float, float]:
        """User and system CPU seconds consumed by this process."""
        times = psutil.Process().cpu_times()
        return times.user, times.system

    def process_uptime(self) -> float:
        return time.time() - psutil.Process().create_time()

    def component_versions(self) -> Dict[str, str]:
        return {
            "python": platform.python_version(),
            "implementation": platform.python_implementation(),
            "compiler": platform.python_compiler(),
            "openssl": ssl.OPENSSL_VERSION,
            "zlib": zlib.ZLIB_RUNTIME_VERSION,
            "expat": EXPAT_VERSION,
            "sqlite": sqlite3.sqlite_version,
            "unicode": unicodedata.unidata_version,
            "libc": " ".join(part for part in platform.libc_ver() if part),
            "psutil": psutil.__version__,
            "flask": _distribution_version("flask"),
            "werkzeug": _distribution_version("werkzeug"),
        }


def _is_loopback(address: str) -> bool:
    try:
        return ipaddress.ip_address(address.split("%", 1)[0]).is_loopback
    except ValueError:
        return False


def _distribution_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "unknown"
