import socket
import time

import pytest

from platform_facts import RawAddress
from web_agent import create_app


class FakeFactsProvider:
    """Stands in for PlatformFactsProvider with fixed values.

    A value that is an exception instance is raised by its reader; ``delay``
    slows every hostname read.
    """

    def __init__(self, environ=None, delay=0, **overrides):
        self.delay = delay
        self.values = {
            'environ': dict(environ or {}),
            'hostname': 'pod-host-1',
            'os_platform': 'linux',
            'arch': 'x86_64',
            'release': '6.1.0',
            'os_type': 'Linux',
            'uptime': 12345.9,
            'total_memory': 8 * 1024 * 1024 * 1024,
            'free_memory': 3 * 1024 * 1024 * 1024,
            'cpu_count': 4,
            'load_average': (0.5, 0.25, 0.125),
            'network_interfaces': {
                'lo': [
                    RawAddress('127.0.0.1', '255.0.0.0', socket.AF_INET, '00:00:00:00:00:00', True),
                    RawAddress('::1', 'ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff', socket.AF_INET6,
                               '00:00:00:00:00:00', True),
                ],
                'eth0': [
                    RawAddress('10.1.2.3', '255.255.255.0', socket.AF_INET, '0a:58:0a:01:02:03', False),
                    RawAddress('fe80::858:aff:fe01:203', 'ffff:ffff:ffff:ffff::', socket.AF_INET6,
                               '0a:58:0a:01:02:03', False),
                ],
            },
            'user_info': {'username': 'node', 'uid': 1000, 'gid': 1000,
                          'shell': '/bin/sh', 'homedir': '/home/node'},
            'home_dir': '/home/node',
            'tmp_dir': '/tmp',
            'endianness': 'little',
            'pid': 42,
            'ppid': 1,
            'runtime_version': '3.12.1',
            'title': 'python3',
            'argv': ['run_agent.py', '--verbose'],
            'executable': '/usr/local/bin/python3',
            'cwd': '/app',
            'memory_usage': {'rss': 50331648, 'data': 33554432, 'shared': 8388608},
            'cpu_times': (1.5, 0.25),
            'process_uptime': 98.765,
            'component_versions': {'python': '3.12.1', 'openssl': 'OpenSSL 3.0.11'},
        }
        self.values.update(overrides)

    def _value(self, name):
        value = self.values[name]
        if isinstance(value, Exception):
            raise value
        return value

    def __getattr__(self, name):
        if name == 'values' or name not in self.values:
            raise AttributeError(name)
        return lambda: self._value(name)

    def hostname(self):
        if self.delay:
            time.sleep(self.delay)
        return self._value('hostname')


@pytest.fixture
def environ():
    return {
        'HOSTNAME': 'pod-host-1',
        'PATH': '/usr/local/bin:/usr/bin',
        'KUBERNETES_SERVICE_HOST': '10.96.0.1',
        'KUBERNETES_PORT_443_TCP': 'tcp://10.96.0.1:443',
        'POD_NAMESPACE': 'diagnostics',
        'UNRELATED_VAR': 'should-not-leak',
    }


@pytest.fixture
def provider(environ):
    return FakeFactsProvider(environ=environ)


@pytest.fixture
def app(provider):
    return create_app(provider)


@pytest.fixture
def client(app):
    return app.test_client()
