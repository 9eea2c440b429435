"""
Tests for the fact aggregators against a fake provider.
"""

import dataclasses
import socket

import pytest

from conftest import FakeFactsProvider
from fact_aggregators import (
    RELEVANT_ENV_VARS,
    bytes_to_mb,
    cidr_notation,
    environment_facts,
    network_facts,
    process_facts,
    system_facts,
)
from platform_facts import RawAddress

MB = 1024 * 1024


def test_memory_is_rounded_not_truncated():
    # 1.6 MB must become 2, not 1
    provider = FakeFactsProvider(total_memory=int(1.6 * MB), free_memory=int(0.4 * MB))
    snapshot = system_facts(provider)
    assert snapshot.total_memory == 2
    assert snapshot.free_memory == 0


def test_bytes_to_mb_half_rounds_up():
    assert bytes_to_mb(MB + MB // 2) == 2
    assert bytes_to_mb(MB + MB // 2 - 1) == 1
    assert bytes_to_mb(0) == 0


def test_system_facts_shape():
    data = system_facts(FakeFactsProvider()).to_dict()
    assert data['hostname'] == 'pod-host-1'
    assert data['uptime'] == 12345
    assert data['totalMemory'] == 8192
    assert data['freeMemory'] == 3072
    assert data['cpus'] == 4
    assert data['loadAverage'] == [0.5, 0.25, 0.125]
    assert data['networkInterfaces'] == ['lo', 'eth0']
    assert data['userInfo']['username'] == 'node'
    assert data['endianness'] == 'little'
    assert data['tmpdir'] == '/tmp'


def test_system_facts_survives_provider_failures():
    provider = FakeFactsProvider(
        cpu_count=RuntimeError('no cpus'),
        total_memory=OSError('meminfo unreadable'),
        network_interfaces=OSError('netlink down'),
        user_info=KeyError('uid 1001'),
    )
    snapshot = system_facts(provider)
    assert snapshot.cpus == 0
    assert snapshot.total_memory == 0
    assert snapshot.network_interfaces == ()
    assert snapshot.user_info is None
    assert snapshot.hostname == 'pod-host-1'


def test_snapshots_are_frozen():
    snapshot = system_facts(FakeFactsProvider())
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.hostname = 'other'


def test_environment_facts_only_allow_listed_non_empty():
    environ = {
        'POD_NAME': 'worker-7',
        'NODE_ENV': '',
        'PATH': '/bin',
        'SECRET_TOKEN': 'hunter2',
        'UNRELATED_VAR': 'x',
    }
    data = environment_facts(FakeFactsProvider(environ=environ)).to_dict()
    assert data == {'POD_NAME': 'worker-7', 'PATH': '/bin'}


def test_environment_facts_follow_allow_list_order():
    environ = {name: name.lower() for name in reversed(RELEVANT_ENV_VARS)}
    data = environment_facts(FakeFactsProvider(environ=environ)).to_dict()
    assert list(data) == list(RELEVANT_ENV_VARS)


def test_allow_list_has_22_unique_names():
    assert len(RELEVANT_ENV_VARS) == 22
    assert len(set(RELEVANT_ENV_VARS)) == 22


def test_process_facts_shape():
    data = process_facts(FakeFactsProvider()).to_dict()
    assert data['pid'] == 42
    assert data['ppid'] == 1
    assert data['argv'] == ['run_agent.py', '--verbose']
    assert data['execPath'] == '/usr/local/bin/python3'
    assert data['cpuUsage'] == {'user': 1500000, 'system': 250000}
    assert data['uptime'] == 98.765
    assert data['memoryUsage']['rss'] == 50331648
    assert data['versions']['openssl'] == 'OpenSSL 3.0.11'


def test_process_uptime_is_not_floored():
    snapshot = process_facts(FakeFactsProvider(process_uptime=3.75))
    assert snapshot.uptime == 3.75


def test_network_facts_preserve_order_and_shape():
    data = network_facts(FakeFactsProvider()).to_dict()
    assert list(data) == ['lo', 'eth0']
    assert [entry['family'] for entry in data['eth0']] == ['IPv4', 'IPv6']
    assert data['eth0'][0] == {
        'address': '10.1.2.3',
        'netmask': '255.255.255.0',
        'family': 'IPv4',
        'mac': '0a:58:0a:01:02:03',
        'internal': False,
        'cidr': '10.1.2.3/24',
    }
    assert data['lo'][0]['internal'] is True
    assert data['lo'][1]['cidr'] == '::1/128'
    assert data['eth0'][1]['cidr'] == 'fe80::858:aff:fe01:203/64'


def test_network_facts_keep_duplicates():
    entry = RawAddress('10.0.0.1', '255.255.0.0', socket.AF_INET, 'aa:bb:cc:dd:ee:ff', False)
    data = network_facts(FakeFactsProvider(network_interfaces={'eth1': [entry, entry]})).to_dict()
    assert len(data['eth1']) == 2


@pytest.mark.parametrize('address,netmask,expected', [
    ('192.168.1.10', '255.255.255.0', '192.168.1.10/24'),
    ('10.0.0.1', '255.0.0.0', '10.0.0.1/8'),
    ('2001:db8::1', 'ffff:ffff:ffff:ffff::', '2001:db8::1/64'),
    ('10.0.0.1', None, None),
    ('10.0.0.1', '255.0.255.0', None),
    ('10.0.0.1', 'garbage', None),
])
def test_cidr_notation(address, netmask, expected):
    assert cidr_notation(address, netmask) == expected
