"""Tests for the host-facing driver operations."""

from __future__ import annotations

import pytest

from pbmachine.driver import Driver
from pbmachine.errors import (
    AuthenticationError,
    ImageNotFoundError,
    MissingCredentialError,
    NotRunningError,
    ProviderRejectedError,
    QueryError,
)
from pbmachine.models import Machine
from pbmachine.state import CanonicalState


@pytest.fixture
def driver(provider, poller, cfg) -> Driver:
    drv = Driver(
        cfg,
        Machine(name=cfg.machine.name),
        provider,
        poller=poller,
        keygen=lambda: 'ssh-rsa K',
    )
    drv.create()
    provider.calls.clear()
    return drv


def _server(provider, driver):
    m = driver.machine
    return provider.servers[m.datacenter_id][m.server_id]


def test_scenario_create_then_running(provider, poller, cfg) -> None:
    cfg.machine.cores = 4
    cfg.machine.ram_mb = 2048
    cfg.machine.disk_size_gb = 50
    cfg.machine.disk_type = 'HDD'
    cfg.machine.image = 'Ubuntu-16.04'
    cfg.machine.location = 'us/las'
    machine = Machine(name='scenario')
    drv = Driver(cfg, machine, provider, poller=poller, keygen=lambda: 'ssh-rsa K')
    drv.create()
    assert machine.datacenter_id and machine.server_id and machine.lan_id
    blocks = [b for b in provider.ip_blocks.values() if machine.ip_address in b.ips]
    assert len(blocks) == 1 and blocks[0].size == 1

    provider.servers[machine.datacenter_id][machine.server_id].status = 'AVAILABLE'
    assert drv.get_state() is CanonicalState.RUNNING

    provider.reserve_ip_block(1, 'us/las')
    provider.calls.clear()
    drv.remove()
    released = [c[1] for c in provider.calls if c[0] == 'release_ip_block']
    assert released == [blocks[0].id]
    assert len(provider.ip_blocks) == 1


def test_pre_create_check_requires_username(provider, poller, cfg) -> None:
    cfg.provider.username = ''
    drv = Driver(cfg, Machine(name='m'), provider, poller=poller)
    with pytest.raises(MissingCredentialError):
        drv.create()
    assert provider.calls == []


def test_pre_create_check_validates_image_and_datacenter(
    provider, poller, cfg
) -> None:
    dc = provider.add_datacenter('team-dc')
    cfg.machine.datacenter_id = dc.id
    drv = Driver(cfg, Machine(name='m'), provider, poller=poller)
    drv.pre_create_check()
    assert provider.methods() == ['get_datacenter', 'get_location', 'list_images']
    cfg.machine.image = 'missing'
    with pytest.raises(ImageNotFoundError):
        drv.pre_create_check()


def test_get_state_authentication_error(provider, driver) -> None:
    provider.raise_on['get_server'] = AuthenticationError('denied')
    with pytest.raises(AuthenticationError) as info:
        driver.get_state()
    assert 'Unauthorized' in str(info.value)


def test_get_state_query_error(provider, driver) -> None:
    provider.raise_on['get_server'] = ProviderRejectedError(503, 'maintenance')
    with pytest.raises(QueryError, match='maintenance'):
        driver.get_state()


def test_start_is_noop_when_running(provider, driver) -> None:
    driver.start()
    assert provider.power == []


def test_start_when_stopped(provider, driver) -> None:
    _server(provider, driver).status = 'SHUTOFF'
    driver.start()
    assert provider.power == [('start', driver.machine.server_id)]


def test_stop_and_kill_are_noops_when_stopped(provider, driver) -> None:
    _server(provider, driver).status = 'INACTIVE'
    driver.stop()
    driver.kill()
    assert provider.power == []


def test_stop_and_kill_when_running(provider, driver) -> None:
    driver.stop()
    driver.kill()
    sid = driver.machine.server_id
    assert provider.power == [('stop', sid), ('stop', sid)]


def test_restart_is_unconditional(provider, driver) -> None:
    _server(provider, driver).status = 'SHUTOFF'
    driver.restart()
    assert provider.power == [('reboot', driver.machine.server_id)]
    assert 'get_server' not in provider.methods()


def test_get_ip_and_url(provider, driver) -> None:
    ip = driver.machine.ip_address
    driver.machine.ip_address = ''
    assert driver.get_ip() == ip
    assert driver.machine.ip_address == ip
    assert driver.get_ssh_hostname() == ip
    assert driver.get_url() == f'tcp://{ip}:2376'


def test_get_url_requires_running(provider, driver) -> None:
    _server(provider, driver).status = 'PAUSED'
    with pytest.raises(NotRunningError):
        driver.get_url()


def test_get_ip_without_address(provider, driver) -> None:
    _server(provider, driver).nics[0].ips = []
    with pytest.raises(QueryError, match='IP address is not set'):
        driver.get_ip()


def test_driver_builds_poller_from_config(provider, cfg) -> None:
    cfg.poll.attempts = 7
    cfg.poll.interval_s = 0.5
    drv = Driver(cfg, Machine(name='m'), provider)
    assert drv.poller.attempts == 7
    assert drv.poller.interval_s == 0.5
    assert drv.provisioner.teardown is drv.teardown
