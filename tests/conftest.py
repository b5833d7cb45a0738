"""Shared fixtures: an in-memory provider that records every call."""

from __future__ import annotations

import itertools

import pytest

from pbmachine.config import PBMachineConfig
from pbmachine.models import (
    Datacenter,
    Image,
    IPBlock,
    JobState,
    JobStatus,
    Lan,
    Location,
    Nic,
    Server,
    Volume,
)
from pbmachine.poller import OperationPoller
from pbmachine.provider import NicSpec, ProviderAPI, ServerSpec, VolumeSpec


class FakeProvider(ProviderAPI):
    """Provider double keeping resources in dicts.

    ``raise_on[method]`` makes a call raise before doing anything.
    ``fail_job[method]`` makes the job returned by that call end FAILED.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._ips = itertools.count(10)
        self.calls: list[tuple] = []
        self.raise_on: dict[str, Exception] = {}
        self.fail_job: dict[str, str] = {}
        self.job_method: dict[str, str] = {}
        self.job_script: dict[str, list[JobStatus]] = {}
        self.status_queries: list[str] = []
        self.aliases: list[str] = ['ubuntu:latest']
        self.images: list[Image] = [
            Image('img-hdd', 'Ubuntu-16.04-server', 'HDD', 'us/las'),
            Image('img-cd', 'Ubuntu-16.04-cdrom', 'CDROM', 'us/las'),
            Image('img-fra', 'Ubuntu-16.04-server', 'HDD', 'de/fra'),
            Image('img-deb', 'Debian-8-server', 'HDD', 'us/las'),
        ]
        self.datacenters: dict[str, Datacenter] = {}
        self.lans: dict[str, dict[str, Lan]] = {}
        self.servers: dict[str, dict[str, Server]] = {}
        self.volumes: dict[str, dict[str, Volume]] = {}
        self.ip_blocks: dict[str, IPBlock] = {}
        self.power: list[tuple[str, str]] = []

    # helpers
    def _new_id(self, prefix: str) -> str:
        return f'{prefix}-{next(self._ids)}'

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.raise_on:
            raise self.raise_on[method]

    def _job(self, method: str) -> str:
        job = self._new_id('job')
        self.job_method[job] = method
        return job

    def methods(self) -> list[str]:
        return [c[0] for c in self.calls]

    def add_datacenter(self, name: str = 'shared') -> Datacenter:
        dc = Datacenter(self._new_id('dc'), name, 'us/las')
        self.datacenters[dc.id] = dc
        self.lans[dc.id] = {}
        self.servers[dc.id] = {}
        self.volumes[dc.id] = {}
        return dc

    def add_server(self, dc_id: str, name: str = 'sibling') -> Server:
        srv = Server(self._new_id('srv'), name, status='AVAILABLE')
        self.servers[dc_id][srv.id] = srv
        return srv

    # ProviderAPI
    def get_job_status(self, job: str) -> JobStatus:
        self.status_queries.append(job)
        script = self.job_script.get(job)
        if script:
            return script.pop(0)
        method = self.job_method.get(job, '')
        if method in self.fail_job:
            return JobStatus(JobState.FAILED, self.fail_job[method])
        return JobStatus(JobState.DONE)

    def reserve_ip_block(self, size, location):
        self._record('reserve_ip_block', size, location)
        block = IPBlock(
            self._new_id('ipb'),
            location,
            size,
            [f'203.0.113.{next(self._ips)}' for _ in range(size)],
        )
        self.ip_blocks[block.id] = block
        return self._job('reserve_ip_block'), block

    def release_ip_block(self, block_id):
        self._record('release_ip_block', block_id)
        self.ip_blocks.pop(block_id, None)
        return self._job('release_ip_block')

    def list_ip_blocks(self):
        self._record('list_ip_blocks')
        return list(self.ip_blocks.values())

    def create_datacenter(self, name, location):
        self._record('create_datacenter', name, location)
        dc = Datacenter(self._new_id('dc'), name, location)
        self.datacenters[dc.id] = dc
        self.lans[dc.id] = {}
        self.servers[dc.id] = {}
        self.volumes[dc.id] = {}
        return self._job('create_datacenter'), dc

    def get_datacenter(self, datacenter_id):
        self._record('get_datacenter', datacenter_id)
        return self.datacenters[datacenter_id]

    def delete_datacenter(self, datacenter_id):
        self._record('delete_datacenter', datacenter_id)
        for store in (self.datacenters, self.lans, self.servers, self.volumes):
            store.pop(datacenter_id, None)
        return self._job('delete_datacenter')

    def create_lan(self, datacenter_id, *, public, name):
        self._record('create_lan', datacenter_id, public, name)
        lan = Lan(str(len(self.lans[datacenter_id]) + 1), name, public)
        self.lans[datacenter_id][lan.id] = lan
        return self._job('create_lan'), lan

    def delete_lan(self, datacenter_id, lan_id):
        self._record('delete_lan', datacenter_id, lan_id)
        self.lans[datacenter_id].pop(lan_id, None)
        return self._job('delete_lan')

    def create_server(self, datacenter_id, server: ServerSpec, *, volume=None, nic=None):
        self._record('create_server', datacenter_id, server, volume, nic)
        srv = Server(
            self._new_id('srv'),
            server.name,
            status='AVAILABLE',
            ram=server.ram,
            cores=server.cores,
            cpu_family=server.cpu_family,
            availability_zone=server.availability_zone,
        )
        if volume is not None:
            vol = self._make_volume(datacenter_id, volume)
            srv.volumes.append(vol)
        if nic is not None:
            srv.nics.append(
                Nic(self._new_id('nic'), nic.name, nic.lan, list(nic.ips), nic.dhcp)
            )
        self.servers[datacenter_id][srv.id] = srv
        return self._job('create_server'), srv

    def get_server(self, datacenter_id, server_id):
        self._record('get_server', datacenter_id, server_id)
        return self.servers[datacenter_id][server_id]

    def list_servers(self, datacenter_id):
        self._record('list_servers', datacenter_id)
        return list(self.servers[datacenter_id].values())

    def delete_server(self, datacenter_id, server_id):
        self._record('delete_server', datacenter_id, server_id)
        self.servers[datacenter_id].pop(server_id, None)
        return self._job('delete_server')

    def _make_volume(self, datacenter_id, volume: VolumeSpec) -> Volume:
        vol = Volume(
            self._new_id('vol'),
            volume.name,
            volume.size,
            volume.type,
            volume.image,
            volume.image_alias,
        )
        self.volumes[datacenter_id][vol.id] = vol
        return vol

    def create_volume(self, datacenter_id, volume):
        self._record('create_volume', datacenter_id, volume)
        return self._job('create_volume'), self._make_volume(datacenter_id, volume)

    def attach_volume(self, datacenter_id, server_id, volume_id):
        self._record('attach_volume', datacenter_id, server_id, volume_id)
        srv = self.servers[datacenter_id][server_id]
        srv.volumes.append(self.volumes[datacenter_id][volume_id])
        return self._job('attach_volume')

    def delete_volume(self, datacenter_id, volume_id):
        self._record('delete_volume', datacenter_id, volume_id)
        self.volumes[datacenter_id].pop(volume_id, None)
        for srv in self.servers[datacenter_id].values():
            srv.volumes = [v for v in srv.volumes if v.id != volume_id]
        return self._job('delete_volume')

    def create_nic(self, datacenter_id, server_id, nic: NicSpec):
        self._record('create_nic', datacenter_id, server_id, nic)
        created = Nic(self._new_id('nic'), nic.name, nic.lan, list(nic.ips), nic.dhcp)
        self.servers[datacenter_id][server_id].nics.append(created)
        return self._job('create_nic'), created

    def update_nic(self, datacenter_id, server_id, nic_id, *, ips, lan=None):
        self._record('update_nic', datacenter_id, server_id, nic_id, list(ips), lan)
        for nic in self.servers[datacenter_id][server_id].nics:
            if nic.id == nic_id:
                nic.ips = list(ips)
                if lan is not None:
                    nic.lan = lan
        return self._job('update_nic')

    def list_images(self):
        self._record('list_images')
        return list(self.images)

    def get_location(self, location):
        self._record('get_location', location)
        return Location(location, location, list(self.aliases))

    def start_server(self, datacenter_id, server_id):
        self._record('start_server', datacenter_id, server_id)
        self.power.append(('start', server_id))

    def stop_server(self, datacenter_id, server_id):
        self._record('stop_server', datacenter_id, server_id)
        self.power.append(('stop', server_id))

    def reboot_server(self, datacenter_id, server_id):
        self._record('reboot_server', datacenter_id, server_id)
        self.power.append(('reboot', server_id))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def poller(provider, sleeps) -> OperationPoller:
    return OperationPoller(provider, attempts=5, interval_s=10, sleep=sleeps.append)


@pytest.fixture
def cfg() -> PBMachineConfig:
    cfg = PBMachineConfig()
    cfg.provider.username = 'user@example.com'
    cfg.provider.password = 'secret'
    cfg.machine.name = 'test-machine'
    cfg.machine.cores = 4
    cfg.machine.ram_mb = 2048
    cfg.machine.disk_size_gb = 50
    cfg.machine.disk_type = 'HDD'
    cfg.machine.image = 'Ubuntu-16.04'
    cfg.machine.location = 'us/las'
    return cfg
