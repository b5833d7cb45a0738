"""Provider capability consumed by the provisioning core.

Every mutating call returns a job handle that must be passed to
:class:`pbmachine.poller.OperationPoller` before a dependent call uses the
created resource. Implementations raise :class:`ProviderRejectedError`
(or its 401/404 subclasses) for HTTP-level failures.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field

from .models import (
    Datacenter,
    Image,
    IPBlock,
    JobStatus,
    Lan,
    Location,
    Nic,
    Server,
    Volume,
)


@dataclass
class ServerSpec:
    name: str
    ram: int
    cores: int
    cpu_family: str = 'AMD_OPTERON'
    availability_zone: str = 'AUTO'


@dataclass
class VolumeSpec:
    name: str
    size: int
    type: str = 'HDD'
    image: str = ''
    image_alias: str = ''
    ssh_keys: list[str] = field(default_factory=list)
    availability_zone: str = 'AUTO'


@dataclass
class NicSpec:
    name: str
    lan: int
    ips: list[str] = field(default_factory=list)
    dhcp: bool = True


class ProviderAPI(abc.ABC):
    """Asynchronous IaaS operations used by the provisioning core."""

    @abc.abstractmethod
    def get_job_status(self, job: str) -> JobStatus: ...

    @abc.abstractmethod
    def reserve_ip_block(self, size: int, location: str) -> tuple[str, IPBlock]: ...

    @abc.abstractmethod
    def release_ip_block(self, block_id: str) -> str: ...

    @abc.abstractmethod
    def list_ip_blocks(self) -> list[IPBlock]: ...

    @abc.abstractmethod
    def create_datacenter(
        self, name: str, location: str
    ) -> tuple[str, Datacenter]: ...

    @abc.abstractmethod
    def get_datacenter(self, datacenter_id: str) -> Datacenter: ...

    @abc.abstractmethod
    def delete_datacenter(self, datacenter_id: str) -> str: ...

    @abc.abstractmethod
    def create_lan(
        self, datacenter_id: str, *, public: bool, name: str
    ) -> tuple[str, Lan]: ...

    @abc.abstractmethod
    def delete_lan(self, datacenter_id: str, lan_id: str) -> str: ...

    @abc.abstractmethod
    def create_server(
        self,
        datacenter_id: str,
        server: ServerSpec,
        *,
        volume: VolumeSpec | None = None,
        nic: NicSpec | None = None,
    ) -> tuple[str, Server]:
        """Create a server, optionally with its boot volume and NIC in one job."""

    @abc.abstractmethod
    def get_server(self, datacenter_id: str, server_id: str) -> Server: ...

    @abc.abstractmethod
    def list_servers(self, datacenter_id: str) -> list[Server]: ...

    @abc.abstractmethod
    def delete_server(self, datacenter_id: str, server_id: str) -> str: ...

    @abc.abstractmethod
    def create_volume(
        self, datacenter_id: str, volume: VolumeSpec
    ) -> tuple[str, Volume]: ...

    @abc.abstractmethod
    def attach_volume(
        self, datacenter_id: str, server_id: str, volume_id: str
    ) -> str: ...

    @abc.abstractmethod
    def delete_volume(self, datacenter_id: str, volume_id: str) -> str: ...

    @abc.abstractmethod
    def create_nic(
        self, datacenter_id: str, server_id: str, nic: NicSpec
    ) -> tuple[str, Nic]: ...

    @abc.abstractmethod
    def update_nic(
        self,
        datacenter_id: str,
        server_id: str,
        nic_id: str,
        *,
        ips: list[str],
        lan: int | None = None,
    ) -> str: ...

    @abc.abstractmethod
    def list_images(self) -> list[Image]: ...

    @abc.abstractmethod
    def get_location(self, location: str) -> Location: ...

    @abc.abstractmethod
    def start_server(self, datacenter_id: str, server_id: str) -> None: ...

    @abc.abstractmethod
    def stop_server(self, datacenter_id: str, server_id: str) -> None: ...

    @abc.abstractmethod
    def reboot_server(self, datacenter_id: str, server_id: str) -> None: ...
