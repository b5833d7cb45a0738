"""Provisioning of a machine as an ordered sequence of poll-gated steps."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from . import steps
from .config import MachineConfig
from .errors import DecodeError, RollbackError
from .models import Machine
from .poller import OperationPoller
from .provider import NicSpec, ProviderAPI, ServerSpec, VolumeSpec
from .steps import CreatedResources, ImageRef
from .teardown import TeardownController

log = logger


class Provisioner:
    """Create the datacenter, LAN, IP block and server backing one machine.

    Each step waits for its provider job before the next one references the
    created resource. If anything fails after the IP block is reserved, the
    resources created so far are deleted before the error propagates. The
    machine record is only updated once every step succeeded.
    """

    def __init__(
        self,
        provider: ProviderAPI,
        poller: OperationPoller,
        *,
        teardown: TeardownController | None = None,
    ):
        self.provider = provider
        self.poller = poller
        self.teardown = teardown or TeardownController(provider, poller)

    def resolve_image(self, cfg: MachineConfig) -> ImageRef:
        return steps.resolve_image(
            self.provider,
            cfg.image,
            disk_type=cfg.disk_type,
            location=cfg.location,
        )

    def create(
        self,
        machine: Machine,
        cfg: MachineConfig,
        *,
        keygen: Callable[[], str] | None = None,
    ) -> Machine:
        if not machine.ssh_key:
            if keygen is None:
                raise ValueError('machine has no SSH key and no keygen was given')
            machine.ssh_key = keygen().strip()
            log.debug('Generated SSH key for {}', machine.name)
        strategy = steps.server_strategy(cfg.server_strategy)
        image = self.resolve_image(cfg)

        created = CreatedResources()
        block = steps.reserve_ip_block(
            self.provider, self.poller, cfg.location, created
        )
        try:
            if not block.ips:
                raise DecodeError(
                    f'IP block {block.id} was reserved without an address'
                )
            dc = steps.ensure_datacenter(
                self.provider,
                self.poller,
                name=machine.name,
                location=cfg.location,
                datacenter_id=cfg.datacenter_id,
                created=created,
            )
            lan = steps.create_lan(
                self.provider, self.poller, dc.id, machine.name, created
            )
            server = strategy(
                self.provider,
                self.poller,
                dc.id,
                server=ServerSpec(
                    name=machine.name,
                    ram=cfg.ram_mb,
                    cores=cfg.cores,
                    cpu_family=cfg.cpu_family,
                    availability_zone=cfg.server_availability_zone,
                ),
                volume=VolumeSpec(
                    name=machine.name,
                    size=cfg.disk_size_gb,
                    type=cfg.disk_type,
                    image=image.image_id,
                    image_alias=image.alias,
                    ssh_keys=[machine.ssh_key],
                    availability_zone=cfg.volume_availability_zone,
                ),
                nic=NicSpec(
                    name=machine.name,
                    lan=int(lan.id),
                    ips=list(block.ips),
                    dhcp=True,
                ),
                created=created,
            )
        except Exception as ex:
            self._rollback(created, ex)
            raise

        machine.datacenter_id = dc.id
        machine.datacenter_origin = created.datacenter_origin
        machine.lan_id = lan.id
        machine.server_id = server.id
        machine.ip_address = block.ips[0]
        log.info('Machine {} provisioned with IP {}', machine.name, machine.ip_address)
        return machine

    def _rollback(self, created: CreatedResources, cause: Exception) -> None:
        log.warning('Provisioning failed: {}', cause)
        try:
            self.teardown.rollback(created)
        except Exception as rb_ex:
            raise RollbackError(cause, rb_ex) from rb_ex
