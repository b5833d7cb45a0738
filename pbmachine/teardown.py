"""Teardown of provisioned machines and rollback of partial provisioning."""

from __future__ import annotations

from loguru import logger

from . import steps
from .models import DatacenterOrigin, Machine
from .poller import OperationPoller
from .provider import ProviderAPI
from .steps import CreatedResources

log = logger


class TeardownController:
    """Delete the provider resources held by a machine.

    A datacenter created for the machine is deleted as a whole. In a
    preexisting datacenter only the machine's volume, server and LAN are
    deleted, unless the machine is the datacenter's last server. The first
    failing delete aborts the teardown; nothing is retried.
    """

    def __init__(self, provider: ProviderAPI, poller: OperationPoller):
        self.provider = provider
        self.poller = poller

    def remove(self, machine: Machine) -> None:
        log.debug('Removing machine {}', machine.name)
        datacenter_deleted = False
        if machine.datacenter_id:
            datacenter_deleted = self._remove_from_datacenter(
                machine.datacenter_id,
                origin=machine.datacenter_origin,
                server_id=machine.server_id,
                lan_id=machine.lan_id,
            )
        self.release_ip_blocks_for(machine.ip_address)
        machine.clear_resources(datacenter_deleted=datacenter_deleted)

    def rollback(self, created: CreatedResources) -> None:
        """Delete whatever a failed provisioning run managed to create.

        Missing ids mean the resource was never created and are skipped.
        """
        log.warning('Rolling back partially created resources')
        if created.datacenter_id:
            self._remove_from_datacenter(
                created.datacenter_id,
                origin=created.datacenter_origin,
                server_id=created.server_id,
                lan_id=created.lan_id,
                volume_id=created.volume_id,
            )
        if created.ip_block_id:
            steps.release_ip_block(self.provider, self.poller, created.ip_block_id)
        log.info('Rollback complete')

    def release_ip_blocks_for(self, ip_address: str) -> list[str]:
        released: list[str] = []
        if not ip_address:
            return released
        for block in self.provider.list_ip_blocks():
            if ip_address in block.ips:
                steps.release_ip_block(self.provider, self.poller, block.id)
                released.append(block.id)
        return released

    def _remove_from_datacenter(
        self,
        datacenter_id: str,
        *,
        origin: DatacenterOrigin,
        server_id: str,
        lan_id: str,
        volume_id: str = '',
    ) -> bool:
        """Returns True when the whole datacenter was deleted."""
        if origin is DatacenterOrigin.CREATED:
            steps.delete_datacenter(self.provider, self.poller, datacenter_id)
            return True
        if server_id:
            server_ids = self._server_ids(datacenter_id)
            # a preexisting datacenter only goes away with its last server
            if server_ids == {server_id}:
                steps.delete_datacenter(self.provider, self.poller, datacenter_id)
                return True
            if server_id not in server_ids:
                log.info(
                    'Server {} is already gone from datacenter {}',
                    server_id,
                    datacenter_id,
                )
                server_id = ''
        self._remove_server_resources(
            datacenter_id,
            server_id=server_id,
            lan_id=lan_id,
            volume_id=volume_id,
        )
        return False

    def _server_ids(self, datacenter_id: str) -> set[str]:
        server_ids = {s.id for s in self.provider.list_servers(datacenter_id)}
        log.debug('Datacenter {} hosts {} server(s)', datacenter_id, len(server_ids))
        return server_ids

    def _remove_server_resources(
        self,
        datacenter_id: str,
        *,
        server_id: str,
        lan_id: str,
        volume_id: str = '',
    ) -> None:
        if server_id and not volume_id:
            server = self.provider.get_server(datacenter_id, server_id)
            if server.volumes:
                volume_id = server.volumes[0].id
        # the volume goes first to release its attachment
        if volume_id:
            steps.delete_volume(self.provider, self.poller, datacenter_id, volume_id)
        if server_id:
            steps.delete_server(self.provider, self.poller, datacenter_id, server_id)
        if lan_id:
            steps.delete_lan(self.provider, self.poller, datacenter_id, lan_id)
