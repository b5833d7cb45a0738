"""Individually callable provisioning primitives, each gated on job completion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from loguru import logger

from .errors import ImageNotFoundError
from .models import Datacenter, DatacenterOrigin, IPBlock, Lan, Server
from .poller import OperationPoller
from .provider import NicSpec, ProviderAPI, ServerSpec, VolumeSpec

log = logger


@dataclass
class ImageRef:
    image_id: str = ''
    alias: str = ''

    def __bool__(self) -> bool:
        return bool(self.image_id or self.alias)


@dataclass
class CreatedResources:
    """Ids of resources created so far by one provisioning run."""

    ip_block_id: str = ''
    datacenter_id: str = ''
    datacenter_origin: DatacenterOrigin = DatacenterOrigin.CREATED
    lan_id: str = ''
    server_id: str = ''
    volume_id: str = ''
    nic_id: str = ''


def image_family(disk_type: str) -> str:
    # SSD volumes are built from the HDD image family on this provider
    disk_type = (disk_type or '').upper()
    return 'HDD' if disk_type == 'SSD' else disk_type


def resolve_image(
    provider: ProviderAPI, image: str, *, disk_type: str, location: str
) -> ImageRef:
    """Resolve an image name to a location alias or a catalog image id.

    Aliases of the location must match exactly. Otherwise the catalog is
    searched for a case-insensitive substring match in the given image
    family and location.
    """
    loc = provider.get_location(location)
    if image in loc.image_aliases:
        log.debug('Image {} resolved as alias in {}', image, location)
        return ImageRef(alias=image)
    needle = image.lower()
    family = image_family(disk_type)
    for item in provider.list_images():
        if not item.name:
            continue
        if (
            needle in item.name.lower()
            and item.image_type == family
            and item.location == location
        ):
            log.debug('Image {} resolved to {} ({})', image, item.id, item.name)
            return ImageRef(image_id=item.id)
    raise ImageNotFoundError(image, location, family)


def reserve_ip_block(
    provider: ProviderAPI,
    poller: OperationPoller,
    location: str,
    created: CreatedResources,
) -> IPBlock:
    job, block = provider.reserve_ip_block(1, location)
    created.ip_block_id = block.id
    poller.await_completion(job)
    log.info('IP block reserved: {} ({})', block.id, ', '.join(block.ips))
    return block


def ensure_datacenter(
    provider: ProviderAPI,
    poller: OperationPoller,
    *,
    name: str,
    location: str,
    datacenter_id: str,
    created: CreatedResources,
) -> Datacenter:
    if datacenter_id:
        dc = provider.get_datacenter(datacenter_id)
        created.datacenter_id = dc.id
        created.datacenter_origin = DatacenterOrigin.PREEXISTING
        log.info('Using existing datacenter {} ({})', dc.name, dc.id)
        return dc
    job, dc = provider.create_datacenter(name, location)
    created.datacenter_id = dc.id
    created.datacenter_origin = DatacenterOrigin.CREATED
    poller.await_completion(job)
    log.info('Datacenter created: {} ({})', dc.name, dc.id)
    return dc


def create_lan(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    name: str,
    created: CreatedResources,
) -> Lan:
    job, lan = provider.create_lan(datacenter_id, public=True, name=name)
    created.lan_id = lan.id
    poller.await_completion(job)
    log.info('LAN created: {}', lan.id)
    return lan


def create_server_composite(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    *,
    server: ServerSpec,
    volume: VolumeSpec,
    nic: NicSpec,
    created: CreatedResources,
) -> Server:
    """Create the server, its boot volume and its NIC in a single job."""
    job, srv = provider.create_server(
        datacenter_id, server, volume=volume, nic=nic
    )
    created.server_id = srv.id
    if srv.volumes:
        created.volume_id = srv.volumes[0].id
    if srv.nics:
        created.nic_id = srv.nics[0].id
    poller.await_completion(job)
    log.info('Server created: {}', srv.id)
    return srv


def create_server_stepwise(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    *,
    server: ServerSpec,
    volume: VolumeSpec,
    nic: NicSpec,
    created: CreatedResources,
) -> Server:
    """Create volume, server and NIC separately, then bind the IPs."""
    job, vol = provider.create_volume(datacenter_id, volume)
    created.volume_id = vol.id
    poller.await_completion(job)
    log.info('Volume created: {}', vol.id)

    job, srv = provider.create_server(datacenter_id, server)
    created.server_id = srv.id
    poller.await_completion(job)
    log.info('Server created: {}', srv.id)

    job = provider.attach_volume(datacenter_id, srv.id, vol.id)
    poller.await_completion(job)
    log.debug('Volume {} attached to server {}', vol.id, srv.id)

    bare = NicSpec(name=nic.name, lan=nic.lan, ips=[], dhcp=nic.dhcp)
    job, created_nic = provider.create_nic(datacenter_id, srv.id, bare)
    created.nic_id = created_nic.id
    poller.await_completion(job)
    log.debug('NIC {} created in LAN {}', created_nic.id, nic.lan)

    bind_ips(
        provider,
        poller,
        datacenter_id,
        srv.id,
        created_nic.id,
        ips=nic.ips,
        lan=nic.lan,
    )
    created_nic.ips = list(nic.ips)
    created_nic.lan = nic.lan
    srv.volumes = [vol]
    srv.nics = [created_nic]
    return srv


def bind_ips(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    server_id: str,
    nic_id: str,
    *,
    ips: list[str],
    lan: int | None = None,
) -> None:
    job = provider.update_nic(datacenter_id, server_id, nic_id, ips=ips, lan=lan)
    poller.await_completion(job)
    log.info('Bound {} to NIC {}', ', '.join(ips), nic_id)


ServerStrategy = Callable[..., Server]

SERVER_STRATEGIES: dict[str, ServerStrategy] = {
    'composite': create_server_composite,
    'stepwise': create_server_stepwise,
}


def server_strategy(name: str) -> ServerStrategy:
    key = (name or 'composite').strip().lower()
    try:
        return SERVER_STRATEGIES[key]
    except KeyError:
        raise ValueError(
            f'Unknown server strategy {name!r}; expected one of: '
            + ', '.join(sorted(SERVER_STRATEGIES))
        ) from None


def delete_datacenter(
    provider: ProviderAPI, poller: OperationPoller, datacenter_id: str
) -> None:
    poller.await_completion(provider.delete_datacenter(datacenter_id))
    log.info('Datacenter deleted: {}', datacenter_id)


def delete_volume(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    volume_id: str,
) -> None:
    poller.await_completion(provider.delete_volume(datacenter_id, volume_id))
    log.info('Volume deleted: {}', volume_id)


def delete_server(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    server_id: str,
) -> None:
    poller.await_completion(provider.delete_server(datacenter_id, server_id))
    log.info('Server deleted: {}', server_id)


def delete_lan(
    provider: ProviderAPI,
    poller: OperationPoller,
    datacenter_id: str,
    lan_id: str,
) -> None:
    poller.await_completion(provider.delete_lan(datacenter_id, lan_id))
    log.info('LAN deleted: {}', lan_id)


def release_ip_block(
    provider: ProviderAPI, poller: OperationPoller, block_id: str
) -> None:
    poller.await_completion(provider.release_ip_block(block_id))
    log.info('IP block released: {}', block_id)
