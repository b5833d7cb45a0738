"""Provider client backed by the ProfitBricks Python SDK.

The SDK owns HTTP transport and authentication. This adapter converts its
dict responses into typed entities and its exceptions into the
``pbmachine.errors`` taxonomy.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from loguru import logger
from profitbricks.client import (
    IPBlock as SDKIPBlock,
    LAN as SDKLAN,
    NIC as SDKNIC,
    Datacenter as SDKDatacenter,
    ProfitBricksService,
    Server as SDKServer,
    Volume as SDKVolume,
)
from profitbricks.errors import PBError, PBNotAuthorizedError, PBNotFoundError

from . import __version__
from .config import ProviderConfig
from .errors import (
    AuthenticationError,
    DecodeError,
    MissingCredentialError,
    ProviderRejectedError,
    ResourceNotFoundError,
)
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
from .provider import NicSpec, ProviderAPI, ServerSpec, VolumeSpec

log = logger

USER_AGENT = f'pbmachine/{__version__}'


def _error_body(ex: PBError) -> str:
    content = getattr(ex, 'content', None)
    if content:
        return str(content)
    return str(ex)


def _status_code(ex: PBError) -> int:
    # the SDK passes the body's httpStatus as the first argument
    for attr in ('resp', 'http_status', 'status_code'):
        val = getattr(ex, attr, None)
        if isinstance(val, int):
            return val
    return 500


def _job(resp: Any, *, action: str) -> str:
    if isinstance(resp, dict) and resp.get('requestId'):
        return str(resp['requestId'])
    raise DecodeError(f'{action}: response carries no request id')


_REQUEST_LOCATION = re.compile(r'/requests/([-A-Fa-f0-9]+)/')


def _job_from_location(responses: list, *, action: str) -> str:
    """Read the request id from the Location header of a 202 response."""
    for resp in reversed(responses):
        location = (getattr(resp, 'headers', None) or {}).get('location', '')
        match = _REQUEST_LOCATION.search(location)
        if match:
            return match.group(1)
    raise DecodeError(f'{action}: response carries no request location')


@contextmanager
def _recorded_responses(service: Any) -> Iterator[list]:
    """Collect the raw HTTP responses the service receives.

    SDK deletes return ``True`` instead of the response, so the request id
    in its Location header is only reachable from the transport layer.
    """
    seen: list = []
    patched = '_wrapped_request' in vars(service)
    wrapped = service._wrapped_request

    def record(*args: Any, **kwargs: Any) -> Any:
        resp = wrapped(*args, **kwargs)
        seen.append(resp)
        return resp

    service._wrapped_request = record
    try:
        yield seen
    finally:
        if patched:
            service._wrapped_request = wrapped
        else:
            del service._wrapped_request


def _items(resp: Any, *, action: str) -> list:
    if not isinstance(resp, dict) or not isinstance(resp.get('items', []), list):
        raise DecodeError(f'{action}: expected a collection response')
    return resp.get('items', [])


def _volume(spec: VolumeSpec) -> SDKVolume:
    return SDKVolume(
        name=spec.name,
        size=spec.size,
        disk_type=spec.type,
        image=spec.image or None,
        image_alias=spec.image_alias or None,
        ssh_keys=list(spec.ssh_keys) or None,
        availability_zone=spec.availability_zone,
    )


def _nic(spec: NicSpec) -> SDKNIC:
    return SDKNIC(
        name=spec.name,
        lan=spec.lan,
        ips=list(spec.ips) or None,
        dhcp=spec.dhcp,
    )


class ProfitBricksProvider(ProviderAPI):
    def __init__(self, cfg: ProviderConfig, *, service: Any = None):
        if service is None:
            if not cfg.username:
                raise MissingCredentialError(
                    'ProfitBricks username is required (provider.username or '
                    '$PROFITBRICKS_USERNAME)'
                )
            service = ProfitBricksService(
                username=cfg.username,
                password=cfg.password,
                host_base=cfg.endpoint,
                client_user_agent=USER_AGENT,
            )
        self.service = service

    def _call(self, action: str, fn: Callable, *args: Any, **kwargs: Any) -> Any:
        log.opt(depth=1).debug('API: {}', action)
        try:
            return fn(*args, **kwargs)
        except PBNotAuthorizedError as ex:
            raise AuthenticationError(_error_body(ex), action=action) from ex
        except PBNotFoundError as ex:
            raise ResourceNotFoundError(
                404, _error_body(ex), action=action
            ) from ex
        except PBError as ex:
            raise ProviderRejectedError(
                _status_code(ex), _error_body(ex), action=action
            ) from ex

    def _delete(self, action: str, fn: Callable, *args: Any) -> str:
        with _recorded_responses(self.service) as responses:
            resp = self._call(action, fn, *args)
        if resp is True:
            return _job_from_location(responses, action=action)
        return _job(resp, action=action)

    def get_job_status(self, job: str) -> JobStatus:
        resp = self._call('get request status', self.service.get_request, job, status=True)
        return JobStatus.from_dict(resp)

    def reserve_ip_block(self, size: int, location: str) -> tuple[str, IPBlock]:
        action = 'reserve ipblock'
        resp = self._call(
            action,
            self.service.reserve_ipblock,
            SDKIPBlock(location=location, size=size),
        )
        return _job(resp, action=action), IPBlock.from_dict(resp)

    def release_ip_block(self, block_id: str) -> str:
        action = 'release ipblock'
        return self._delete(action, self.service.delete_ipblock, block_id)

    def list_ip_blocks(self) -> list[IPBlock]:
        action = 'list ipblocks'
        resp = self._call(action, self.service.list_ipblocks, depth=2)
        return [IPBlock.from_dict(item) for item in _items(resp, action=action)]

    def create_datacenter(self, name: str, location: str) -> tuple[str, Datacenter]:
        action = 'create datacenter'
        resp = self._call(
            action,
            self.service.create_datacenter,
            SDKDatacenter(name=name, location=location),
        )
        return _job(resp, action=action), Datacenter.from_dict(resp)

    def get_datacenter(self, datacenter_id: str) -> Datacenter:
        resp = self._call('get datacenter', self.service.get_datacenter, datacenter_id)
        return Datacenter.from_dict(resp)

    def delete_datacenter(self, datacenter_id: str) -> str:
        action = 'delete datacenter'
        return self._delete(action, self.service.delete_datacenter, datacenter_id)

    def create_lan(self, datacenter_id: str, *, public: bool, name: str) -> tuple[str, Lan]:
        action = 'create lan'
        resp = self._call(
            action,
            self.service.create_lan,
            datacenter_id,
            SDKLAN(name=name, public=public),
        )
        return _job(resp, action=action), Lan.from_dict(resp)

    def delete_lan(self, datacenter_id: str, lan_id: str) -> str:
        action = 'delete lan'
        return self._delete(action, self.service.delete_lan, datacenter_id, lan_id)

    def create_server(
        self,
        datacenter_id: str,
        server: ServerSpec,
        *,
        volume: VolumeSpec | None = None,
        nic: NicSpec | None = None,
    ) -> tuple[str, Server]:
        action = 'create server'
        req = SDKServer(
            name=server.name,
            ram=server.ram,
            cores=server.cores,
            cpu_family=server.cpu_family,
            availability_zone=server.availability_zone,
            create_volumes=[_volume(volume)] if volume else None,
            nics=[_nic(nic)] if nic else None,
        )
        resp = self._call(action, self.service.create_server, datacenter_id, req)
        return _job(resp, action=action), Server.from_dict(resp)

    def get_server(self, datacenter_id: str, server_id: str) -> Server:
        resp = self._call(
            'get server', self.service.get_server, datacenter_id, server_id, depth=3
        )
        return Server.from_dict(resp)

    def list_servers(self, datacenter_id: str) -> list[Server]:
        action = 'list servers'
        resp = self._call(action, self.service.list_servers, datacenter_id, depth=1)
        return [Server.from_dict(item) for item in _items(resp, action=action)]

    def delete_server(self, datacenter_id: str, server_id: str) -> str:
        action = 'delete server'
        return self._delete(action, self.service.delete_server, datacenter_id, server_id)

    def create_volume(self, datacenter_id: str, volume: VolumeSpec) -> tuple[str, Volume]:
        action = 'create volume'
        resp = self._call(action, self.service.create_volume, datacenter_id, _volume(volume))
        return _job(resp, action=action), Volume.from_dict(resp)

    def attach_volume(self, datacenter_id: str, server_id: str, volume_id: str) -> str:
        action = 'attach volume'
        return _job(
            self._call(
                action, self.service.attach_volume, datacenter_id, server_id, volume_id
            ),
            action=action,
        )

    def delete_volume(self, datacenter_id: str, volume_id: str) -> str:
        action = 'delete volume'
        return self._delete(action, self.service.delete_volume, datacenter_id, volume_id)

    def create_nic(self, datacenter_id: str, server_id: str, nic: NicSpec) -> tuple[str, Nic]:
        action = 'create nic'
        resp = self._call(
            action, self.service.create_nic, datacenter_id, server_id, _nic(nic)
        )
        return _job(resp, action=action), Nic.from_dict(resp)

    def update_nic(
        self,
        datacenter_id: str,
        server_id: str,
        nic_id: str,
        *,
        ips: list[str],
        lan: int | None = None,
    ) -> str:
        action = 'update nic'
        kwargs: dict[str, Any] = {'ips': list(ips)}
        if lan is not None:
            kwargs['lan'] = lan
        resp = self._call(
            action, self.service.update_nic, datacenter_id, server_id, nic_id, **kwargs
        )
        return _job(resp, action=action)

    def list_images(self) -> list[Image]:
        action = 'list images'
        resp = self._call(action, self.service.list_images, depth=1)
        return [Image.from_dict(item) for item in _items(resp, action=action)]

    def get_location(self, location: str) -> Location:
        resp = self._call('get location', self.service.get_location, location, depth=1)
        return Location.from_dict(resp)

    def start_server(self, datacenter_id: str, server_id: str) -> None:
        self._call('start server', self.service.start_server, datacenter_id, server_id)

    def stop_server(self, datacenter_id: str, server_id: str) -> None:
        self._call('stop server', self.service.stop_server, datacenter_id, server_id)

    def reboot_server(self, datacenter_id: str, server_id: str) -> None:
        self._call('reboot server', self.service.reboot_server, datacenter_id, server_id)
