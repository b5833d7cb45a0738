"""Typed provider entities and the machine aggregate.

Provider payloads follow the ``{id, metadata, properties, entities}`` shape.
Each entity is decoded with :func:`from_dict`, which raises
:class:`DecodeError` on missing keys or wrongly typed values instead of
letting a lookup fail later.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .errors import DecodeError

_MISSING = object()


def _section(raw: Any, key: str, *, kind: str, required: bool = True) -> dict:
    if not isinstance(raw, dict):
        raise DecodeError(f'{kind}: expected an object, got {type(raw).__name__}')
    val = raw.get(key, _MISSING)
    if val is _MISSING or val is None:
        if required:
            raise DecodeError(f'{kind}: missing required key {key!r}')
        return {}
    if not isinstance(val, dict):
        raise DecodeError(f'{kind}: {key!r} must be an object')
    return val


def _field(
    body: dict, key: str, typ: type | tuple, *, kind: str, default: Any = _MISSING
) -> Any:
    val = body.get(key, _MISSING)
    if val is _MISSING or val is None:
        if default is _MISSING:
            raise DecodeError(f'{kind}: missing required key {key!r}')
        return default
    # bool is a subclass of int; keep them apart for numeric fields
    if isinstance(val, bool) and typ is int:
        raise DecodeError(f'{kind}: {key!r} must be int, got bool')
    if not isinstance(val, typ):
        raise DecodeError(
            f'{kind}: {key!r} must be {getattr(typ, "__name__", typ)}, '
            f'got {type(val).__name__}'
        )
    return val


def _ident(raw: Any, *, kind: str) -> str:
    if not isinstance(raw, dict):
        raise DecodeError(f'{kind}: expected an object, got {type(raw).__name__}')
    val = raw.get('id')
    if val is None or val == '':
        raise DecodeError(f'{kind}: missing required key {"id"!r}')
    # LAN ids are numeric in some API versions
    if isinstance(val, bool) or not isinstance(val, (str, int)):
        raise DecodeError(f'{kind}: {"id"!r} must be a string')
    return str(val)


def _items(raw: dict, key: str, *, kind: str) -> list:
    ents = raw.get('entities') or {}
    if not isinstance(ents, dict):
        raise DecodeError(f'{kind}: entities must be an object')
    coll = ents.get(key) or {}
    if not isinstance(coll, dict):
        raise DecodeError(f'{kind}: entities.{key} must be an object')
    items = coll.get('items') or []
    if not isinstance(items, list):
        raise DecodeError(f'{kind}: entities.{key}.items must be a list')
    return items


def _str_list(body: dict, key: str, *, kind: str) -> list[str]:
    vals = _field(body, key, list, kind=kind, default=[])
    for v in vals:
        if not isinstance(v, str):
            raise DecodeError(f'{kind}: {key!r} must contain only strings')
    return list(vals)


@dataclass
class Datacenter:
    id: str
    name: str
    location: str
    servers: list[Server] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> Datacenter:
        kind = 'datacenter'
        props = _section(raw, 'properties', kind=kind)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind),
            location=_field(props, 'location', str, kind=kind, default=''),
            servers=[Server.from_dict(s) for s in _items(raw, 'servers', kind=kind)],
        )


@dataclass
class IPBlock:
    id: str
    location: str
    size: int
    ips: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> IPBlock:
        kind = 'ipblock'
        props = _section(raw, 'properties', kind=kind)
        ips = _str_list(props, 'ips', kind=kind)
        return cls(
            id=_ident(raw, kind=kind),
            location=_field(props, 'location', str, kind=kind, default=''),
            size=_field(props, 'size', int, kind=kind, default=len(ips)),
            ips=ips,
        )


@dataclass
class Lan:
    id: str
    name: str = ''
    public: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> Lan:
        kind = 'lan'
        props = _section(raw, 'properties', kind=kind, required=False)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            public=_field(props, 'public', bool, kind=kind, default=False),
        )


@dataclass
class Volume:
    id: str
    name: str = ''
    size: int = 0
    type: str = ''
    image: str = ''
    image_alias: str = ''

    @classmethod
    def from_dict(cls, raw: Any) -> Volume:
        kind = 'volume'
        props = _section(raw, 'properties', kind=kind, required=False)
        image = props.get('image')
        # the API may expand the image reference into an object
        if isinstance(image, dict):
            image = image.get('id', '')
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            size=_field(props, 'size', (int, float), kind=kind, default=0),
            type=_field(props, 'type', str, kind=kind, default=''),
            image=image if isinstance(image, str) else '',
            image_alias=_field(props, 'imageAlias', str, kind=kind, default=''),
        )


@dataclass
class Nic:
    id: str
    name: str = ''
    lan: int | None = None
    ips: list[str] = field(default_factory=list)
    dhcp: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Nic:
        kind = 'nic'
        props = _section(raw, 'properties', kind=kind, required=False)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            lan=_field(props, 'lan', int, kind=kind, default=None),
            ips=_str_list(props, 'ips', kind=kind),
            dhcp=_field(props, 'dhcp', bool, kind=kind, default=True),
        )


@dataclass
class Server:
    id: str
    name: str = ''
    status: str = ''
    ram: int = 0
    cores: int = 0
    cpu_family: str = ''
    availability_zone: str = ''
    volumes: list[Volume] = field(default_factory=list)
    nics: list[Nic] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> Server:
        kind = 'server'
        meta = _section(raw, 'metadata', kind=kind, required=False)
        props = _section(raw, 'properties', kind=kind, required=False)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            status=_field(meta, 'state', str, kind=kind, default=''),
            ram=_field(props, 'ram', int, kind=kind, default=0),
            cores=_field(props, 'cores', int, kind=kind, default=0),
            cpu_family=_field(props, 'cpuFamily', str, kind=kind, default=''),
            availability_zone=_field(
                props, 'availabilityZone', str, kind=kind, default=''
            ),
            volumes=[Volume.from_dict(v) for v in _items(raw, 'volumes', kind=kind)],
            nics=[Nic.from_dict(n) for n in _items(raw, 'nics', kind=kind)],
        )

    @property
    def primary_ip(self) -> str:
        if self.nics and self.nics[0].ips:
            return self.nics[0].ips[0]
        return ''


@dataclass
class Image:
    id: str
    name: str
    image_type: str = ''
    location: str = ''

    @classmethod
    def from_dict(cls, raw: Any) -> Image:
        kind = 'image'
        props = _section(raw, 'properties', kind=kind)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            image_type=_field(props, 'imageType', str, kind=kind, default=''),
            location=_field(props, 'location', str, kind=kind, default=''),
        )


@dataclass
class Location:
    id: str
    name: str = ''
    image_aliases: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> Location:
        kind = 'location'
        props = _section(raw, 'properties', kind=kind, required=False)
        return cls(
            id=_ident(raw, kind=kind),
            name=_field(props, 'name', str, kind=kind, default=''),
            image_aliases=_str_list(props, 'imageAliases', kind=kind),
        )


class JobState(str, enum.Enum):
    QUEUED = 'QUEUED'
    RUNNING = 'RUNNING'
    DONE = 'DONE'
    FAILED = 'FAILED'

    @property
    def terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    message: str = ''

    @classmethod
    def from_dict(cls, raw: Any) -> JobStatus:
        kind = 'request status'
        meta = _section(raw, 'metadata', kind=kind)
        text = _field(meta, 'status', str, kind=kind)
        try:
            state = JobState(text.upper())
        except ValueError:
            raise DecodeError(f'{kind}: unknown status {text!r}') from None
        return cls(
            state=state,
            message=_field(meta, 'message', str, kind=kind, default=''),
        )


class DatacenterOrigin(str, enum.Enum):
    """Whether the machine's datacenter existed before it was provisioned."""

    PREEXISTING = 'preexisting'
    CREATED = 'created'


@dataclass
class Machine:
    """Provider resources owned by one provisioned machine.

    Callers must serialize lifecycle operations per machine; the ids held
    here are not safe for concurrent mutation.
    """

    name: str
    datacenter_id: str = ''
    server_id: str = ''
    lan_id: str = ''
    ip_address: str = ''
    datacenter_origin: DatacenterOrigin = DatacenterOrigin.CREATED
    ssh_key: str = ''

    @property
    def preexisting_datacenter(self) -> bool:
        return self.datacenter_origin is DatacenterOrigin.PREEXISTING

    @property
    def provisioned(self) -> bool:
        return all(
            (self.datacenter_id, self.server_id, self.lan_id, self.ip_address)
        )

    def clear_resources(self, *, datacenter_deleted: bool = False) -> None:
        self.server_id = ''
        self.lan_id = ''
        self.ip_address = ''
        if datacenter_deleted or not self.preexisting_datacenter:
            self.datacenter_id = ''
