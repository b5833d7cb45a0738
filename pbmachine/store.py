"""Single-file store for provisioned machines and their provider resource ids."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub
from loguru import logger

from .config import PBMachineConfig, cfg_from_dict, emit_toml_kv
from .models import DatacenterOrigin, Machine

log = logger

# Provider credentials are never written to the store.
STORED_SECTIONS = ('machine', 'poll', 'paths')
STATE_KEYS = (
    'datacenter_id',
    'server_id',
    'lan_id',
    'ip_address',
    'datacenter_origin',
    'ssh_key',
)


@dataclass
class MachineEntry:
    name: str
    cfg: PBMachineConfig
    machine: Machine

    @property
    def provisioned(self) -> bool:
        return self.machine.provisioned


@dataclass
class Store:
    schema_version: int = 1
    active_machine: str = ''
    machines: list[MachineEntry] = field(default_factory=list)


def _appdir(appname: str, kind: str) -> Path:
    p = ub.Path.appdir(appname, type=kind).ensuredir()
    return Path(p)


def store_path() -> Path:
    return _appdir('pbmachine', 'config') / 'machines.toml'


def _machine_from_dict(name: str, raw: dict) -> Machine:
    body = raw.get('state', {})
    if not isinstance(body, dict):
        body = {}
    origin = str(body.get('datacenter_origin', '') or DatacenterOrigin.CREATED.value)
    try:
        dc_origin = DatacenterOrigin(origin)
    except ValueError:
        log.warning(
            'Machine {} has unknown datacenter_origin={!r}; assuming created',
            name,
            origin,
        )
        dc_origin = DatacenterOrigin.CREATED
    return Machine(
        name=name,
        datacenter_id=str(body.get('datacenter_id', '')).strip(),
        server_id=str(body.get('server_id', '')).strip(),
        lan_id=str(body.get('lan_id', '')).strip(),
        ip_address=str(body.get('ip_address', '')).strip(),
        datacenter_origin=dc_origin,
        ssh_key=str(body.get('ssh_key', '')).strip(),
    )


def load_store(path: Path | None = None) -> Store:
    fpath = path or store_path()
    if not fpath.exists():
        return Store()
    raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    reg = Store()
    reg.schema_version = int(raw.get('schema_version', 1))
    reg.active_machine = str(raw.get('active_machine', '')).strip()
    for item in raw.get('machines', []):
        if not isinstance(item, dict):
            continue
        name = str(item.get('name', '')).strip()
        if not name:
            continue
        cfg = cfg_from_dict(item)
        cfg.machine.name = name
        reg.machines.append(
            MachineEntry(name=name, cfg=cfg, machine=_machine_from_dict(name, item))
        )
    return reg


def save_store(reg: Store, path: Path | None = None) -> Path:
    fpath = path or store_path()
    fpath.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f'schema_version = {reg.schema_version}']
    emit_toml_kv(lines, 'active_machine', reg.active_machine)
    lines.append('')
    for ent in sorted(reg.machines, key=lambda m: m.name):
        lines.append('[[machines]]')
        emit_toml_kv(lines, 'name', ent.name)
        if ent.cfg.verbosity != 1:
            lines.append(f'verbosity = {ent.cfg.verbosity}')
        d = asdict(ent.cfg)
        for section in STORED_SECTIONS:
            lines.append(f'[machines.{section}]')
            for k, v in d[section].items():
                emit_toml_kv(lines, k, v)
        lines.append('[machines.state]')
        for key in STATE_KEYS:
            val = getattr(ent.machine, key)
            if isinstance(val, DatacenterOrigin):
                val = val.value
            emit_toml_kv(lines, key, val)
        lines.append('')
    fpath.write_text('\n'.join(lines).rstrip() + '\n', encoding='utf-8')
    return fpath


def upsert_machine(reg: Store, cfg: PBMachineConfig, machine: Machine) -> None:
    name = machine.name
    rec = MachineEntry(name=name, cfg=cfg, machine=machine)
    existing = [m for m in reg.machines if m.name == name]
    if existing:
        reg.machines[reg.machines.index(existing[0])] = rec
    else:
        reg.machines.append(rec)
    reg.active_machine = name


def find_machine(reg: Store, name: str) -> MachineEntry | None:
    for rec in reg.machines:
        if rec.name == name:
            return rec
    return None


def remove_machine(reg: Store, name: str) -> bool:
    before = len(reg.machines)
    reg.machines = [m for m in reg.machines if m.name != name]
    if reg.active_machine == name:
        reg.active_machine = ''
    return len(reg.machines) != before
