"""Configuration dataclasses, TOML persistence, and environment binding."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Mapping

DEFAULT_ENDPOINT = 'https://api.profitbricks.com/cloudapi/v4'
DEFAULT_LOCATION = 'us/las'

SECTIONS = ('provider', 'machine', 'poll', 'paths')


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


@dataclass
class ProviderConfig:
    endpoint: str = DEFAULT_ENDPOINT
    username: str = ''
    password: str = ''


@dataclass
class MachineConfig:
    name: str = 'pbmachine'
    cores: int = 4
    ram_mb: int = 2048
    disk_size_gb: int = 50
    disk_type: str = 'HDD'
    image: str = 'Ubuntu-16.04'
    location: str = DEFAULT_LOCATION
    cpu_family: str = 'AMD_OPTERON'
    datacenter_id: str = ''
    volume_availability_zone: str = 'AUTO'
    server_availability_zone: str = 'AUTO'
    server_strategy: str = 'composite'


@dataclass
class PollConfig:
    attempts: int = 500
    interval_s: float = 10.0


@dataclass
class PathsConfig:
    state_dir: str = '~/.cache/pbmachine'
    ssh_key_path: str = ''


@dataclass
class PBMachineConfig:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    machine: MachineConfig = field(default_factory=MachineConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    verbosity: int = 1

    def expanded_paths(self) -> PBMachineConfig:
        self.paths.state_dir = expand(self.paths.state_dir)
        self.paths.ssh_key_path = (
            expand(self.paths.ssh_key_path) if self.paths.ssh_key_path else ''
        )
        return self

    def ssh_key_path(self) -> Path:
        if self.paths.ssh_key_path:
            return Path(expand(self.paths.ssh_key_path))
        return Path(expand(self.paths.state_dir)) / self.machine.name / 'id_rsa'


# Environment variables and the (section, key) they override.
ENV_BINDINGS: dict[str, tuple[str, str]] = {
    'PROFITBRICKS_ENDPOINT': ('provider', 'endpoint'),
    'PROFITBRICKS_USERNAME': ('provider', 'username'),
    'PROFITBRICKS_PASSWORD': ('provider', 'password'),
    'PROFITBRICKS_CORES': ('machine', 'cores'),
    'PROFITBRICKS_RAM': ('machine', 'ram_mb'),
    'PROFITBRICKS_DISK_SIZE': ('machine', 'disk_size_gb'),
    'PROFITBRICKS_IMAGE': ('machine', 'image'),
    'PROFITBRICKS_LOCATION': ('machine', 'location'),
    'PROFITBRICKS_DISK_TYPE': ('machine', 'disk_type'),
    'PROFITBRICKS_CPU_FAMILY': ('machine', 'cpu_family'),
    'PROFITBRICKS_DATACENTER_ID': ('machine', 'datacenter_id'),
}


def apply_env(
    cfg: PBMachineConfig, environ: Mapping[str, str] | None = None
) -> PBMachineConfig:
    env = os.environ if environ is None else environ
    for var, (section, key) in ENV_BINDINGS.items():
        raw = env.get(var)
        if raw is None or raw == '':
            continue
        obj = getattr(cfg, section)
        if isinstance(getattr(obj, key), int):
            try:
                value: object = int(raw)
            except ValueError:
                raise ValueError(f'{var} must be an integer, got {raw!r}') from None
        else:
            value = raw
        setattr(obj, key, value)
    if not cfg.provider.endpoint:
        cfg.provider.endpoint = DEFAULT_ENDPOINT
    return cfg


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def emit_toml_kv(lines: list[str], key: str, val: object) -> None:
    if isinstance(val, bool):
        lines.append(f'{key} = {"true" if val else "false"}')
    elif isinstance(val, (int, float)):
        lines.append(f'{key} = {val}')
    elif isinstance(val, list):
        parts = [f'"{_toml_escape(str(item))}"' for item in val]
        lines.append(f'{key} = [{", ".join(parts)}]')
    else:
        lines.append(f'{key} = "{_toml_escape(str(val))}"')


def dump_toml(cfg: PBMachineConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    if cfg.verbosity != 1:
        lines.append(f'verbosity = {cfg.verbosity}')
        lines.append('')
    for section in SECTIONS:
        lines.append(f'[{section}]')
        for k, v in d[section].items():
            emit_toml_kv(lines, k, v)
        lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def cfg_from_dict(raw: dict) -> PBMachineConfig:
    cfg = PBMachineConfig()
    for section in SECTIONS:
        body = raw.get(section, None)
        if isinstance(body, dict):
            obj = getattr(cfg, section)
            for k, v in body.items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def load(path: Path) -> PBMachineConfig:
    raw = tomllib.loads(path.read_text(encoding='utf-8'))
    return cfg_from_dict(raw)


def save(path: Path, cfg: PBMachineConfig) -> None:
    path.write_text(dump_toml(cfg), encoding='utf-8')
