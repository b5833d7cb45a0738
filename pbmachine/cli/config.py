from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import PBMachineConfig, dump_toml, save
from ._common import _BaseCommand, _cfg_path, _load_cfg


class InitCLI(_BaseCommand):
    """Write a config file with default machine settings."""

    force = scfg.Value(
        False, isflag=True, help='Overwrite an existing config file.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            print(f'Config already exists: {path}', file=sys.stderr)
            print('Use --force to overwrite it.', file=sys.stderr)
            return 2
        path.parent.mkdir(parents=True, exist_ok=True)
        save(path, PBMachineConfig())
        print(f'Wrote config: {path}')
        return 0


class ConfigShowCLI(_BaseCommand):
    """Show the resolved config, including environment overrides."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        if cfg.provider.password:
            cfg.provider.password = '********'
        print(f'# Config: {_cfg_path(args.config)}')
        print(dump_toml(cfg), end='')
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Config file subcommands."""

    init = InitCLI
    show = ConfigShowCLI
