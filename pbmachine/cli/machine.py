"""CLI commands for machine create/remove and power lifecycle."""

from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg

from ..config import PBMachineConfig
from ..driver import Driver
from ..models import Machine
from ..store import (
    Store,
    find_machine,
    load_store,
    remove_machine,
    save_store,
    upsert_machine,
)
from ._common import _BaseCommand, _load_cfg, _make_provider, _store_path, log


class _MachineCommand(_BaseCommand):
    machine = scfg.Value(
        '',
        position=1,
        help='Machine name (positional; default: the active machine).',
    )


def _open_driver(args) -> tuple[Driver, Store, Path]:
    spath = _store_path(args.store)
    reg = load_store(spath)
    name = str(args.machine or '').strip() or reg.active_machine
    if not name:
        raise RuntimeError('No machine given and no active machine recorded.')
    ent = find_machine(reg, name)
    if ent is None:
        raise RuntimeError(f"Machine '{name}' not found in store: {spath}")
    cfg = _load_cfg(args.config)
    cfg.machine = ent.cfg.machine
    cfg.poll = ent.cfg.poll
    cfg.paths = ent.cfg.paths
    driver = Driver(cfg, ent.machine, _make_provider(cfg))
    return driver, reg, spath


class CreateCLI(_MachineCommand):
    """Provision a machine: IP block, datacenter, LAN, server, volume and NIC."""

    datacenter_id = scfg.Value(
        '', help='Create the machine in an existing datacenter.'
    )
    strategy = scfg.Value(
        '', help='Server creation strategy: composite or stepwise.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg: PBMachineConfig = _load_cfg(args.config)
        if args.machine:
            cfg.machine.name = str(args.machine).strip()
        if args.datacenter_id:
            cfg.machine.datacenter_id = str(args.datacenter_id).strip()
        if args.strategy:
            cfg.machine.server_strategy = str(args.strategy).strip()
        spath = _store_path(args.store)
        reg = load_store(spath)
        existing = find_machine(reg, cfg.machine.name)
        if existing is not None and existing.provisioned:
            raise RuntimeError(
                f"Machine '{cfg.machine.name}' already exists. "
                f'Remove it first: pbmachine rm {cfg.machine.name}'
            )
        machine = Machine(name=cfg.machine.name)
        driver = Driver(cfg, machine, _make_provider(cfg))
        driver.create()
        upsert_machine(reg, cfg, machine)
        save_store(reg, spath)
        print(f'{machine.name}: {machine.ip_address}')
        return 0


class RemoveCLI(_MachineCommand):
    """Delete the machine's provider resources and forget it."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, reg, spath = _open_driver(args)
        driver.remove()
        remove_machine(reg, driver.machine.name)
        save_store(reg, spath)
        log.info('Machine {} removed', driver.machine.name)
        return 0


class StartCLI(_MachineCommand):
    """Start the machine unless it is already running."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        driver.start()
        return 0


class StopCLI(_MachineCommand):
    """Stop the machine unless it is already stopped."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        driver.stop()
        return 0


class KillCLI(_MachineCommand):
    """Power the machine off."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        driver.kill()
        return 0


class RestartCLI(_MachineCommand):
    """Reboot the machine."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        driver.restart()
        return 0


class IPCLI(_MachineCommand):
    """Print the machine's public IP address."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, reg, spath = _open_driver(args)
        ip = driver.get_ip()
        save_store(reg, spath)
        print(ip)
        return 0


class StateCLI(_MachineCommand):
    """Print the machine's operational state."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        print(driver.get_state())
        return 0


class URLCLI(_MachineCommand):
    """Print the Docker endpoint URL of a running machine."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        driver, _, _ = _open_driver(args)
        print(driver.get_url())
        return 0


class ListCLI(_BaseCommand):
    """List machines recorded in the store."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        spath = _store_path(args.store)
        reg = load_store(spath)
        print('Machines')
        if not reg.machines:
            print('  (none)')
        for ent in sorted(reg.machines, key=lambda m: m.name):
            m = ent.machine
            marker = '*' if ent.name == reg.active_machine else ' '
            print(
                f' {marker}{m.name} | ip={m.ip_address or "-"} '
                f'| datacenter={m.datacenter_id or "-"} ({m.datacenter_origin.value}) '
                f'| server={m.server_id or "-"}'
            )
        print('')
        print(f'Store: {spath}')
        return 0
