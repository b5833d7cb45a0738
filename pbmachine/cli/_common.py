from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg
import ubelt as ub
from loguru import logger

from ..config import PBMachineConfig, apply_env, load
from ..provider import ProviderAPI
from ..store import store_path

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None,
        help='Path to config TOML (default: user config dir config.toml).',
    )
    store = scfg.Value(
        None, help='Path to the machine store TOML (default: user config dir).'
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _cfg_path(p: str | None) -> Path:
    if p:
        return Path(p).expanduser().resolve()
    return Path(ub.Path.appdir('pbmachine', type='config').ensuredir()) / 'config.toml'


def _store_path(p: str | None) -> Path:
    return Path(p).expanduser().resolve() if p else store_path()


def _load_cfg(config_path: str | None) -> PBMachineConfig:
    """Load config from disk (defaults when absent), then apply environment."""
    path = _cfg_path(config_path)
    if path.exists():
        cfg = load(path)
    else:
        if config_path is not None:
            raise FileNotFoundError(
                f'Config not found: {path}. Run: pbmachine config init --config {path}'
            )
        log.debug('No config at {}; using defaults', path)
        cfg = PBMachineConfig()
    return apply_env(cfg).expanded_paths()


def _make_provider(cfg: PBMachineConfig) -> ProviderAPI:
    # Import lazily so the CLI loads without the provider SDK installed.
    from ..sdk import ProfitBricksProvider

    return ProfitBricksProvider(cfg.provider)


__all__ = [name for name in globals() if not name.startswith('__')]
