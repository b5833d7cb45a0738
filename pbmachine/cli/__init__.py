"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import PBMachineModalCLI, main

__all__ = ['PBMachineModalCLI', 'main']
