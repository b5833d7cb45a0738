"""Provision and tear down ProfitBricks virtual machines."""

__version__ = '0.1.0'
