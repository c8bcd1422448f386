"""Automated Octra transfers from locally held wallets."""

__version__ = "0.1.0"
