"""Resumable, dependency-ordered smart contract deployment."""

__version__ = "0.1.0"
