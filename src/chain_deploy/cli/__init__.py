"""Command line interface. The entry point is ``chain_deploy.cli.main:main``."""
