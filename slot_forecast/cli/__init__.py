"""Command line interface."""

from .main import create_parser, main_cli, setup_logging

__all__ = ["create_parser", "main_cli", "setup_logging"]
