"""Service modules for the CLI and the local web API."""

from . import cli, web_api, web_session

__all__ = ["cli", "web_api", "web_session"]
