"""
Stub loading utilities for CLI commands.

This module provides the loading steps shared across CLI commands:
- Stub directory selection for the resolved Ruby version
- Stub set and index creation, cached for the invocation
- Error handling for loading issues
"""

import logging

import typer

from rbstubs.stubs import StubIndex, StubLoader, StubSet
from .helpers import OutputHelper
from .config import STATE, _resolve_settings


logger = logging.getLogger(__name__)


def _stubs_directory() -> str:
    """Stub directory for the resolved Ruby version (with lower-version fallback)."""
    state = _resolve_settings()
    if state.stub_set is not None:
        return state.stub_set.directory
    return StubLoader.for_version(state.stubs_root, state.ruby_version).directory


def _load_stub_set(strict: bool = False) -> StubSet:
    state = _resolve_settings()
    if state.stub_set is None:
        loader = StubLoader(_stubs_directory())
        state.stub_set = loader.load(strict=strict)
        if state.stub_set.errors:
            OutputHelper.print_panel(
                f"{len(state.stub_set.errors)} stub file(s) could not be parsed and were skipped.\n\n"
                "[dim]Run [bold]rbstubs check[/bold] for details.[/dim]",
                title="Warning",
                border_style="yellow"
            )
    return state.stub_set


def _load_index() -> StubIndex:
    if STATE.index is None:
        STATE.index = StubIndex.from_stub_set(_load_stub_set())
        logger.debug("Indexed %d scopes", len(STATE.index))
    return STATE.index


def _fail(error: Exception, context: str = "Error"):
    """Report ``error`` and exit with status 1; unknown errors are re-raised."""
    if not OutputHelper.handle_error(error, context):
        raise error
    raise typer.Exit(1)
