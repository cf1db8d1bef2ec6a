"""Mock commands -- read and persist the mock mode flag.

Provides the ``apichain mock`` sub-command group. ``on`` and ``off`` go
through the same path an application uses at runtime: they emit a
``mock/toggle`` event on an :class:`~apichain.events.EventBus` handled by
:class:`~apichain.effects.MockEffects`, whose persistent
:class:`~apichain.effects.MockStateStore` writes the flag to the global
config file.
"""

from __future__ import annotations

import typer

from apichain.config import MOCK_ENV_VAR, global_config_path, load_global_config, parse_bool_env
from apichain.effects import MockEffects, MockStateStore, toggle_mock_mode
from apichain.events import EventBus
from apichain.exceptions import ApichainError
from apichain.output import error, info, print_table, success, warning
from apichain.registry import ApiRegistry

mock_app = typer.Typer(no_args_is_help=True)


def _set_mock_mode(enabled: bool) -> None:
    bus = EventBus()
    effects = MockEffects(ApiRegistry(), bus, MockStateStore(persistent=True))
    stop = effects.start()
    try:
        toggle_mock_mode(bus, enabled)
    finally:
        stop()

    override = parse_bool_env(MOCK_ENV_VAR)
    if override is not None and override != enabled:
        warning(
            f"{MOCK_ENV_VAR}={'on' if override else 'off'} is set and overrides the saved value."
        )


@mock_app.command("status")
def mock_status() -> None:
    """Show whether mock mode is on and where the value comes from.

    Example::

        apichain mock status
        apichain --json mock status
    """
    try:
        config = load_global_config()
        override = parse_bool_env(MOCK_ENV_VAR)
    except ApichainError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if override is not None:
        enabled, source = override, f"env:{MOCK_ENV_VAR}"
    else:
        enabled, source = config.mock.enabled, str(global_config_path())

    print_table(
        ["setting", "value", "source"],
        [
            ["enabled", "on" if enabled else "off", source],
            ["delay", f"{config.mock.delay:g}", str(global_config_path())],
        ],
        title="Mock mode",
    )


@mock_app.command("on")
def mock_on() -> None:
    """Turn mock mode on. Registered mock plugins become active."""
    try:
        _set_mock_mode(True)
    except ApichainError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success("Mock mode on.")


@mock_app.command("off")
def mock_off() -> None:
    """Turn mock mode off. Mock plugins are detached; real requests resume."""
    try:
        _set_mock_mode(False)
    except ApichainError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success("Mock mode off.")
    info("Requests go to the network again.")
