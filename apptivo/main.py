"""Main entry point for the apptivo command line.

Sets up the Typer CLI application, performs dependency injection (Composition Root)
and defines the CLI commands on top of ApptivoController.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from apptivo import __version__
from apptivo.core.controller import ApptivoController
from apptivo.domain.exceptions import ApptivoError
from apptivo.domain.models.record import ObjectData
from apptivo.infrastructure.cli.display import ConsoleDisplay
from apptivo.infrastructure.config.settings import (
    get_backoff_policy, get_base_url, get_config, get_credentials, get_session_credentials, get_timeout,
    load_configuration,
)
from apptivo.infrastructure.http.transport import HttpxTransport
from apptivo.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging
from apptivo.infrastructure.resilience.throttle import FlatSleepThrottle

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Raises:
        typer.Exit: No API credentials are configured.
    """
    # 1. Load Configuration First
    load_configuration()
    setup_logging(
        log_level=get_config('logging.level', 'INFO'),
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
    )
    logger.info("Configuration and logging initialized.")

    dependencies: Dict[str, Any] = {'ui': ConsoleDisplay()}

    # 2. Credentials
    credentials = get_credentials()
    if credentials is None:
        logger.error("APPTIVO_API_KEY / APPTIVO_ACCESS_KEY are not configured.")
        dependencies['ui'].display_error(
            "Missing credentials. Set APPTIVO_API_KEY and APPTIVO_ACCESS_KEY in the environment or a .env file."
        )
        raise typer.Exit(code=1)

    # 3. Transport, retry policy and controller
    policy = get_backoff_policy()
    dependencies['transport'] = HttpxTransport(base_url=get_base_url(), timeout=get_timeout())
    dependencies['controller'] = ApptivoController(
        credentials,
        transport=dependencies['transport'],
        session_credentials=get_session_credentials(),
        max_retries=policy['max_retries'],
        sleep_seconds=policy['sleep_seconds'],
        throttle=FlatSleepThrottle(policy['backoff_factor']),
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# Built on first command, so importing this module never touches config or network
_dependencies: Dict[str, Any] = {}


def get_dependencies() -> Dict[str, Any]:
    if not _dependencies:
        _dependencies.update(create_dependencies())
    return _dependencies


def _load_record(path: Path) -> ObjectData:
    payload = json.loads(path.read_text(encoding='utf-8'))
    if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
        payload = payload['data']
    return ObjectData.from_payload(payload)


def _fail(ui: ConsoleDisplay, error: Exception) -> None:
    logger.error(f"Command failed: {type(error).__name__}: {error}")
    ui.display_error(str(error))
    raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="apptivo",
    help=f"apptivo v{__version__}: inspect Apptivo app configuration and resolve field labels.",
    add_completion=False,
)

RecordOption = Annotated[
    Optional[Path],
    typer.Option("--record", "-r", exists=True, file_okay=True, dir_okay=False, readable=True,
                 help="JSON file holding one record of the app.")
]


@app.command(name="show-config")
def show_config_command(
    app_id: Annotated[str, typer.Argument(help="App name (e.g. 'contacts') or numeric custom app id.")],
):
    """Fetches and prints the configuration of an app."""
    deps = get_dependencies()
    controller: ApptivoController = deps['controller']
    try:
        document = controller.get_config_data(app_id)
    except ApptivoError as e:
        _fail(deps['ui'], e)
    deps['ui'].display_config(document)


@app.command()
def resolve(
    app_id: Annotated[str, typer.Argument(help="App name or numeric custom app id.")],
    label: Annotated[str, typer.Argument(help="Field label to resolve.")],
    section: Annotated[Optional[str], typer.Argument(help="Restrict the lookup to this section.")] = None,
    record: RecordOption = None,
):
    """Resolves a field label to its attribute id (and value, given a record)."""
    deps = get_dependencies()
    controller: ApptivoController = deps['controller']
    path = [section, label] if section else label
    try:
        if record is not None:
            result = controller.get_attr_details_from_label(path, _load_record(record), app_id)
        else:
            result = controller.get_attr_settings_from_label(path, app_id)
    except (ApptivoError, ValueError) as e:
        _fail(deps['ui'], e)
    deps['ui'].display_resolution(label, result)
    if not result.found:
        raise typer.Exit(code=1)


@app.command()
def rows(
    app_id: Annotated[str, typer.Argument(help="App name or numeric custom app id.")],
    section_label: Annotated[str, typer.Argument(help="Label of the table section.")],
    record: Annotated[Path, typer.Option("--record", "-r", exists=True, file_okay=True, dir_okay=False,
                                         readable=True, help="JSON file holding one record of the app.")],
):
    """Prints the rows a record holds for one table section."""
    deps = get_dependencies()
    controller: ApptivoController = deps['controller']
    try:
        section_rows = controller.get_table_section_rows_from_section_label(section_label, _load_record(record), app_id)
        section = controller.get_config_data(app_id).find_table_section(section_label)
    except (ApptivoError, ValueError) as e:
        _fail(deps['ui'], e)
    if not section_rows:
        deps['ui'].display_info(f"Record has no rows for '{section_label}'.")
        return
    deps['ui'].display_rows(section, section_rows)


@app.command()
def login():
    """Exchanges the configured session credentials for a session key."""
    deps = get_dependencies()
    controller: ApptivoController = deps['controller']
    try:
        controller.session.ensure_session_key()
    except ApptivoError as e:
        _fail(deps['ui'], e)
    deps['ui'].display_info("Session established.")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    try:
        app()
    finally:
        transport = _dependencies.get('transport')
        if transport is not None:
            transport.close()


if __name__ == "__main__":
    cli_entry_point()
