"""
Command-line interface for the login negotiator.

This module provides the main CLI entry point with commands for:
- check: Probe a server address for reachability and API compatibility
- login: Validate credentials and store the resulting connection
- list: Show stored connections
- remove: Delete a stored connection and its token
- config: Configuration management
"""

import argparse
import asyncio
import getpass
import json
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_CONFIG_DIR,
    LoginConfig,
    create_default_config,
    generate_secret,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from .connection_store import ConnectionStore
from .enums import CredentialMode, CredentialStatus, LoginStatus, LogLevel
from .exceptions import StoreError, UrlError
from .identity_provider import ClientIdentityProvider
from .login_coordinator import LoginCoordinator
from .messages import describe_credential_status, describe_error, describe_login_status, get_message
from .models import ExtraHeader
from .repository import ApiRepository
from .secret_store import FileSecretStore
from .transport import HttpxTransport
from .url_deriver import derive_url, strip_known_scheme_prefix


DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"

CREDENTIAL_MODES = {
    "password": CredentialMode.USERNAME_AND_PASSWORD,
    "token": CredentialMode.TOKEN,
    "none": CredentialMode.NONE,
}


def parse_header(value: str) -> ExtraHeader:
    """
    Parse a ``NAME=VALUE`` command line header.

    Raises:
        ValueError: If the value has no name or no '='
    """
    name, sep, header_value = value.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValueError(value)
    return ExtraHeader(name=name, value=header_value)


def load_config(args: argparse.Namespace) -> Optional[LoginConfig]:
    """
    Build the effective configuration for a command.

    The configuration file (``--config`` or the default path) is read first,
    then ``PAPERLESS_LOGIN_*`` environment variables are applied, then the
    ``--language`` option.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else DEFAULT_CONFIG_PATH
    config = load_config_from_file(config_path)
    if config is None and getattr(args, "config", None):
        print(f"Error: Could not load config from {config_path}", file=sys.stderr)
        return None

    config = load_config_from_env(config or create_default_config())
    if getattr(args, "language", None):
        config.language = args.language
    return config


def create_logger(config: LoginConfig, verbose: bool) -> Optional[AuditLogger]:
    """Create an audit logger when verbose output is requested."""
    if not verbose:
        return None
    try:
        min_level = LogLevel(config.logging.level)
    except ValueError:
        min_level = LogLevel.INFO
    output_format = config.logging.output_format
    if output_format not in ("json", "text", "both"):
        output_format = "text"
    return AuditLogger(output_format=output_format, min_level=min_level)


def has_store_secret(config: LoginConfig) -> bool:
    """Report a missing store secret; True if the stores can be opened."""
    if config.persistence.hmac_secret:
        return True
    print(get_message("cli.missing_secret", config.language), file=sys.stderr)
    return False


def create_stores(config: LoginConfig) -> tuple[FileSecretStore, ConnectionStore]:
    secret_store = FileSecretStore(
        file_path=config.persistence.secrets_file,
        passphrase=config.persistence.hmac_secret,
    )
    connection_store = ConnectionStore(
        file_path=config.persistence.connections_file,
        hmac_secret=config.persistence.hmac_secret,
        secret_store=secret_store,
    )
    return secret_store, connection_store


def create_coordinator(
    config: LoginConfig,
    secret_store: FileSecretStore,
    logger: Optional[AuditLogger] = None,
    transport: Optional[HttpxTransport] = None,
) -> LoginCoordinator:
    """Wire a LoginCoordinator with the default collaborators."""
    transport = transport or HttpxTransport(verify=config.verify_tls, logger=logger)
    identity_provider = ClientIdentityProvider(secret_store, logger)
    repository = ApiRepository(transport, identity_provider, config.probe, logger)
    return LoginCoordinator(
        transport=transport,
        secure_store=secret_store,
        repository=repository,
        config=config.probe,
        logger=logger,
        identity_provider=identity_provider,
    )


def _extra_headers(args: argparse.Namespace, language: str) -> Optional[list[ExtraHeader]]:
    headers = []
    for value in args.header or []:
        try:
            headers.append(parse_header(value))
        except ValueError:
            print(get_message("cli.invalid_header", language, header=value), file=sys.stderr)
            return None
    return headers


async def run_check(
    coordinator: LoginCoordinator,
    url: str,
    language: str,
) -> int:
    """
    Probe a server address once.

    Args:
        coordinator: Coordinator with extra headers and identity applied
        url: Server address as typed by the user
        language: Output language

    Returns:
        Exit code (0 if the server is reachable and compatible)
    """
    coordinator.url = url
    task = coordinator.on_change_url(immediate=True)
    if task is not None:
        await task

    state = coordinator.login_state
    print(f"{coordinator.full_url}: {describe_login_status(state.status, language)}")
    if state.error is not None:
        print(f"  {describe_error(state.error, language)}", file=sys.stderr)
    return 0 if state.status == LoginStatus.VALID else 1


async def run_login(
    coordinator: LoginCoordinator,
    connection_store: ConnectionStore,
    language: str,
) -> int:
    """
    Validate the coordinator's credential fields and store the connection.

    Returns:
        Exit code (0 on success)
    """
    stored = await coordinator.validate_credentials()
    state = coordinator.credential_state

    if stored is None or state.status != CredentialStatus.VALID:
        print(describe_credential_status(state.status, language), file=sys.stderr)
        if state.error is not None:
            print(f"  {describe_error(state.error, language)}", file=sys.stderr)
        return 1

    try:
        connection_store.add(stored)
    except StoreError as e:
        print(get_message("cli.store_error", language, error=e.message), file=sys.stderr)
        return 1

    print(get_message("cli.login_success", language, username=stored.user.username, url=stored.url))
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    config = load_config(args)
    if config is None:
        return 1

    headers = _extra_headers(args, config.language)
    if headers is None:
        return 1

    if not has_store_secret(config):
        return 1

    logger = create_logger(config, args.verbose)
    secret_store, _ = create_stores(config)
    coordinator = create_coordinator(config, secret_store, logger)
    coordinator.extra_headers = headers
    coordinator.selected_identity = args.identity

    return asyncio.run(run_check(coordinator, args.url, config.language))


def cmd_login(args: argparse.Namespace) -> int:
    """Handle the 'login' command."""
    config = load_config(args)
    if config is None:
        return 1
    language = config.language

    headers = _extra_headers(args, language)
    if headers is None:
        return 1

    mode = CREDENTIAL_MODES[args.mode]
    password = args.password
    if mode == CredentialMode.USERNAME_AND_PASSWORD:
        if not args.username:
            print(get_message("cli.missing_argument", language, argument="--username"), file=sys.stderr)
            return 1
        if password is None:
            password = getpass.getpass()
    if mode == CredentialMode.TOKEN and not args.token:
        print(get_message("cli.missing_argument", language, argument="--token"), file=sys.stderr)
        return 1

    if not has_store_secret(config):
        return 1

    logger = create_logger(config, args.verbose)
    secret_store, connection_store = create_stores(config)
    coordinator = create_coordinator(config, secret_store, logger)

    scheme, coordinator.url = strip_known_scheme_prefix(args.url.strip())
    if scheme is not None:
        coordinator.scheme = scheme
    coordinator.credential_mode = mode
    coordinator.username = args.username or ""
    coordinator.password = password or ""
    coordinator.token = args.token or ""
    coordinator.extra_headers = headers
    coordinator.selected_identity = args.identity

    return asyncio.run(run_login(coordinator, connection_store, language))


def cmd_list(args: argparse.Namespace) -> int:
    """Handle the 'list' command."""
    config = load_config(args)
    if config is None or not has_store_secret(config):
        return 1

    _, connection_store = create_stores(config)
    try:
        connections = connection_store.list()
    except StoreError as e:
        print(get_message("cli.store_error", config.language, error=e.message), file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([c.to_dict() for c in connections], indent=2, ensure_ascii=False))
        return 0

    if not connections:
        print(get_message("cli.no_connections", config.language))
        return 0

    for connection in connections:
        identity = f" [{connection.identity_name}]" if connection.identity_name else ""
        print(f"{connection.url}{identity}  {connection.user.username}")
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    """Handle the 'remove' command."""
    config = load_config(args)
    if config is None:
        return 1
    language = config.language

    try:
        url = derive_url(args.url).base_url
    except UrlError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if not has_store_secret(config):
        return 1

    _, connection_store = create_stores(config)
    try:
        removed = connection_store.remove(url, args.identity)
    except StoreError as e:
        print(get_message("cli.store_error", language, error=e.message), file=sys.stderr)
        return 1

    if not removed:
        print(get_message("cli.connection_not_found", language, url=url), file=sys.stderr)
        return 1

    print(get_message("cli.connection_removed", language, url=url))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Verify TLS: {config.verify_tls}")
        print(f"  Debounce: {config.probe.debounce_seconds}s")
        print(f"  Timeout: {config.probe.timeout_seconds}s")
        print(f"  Minimum API version: {config.probe.minimum_api_version}")
        print(f"  Connections file: {config.persistence.connections_file}")
        print(f"  Secrets file: {config.persistence.secrets_file}")
        print(f"  Log level: {config.logging.level}")
        secret_state = "configured" if config.persistence.hmac_secret else "missing"
        print(f"  Store secret: {secret_state}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("cli.config_exists", args.language, path=config_path))
            print("Use --force to overwrite.")
            return 1

        # Re-initialising keeps the secret so existing stores stay readable
        existing = load_config_from_file(config_path) if config_path.exists() else None
        secret = existing.persistence.hmac_secret if existing else None
        config = create_default_config(
            config_dir=config_path.parent,
            language=args.language,
            hmac_secret=secret or generate_secret(),
        )
        if save_config_to_file(config, config_path):
            print(get_message("cli.config_created", args.language, path=config_path))
            return 0
        print(get_message("cli.config_write_failed", args.language, path=config_path), file=sys.stderr)
        return 1

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        help="Output language (default: from configuration)",
    )


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--identity", "-i",
        help="Name of the TLS client identity to offer",
    )
    parser.add_argument(
        "--header", "-H",
        action="append",
        metavar="NAME=VALUE",
        help="Extra header sent with every request (repeatable)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="paperless-login",
        description=get_message("cli.description", "en"),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # 'check' command
    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a server is reachable and compatible",
    )
    check_parser.add_argument(
        "url",
        help="Server address (scheme optional, https is assumed)",
    )
    _add_connection_arguments(check_parser)
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=cmd_check)

    # 'login' command
    login_parser = subparsers.add_parser(
        "login",
        help="Validate credentials and store the connection",
    )
    login_parser.add_argument(
        "url",
        help="Server address (scheme optional, https is assumed)",
    )
    login_parser.add_argument(
        "--mode", "-m",
        choices=sorted(CREDENTIAL_MODES),
        default="password",
        help="Credential mode (default: password)",
    )
    login_parser.add_argument(
        "--username", "-u",
        help="Username for password login",
    )
    login_parser.add_argument(
        "--password", "-p",
        help="Password for password login (prompted if omitted)",
    )
    login_parser.add_argument(
        "--token", "-t",
        help="API token for token login",
    )
    _add_connection_arguments(login_parser)
    _add_common_arguments(login_parser)
    login_parser.set_defaults(func=cmd_login)

    # 'list' command
    list_parser = subparsers.add_parser(
        "list",
        help="List stored connections",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the stored records as JSON",
    )
    _add_common_arguments(list_parser)
    list_parser.set_defaults(func=cmd_list)

    # 'remove' command
    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove a stored connection and its token",
    )
    remove_parser.add_argument(
        "url",
        help="Server address of the connection",
    )
    remove_parser.add_argument(
        "--identity", "-i",
        help="TLS client identity of the connection",
    )
    _add_common_arguments(remove_parser)
    remove_parser.set_defaults(func=cmd_remove)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default="en",
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
