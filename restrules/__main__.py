#!/usr/bin/env python3

import os
import sys
import json
import getpass
import argparse
import logging
from typing import List, Optional

import uvicorn

from restrules import naming, settings as _settings
from restrules.api import auth
from restrules.api.api import create_app


def get_parser(program: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=program)

    commands = parser.add_subparsers(
        description="Available sub-commands: init, check, hash-password, run",
        dest="command",
        required=True,
        metavar="<command>",
        help="the sub-command to be executed"
    )

    parser_init = commands.add_parser(
        "init",
        description="Initialize the project by creating a config file with default values"
    )
    parser_check = commands.add_parser(
        "check",
        description="Validate resource paths against the naming conventions (exits with 1 on violations)"
    )
    parser_hash = commands.add_parser(
        "hash-password",
        description="Create an argon2 password hash for a client entry of the config file"
    )
    parser_run = commands.add_parser(
        "run",
        description="Run 'uvicorn' ASGI server to serve the restrules REST API"
    )

    parser_init.add_argument(
        "--force",
        action="store_true",
        help="Allow overwriting an existing config file"
    )
    parser_init.add_argument(
        "--path",
        type=str,
        metavar="p",
        help=f"Path of the newly created config file (default: {_settings.CONFIG_PATHS[0]!r})"
    )

    parser_check.add_argument(
        "paths",
        nargs="*",
        metavar="path",
        help="Path templates to validate, e.g. '/users/{user_id}/orders'"
    )
    parser_check.add_argument(
        "--routes",
        action="store_true",
        help="Validate all routes registered by the application as well"
    )
    parser_check.add_argument(
        "--json",
        action="store_true",
        help="Print the result in JSON format instead of human-readable text"
    )
    parser_check.add_argument(
        "--indent",
        type=int,
        metavar="n",
        help="(JSON-only) Indent the JSON response with n spaces (default: none)"
    )

    parser_hash.add_argument(
        "--password",
        type=str,
        metavar="passwd",
        help="Password to be hashed (will be asked interactively if omitted)"
    )
    parser_hash.add_argument(
        "--weak",
        action="store_true",
        help="Use the cheapest hash parameters (insecure, for testing only)"
    )

    parser_run.add_argument(
        "--host",
        type=str,
        metavar="host",
        help="Bind TCP socket to this host (overwrite config)"
    )
    parser_run.add_argument(
        "--port",
        type=int,
        metavar="port",
        help="Bind TCP socket to this port (overwrite config)"
    )
    parser_run.add_argument(
        "--config",
        type=str,
        metavar="config",
        default="config.json",
        help="Overwrite the config file (defaults to 'config.json')"
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser_run.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload"
    )
    parser_run.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="n",
        help="Number of worker processes (not valid with --reload)",
    )
    parser_run.add_argument(
        "--no-access-log",
        action="store_true",
        help="Disable access logs"
    )
    parser_run.add_argument(
        "--root-path",
        type=str,
        default="",
        metavar="p",
        help="Sub-mount the application below the given path"
    )

    return parser


def init_project(args: argparse.Namespace) -> int:
    path = args.path or _settings.CONFIG_PATHS[0]
    if os.path.exists(path) and not args.force:
        print(
            f"A config file has been found at {path!r}. If you want a fresh "
            f"configuration, remove the file or use '--force' to overwrite it.",
            file=sys.stderr
        )
        return 1
    _settings.SETTINGS_LOG_INFO_FUNCTION = print
    _settings.store_configuration(path=path)
    print(
        "\nThere's no configured API client yet. Nobody can use the authenticated "
        "endpoints without a client entry. Use the 'hash-password' command to "
        "create a password hash and add the client to the 'auth' section."
    )
    return 0


def print_reports(reports: List[naming.NamingReport]):
    for report in reports:
        if report.valid:
            print(f"{report.path}: OK")
            continue
        print(f"{report.path}: {len(report.violations)} violation(s)")
        for violation in report.violations:
            print(f"  - [{violation.rule.value}] {violation.segment!r}: {violation.message}")


def check_paths(args: argparse.Namespace) -> int:
    settings = _settings.Settings()
    reports = [naming.validate_path(path, settings.naming) for path in args.paths]

    if args.routes:
        app = create_app(settings, configure_logging=False)
        reports.extend(app.registry.reports())

    if not reports:
        print("No paths given. Use '--routes' to check the application's routes.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(
            [
                {
                    "path": report.path,
                    "valid": report.valid,
                    "violations": [
                        {"rule": v.rule.value, "segment": v.segment, "message": v.message}
                        for v in report.violations
                    ]
                }
                for report in reports
            ],
            indent=args.indent
        ))
    else:
        print_reports(reports)
    return 0 if all(report.valid for report in reports) else 1


def hash_password(args: argparse.Namespace) -> int:
    passwd = args.password or getpass.getpass()
    if not passwd:
        print("A password is mandatory. No hash created!", file=sys.stderr)
        return 1
    print(auth.hash_password(passwd, args.weak))
    return 0


def run_server(args: argparse.Namespace) -> int:
    _settings.CONFIG_PATHS.insert(0, args.config)
    try:
        settings = _settings.Settings()
    except ValueError:
        print("Ensure that the configuration file is valid. Please correct any errors.", file=sys.stderr)
        raise

    if args.debug:
        settings.logging.root["level"] = "DEBUG"
        for handler in settings.logging.handlers:
            settings.logging.handlers[handler]["level"] = "DEBUG"

    port = args.port
    if port is None:
        port = settings.server.port
    host = args.host
    if host is None:
        host = settings.server.host

    app = create_app(settings=settings)

    logging.getLogger("restrules").info(f"Server running at host {host} port {port}")
    uvicorn.run(
        "restrules.api:api.app" if args.reload else app,
        port=port,
        host=host,
        reload=args.reload,
        workers=args.workers,
        log_level="debug" if args.debug else "info",
        log_config=settings.logging.model_dump(),
        access_log=not args.no_access_log,
        proxy_headers=True,
        root_path=args.root_path
    )
    return 0


def main(argv: Optional[List[str]] = None, program: str = "restrules") -> int:
    namespace = get_parser(program).parse_args(argv)

    command_functions = {
        "init": init_project,
        "check": check_paths,
        "hash-password": hash_password,
        "run": run_server
    }
    return command_functions[namespace.command](namespace)


if __name__ == '__main__':
    program_name = sys.argv[0] if not sys.argv[0].endswith("__main__.py") else "restrules"
    exit(main(sys.argv[1:], program_name))
