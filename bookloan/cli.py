"""Command-line entry points for the loan server and the requester."""

import argparse
import sys
from typing import List, Optional

from bookloan.core.config import config
from bookloan.core.errors import ChannelUnavailable, StartupError
from bookloan.core.logger import setup_logger

logger = setup_logger(__name__)


def build_server_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bookloan-server", description="Library loan server")
    parser.add_argument("-p", dest="pipe", required=True, help="inbound named pipe")
    parser.add_argument("-f", dest="catalog", required=True, help="catalog file to load")
    parser.add_argument("-v", dest="verbose", action="store_true", help="log every received request")
    parser.add_argument("-s", dest="output", help="file to save the final catalog to")
    return parser


def build_client_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bookloan-client", description="Library loan requester")
    parser.add_argument("-p", dest="pipe", required=True, help="server's inbound named pipe")
    parser.add_argument("-i", dest="batch", help="batch file of 'type, name, isbn' lines")
    return parser


def describe_settings() -> List[str]:
    """One "KEY=value (source)" line per resolved setting."""
    return [
        f"{key}={value} ({'env' if config.is_from_env(key) else 'config'})"
        for key, value in config.get_all().items()
    ]


def server_main(argv: Optional[List[str]] = None) -> int:
    from bookloan.server.service import LoanServer

    args = build_server_parser().parse_args(argv)
    config.set_override("VERBOSE", args.verbose)
    if args.output:
        config.set_override("OUTPUT_FILE", args.output)
    if args.verbose:
        for line in describe_settings():
            logger.info(f"Setting {line}")

    server = LoanServer(args.pipe, args.catalog)
    try:
        server.start()
    except StartupError as e:
        logger.error(f"Server failed to start: {e}")
        return 1

    try:
        server.serve()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        server.shutdown()
    return 0


def client_main(argv: Optional[List[str]] = None) -> int:
    from bookloan.client.requester import Requester

    args = build_client_parser().parse_args(argv)
    requester = Requester(args.pipe)
    try:
        requester.open()
    except (StartupError, ChannelUnavailable) as e:
        logger.error(f"Client failed to start: {e}")
        return 1

    try:
        if args.batch:
            requester.run_batch(args.batch)
        else:
            requester.run_interactive()
    except OSError as e:
        logger.error_trace(f"Client stopped: {e}")
        return 1
    finally:
        requester.close()
    return 0


def run_server() -> None:
    sys.exit(server_main())


def run_client() -> None:
    sys.exit(client_main())
