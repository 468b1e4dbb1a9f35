#!/usr/bin/env python3
"""
Wabasen command line — encrypt files or folders using wallet-based 2FA.

Usage:
    python run_wabasen.py encrypt -i report.txt -a 0xAbC... -p password -s 0x1b2c...
    python run_wabasen.py decrypt -i report.waba -a 0xAbC... -p password -s 0x1b2c...

Environment variables (alternative to --config / logging flags):
    WABASEN_COMPRESSION_LEVEL, WABASEN_LOG_LEVEL, WABASEN_LOG_FMT, WABASEN_LOG_FILE
"""

from __future__ import annotations

import argparse
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wabasen_core import __version__  # noqa: E402
from wabasen_core.config import load_config  # noqa: E402
from wabasen_core.errors import WabasenError  # noqa: E402
from wabasen_core.logging_config import setup_logging  # noqa: E402
from wabasen_core.pipeline import decrypt, encrypt  # noqa: E402

ABOUT = (
    "Open source software for file encryption with wallet-based 2FA.\n"
    "Wabasen comes with ABSOLUTELY NO WARRANTY."
)


def _add_credentials(p: argparse.ArgumentParser, input_help: str) -> None:
    p.add_argument("-i", "--input", required=True, metavar="INPUT", help=input_help)
    p.add_argument("-a", "--address", required=True, metavar="ADDRESS",
                   help="Address wallet linked to the signature")
    p.add_argument("-p", "--password", default="password", metavar="PASSWORD",
                   help="Password signed by the wallet")
    p.add_argument("-s", "--signature", required=True, metavar="SIGNATURE",
                   help="Signature of the password performed by the wallet")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wabasen",
        description=ABOUT,
        epilog="Documentation: wabasen.com",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", default=None, help="Path to wabasen.toml config file")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    p.add_argument("--log-format", default=None, choices=["human", "json"],
                   help="Console log format")

    sub = p.add_subparsers(dest="command", required=True)
    _add_credentials(
        sub.add_parser("encrypt", help="Encrypt files or folders using wallet-based 2FA"),
        "Input path of file or folder",
    )
    _add_credentials(
        sub.add_parser("decrypt", help="Decrypt files encrypted with wallet-based 2FA"),
        "Input path of encrypted file",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    operation = encrypt if args.command == "encrypt" else decrypt

    try:
        # Load config (TOML + env overrides); CLI flags win
        cfg = load_config(args.config)
        if args.log_level:
            cfg.logging.level = args.log_level.upper()
        if args.log_format:
            cfg.logging.format = args.log_format
        setup_logging(level=cfg.logging.level, fmt=cfg.logging.format, log_file=cfg.logging.file)

        report = operation(args.input, args.address, args.signature, args.password, config=cfg)
    except WabasenError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"\n{report.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
