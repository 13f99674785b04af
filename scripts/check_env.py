"""Verify that the insights service configuration is intact.

The tool performs two main checks:

1. It loads ``AppSettings`` from the provided ``.env`` file so a missing
   ``GEMINI_API_KEY`` or a malformed insight tuning value is reported before
   the API or the queue worker start failing.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.

The ``check`` command also prints the resolved model, database path, and
whether market search enrichment is enabled.

Example usages::

    python -m scripts.check_env record --env-file /opt/finance/.env \
        --hash-file /opt/finance/.env.sha256

    python -m scripts.check_env verify --env-file /opt/finance/.env \
        --hash-file /opt/finance/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from finance_app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    if not settings.gemini.api_key.strip():
        raise ValueError("GEMINI_API_KEY must not be blank.")
    return settings


def _describe_settings(settings: AppSettings) -> int:
    """Print the resolved values operators most often need to confirm."""
    search = "enabled" if settings.serpapi_api_key else "disabled"
    print(f"Model:          {settings.gemini.model_name}")
    print(f"Database:       {settings.database_path}")
    print(f"Staleness:      {settings.insights.staleness_hours}h")
    print(f"Kept per type:  {settings.insights.max_analyses_per_type}")
    print(f"Market search:  {search}")
    return EXIT_OK


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Write the current checksum of ``env_file`` to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Baseline for {env_file} written to {hash_file}: {checksum}")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare ``env_file`` against the baseline stored in ``hash_file``."""
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected != actual:
        print(
            f"{env_file} changed since the baseline was recorded "
            f"(expected {expected}, found {actual}). "
            "Review it before restarting the API or the insight worker.",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print(f"{env_file} matches its baseline.")
    return EXIT_OK


_COMMANDS = {
    "record": ("Validate settings and write a checksum baseline.", True),
    "verify": ("Validate settings and compare against the baseline.", True),
    "check": ("Validate settings and print the resolved values.", False),
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate insights service settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (help_text, needs_hash) in _COMMANDS.items():
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Environment file to load (default: ./.env).",
        )
        if needs_hash:
            subparser.add_argument(
                "--hash-file",
                required=True,
                type=Path,
                help="File holding the SHA256 baseline.",
            )
    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.is_file():
        raise FileNotFoundError(f"Environment file {env_file} not found.")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except ValueError as exc:
        print(f"Settings validation failed: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: _describe_settings(settings),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
