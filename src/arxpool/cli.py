"""Command-line verification of signed pool results."""

from __future__ import annotations

import argparse
import json
import logging
import logging.handlers
import sys
from pathlib import Path

from .errors import ArxPoolError
from .logging_pipeline import configure_structured_logging, shutdown_listeners
from .verify import ResultVerifier


def _read_stdin() -> str | None:
    """Read JSON payload from stdin if available."""
    try:
        if sys.stdin and not sys.stdin.isatty():
            return sys.stdin.read()
    except OSError as e:
        print(f"Error reading stdin: {e}", file=sys.stderr)
    return None


def _load_json(path: str | None, stdin_payload: str | None) -> dict[str, object]:
    """Load a signed result from file or stdin."""
    if path:
        text = Path(path).read_text(encoding="utf-8")
        return _parse_json_dict(text)
    if stdin_payload:
        return _parse_json_dict(stdin_payload)
    raise ValueError("No input provided. Use --input or pipe JSON via stdin.")


def _parse_json_dict(payload: str) -> dict[str, object]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Input JSON must be an object at the top level.")
    return {str(key): value for key, value in data.items()}


def main(argv: list[str] | None = None) -> int:
    """Verify a signed result; exit 0 when valid, 1 otherwise."""
    parser = argparse.ArgumentParser(
        prog="arxpool-verify",
        description="Verify the signature of an ArxPool signed result.",
    )
    parser.add_argument(
        "--input",
        "-i",
        help="Path to signed result JSON. If omitted, reads from stdin.",
    )
    parser.add_argument(
        "--public-key",
        "-k",
        help="Expected signer public key (hex). Defaults to the embedded key.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Quiet mode: suppress output, just return exit code.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit structured JSON logs to stderr.",
    )

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    listeners: list[logging.handlers.QueueListener] = []
    if args.log_json:
        listeners.append(configure_structured_logging(logging.getLogger("arxpool")))

    try:
        data = _load_json(args.input, None if args.input else _read_stdin())
        verifier = ResultVerifier()
        signed = verifier.parse(data)
        is_valid = verifier.verify(signed)
        if args.public_key and args.public_key.lower() != signed.public_key.lower():
            is_valid = False

        if not args.quiet:
            print(
                json.dumps(
                    {"valid": is_valid, "publicKey": signed.public_key},
                    separators=(",", ":"),
                )
            )
        return 0 if is_valid else 1

    except (ArxPoolError, ValueError, OSError) as exc:
        if not args.quiet:
            print(str(exc), file=sys.stderr)
        return 1
    finally:
        shutdown_listeners(listeners)


if __name__ == "__main__":
    raise SystemExit(main())
