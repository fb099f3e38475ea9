"""Command-line interface for issuing and verifying wipe certificates."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from logging.handlers import QueueListener
from pathlib import Path

from pydantic import ValidationError

from .anchor.ndjson import validate_ledger
from .errors import AnchorTimeoutError, WipeCertError
from .logging_pipeline import configure_structured_logging, shutdown_listeners
from .service import build_service
from .settings import get_settings
from .tools.signing import generate_keypair
from .wipe import run_wipe_engine

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNKNOWN_OUTCOME = 2


def _read_stdin() -> str | None:
    """Read JSON payload from stdin if available."""
    try:
        if sys.stdin and not sys.stdin.isatty():
            return sys.stdin.read()
    except OSError as e:
        print(f"Error reading stdin: {e}", file=sys.stderr)
    return None


def _load_document(path: str | None) -> dict[str, object]:
    """Load a certificate document from a file, or stdin when ``path`` is ``-``/absent."""
    if path and path != "-":
        text = Path(path).read_text(encoding="utf-8")
    else:
        stdin_payload = _read_stdin()
        if not stdin_payload:
            raise ValueError("No input provided. Use --input or pipe JSON via stdin.")
        text = stdin_payload
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Input JSON must be an object at the top level.")
    return data


def _emit(payload: object) -> None:
    print(json.dumps(payload, separators=(",", ":"), default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wipecert",
        description="Issue, anchor and verify tamper-evident wipe certificates.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit structured JSON logs on stderr.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="Generate an RSA signing keypair.")
    keygen.add_argument("--private", required=True, help="Private key PEM path.")
    keygen.add_argument("--public", required=True, help="Public key PEM path.")
    keygen.add_argument("--bits", type=int, default=2048, help="RSA key size.")

    issue = sub.add_parser("issue", help="Sign and anchor a certificate document.")
    issue.add_argument("cert_id", help="Certificate identifier.")
    issue.add_argument(
        "--input", "-i", help="Certificate JSON file. Reads stdin when omitted."
    )

    verify = sub.add_parser("verify", help="Verify a certificate and its anchoring.")
    verify.add_argument("cert_id", help="Certificate identifier.")
    verify.add_argument(
        "--input", "-i", help="Certificate JSON file. Reads stdin when omitted."
    )
    verify.add_argument(
        "--signature", "-s", required=True, help="Base64 signature returned by issue."
    )

    verify_hash = sub.add_parser(
        "verify-hash", help="Check a previously issued certHashHex against the ledger."
    )
    verify_hash.add_argument("cert_id", help="Certificate identifier.")
    verify_hash.add_argument("cert_hash_hex", help="Hex SHA-256 digest returned by issue.")

    history = sub.add_parser("history", help="List recorded verification attempts.")
    history.add_argument("cert_id", nargs="?", help="Only show this certificate.")

    fetch = sub.add_parser("fetch", help="Show the ledger record of a certificate.")
    fetch.add_argument("cert_id", help="Certificate identifier.")

    sub.add_parser("stats", help="Aggregate statistics over indexed certificates.")

    validate = sub.add_parser(
        "validate-ledger", help="Check the hash chain of a local NDJSON ledger."
    )
    validate.add_argument(
        "path", nargs="?", help="Ledger path. Defaults to WIPECERT_LEDGER_PATH."
    )

    wipe = sub.add_parser("wipe", help="Run the external wipe engine.")
    wipe.add_argument("target", help="Folder to wipe.")
    wipe.add_argument("--output", "-o", help="Path for the engine's JSON log.")
    wipe.add_argument("--engine", help="Engine executable. Defaults to WIPECERT_WIPE_ENGINE.")
    return parser


def _run(args: argparse.Namespace) -> int:
    if args.command == "keygen":
        signer = generate_keypair(args.private, args.public, key_size=args.bits)
        _emit({"fingerprint": signer.fingerprint, "public": str(args.public)})
        return EXIT_OK

    settings = get_settings()

    if args.command == "validate-ledger":
        ok, bad_line = validate_ledger(args.path or settings.ledger_path)
        _emit({"valid": ok, "firstBadLine": None if ok else bad_line})
        return EXIT_OK if ok else EXIT_FAILURE

    if args.command == "wipe":
        engine = args.engine or settings.wipe_engine_path
        if not engine:
            raise ValueError("Missing --engine and WIPECERT_WIPE_ENGINE is not set.")
        result = run_wipe_engine(
            args.target,
            engine_path=engine,
            output=args.output,
            timeout_seconds=settings.wipe_timeout,
        )
        _emit(result.to_dict())
        return EXIT_OK if result.success else EXIT_FAILURE

    service = build_service(settings)
    if args.command == "issue":
        _emit(service.issue(args.cert_id, _load_document(args.input)).model_dump_wire())
        return EXIT_OK
    if args.command == "verify":
        verdict = service.verify(
            args.cert_id, _load_document(args.input), args.signature
        )
        _emit(verdict.model_dump_wire())
        return EXIT_OK if verdict.valid_signature and verdict.anchored else EXIT_FAILURE
    if args.command == "verify-hash":
        check = service.verify_hash(args.cert_id, args.cert_hash_hex)
        _emit(check.model_dump_wire())
        return EXIT_OK if check.anchored else EXIT_FAILURE
    if args.command == "history":
        _emit(
            [entry.model_dump_wire() for entry in service.verification_history(args.cert_id)]
        )
        return EXIT_OK
    if args.command == "fetch":
        _emit(service.fetch(args.cert_id).model_dump_wire())
        return EXIT_OK
    _emit(service.stats().model_dump_wire())
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Run the ``wipecert`` command line."""
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    listeners: list[QueueListener] = []
    level = logging.DEBUG if args.verbose else logging.WARNING
    if args.log_json:
        listeners.append(
            configure_structured_logging(logging.getLogger("wipecert"), level=level)
        )
    else:
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return _run(args)
    except AnchorTimeoutError as exc:
        print(f"{exc} (check with 'wipecert fetch' before retrying)", file=sys.stderr)
        return EXIT_UNKNOWN_OUTCOME
    except (WipeCertError, ValueError, OSError, ValidationError) as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_FAILURE
    finally:
        shutdown_listeners(listeners)


if __name__ == "__main__":
    raise SystemExit(main())
