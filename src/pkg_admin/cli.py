# src/pkg_admin/cli.py

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from .application.registry import AppRegistry
from .config import AppOptions, options_from_env
from .credential import cert
from .adapters.jwt.signature_verifier import decode_jwt
from .integrations.common.verifier_factory import create_signature_verifier
from .domain.constants import ALGORITHM_RS256


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pkg-admin",
        description="Fetch access tokens and verify signed tokens from the command line",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log token manager / key fetcher activity to stderr.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    token = sub.add_parser(
        "token",
        help="Print an OAuth2 access token for the configured credential.",
    )
    token.add_argument(
        "--credential",
        "-C",
        help="Path to a service account JSON key "
             "(defaults to Application Default Credentials).",
    )
    token.add_argument(
        "--force",
        action="store_true",
        help="Bypass the token cache.",
    )

    verify = sub.add_parser(
        "verify",
        help="Verify the signature and validity window of a token.",
    )
    verify.add_argument("token", help="The encoded JWT.")
    verify.add_argument(
        "--cert-url",
        required=True,
        help="Endpoint publishing the key-id -> PEM map.",
    )
    verify.add_argument(
        "--algorithm",
        default=ALGORITHM_RS256,
        help=f"Expected signing algorithm (default: {ALGORITHM_RS256}).",
    )

    return parser.parse_args(args=argv)


async def _fetch_token(args: argparse.Namespace) -> dict[str, Any]:
    options = options_from_env()
    if args.credential:
        options = AppOptions(
            credential=cert(args.credential),
            project_id=options.project_id,
        )

    registry = AppRegistry()
    app = registry.initialize_app(options)
    try:
        token = await app.token_manager.get_token(force_refresh=bool(args.force))
    finally:
        await registry.delete_app(app)
    return {
        "access_token": token.access_token,
        "expiration_time_millis": token.expiration_time_millis,
    }


async def _verify_token(args: argparse.Namespace) -> dict[str, Any]:
    verifier = create_signature_verifier(
        client_cert_url=args.cert_url,
        algorithm=args.algorithm,
    )
    await verifier.verify(args.token)
    decoded = decode_jwt(args.token)
    return {"header": decoded.header, "payload": decoded.payload}


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    if args.command == "token":
        return await _fetch_token(args)
    return await _verify_token(args)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        summary = asyncio.run(_run(args))
        json.dump({"ok": True, **summary}, sys.stdout, indent=2)
        sys.stdout.write("\n")
    except Exception as exc:  # noqa: BLE001
        error: dict[str, Any] = {"ok": False, "error": str(exc)}
        code = getattr(exc, "code", None)
        if code is not None:
            error["code"] = getattr(code, "value", code)
        json.dump(error, sys.stdout, indent=2)
        sys.stdout.write("\n")
        raise


if __name__ == "__main__":
    main()
