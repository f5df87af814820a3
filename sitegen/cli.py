"""CLI entrypoints for sitegen commands."""

from __future__ import annotations

import argparse
import http.client
import json
import sys
from pathlib import Path
from typing import Any, Dict
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from dotenv import load_dotenv

from .config import ConfigError, load_config
from .logging import configure_logging
from .poller import ReadinessPoller


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitegen",
        description="Generate, preview and download web projects from a prompt.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .sitegen.yml or the directory containing it.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the generation HTTP server.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default=None, help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on.")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Ask a running server to generate a project and wait for its preview.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument("prompt", help="Description of the site to generate.")
    generate_parser.add_argument(
        "--server",
        default=None,
        help="Base URL of the sitegen server (defaults to http://localhost:<server.port>).",
    )
    generate_parser.add_argument(
        "--wait",
        type=float,
        default=30.0,
        help="Seconds to wait for the live preview before using the static fallback.",
    )
    generate_parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Seconds between readiness probes.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for sitegen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    if args.command == "serve":
        from .service.app import run_service

        run_service(config, host=args.host, port=args.port, verbose=bool(args.verbose))
    elif args.command == "generate":
        server = (args.server or f"http://localhost:{config.server.port}").rstrip("/")
        try:
            payload = _post_json(f"{server}/generate", {"prompt": args.prompt})
        except RuntimeError as exc:
            parser.exit(1, f"sitegen generate failed: {exc}\n")
        if payload.get("note"):
            print(payload["note"])
        poller = ReadinessPoller(timeout=args.wait, interval=args.interval)
        result = poller.poll(payload["previewUrl"], f"{server}/preview-fallback/")
        label = "live" if result.live else "fallback"
        print(f"Preview ({label}): {result.url}")
        print(f"Download: {server}/download-zip")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _post_json(url: str, body: Dict[str, Any], timeout: float = 600.0) -> Dict[str, Any]:
    request = Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            return json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        raw = exc.read().decode("utf-8", errors="ignore")
        try:
            error = json.loads(raw)
        except json.JSONDecodeError:
            raise RuntimeError(f"server returned {exc.code}") from exc
        message = error.get("details") or error.get("error") or f"status {exc.code}"
        raise RuntimeError(str(message)) from exc
    except URLError as exc:
        raise RuntimeError(f"unable to reach {url}: {exc.reason}") from exc
    except (http.client.HTTPException, OSError) as exc:
        # Timeouts and resets while waiting on a long generation.
        raise RuntimeError(f"connection to {url} failed: {exc.__class__.__name__}: {exc}") from exc


if __name__ == "__main__":
    main(sys.argv[1:])
