"""
=============================================================================
HTTPCLIENT CLI ENTRY POINT
=============================================================================

A small curl-like command line client on top of the Browser.

=============================================================================
USAGE
=============================================================================

    # Simple GET, body to stdout
    python -m httpclient http://example.com/

    # Show status line and headers too
    python -m httpclient -i http://example.com/

    # POST a body (or a file with @path, streamed from disk)
    python -m httpclient -X POST -H "Content-Type: application/json" -d '{"a": 1}' http://localhost:8080/api
    python -m httpclient -d @payload.bin http://localhost:8080/upload

    # Form submission
    python -m httpclient -F user=alice -F pass=s3cret http://localhost:8080/login

    # Save to a file
    python -m httpclient -o image.png http://example.com/image.png

    # Talk to a daemon over its Unix socket
    python -m httpclient --unix-socket /var/run/docker.sock http://localhost/version

Exit status is 0 when a response was received (whatever its status
code) and 1 when the request could not be completed.

=============================================================================
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import AsyncIterator, Dict, List, Optional, Tuple

import aiofiles

from . import __version__
from .browser import Browser
from .config import ClientConfig, configure_logging
from .core.sender import Sender
from .errors import ClientError
from .http.body import BodyContent, StreamBody
from .http.response import Response

logger = logging.getLogger(__name__)


def parse_header(value: str) -> Tuple[str, str]:
    """'Name: value' → ('Name', 'value')"""
    name, sep, rest = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got {value!r}")
    return name.strip(), rest.strip()


def parse_field(value: str) -> Tuple[str, str]:
    """'key=value' → ('key', 'value')"""
    key, sep, rest = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Form field must look like 'key=value', got {value!r}")
    return key, rest


async def file_chunks(path: str, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as file:
        while True:
            chunk = await file.read(chunk_size)
            if not chunk:
                return
            yield chunk


def build_content(data: Optional[str], chunk_size: int) -> BodyContent:
    """-d value: literal text, or @path for a file streamed from disk."""
    if data is None:
        return None
    if data.startswith("@"):
        path = data[1:]
        return StreamBody(file_chunks(path, chunk_size), size=os.path.getsize(path))
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpclient",
        description="Asynchronous HTTP client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpclient http://example.com/                  # GET, body to stdout
  python -m httpclient -i http://example.com/               # include headers
  python -m httpclient -X POST -d 'hello' URL               # POST a body
  python -m httpclient -F a=1 -F b=2 URL                    # submit a form
  python -m httpclient -o out.bin URL                       # save to file
  python -m httpclient --unix-socket /tmp/app.sock URL      # via Unix socket
        """
    )

    parser.add_argument("url", help="Absolute URL to request")

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--request", "-X",
        dest="method",
        default=None,
        help="Request method (default: GET, or POST with --data/--form)"
    )

    parser.add_argument(
        "--header", "-H",
        dest="headers",
        action="append",
        type=parse_header,
        default=[],
        help="Extra header 'Name: value' (repeatable)"
    )

    body = parser.add_mutually_exclusive_group()
    body.add_argument(
        "--data", "-d",
        default=None,
        help="Request body; @path streams a file"
    )
    body.add_argument(
        "--form", "-F",
        dest="fields",
        action="append",
        type=parse_field,
        default=None,
        help="Form field 'key=value' sent urlencoded (repeatable)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # OUTPUT ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Write the body to this file instead of stdout"
    )

    parser.add_argument(
        "--include", "-i",
        action="store_true",
        help="Print the status line and response headers"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--unix-socket",
        default=None,
        help="Send the request through this Unix domain socket"
    )

    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the connection (default: from environment or 30)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: WARNING, or HTTPCLIENT_LOG_LEVEL)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Exchange log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpclient {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Environment first, then CLI flags on top."""
    config = ClientConfig.from_env()
    # The exchange log is noise on a terminal unless asked for
    config.log_level = args.log_level or os.environ.get("HTTPCLIENT_LOG_LEVEL", "WARNING")
    if args.log_format:
        config.log_format = args.log_format
    if args.unix_socket:
        config.unix_socket = args.unix_socket
    if args.connect_timeout is not None:
        config.connect_timeout = args.connect_timeout
    config.validate()
    return config


def format_head(response: Response) -> str:
    lines = [response.status_line]
    lines.extend(f"{name}: {value}" for name, value in response.headers.serialize())
    return "\r\n".join(lines) + "\r\n\r\n"


async def run(args: argparse.Namespace, config: ClientConfig) -> int:
    browser = Browser(Sender.from_config(config), config)
    headers: List[Tuple[str, str]] = list(args.headers)
    out = sys.stdout.buffer

    if args.output:
        method = args.method or "GET"
        response = await browser.download(args.url, args.output, headers, method)
    elif args.fields is not None:
        fields: Dict[str, List[str]] = {}
        for key, value in args.fields:
            fields.setdefault(key, []).append(value)
        response = await browser.submit(args.url, fields, headers, args.method or "POST")
    else:
        content = build_content(args.data, config.buffer_size)
        method = args.method or ("POST" if content is not None else "GET")
        response = await browser.request(method, args.url, headers, content, streaming=True)

    if args.include:
        out.write(format_head(response).encode("latin-1"))
        out.flush()

    async for chunk in response.body:
        if not args.output:
            out.write(chunk)
            out.flush()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(config)

    try:
        return asyncio.run(run(args, config))
    except ClientError as exc:
        print(f"httpclient: error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"httpclient: error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
