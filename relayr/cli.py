from __future__ import annotations

import json
import sys
import time
import typing

import anyio
import click
from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text

from ._client import AsyncClient
from ._config import DEFAULT_TIMEOUT
from ._content import ByteContent
from ._exceptions import HTTPError, InvalidRequestError, InvalidURL
from ._models import Response
from ._transports.default import AsyncHTTPTransport

# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _status_color(status_code: int) -> str:
    """Return a rich color name based on HTTP status category."""
    if status_code < 200:
        return "cyan"
    elif status_code < 300:
        return "green"
    elif status_code < 400:
        return "yellow"
    elif status_code < 500:
        return "red"
    else:
        return "bold red"


def is_binary_content(content: bytes) -> bool:
    return b"\0" in content


def is_binary_content_type(content_type: str) -> bool:
    text_types = (
        "text/",
        "application/json",
        "application/xml",
        "application/javascript",
        "application/ecmascript",
    )
    ct = content_type.lower().split(";")[0].strip()
    return not any(ct.startswith(t) for t in text_types) and ct != ""


def _body_text(body: bytes, content_type: str) -> str | None:
    """Pretty JSON, plain text, or `None` for binary bodies."""
    if is_binary_content_type(content_type) or is_binary_content(body):
        return None
    text = body.decode("utf-8", errors="replace")
    if "application/json" in content_type:
        try:
            return json.dumps(json.loads(text), indent=4, ensure_ascii=False)
        except ValueError:
            return text
    return text


# ---------------------------------------------------------------------------
# Plain-text formatter (used with --no-color or when not on a terminal)
# ---------------------------------------------------------------------------


def format_response_plain(response: Response, body: bytes) -> str:
    status_line = f"{response.http_version} {response.status_code} {response.reason_phrase}"
    lines: list[str] = [status_line.rstrip()]

    for key, value in response.headers.multi_items():
        lines.append(f"{key}: {value}")

    lines.append("")

    if body:
        text = _body_text(body, response.headers.get("content-type", ""))
        if text is None:
            lines.append(f"<{len(body)} bytes of binary data>")
        else:
            lines.append(text)

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Rich formatter
# ---------------------------------------------------------------------------


def print_response_rich(console: Console, response: Response, body: bytes) -> None:
    """Pretty-print a response using rich."""
    color = _status_color(response.status_code)

    status_line = Text()
    status_line.append(f"{response.http_version} ", style="bold dim")
    status_line.append(f"{response.status_code}", style=f"bold {color}")
    if response.reason_phrase:
        status_line.append(f" {response.reason_phrase}", style=color)
    console.print(status_line)

    for key, value in response.headers.multi_items():
        header_text = Text()
        header_text.append(f"{key}", style="dim cyan")
        header_text.append(": ", style="dim")
        header_text.append(value)
        console.print(header_text)

    console.print()

    if body:
        content_type = response.headers.get("content-type", "")
        text = _body_text(body, content_type)
        if text is None:
            console.print(f"[dim]<{len(body)} bytes of binary data>[/dim]")
        elif "application/json" in content_type:
            console.print(Syntax(text, "json", theme="monokai"))
        else:
            console.print(text)


# ---------------------------------------------------------------------------
# Header parsing helper (curl-style -H "Key: Value")
# ---------------------------------------------------------------------------


def parse_header(header: str) -> tuple[str, str]:
    """Parse a 'Key: Value' header string."""
    if ":" not in header:
        raise click.BadParameter(
            f"Invalid header format: '{header}'. Expected 'Key: Value'."
        )
    key, _, value = header.partition(":")
    return key.strip(), value.strip()


async def _fetch(
    method: str,
    url: str,
    content: typing.Any,
    headers: list[tuple[str, str]],
    timeout: float | None,
) -> tuple[Response, bytes]:
    async with AsyncClient(transport=AsyncHTTPTransport(), timeout=timeout) as client:
        response = await client.request(method, url, content=content, headers=headers)
        body = await response.aread()
        await response.aclose()
        return response, body


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------


@click.command(help="Send an HTTP request and print the response.")
@click.argument("url")
@click.option("-m", "--method", default="GET", help="HTTP method.")
@click.option(
    "-c", "--content", default=None, help="Content to send in the request body."
)
@click.option(
    "-j", "--json-data", "json_body", default=None, help="JSON data to send."
)
@click.option(
    "-H",
    "--header",
    "headers",
    multiple=True,
    help='Add a header, e.g. -H "Authorization: Bearer token".',
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Seconds before the request is cancelled. 0 disables the timeout.",
)
@click.option("--download", default=None, help="Download to file.")
@click.option(
    "--timing", is_flag=True, default=False, help="Show the total request time."
)
@click.option(
    "--no-color", is_flag=True, default=False, help="Disable colored output."
)
def main(
    url: str,
    method: str,
    content: str | None,
    json_body: str | None,
    headers: tuple[str, ...],
    timeout: float,
    download: str | None,
    timing: bool,
    no_color: bool,
) -> None:
    use_rich = not no_color and sys.stdout.isatty()

    body_content: typing.Any = None
    if json_body is not None:
        try:
            data = json.loads(json_body)
        except ValueError as exc:
            raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="--json-data")
        body_content = ByteContent(
            json.dumps(data).encode("utf-8"), media_type="application/json"
        )
    elif content is not None:
        body_content = content.encode("utf-8")

    header_list = [parse_header(h) for h in headers]

    try:
        start_time = time.monotonic()
        response, body = anyio.run(
            _fetch, method, url, body_content, header_list, timeout or None
        )
        elapsed_ms = (time.monotonic() - start_time) * 1000
    except (HTTPError, InvalidRequestError, InvalidURL) as exc:
        if use_rich:
            console = Console(stderr=True)
            console.print(f"[bold red]{type(exc).__name__}[/bold red]: {exc}")
        else:
            click.echo(f"{type(exc).__name__}: {exc}", err=False)
        sys.exit(1)

    if download is not None:
        with open(download, "wb") as f:
            f.write(body)

        if use_rich:
            console = Console()
            console.print(
                f"[green]✓[/green] Downloaded [bold]{len(body):,}[/bold] bytes "
                f"to [cyan]{download}[/cyan]"
            )
    elif use_rich:
        console = Console()
        print_response_rich(console, response, body)
        if timing:
            console.print()
            console.print(f"[dim]⏱  Total: {elapsed_ms:.1f}ms[/dim]")
    else:
        click.echo(format_response_plain(response, body))
        if timing:
            click.echo()
            click.echo(f"Total: {elapsed_ms:.1f}ms")

    if response.status_code >= 300:
        sys.exit(1)
