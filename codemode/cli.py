"""
Command line interface for codemode.

    codemode run snippet.ts            # execute a file
    echo 'return 1 + 1' | codemode run -
    codemode serve                     # MCP stdio server
    codemode doctor                    # check the guest runtime and stores
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .core.config import ConfigManager, ProjectConfig
from .core.exceptions import ConfigurationError, format_error_message
from .core.logging import setup_logging
from .sandbox.engine import SandboxEngine
from .sandbox.types import ExecutionResult

console = Console()
err_console = Console(stderr=True)


def _load_config(args: argparse.Namespace) -> ProjectConfig:
    manager = ConfigManager(config_path=Path(args.config) if args.config else None)
    return manager.config


def _read_source(target: str) -> str:
    if target == "-":
        return sys.stdin.read()
    return Path(target).read_text(encoding="utf-8")


def _render_result(result: ExecutionResult) -> None:
    if result.logs:
        console.print(Panel("\n".join(result.logs), title="logs", title_align="left", border_style="dim"))

    if result.ok:
        output = result.output
        body = json.dumps(output, indent=2, ensure_ascii=False) if not isinstance(output, str) else output
        console.print(Panel(body, title="output", title_align="left", border_style="green"))
        return

    kind = result.kind.value if result.kind else "error"
    console.print(Panel(Text(result.error or ""), title=f"{kind} error", title_align="left", border_style="red"))
    failure = result.as_exception()
    if failure is not None and hasattr(failure, "recovery_hint"):
        console.print(f"[yellow]{format_error_message(failure)}[/yellow]")


def cmd_run(args: argparse.Namespace, config: ProjectConfig) -> int:
    try:
        code = _read_source(args.file)
    except OSError as e:
        err_console.print(f"[red]Cannot read {args.file}: {e}[/red]")
        return 2

    context = None
    if args.context:
        try:
            context = json.loads(args.context)
        except json.JSONDecodeError as e:
            err_console.print(f"[red]--context must be JSON: {e}[/red]")
            return 2

    result = SandboxEngine(config).execute(code, args.timeout_ms, context=context)
    if args.json:
        sys.stdout.write(json.dumps(result.to_dict(), ensure_ascii=False) + "\n")
    else:
        _render_result(result)
    return 0 if result.ok else 1


def cmd_serve(args: argparse.Namespace, config: ProjectConfig) -> int:
    from .mcp.server import ServerConfig, create_server

    server = create_server(ServerConfig(version=__version__), SandboxEngine(config))
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        pass
    return 0


def cmd_doctor(args: argparse.Namespace, config: ProjectConfig) -> int:
    engine = SandboxEngine(config)
    healthy, detail = engine.host.check_health()

    table = Table(title="codemode doctor")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")

    def row(name: str, ok: bool, text: str) -> None:
        table.add_row(name, "[green]ok[/green]" if ok else "[red]missing[/red]", text)

    row("guest runtime", healthy, detail)
    row("projects root", Path(config.sandbox.projects_root).is_dir(), config.sandbox.projects_root)
    row("best cases", Path(config.capabilities.bestcase_dir).is_dir(), config.capabilities.bestcase_dir)
    row("guides", Path(config.capabilities.guides_dir).is_dir(), config.capabilities.guides_dir)
    for name, methods in engine.bindings.manifest().items():
        table.add_row(f"capability {name}", "[green]bound[/green]", ", ".join(methods))

    console.print(table)
    return 0 if healthy else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codemode",
        description="Run JavaScript/TypeScript snippets in a capability sandbox",
    )
    parser.add_argument("--version", action="version", version=f"codemode {__version__}")
    parser.add_argument("--config", "-c", type=str, help="Path to codemode.yaml or codemode.json")
    parser.add_argument("--log-level", type=str, help="Logging level (default: from config)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Execute a snippet file, or - for stdin")
    run.add_argument("file", help="Snippet path or - for stdin")
    run.add_argument("--timeout-ms", type=int, default=None, help="Timeout in milliseconds")
    run.add_argument("--context", type=str, help="JSON value exposed to the snippet as `context`")
    run.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    run.set_defaults(handler=cmd_run)

    serve = subparsers.add_parser("serve", help="Start the MCP stdio server")
    serve.set_defaults(handler=cmd_serve)

    doctor = subparsers.add_parser("doctor", help="Check the guest runtime and capability stores")
    doctor.set_defaults(handler=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = _load_config(args)
    except ConfigurationError as e:
        err_console.print(f"[red]{format_error_message(e)}[/red]")
        return 2

    setup_logging(args.log_level or config.logging.level)
    return args.handler(args, config)


if __name__ == "__main__":
    sys.exit(main())
