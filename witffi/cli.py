"""
Command-line interface for witffi.

Usage:
    witffi generate --wit world.wit --lang rust --output out/
    witffi languages [LANGUAGE]
"""

from __future__ import annotations

import argparse
from typing import Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .codegen import (
    GeneratorConfig,
    GeneratorError,
    generate_from_wit,
    load_config,
    list_supported_languages,
)
from .codegen.registry import get_language_info, get_registry, list_all_language_info
from .logging_config import configure_logging, get_logger
from .utils import write_artifacts

logger = get_logger(__name__)

console = Console()


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="witffi",
        description="Generate C ABI scaffolding from WIT interface descriptions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  witffi generate --wit wit/ --lang rust --output src/ffi
  witffi generate --wit world.wit --output out --c-prefix eip681 --c-type-prefix Eip
  witffi languages
        """.strip(),
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command")

    generate = subparsers.add_parser(
        "generate",
        help="Generate native scaffolding and a C header",
        description="Generate ffi.rs and ffi.h for the world declared in a WIT file or directory",
    )
    generate.add_argument("--wit", required=True, metavar="PATH", help="WIT file or directory")
    generate.add_argument(
        "--lang", default="rust", metavar="LANGUAGE", help="Target language (default: rust)"
    )
    generate.add_argument("--output", "-o", required=True, metavar="DIR", help="Output directory")
    generate.add_argument(
        "--c-prefix", metavar="PREFIX", help="Prefix for exported C symbols (default: witffi)"
    )
    generate.add_argument(
        "--c-type-prefix", metavar="PREFIX", help="Prefix for C type names (default: Ffi)"
    )
    generate.add_argument("--config", metavar="FILE", help="JSON configuration file")
    generate.add_argument(
        "--no-comments", action="store_true", help="Don't add comments to generated code"
    )
    generate.add_argument(
        "--verbose", action="store_true", help="Show generation result metadata"
    )

    languages = subparsers.add_parser("languages", help="List supported target languages")
    languages.add_argument(
        "language", nargs="?", help="Show details about one language instead of the list"
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the command line.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if args.command == "generate":
        return handle_generate(args)
    if args.command == "languages":
        if args.language:
            return _show_language_info(args.language)
        return _list_languages()

    parser.print_help()
    return 1


def handle_generate(args: argparse.Namespace) -> int:
    """Load the WIT input, generate both artifacts and write them."""
    try:
        language = get_registry().resolve(args.lang)
        config = _build_config(args, language)
    except GeneratorError as e:
        return _report_failure(e.stage, e.message)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"[green]Generating {language} bindings...", total=None)
        result = generate_from_wit(args.wit, language, config)
        progress.remove_task(task)

    if not result.success:
        return _report_failure(result.stage or "generate", result.error_message)

    try:
        written = write_artifacts(args.output, result.artifacts)
    except GeneratorError as e:
        return _report_failure(e.stage, e.message)

    for path in written:
        console.print(f"[green]✓[/green] Wrote [cyan]{escape(str(path))}[/cyan]")

    if args.verbose and result.metadata:
        metadata_table = Table(
            title="📊 Generation Metadata",
            box=box.SIMPLE,
            show_header=True,
            header_style="bold cyan",
        )
        metadata_table.add_column("Property", style="bold")
        metadata_table.add_column("Value", style="green")

        for key, value in result.metadata.items():
            metadata_table.add_row(key.replace("_", " ").title(), escape(str(value)))

        console.print()
        console.print(metadata_table)

    if result.warnings:
        console.print("\n[yellow]⚠️  Warnings:[/yellow]")
        for warning in result.warnings:
            console.print(f"  [yellow]•[/yellow] {escape(warning)}")
        console.print()

    return 0


def _build_config(args: argparse.Namespace, language: str) -> GeneratorConfig:
    """Merge defaults, the optional JSON file and command-line flags."""
    overrides = {
        "output_dir": args.output,
        "symbol_prefix": args.c_prefix,
        "type_prefix": args.c_type_prefix,
    }
    if args.no_comments:
        overrides["add_comments"] = False

    return load_config(language, custom_config=overrides, config_file=args.config)


def _report_failure(stage: str, message: str | None) -> int:
    logger.debug(f"{stage} stage failed")
    console.print(f"[red]✗ {stage} failed:[/red] {escape(message or 'unknown error')}")
    return 1


def _list_languages() -> int:
    """List supported languages with details."""
    language_info = list_all_language_info()

    table = Table(title="📋 Supported Languages", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Language", style="bold green", no_wrap=True)
    table.add_column("Extension", style="cyan")
    table.add_column("Generator Class", style="dim")
    table.add_column("Aliases", style="blue")

    for lang_name, info in sorted(language_info.items()):
        aliases = ", ".join(info["aliases"]) if info["aliases"] else "[dim]none[/dim]"
        table.add_row(f"🔧 {lang_name}", info["file_extension"], info["class"], aliases)

    console.print()
    console.print(table)
    console.print()
    console.print(
        Panel(
            "[bold]Usage:[/bold] witffi generate --wit [dim]world.wit[/dim] "
            "--lang [cyan]LANGUAGE[/cyan] --output [dim]DIR[/dim]",
            title="💡 Quick Start",
            border_style="blue",
        )
    )
    return 0


def _show_language_info(language: str) -> int:
    """Show the generator and default configuration for one language."""
    if not get_registry().is_supported(language):
        console.print(f"[red]✗ Language '{escape(language)}' is not supported[/red]")
        console.print(f"[dim]Supported languages: {', '.join(list_supported_languages())}[/dim]")
        return 1

    info = get_language_info(language)
    info_text = (
        f"[bold]Language:[/bold] {info['name']}\n"
        f"[bold]File Extension:[/bold] {info['file_extension']}\n"
        f"[bold]Generator Class:[/bold] {info['class']}\n"
        f"[bold]Module:[/bold] {info['module']}"
    )
    if info["aliases"]:
        info_text += f"\n[bold]Aliases:[/bold] {', '.join(info['aliases'])}"

    console.print()
    console.print(Panel(info_text, title=f"🔧 {info['name'].title()} Generator", border_style="green"))

    config = load_config(info["name"])
    config_table = Table(
        title="⚙️  Default Configuration",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold cyan",
    )
    config_table.add_column("Setting", style="bold")
    config_table.add_column("Value", style="green")
    config_table.add_row("Symbol Prefix", config.symbol_prefix)
    config_table.add_row("Type Prefix", config.type_prefix)
    config_table.add_row("Escape Suffix", config.escape_suffix)
    config_table.add_row("Add Comments", str(config.add_comments))
    for key, value in sorted(config.custom.items()):
        config_table.add_row(key.replace("_", " ").title(), str(value))

    console.print()
    console.print(config_table)
    return 0
