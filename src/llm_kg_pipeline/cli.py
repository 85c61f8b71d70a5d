"""Command-line interface for the LLM knowledge extraction pipeline.

This CLI provides three commands:

1. `llm-kg providers`: Show the provider registry
   - Model, context limit, pricing and rate limits per provider
   - Whether a credential is configured

2. `llm-kg check FILE`: Run the eligibility gate against a markdown file

3. `llm-kg extract FILE`: Extract entities and relationships from a markdown file
   - Runs the file through the background job queue
   - Prints entities, relationships, summary and cost
   - Optionally writes the full result as JSON
"""

import argparse
import asyncio
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import PipelineSettings
from .exceptions import PipelineError
from .models import ContentInput, JobStatus, ProcessingOptions, ProcessingResult
from .service import KnowledgeExtractionService

console = Console()


def _create_providers_parser(subparsers: argparse._SubParsersAction) -> None:
    """Create the providers subcommand parser.

    Args:
        subparsers: Subparsers action to add the command to.
    """
    subparsers.add_parser(
        "providers",
        help="Show configured LLM providers and their limits",
    )


def _create_check_parser(subparsers: argparse._SubParsersAction) -> None:
    """Create the check subcommand parser.

    Args:
        subparsers: Subparsers action to add the command to.
    """
    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a markdown file is eligible for automatic processing",
    )
    check_parser.add_argument("file", type=Path, help="Markdown file to check")


def _create_extract_parser(subparsers: argparse._SubParsersAction) -> None:
    """Create the extract subcommand parser.

    Args:
        subparsers: Subparsers action to add the command to.
    """
    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract a knowledge graph fragment from a markdown file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Run the extraction pipeline on one markdown file:

  1. Normalize and chunk the content
  2. Extract entities per chunk (with provider fallback)
  3. Deduplicate entities across chunks
  4. Detect relationships between entities
  5. Summarize the content and score quality
        """,
    )
    extract_parser.add_argument("file", type=Path, help="Markdown file to process")
    extract_parser.add_argument(
        "--no-relationships",
        action="store_true",
        help="Skip relationship detection",
    )
    extract_parser.add_argument(
        "--no-analysis",
        action="store_true",
        help="Skip summary and key insights",
    )
    extract_parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum entity confidence (default: 0.7)",
    )
    extract_parser.add_argument(
        "--max-chunks",
        type=int,
        default=None,
        help="Maximum chunks to process (default: 5)",
    )
    extract_parser.add_argument(
        "--json",
        type=Path,
        default=None,
        dest="json_output",
        help="Write the full result as JSON to this path",
    )


def _read_content(path: Path) -> ContentInput:
    if not path.is_file():
        msg = f"File not found: {path}"
        raise PipelineError(msg)
    return ContentInput(
        session_id="cli",
        content_id=path.name,
        text=path.read_text(encoding="utf-8"),
        title=path.stem,
    )


def _run_providers_command(settings: PipelineSettings) -> None:
    service = KnowledgeExtractionService(settings)
    available = set(service.dispatcher.available_providers())

    table = Table(title="LLM Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Max tokens", justify="right")
    table.add_column("$/1k tokens", justify="right")
    table.add_column("RPM", justify="right")
    table.add_column("TPM", justify="right")
    table.add_column("Credential")

    for spec in service.registry:
        configured = "[green]configured[/]" if spec.provider_id in available else f"[red]missing {spec.credential_env}[/]"
        table.add_row(
            spec.provider_id,
            spec.model,
            f"{spec.max_tokens:,}",
            f"{spec.cost_per_1000_tokens:.3f}",
            str(spec.requests_per_minute),
            f"{spec.tokens_per_minute:,}",
            configured,
        )

    console.print(table)
    console.print(f"Fallback order: {', '.join(settings.provider_priority)}")


def _run_check_command(args: argparse.Namespace, settings: PipelineSettings) -> None:
    service = KnowledgeExtractionService(settings)
    content = _read_content(args.file)
    decision = service.check_eligibility(content)

    if decision.eligible:
        console.print(f"[green]Eligible[/] for LLM processing ({len(content.text):,} chars)")
        return

    console.print(f"[yellow]Not eligible[/]: {decision.reason}")
    if decision.details:
        for key, value in decision.details.items():
            console.print(f"  - {key}: {value}")
    raise SystemExit(2)


def _print_result(result: ProcessingResult) -> None:
    entity_table = Table(title=f"Entities ({len(result.entities)})")
    entity_table.add_column("Name", style="cyan")
    entity_table.add_column("Type")
    entity_table.add_column("Confidence", justify="right")
    names = {}
    for entity in result.entities:
        names[entity.id] = entity.name
        entity_table.add_row(entity.name, entity.type.value, f"{entity.confidence:.2f}")
    console.print(entity_table)

    if result.relationships:
        rel_table = Table(title=f"Relationships ({len(result.relationships)})")
        rel_table.add_column("Source", style="cyan")
        rel_table.add_column("Type")
        rel_table.add_column("Target", style="cyan")
        rel_table.add_column("Confidence", justify="right")
        for rel in result.relationships:
            rel_table.add_row(
                names[rel.source_entity_id],
                rel.type.value,
                names[rel.target_entity_id],
                f"{rel.confidence:.2f}",
            )
        console.print(rel_table)

    if result.summary:
        console.print()
        console.print(f"[bold]Summary:[/] {result.summary}")
        for insight in result.key_insights:
            console.print(f"  - {insight}")

    processing = result.processing
    console.print()
    console.print(
        f"Provider: {processing.provider} | Chunks: {processing.chunk_count} | "
        f"Retries: {processing.retry_count} | Cost: ${processing.total_cost:.4f} | "
        f"Time: {processing.processing_time_seconds:.1f}s"
    )
    quality = result.quality
    console.print(
        f"Quality: {quality.extraction_confidence * 100:.1f}% confidence, "
        f"{quality.completeness_score * 100:.0f}% completeness"
    )


async def _run_extract_command(args: argparse.Namespace, settings: PipelineSettings) -> None:
    content = _read_content(args.file)
    option_overrides = {
        "include_relationships": not args.no_relationships,
        "include_analysis": not args.no_analysis,
    }
    if args.threshold is not None:
        option_overrides["confidence_threshold"] = args.threshold
    if args.max_chunks is not None:
        option_overrides["max_chunks"] = args.max_chunks
    content = content.model_copy(update={"options": ProcessingOptions(**option_overrides)})

    console.print("[bold cyan]LLM Knowledge Extraction[/]")
    console.print(f"File: {args.file} ({len(content.text):,} chars)")
    console.print()

    async with KnowledgeExtractionService(settings) as service:
        if not service.dispatcher.available_providers():
            console.print("[red]Error: no LLM provider credentials configured[/]")
            console.print("Set: [cyan]OPENAI_API_KEY[/] and/or [cyan]ANTHROPIC_API_KEY[/]")
            raise SystemExit(1)

        job = await service.submit(content, force=True)
        with console.status("Extracting knowledge..."):
            await service.queue.join()

        finished = service.queue.get_job(job.id)
        result = await service.get_result(job.id)

    if finished is None or finished.status != JobStatus.COMPLETED or result is None:
        error = finished.error if finished else "job lost"
        console.print(f"[red]Extraction failed: {error}[/]")
        raise SystemExit(1)

    _print_result(result)

    if args.json_output:
        args.json_output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Result saved to: {args.json_output}[/]")


def main(argv: list[str] | None = None) -> None:
    """Run the LLM knowledge extraction CLI.

    Args:
        argv: Argument list (defaults to ``sys.argv[1:]``).
    """
    # Load .env file for API keys
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="llm-kg",
        description="Extract knowledge graph fragments from markdown with LLMs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  providers  Show configured providers and limits
  check      Check a file against the eligibility gate
  extract    Extract entities and relationships from a file

Examples:
  llm-kg providers
  llm-kg check article.md
  llm-kg extract article.md --json result.json

Environment variables:
  OPENAI_API_KEY              - OpenAI credential
  ANTHROPIC_API_KEY           - Anthropic credential
  LLM_AUTO_PROCESSING         - Enable the eligibility gate ("true")
  LLM_DAILY_COST_LIMIT_CENTS  - Daily spend limit (default: 1000)
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    _create_providers_parser(subparsers)
    _create_check_parser(subparsers)
    _create_extract_parser(subparsers)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        raise SystemExit(1)

    try:
        settings = PipelineSettings.from_env()
        if args.command == "providers":
            _run_providers_command(settings)
        elif args.command == "check":
            _run_check_command(args, settings)
        elif args.command == "extract":
            asyncio.run(_run_extract_command(args, settings))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/]")
        raise SystemExit(1) from None
    except (PipelineError, ValueError) as e:
        console.print(f"\n[red]Error: {e}[/]")
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
