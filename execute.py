#!/usr/bin/env python3
"""
Story Builder - requirements to scored user stories

Per model:
1. Generation - structured story via the chat completion gateway
2. Validation - title, description, 3-7 acceptance criteria
3. Repair - one extra call when only the criteria are unusable
4. Definition of Ready - deterministic checklist
5. Scoring - five 1-5 quality dimensions and review flags

Usage:
    python3 execute.py --input "Users need to reset their password by email"
    python3 execute.py --input-file requirements.txt --mode compare
    python3 execute.py -i "..." --models openai:gpt-5-nano google:gemini-2.5-flash-lite
    python3 execute.py -i "..." --dry-run  # Build prompt and payload only
"""

import argparse
import json
import os
import sys
import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from storybuilder.models import ProjectSettings, Run, RunBatch, RunRequest
from storybuilder.phases import (
    GenerationClient,
    OrchestratorConfig,
    PromptStore,
    RestPromptStore,
    StaticPromptStore,
    StoryRunOrchestrator,
    save_run_batch,
)
from storybuilder.prompts import build_story_messages, build_template_inputs
from storybuilder.utils import (
    StoryBuilderConfig,
    format_story,
    load_config,
    redact_secrets,
    setup_structured_logging,
)

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "storybuilder_config.yaml"


def load_environment() -> None:
    """Load environment variables from .env file (if present)."""
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        console.print("  [dim]No .env file, using process environment[/dim]")


def load_settings(path: str | None) -> ProjectSettings:
    """Read project settings from a YAML or JSON file."""
    if not path:
        return ProjectSettings()

    settings_path = Path(path)
    if not settings_path.exists():
        raise ValueError(f"Settings file not found: {settings_path}")

    data = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping: {settings_path}")
    return ProjectSettings(**data)


def build_prompt_store(config: StoryBuilderConfig) -> PromptStore:
    """Create the configured prompt store (static when REST is not configured)."""
    store_config = config.prompt_store
    if store_config.backend != "rest":
        return StaticPromptStore()

    url = os.getenv(store_config.rest_url_env, "")
    key = os.getenv(store_config.rest_key_env, "")
    if not url or not key:
        console.print(
            f"  [yellow]⚠[/yellow] {store_config.rest_url_env}/{store_config.rest_key_env} "
            f"not set - using default prompt"
        )
        return StaticPromptStore()

    return RestPromptStore(url, key, table=store_config.table)


def print_dry_run(
    request: RunRequest,
    config: StoryBuilderConfig,
    client: GenerationClient,
    orchestrator: StoryRunOrchestrator,
) -> None:
    """Show the messages and payloads that would be sent, without calling the gateway."""
    prompt = orchestrator.prompt_store.resolve_active_prompt()
    inputs = build_template_inputs(request, config.limits.max_text_length)
    messages = build_story_messages(prompt.template, inputs, request.raw_input)

    console.print(f"\n[bold]Prompt version:[/bold] {prompt.name}")
    for model in orchestrator.effective_models(request):
        model_id = orchestrator.resolve_model(model)
        payload = redact_secrets(client.build_story_payload(model_id, messages))
        console.print(Panel(
            json.dumps(payload, indent=2, ensure_ascii=False),
            title=f"Payload: {model_id}",
            border_style="dim",
        ))


def print_run(run: Run) -> None:
    """Print one run: story, DoR and scores."""
    ev = run.eval
    status = "[red]needs review[/red]" if ev.needs_review else "[green]ready[/green]"

    console.print(f"\n[bold cyan]{run.model_id}[/bold cyan] ({run.run_id[:8]}) - {status}")
    console.print(Markdown(format_story(run.final_story)))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("DoR", "PASSED" if run.dor.passed else "FAILED")
    table.add_row("Iterations", str(run.dor.iterations))
    table.add_row("Overall", f"{ev.overall:.1f}")
    for name, value in ev.dimensions.model_dump().items():
        table.add_row(name.capitalize(), str(value))
    console.print(table)

    for reason in run.dor.fail_reasons:
        console.print(f"  [yellow]⚠[/yellow] {reason}")
    if ev.flags:
        console.print(f"  Flags: {', '.join(ev.flags)}")


def print_summary(batch: RunBatch) -> None:
    """Print a compact comparison table for all runs."""
    table = Table(title=f"Request {batch.request_id[:8]} ({batch.run_mode.value})")
    table.add_column("Model")
    table.add_column("DoR")
    table.add_column("Overall", justify="right")
    table.add_column("Review")
    table.add_column("Story ID")

    for run in batch.runs:
        table.add_row(
            run.model_id,
            "✓" if run.dor.passed else "✗",
            f"{run.eval.overall:.1f}",
            "yes" if run.eval.needs_review else "no",
            (run.story_id or "-")[:8],
        )
    console.print(table)


def execute_pipeline(
    request: RunRequest,
    config: StoryBuilderConfig,
    dry_run: bool = False,
    output_dir: str = "outputs",
) -> int:
    """
    Run the story pipeline for one request.

    Args:
        request: Validated run request
        config: Loaded configuration
        dry_run: If True, build prompts and payloads without calling the gateway
        output_dir: Directory for session output

    Returns:
        Exit code (0 = success, 1 = error)
    """
    console.print(Panel.fit(
        f"[bold cyan]Story Builder[/bold cyan]\n"
        f"Mode: {request.run_mode.value}" + (" [dry-run]" if dry_run else ""),
        border_style="cyan",
    ))

    client = GenerationClient(
        base_url=config.gateway.base_url,
        api_key_env=config.gateway.api_key_env,
        temperature=config.gateway.temperature,
    )
    orchestrator = StoryRunOrchestrator(
        client=client,
        config=OrchestratorConfig.from_config(config),
        prompt_store=build_prompt_store(config),
    )

    if dry_run:
        print_dry_run(request, config, client, orchestrator)
        return 0

    if not os.getenv(config.gateway.api_key_env):
        console.print(
            f"  [yellow]⚠[/yellow] {config.gateway.api_key_env} not set - runs will be flagged llm_error"
        )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Generating stories...", total=None)
        batch = orchestrator.run(request)

    saved = save_run_batch(batch, request, output_dir)
    runs = [
        run.model_copy(update={"story_id": story_id})
        for run, story_id in zip(batch.runs, saved.story_ids)
    ]
    batch = batch.model_copy(update={"runs": runs})

    for run in batch.runs:
        print_run(run)

    console.print()
    print_summary(batch)
    console.print(f"\n  [green]✓[/green] Session saved: {saved.session_dir}")

    if batch.needs_review_count:
        console.print(f"\n[bold yellow]{batch.needs_review_count} run(s) need review[/bold yellow]")
    else:
        console.print("\n[bold green]✓ All runs ready[/bold green]")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Story Builder - turn requirements into scored user stories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 execute.py -i "Users need to reset their password"
  python3 execute.py --input-file req.txt --mode compare
  python3 execute.py -i "..." --settings project.yaml --custom-prompt "Focus on security"
  python3 execute.py -i "..." --dry-run
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", "-i", help="Free-text requirements")
    source.add_argument("--input-file", "-f", help="File containing the requirements")

    parser.add_argument(
        "--mode", "-m",
        choices=["single", "compare"],
        default="single",
        help="Run one model or compare several (default: single)"
    )
    parser.add_argument(
        "--models",
        nargs="+",
        default=[],
        help="Explicit model ids (provider:model); overrides the mode defaults"
    )
    parser.add_argument("--custom-prompt", "-c", help="Extra instruction for the generator")
    parser.add_argument("--settings", "-s", help="Project settings file (YAML or JSON)")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Configuration file (default: config/storybuilder_config.yaml)"
    )
    parser.add_argument(
        "--output-dir", "-o",
        default=None,
        help="Output directory for sessions (default: from config)"
    )
    parser.add_argument(
        "--dry-run", "-d",
        action="store_true",
        help="Build prompts and payloads without calling the gateway"
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level (DEBUG, INFO, WARNING, ERROR; default: WARNING)"
    )

    args = parser.parse_args()
    setup_structured_logging(args.log_level, json_output=args.json_logs)

    try:
        load_environment()
        config = load_config(args.config)

        raw_input = args.input
        if raw_input is None:
            raw_input = Path(args.input_file).read_text(encoding="utf-8")

        request = RunRequest(
            raw_input=raw_input,
            project_settings=load_settings(args.settings),
            run_mode=args.mode,
            models=args.models,
            custom_prompt=args.custom_prompt,
        )

        return execute_pipeline(
            request=request,
            config=config,
            dry_run=args.dry_run,
            output_dir=args.output_dir or config.output.dir,
        )

    except (ValueError, ValidationError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]Error writing output: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Execution cancelled by user[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
