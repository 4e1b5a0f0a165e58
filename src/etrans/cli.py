"""CLI interface for etrans."""
import hashlib
import signal
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from .cache import HybridCache
from .config import GENERATE_MODES, PROVIDER_TYPES, load_config, provider_config_from
from .errors import EtransError
from .languages import lang_label, validate_lang_code
from .pipeline import DocumentTranslator, TaskControl, TaskState


def default_task_id(input_file: str, target_lang: str, mode: str) -> str:
    """Stable task id for an input file, target language and mode."""
    digest = hashlib.sha256(str(Path(input_file).resolve()).encode('utf-8')).hexdigest()[:12]
    safe_lang = "".join(c if c.isalnum() or c in "-_." else "_" for c in target_lang)
    return f"{digest}-{safe_lang}-{mode}"


@click.command(context_settings=dict(help_option_names=['-h', '--help']))
@click.argument('input_file', type=click.Path(exists=True), required=False, default=None)
@click.option('-o', '--output', type=click.Path(), default=None, help='Output file path')
@click.option('-lo', '--target-lang', default=None, help='Target language code or name')
@click.option('-p', '--provider', type=click.Choice(PROVIDER_TYPES), default=None, help='Provider family')
@click.option('--api-key', default=None, help='API key for the provider')
@click.option('--base-url', default=None, help='API base URL (/chat/completions is appended)')
@click.option('--model', default=None, help='Model name')
@click.option('--instruction', default=None, help='Extra instruction replacing the translation-only rule')
@click.option('--mode', type=click.Choice(GENERATE_MODES), default=None, help='Output mode')
@click.option('--task-id', default=None, help='Task identifier (reuse to resume)')
@click.option('--cache-dir', type=click.Path(), default=None, help='Cache and progress directory')
@click.option('--force', is_flag=True, help='Ignore saved progress and cached translations')
@click.option('--prune-cache', is_flag=True, help='Delete expired cache files and exit')
@click.option('-q', '--quiet', is_flag=True, help='Only print errors and the summary')
@click.option('--setup', is_flag=True, help='Run interactive setup wizard')
def main(input_file, output, target_lang, provider, api_key, base_url, model, instruction, mode,
         task_id, cache_dir, force, prune_cache, quiet, setup):
    """etrans - Translate EPUB files with a language model, resumably.

    \b
    Example usage:
        etrans book.epub -lo fr
        etrans book.epub -lo ja --mode monolingual
        etrans book.epub -lo zh -p deepseek --base-url https://api.deepseek.com --model deepseek-chat
        etrans book.epub -lo de -p ollama --base-url http://localhost:11434/v1 --model llama3
        etrans book.epub -lo ko --task-id mybook   (run again to resume)
        etrans --prune-cache
        etrans --setup

    Press Ctrl-C once to pause; progress is saved and the next run resumes.
    """
    console = Console()

    if setup:
        from .config import run_setup
        run_setup()
        return

    cfg = load_config()
    cache_dir = cache_dir or cfg["cache_dir"]

    if prune_cache:
        with HybridCache(cache_dir, sweep_interval=None, console=console) as cache:
            removed = cache.prune_disk()
        console.print(f"[green]Removed {removed} expired cache entries from {cache_dir}[/green]")
        return

    if input_file is None:
        console.print("[bold red]Error:[/bold red] Please specify an EPUB file.")
        console.print("Usage: etrans book.epub -lo fr")
        console.print("Setup: etrans --setup")
        console.print("Help:  etrans --help")
        raise click.Abort()

    try:
        target_lang = validate_lang_code(target_lang or cfg["target_lang"])
        mode = mode or cfg["mode"]
        instruction = instruction if instruction is not None else (cfg.get("instruction") or "")
        provider_config = provider_config_from(
            cfg, provider=provider, api_key=api_key, api_url=base_url, model=model,
        )

        if output is None:
            input_path = Path(input_file)
            output = str(input_path.parent / f"{input_path.stem}.{target_lang}.epub")
        task_id = task_id or default_task_id(input_file, target_lang, mode)

        control = TaskControl()

        def request_pause(signum, frame):
            if control.status is TaskState.RUNNING:
                console.print("\n[yellow]Pausing after the current block... (Ctrl-C again to abort)[/yellow]")
                control.pause()
            else:
                raise KeyboardInterrupt

        previous_handler = signal.signal(signal.SIGINT, request_pause)
        try:
            with HybridCache(cache_dir, console=console) as cache:
                translator = DocumentTranslator.from_config(
                    provider_config, cache, console=Console(quiet=True) if quiet else console,
                )
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console,
                    disable=quiet,
                ) as progress:
                    bar = progress.add_task("[green]Translating blocks...", total=1.0)
                    result = translator.translate_document(
                        task_id,
                        input_file,
                        output,
                        target_lang,
                        instruction=instruction,
                        mode=mode,
                        progress_callback=lambda fraction: progress.update(bar, completed=fraction),
                        control=control,
                        force_retranslate=force,
                    )
                    if result.completed:
                        progress.update(bar, completed=1.0)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        console.print()
        if result.state in (TaskState.PAUSED, TaskState.CANCELLED):
            console.print(f"[yellow]Task {result.state.value}.[/yellow] Saved {len(result.translations)} translations.")
            console.print(f"Resume with: etrans {input_file} -lo {target_lang} --mode {mode} --task-id {task_id}")
            return

        console.print("[bold green]Translation Summary:[/bold green]")
        console.print(f"  Input:    {input_file}")
        console.print(f"  Output:   {result.output_path}")
        console.print(f"  Provider: {provider_config.type} ({provider_config.model})")
        console.print(f"  Language: {lang_label(target_lang)}")
        console.print(f"  Mode:     {mode}")
        console.print(f"  Task:     {task_id}")
        console.print(
            f"  Blocks:   translated={result.translated_count}, cached={result.cached_count}, "
            f"failed={len(result.failed_blocks)}"
        )
        if result.failed_blocks:
            console.print("[yellow]  Some blocks failed and were left untranslated; run again to retry them.[/yellow]")
        console.print()
        console.print("[bold green]✓ Done![/bold green]")

    except KeyboardInterrupt:
        console.print("[yellow]Cancelled by user.[/yellow]")
        raise click.Abort()
    except (EtransError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()


if __name__ == '__main__':
    main()
