"""upkeep command line interface."""

from __future__ import annotations

import logging
import sys

import click

from upkeep.config import load_config
from upkeep.errors import UpkeepError
from upkeep.lexicon import DEFAULT_LEXICON, load_lexicon
from upkeep.orchestrator import ExtractionJob, Phase, Source, SourceKind, build_orchestrator
from upkeep.output import render_equipment_markdown, write_equipment_markdown
from upkeep.periodicity import policy_from_config
from upkeep.schedule import complete_task, find_equipment, overdue_tasks
from upkeep.storage import JsonStore


def _ok(text: str) -> None:
    click.echo(f"  {click.style('✓', fg='green')} {text}")


def _fail(text: str) -> None:
    click.echo(f"  {click.style('✗', fg='red')} {text}", err=True)
    sys.exit(1)


def _header(text: str) -> None:
    click.echo(f"\n  {click.style(text, fg='cyan', bold=True)}\n")


class _ProgressPrinter:
    """Prints phase changes and progress of the running job."""

    def __init__(self) -> None:
        self._phase = Phase.IDLE

    def __call__(self, job: ExtractionJob) -> None:
        if job.phase is not self._phase:
            if self._phase is not Phase.IDLE:
                click.echo("")
            self._phase = job.phase
            if job.phase is Phase.IDLE:
                return
        if job.phase is not Phase.IDLE:
            click.echo(f"\r  {click.style('>', dim=True)} {job.phase.value:<10} {job.progress_percent:3d}%", nl=False)


def _store(ctx: click.Context) -> JsonStore:
    return JsonStore(ctx.obj["config"].store_path)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Build maintenance schedules from equipment manuals."""
    try:
        config = load_config()
    except ValueError as e:
        raise click.UsageError(f"Invalid configuration: {e}") from e
    except UpkeepError as e:
        raise click.UsageError(e.hint) from e
    config.verbose = config.verbose or verbose
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    lexicon = load_lexicon(config.lexicon_path) if config.lexicon_path else DEFAULT_LEXICON
    ctx.obj = {"config": config, "lexicon": lexicon, "policy": policy_from_config(config)}


@cli.command()
@click.option("--api-key", help="YandexGPT API key.")
@click.option("--folder-id", help="Yandex Cloud folder id.")
@click.option("--search-api-key", help="Yandex Search API key.")
@click.pass_context
def settings(ctx: click.Context, api_key: str | None, folder_id: str | None,
             search_api_key: str | None) -> None:
    """Show or update capability credentials."""
    store = _store(ctx)
    current = store.get_settings()
    updates = {
        k: v for k, v in
        {"api_key": api_key, "folder_id": folder_id, "search_api_key": search_api_key}.items()
        if v is not None
    }
    if updates:
        current = current.model_copy(update=updates)
        store.save_settings(current)
        _ok("Settings saved")
    for key, value in current.model_dump().items():
        shown = (value[:4] + "…") if value and key != "folder_id" else (value or "-")
        click.echo(f"  {key:<15} {shown}")


@cli.command()
@click.argument("model")
@click.pass_context
def search(ctx: click.Context, model: str) -> None:
    """Search for manuals of MODEL."""
    config = ctx.obj["config"]
    try:
        orchestrator = build_orchestrator(config, _store(ctx).get_settings())
        results = orchestrator.search(model)
    except UpkeepError as e:
        _fail(e.hint)
    _header(f"Manuals for {model}")
    if not results:
        click.echo("  nothing found")
    for i, result in enumerate(results, 1):
        click.echo(f"  {i:>2}. {result.title}\n      {click.style(result.url, dim=True)}")


@cli.command(name="import")
@click.option("--url", help="Manual URL.")
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False),
              help="Local PDF or text manual.")
@click.option("--model", default="", help="Model name; searched for when no URL or file is given.")
@click.option("--pick", default=1, show_default=True, help="Search result to import.")
@click.option("--location", default="", help="Where the equipment is installed.")
@click.pass_context
def import_(ctx: click.Context, url: str | None, file_path: str | None, model: str,
            pick: int, location: str) -> None:
    """Import a manual and register the equipment."""
    config = ctx.obj["config"]
    store = _store(ctx)
    try:
        orchestrator = build_orchestrator(config, store.get_settings(), on_change=_ProgressPrinter())
        if file_path:
            source = Source(SourceKind.FILE, file_path, filename=click.format_filename(file_path))
        elif url:
            source = Source(SourceKind.URL, url)
        elif model:
            results = orchestrator.search(model)
            if not 1 <= pick <= len(results):
                _fail(f"No search result #{pick} for '{model}' ({len(results)} found)")
            source = Source.from_search_result(results[pick - 1])
            click.echo(f"  {click.style('>', dim=True)} {results[pick - 1].title}")
        else:
            raise click.UsageError("Give --url, --file or --model")

        _header("Importing manual")
        equipment = orchestrator.run(source, model=model, location=location)
    except UpkeepError as e:
        click.echo("")
        _fail(e.hint)

    store.save_equipment([*store.get_equipment(), equipment])
    click.echo("")
    _ok(f"{equipment.name}: {len(equipment.maintenance_schedule)} tasks, "
        f"{len(equipment.important_rules)} rules ({equipment.id[:8]})")


@cli.command(name="list")
@click.pass_context
def list_(ctx: click.Context) -> None:
    """List registered equipment and due tasks."""
    equipment = _store(ctx).get_equipment()
    if not equipment:
        click.echo("  No equipment. Use `upkeep import` to add some.")
        return
    for item in equipment:
        due = len(overdue_tasks(item, lexicon=ctx.obj["lexicon"], policy=ctx.obj["policy"]))
        badge = click.style(f"{due} due", fg="red") if due else click.style("OK", fg="green")
        click.echo(f"  {item.id[:8]}  {item.name:<30} {item.location:<15} {badge}")


@cli.command()
@click.argument("equipment_id")
@click.option("--out", "output_dir", type=click.Path(file_okay=False), help="Write a markdown report here.")
@click.pass_context
def show(ctx: click.Context, equipment_id: str, output_dir: str | None) -> None:
    """Show the schedule of one piece of equipment."""
    try:
        item = find_equipment(_store(ctx).get_equipment(), equipment_id)
    except KeyError as e:
        _fail(str(e.args[0]))
    if output_dir:
        path = write_equipment_markdown(
            item, output_dir, lexicon=ctx.obj["lexicon"], policy=ctx.obj["policy"]
        )
        _ok(f"Report written to {path}")
    else:
        click.echo(render_equipment_markdown(item, lexicon=ctx.obj["lexicon"], policy=ctx.obj["policy"]))


@cli.command()
@click.argument("equipment_id")
@click.argument("task_id")
@click.pass_context
def complete(ctx: click.Context, equipment_id: str, task_id: str) -> None:
    """Mark a task as done today."""
    store = _store(ctx)
    equipment = store.get_equipment()
    try:
        item = find_equipment(equipment, equipment_id)
        matches = [t.id for t in item.maintenance_schedule if t.id.startswith(task_id)]
        if len(matches) != 1:
            raise KeyError(f"No unique task matches '{task_id}'")
        task = complete_task(item, matches[0])
    except KeyError as e:
        _fail(str(e.args[0]))
    store.save_equipment(equipment)
    _ok(f"{task.task_name} completed")


@cli.command()
@click.argument("equipment_id")
@click.confirmation_option(prompt="Delete this equipment?")
@click.pass_context
def delete(ctx: click.Context, equipment_id: str) -> None:
    """Delete a piece of equipment."""
    store = _store(ctx)
    equipment = store.get_equipment()
    try:
        item = find_equipment(equipment, equipment_id)
    except KeyError as e:
        _fail(str(e.args[0]))
    store.save_equipment([e for e in equipment if e.id != item.id])
    _ok(f"{item.name} deleted")


if __name__ == "__main__":
    cli()
