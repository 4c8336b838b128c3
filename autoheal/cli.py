# autoheal/cli.py
"""Command-line interface
------------------------
Inspect how locators are classified and keyed, shrink a saved page snapshot,
and look after the on-disk selector cache.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from autoheal.cache import TieredSelectorCache
from autoheal.dom import optimize_html
from autoheal.registry import RegistryError, load_registry
from autoheal.selectors import (
    ElementContext,
    MalformedLocatorError,
    Position,
    UnsupportedConversionError,
    detect_type,
    generate_cache_key,
    parse,
    to_execution_primitive,
)
from autoheal.selectors.detector import describe_detection, needs_healing_context
from autoheal.utils.config import get_settings
from autoheal.utils.logger import set_log_level
from autoheal.utils.timing import ms_to_datetime


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _fail(msg: str, code: int = 1) -> None:
    click.echo(f"ERR {msg}")
    sys.exit(code)


def _open_cache() -> TieredSelectorCache:
    return TieredSelectorCache(get_settings().cache_config())


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="autoheal-cache")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- locator commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    s = get_settings()
    data = {k: (str(v) if isinstance(v, Path) else v) for k, v in s.model_dump().items()}
    _echo_json(data)


@cli.command("parse")
@click.argument("raw")
def cmd_parse(raw: str):
    """Parse a locator of either dialect into its structured form."""
    try:
        _echo_json(parse(raw).to_dict())
    except MalformedLocatorError as e:
        _fail(str(e))


@cli.command("detect")
@click.argument("raw")
def cmd_detect(raw: str):
    """Classify an un-annotated classic locator."""
    try:
        kind = detect_type(raw)
    except MalformedLocatorError as e:
        _fail(str(e))
        return
    click.echo(describe_detection(raw, kind))
    if needs_healing_context(kind):
        click.echo("Repair of this kind uses a DOM snapshot.")


@cli.command("xpath")
@click.argument("raw")
def cmd_xpath(raw: str):
    """Print the structural predicate a backend would execute."""
    try:
        primitive = to_execution_primitive(parse(raw))
    except (MalformedLocatorError, UnsupportedConversionError) as e:
        _fail(str(e))
        return
    click.echo(f"{primitive.strategy}: {primitive.expression}")


@cli.command("key")
@click.argument("raw")
@click.argument("description")
@click.option("--parent", type=str, default=None, help="Parent container hint")
@click.option("--pos", type=(float, float), default=None, help="Relative position X Y")
@click.option("--sibling", "siblings", multiple=True, help="Sibling element hint (repeatable)")
def cmd_key(raw: str, description: str, parent: Optional[str], pos: Optional[Tuple[float, float]], siblings):
    """Derive the cache key for a locator and its description."""
    context = None
    if parent or pos or siblings:
        context = ElementContext(
            parent_container=parent,
            relative_position=Position(x=pos[0], y=pos[1]) if pos else None,
            sibling_elements=list(siblings),
        )
    try:
        click.echo(generate_cache_key(parse(raw).kind, raw, description, context))
    except MalformedLocatorError as e:
        _fail(str(e))


@cli.command("keys")
@click.argument("registry", type=click.Path(dir_okay=False, exists=True))
def cmd_keys(registry: str):
    """List cache keys for every target in a registry YAML file."""
    try:
        targets = load_registry(registry)
    except RegistryError as e:
        _fail(str(e))
        return
    for t in targets:
        click.echo(f"{t.name}  ->  {t.cache_key()}")


@cli.command("optimize")
@click.argument("html_file", type=click.Path(dir_okay=False, exists=True))
@click.option("--out", type=click.Path(dir_okay=False), default=None, help="Write optimized markup here")
def cmd_optimize(html_file: str, out: Optional[str]):
    """Shrink a saved page snapshot; prints markup, or metrics when --out is given."""
    result = optimize_html(Path(html_file).read_text(encoding="utf-8"))
    if not out:
        click.echo(result.optimized_markup)
        return

    outp = Path(out).resolve()
    outp.parent.mkdir(parents=True, exist_ok=True)
    outp.write_text(result.optimized_markup, encoding="utf-8")
    _echo_json({
        "out": str(outp),
        "metrics": result.metrics.to_dict() if result.metrics else None,
        "retained_attributes": sorted(result.retained_attributes),
    })


# -------- cache maintenance --------


@cli.group("cache")
def cache_group():
    """Inspect or maintain the persistent selector cache."""


@cache_group.command("stats")
def cmd_cache_stats():
    with _open_cache() as cache:
        _echo_json({
            "size": cache.size(),
            "cache_file": str(cache.cache_file_path),
            "metrics_file": str(cache.metrics_file_path),
            "metrics": cache.metrics.snapshot(),
        })


@cache_group.command("list")
def cmd_cache_list():
    with _open_cache() as cache:
        rows = cache.entries()
        if not rows:
            click.echo("Cache is empty.")
            return
        click.echo(f"Found {len(rows)} entr{'y' if len(rows) == 1 else 'ies'}:\n")
        for key, entry in rows:
            last = ms_to_datetime(entry.last_used_at).isoformat(timespec="seconds")
            click.echo(
                f" - {key}\n     {entry.selector}  "
                f"(success {entry.success_rate:.0%} of {entry.usage_count}, last used {last})"
            )


@cache_group.command("remove")
@click.argument("key")
def cmd_cache_remove(key: str):
    with _open_cache() as cache:
        removed = cache.remove(key)
    if not removed:
        _fail(f"no such key: {key}")
    click.echo(f"Removed {key}")


@cache_group.command("evict")
def cmd_cache_evict():
    """Drop entries past their expiry."""
    with _open_cache() as cache:
        n = cache.evict_expired()
    click.echo(f"Evicted {n} expired entr{'y' if n == 1 else 'ies'}")


@cache_group.command("clear")
@click.confirmation_option(prompt="Delete every cached selector?")
def cmd_cache_clear():
    with _open_cache() as cache:
        cache.clear()
    click.echo("Cache cleared.")


def main() -> None:
    cli(prog_name="autoheal")


if __name__ == "__main__":
    main()
