from __future__ import annotations

import json

import click

from .config import load_settings
from .pipeline import run_clear, run_fetch

_cache_dir_option = click.option("--cache-dir", type=click.Path(path_type=str), help="Disk cache directory")
_logs_dir_option = click.option("--logs-dir", type=click.Path(path_type=str), help="Log directory")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def main():
    """Tiered image cache for QR code assets."""


@main.command()
@click.argument("urls", nargs=-1, required=True)
@_cache_dir_option
@_logs_dir_option
@click.option("--memory-bytes", type=int, help="Memory cache byte budget")
@click.option("--memory-count", type=int, help="Memory cache entry budget")
@click.option("--disk-bytes", type=int, help="Disk cache byte budget")
@click.option("--max-age", type=float, help="Disk entry max age in seconds")
@click.option("--max-concurrent", type=int, help="Concurrent download limit")
@click.option("--request-timeout", type=float, help="Per-request timeout in seconds")
@click.option("--resource-timeout", type=float, help="Total transfer timeout in seconds")
@click.option(
    "--retry-preset",
    type=click.Choice(["default", "aggressive", "conservative"], case_sensitive=False),
    help="Back-off preset used with --retry",
)
@click.option("--retry/--no-retry", default=False, help="Retry failed downloads with back-off")
@click.option("--user-agent", type=str, help="Custom user agent")
def fetch(urls, retry, **kwargs):
    """Load images through the cache and print a JSON summary."""
    settings = load_settings(kwargs)
    summary = run_fetch(settings, urls, retry=retry)
    click.echo(
        json.dumps(
            {
                "generated_at": summary.generated_at.isoformat(),
                "images": summary.images,
                "stats": summary.stats,
                "failed": summary.failed,
            },
            indent=2,
        )
    )


@main.command()
@_cache_dir_option
@_logs_dir_option
def clear(**kwargs):
    """Delete every file in the disk cache."""
    settings = load_settings(kwargs)
    removed = run_clear(settings)
    click.echo(json.dumps({"removed": removed, "cache_dir": str(settings.cache_dir)}))


if __name__ == "__main__":  # pragma: no cover
    main()
