"""Module entry point for `python -m plsort.cli`."""

if __name__ == "__main__":  # pragma: no cover (invocation driven)
    from plsort.cli import cli

    cli()
