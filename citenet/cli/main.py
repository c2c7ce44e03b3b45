# citenet/cli/main.py

from __future__ import annotations

import logging

import typer

from citenet.cli import session_cli, view_cli

app = typer.Typer(help="Explore local citation networks around a seed publication.")

app.command("explore")(session_cli.explore)
app.command("import-list")(session_cli.import_list)
app.command("sessions")(session_cli.sessions)

app.command("network")(view_cli.network)
app.command("authors")(view_cli.authors)
app.command("completeness")(view_cli.completeness)
app.command("export")(view_cli.export)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log provider calls.")) -> None:
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)


if __name__ == "__main__":
    app()
