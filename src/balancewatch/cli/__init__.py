"""balancewatch command-line interface (typer)."""
