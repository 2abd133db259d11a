from deskforms.cli import cli

cli()
