from __future__ import annotations

import logging

import typer

from deskforms.config import Settings, ensure_dirs
from deskforms.storage import init_storage

cli = typer.Typer(add_completion=False)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_server(host: str | None, port: int | None) -> None:
    import uvicorn

    from deskforms.app import create_app

    settings = Settings()
    _configure_logging(settings)
    resolved_host = host or settings.host
    resolved_port = port if port is not None else settings.port
    uvicorn.run(create_app(settings), host=resolved_host, port=resolved_port, log_level=settings.log_level)


@cli.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Endereço de escuta"),
    port: int | None = typer.Option(None, help="Porta de escuta"),
) -> None:
    ctx.obj = {"host": host, "port": port}
    if ctx.invoked_subcommand is None:
        run_server(host, port)


@cli.command()
def run(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Endereço de escuta"),
    port: int | None = typer.Option(None, help="Porta de escuta"),
) -> None:
    base = ctx.obj or {}
    resolved_host = host or base.get("host")
    resolved_port = port if port is not None else base.get("port")
    run_server(resolved_host, resolved_port)


@cli.command("add-user")
def add_user(
    name: str = typer.Argument(..., help="Nome de exibição"),
    email: str | None = typer.Option(None, help="E-mail do usuário"),
    role: str = typer.Option("user", help="Papel do usuário"),
) -> None:
    settings = Settings()
    _configure_logging(settings)
    ensure_dirs(settings)
    user = init_storage(settings).directory.create_user(name, email=email, role=role)
    typer.echo(f"Usuário criado: {user['id']} {user['name']}")


@cli.command("add-group")
def add_group(
    name: str = typer.Argument(..., help="Nome do grupo"),
    description: str = typer.Option("", help="Descrição do grupo"),
) -> None:
    settings = Settings()
    _configure_logging(settings)
    ensure_dirs(settings)
    group = init_storage(settings).directory.create_group(name, description=description)
    typer.echo(f"Grupo criado: {group['id']} {group['name']}")
