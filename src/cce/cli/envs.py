"""
Environment profile listing.
"""

from rich.table import Table

from cce.cli.errors import console
from cce.cli.launch import load_service


def list_environments() -> None:
    """
    List configured environment profiles (API keys masked).
    """
    service = load_service()
    environments = service.list_environments()

    if not environments:
        console.print("[yellow]No environments configured[/yellow]")
        console.print("[dim]Add profiles under 'environments' in ~/.config/cce/config.json[/dim]")
        return

    default = service.config.default_env

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Base URL")
    table.add_column("Model", style="yellow")
    table.add_column("API Key", style="dim")
    table.add_column("Description", style="dim")

    for env in environments:
        name = f"{env.name} [green](default)[/green]" if env.name == default else env.name
        table.add_row(
            name,
            env.base_url,
            env.model or "[dim]-[/dim]",
            env.masked_api_key,
            env.description or "",
        )

    console.print(table)


__all__ = ["list_environments"]
