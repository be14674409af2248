"""Config command for viewing and managing colloquy configuration."""

import typer

from ..app import app, console
from ...config import (
    ColloquyConfig,
    CustomProviderConfig,
    get_api_key_for_provider,
    get_config,
    parse_model_string,
    reset_config,
    CONFIG_FILE,
)


VALID_KEYS = {
    "models.fast",
    "models.strong",
    "simulation.fast",
    "simulation.strong",
    "simulation.nearby_radius",
    "simulation.max_conversation_messages",
    "simulation.memory_recall_limit",
    "defaults.db_path",
}

INT_FIELDS = {"max_conversation_messages", "memory_recall_limit"}
FLOAT_FIELDS = {"nearby_radius"}
PROVIDER_FIELDS = ("base_url", "api_key_env")


@app.command("config")
def config_command(
    action: str = typer.Argument(..., help="Action: show, set, reset"),
    key: str | None = typer.Argument(
        None, help="Config key (e.g. simulation.strong, simulation.nearby_radius)"
    ),
    value: str | None = typer.Argument(None, help="Value to set"),
):
    """View or modify colloquy configuration.

    Examples:
        colloquy config show
        colloquy config set simulation.strong anthropic/claude-sonnet-4.5
        colloquy config set simulation.nearby_radius 10
        colloquy config set providers.local.base_url http://localhost:8000/v1
        colloquy config reset
    """
    if action == "show":
        _show_config(get_config())
    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage:[/red] colloquy config set <key> <value>")
            _print_valid_keys()
            raise typer.Exit(1)
        _set_config(key, value)
    elif action == "reset":
        _reset_config()
    else:
        console.print(f"[red]Unknown action:[/red] {action}")
        console.print("Valid actions: show, set, reset")
        raise typer.Exit(1)


def _print_valid_keys():
    console.print()
    console.print("Available keys:")
    for k in sorted(VALID_KEYS):
        console.print(f"  {k}")
    for field_name in PROVIDER_FIELDS:
        console.print(f"  providers.<name>.{field_name}")


def _providers_in_use(config: ColloquyConfig) -> list[str]:
    """Providers referenced by the resolved model strings, then custom ones."""
    names: list[str] = []
    for model_string in (
        config.resolve_sim_strong(),
        config.resolve_sim_fast(),
        config.models.fast,
    ):
        try:
            provider, _ = parse_model_string(model_string)
        except ValueError:
            continue
        names.append(provider)
    names.extend(config.providers)
    return list(dict.fromkeys(names))


def _show_config(config: ColloquyConfig):
    """Display current resolved configuration."""
    sim = config.simulation
    sections = [
        (
            "Models",
            "memories, defaults",
            {"fast": config.models.fast, "strong": config.models.strong},
        ),
        (
            "Simulation",
            "conversation runs",
            {
                "strong": sim.strong or "[dim](= models.strong)[/dim]",
                "fast": sim.fast or "[dim](= models.fast)[/dim]",
                "nearby_radius": sim.nearby_radius,
                "max_conversation_messages": sim.max_conversation_messages,
                "memory_recall_limit": sim.memory_recall_limit,
            },
        ),
        ("Defaults", "storage", {"db_path": config.defaults.db_path}),
    ]

    console.print()
    console.print("[bold]Colloquy Configuration[/bold]")
    console.print("─" * 40)
    for title, note, values in sections:
        width = max(len(k) for k in values)
        console.print()
        console.print(f"[bold cyan]{title}[/bold cyan] ({note})")
        for k, v in values.items():
            console.print(f"  {k.ljust(width)} = {v}")

    if config.providers:
        console.print()
        console.print("[bold cyan]Custom Providers[/bold cyan]")
        for name, provider_cfg in config.providers.items():
            console.print(f"  {name}: base_url = {provider_cfg.base_url}")

    console.print()
    console.print("[bold cyan]API Keys[/bold cyan] (from env vars)")
    for provider in _providers_in_use(config):
        custom = config.providers.get(provider)
        env_var = (custom.api_key_env if custom else "") or f"{provider.upper()}_API_KEY"
        status = (
            "[green]set[/green]"
            if get_api_key_for_provider(provider, config.providers)
            else "[dim]not set[/dim]"
        )
        console.print(f"  {env_var}: {status}")

    console.print()
    where = "" if CONFIG_FILE.exists() else "[dim]not created yet[/dim] "
    console.print(f"Config file: {where}{CONFIG_FILE}")
    console.print()


def _set_config(key: str, value: str):
    """Set a config value and save."""
    config = get_config()
    parts = key.split(".")

    if parts[0] == "providers":
        if len(parts) != 3 or parts[2] not in PROVIDER_FIELDS:
            console.print(
                f"[red]Invalid provider key:[/red] {key}\n"
                "Expected: providers.<name>.base_url or providers.<name>.api_key_env"
            )
            raise typer.Exit(1)
        provider_cfg = config.providers.setdefault(parts[1], CustomProviderConfig())
        setattr(provider_cfg, parts[2], value)
    elif key in VALID_KEYS:
        zone, field_name = parts
        try:
            if field_name in INT_FIELDS:
                parsed = int(value)
            elif field_name in FLOAT_FIELDS:
                parsed = float(value)
            else:
                parsed = value
        except ValueError:
            console.print(f"[red]Invalid numeric value:[/red] {value}")
            raise typer.Exit(1)
        setattr(getattr(config, zone), field_name, parsed)
    else:
        console.print(f"[red]Unknown key:[/red] {key}")
        _print_valid_keys()
        raise typer.Exit(1)

    config.save()
    reset_config()  # next get_config() reloads from the saved file

    console.print(f"[green]✓[/green] Set {key} = {value}")
    console.print(f"  Saved to {CONFIG_FILE}")


def _reset_config():
    """Reset config to defaults."""
    if not CONFIG_FILE.exists():
        console.print("Config already at defaults (no config file exists)")
        return
    CONFIG_FILE.unlink()
    reset_config()
    console.print("[green]✓[/green] Config reset to defaults")
    console.print(f"  Removed {CONFIG_FILE}")
