"""
Main CLI entry point for Strata.

Provides the command-line interface using Click.
"""

import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console
import rich.logging as _rich_logging

import strata
import strata.chain as chain
import strata.config as config
import strata.documents as documents
import strata.errors as errors
import strata.overlay as overlay
import strata.render as render

_logger = _logging.getLogger(__name__)

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _configure_logging(level: str) -> None:
    """Send strata log records to stderr through rich."""
    handler = _rich_logging.RichHandler(
        console=_rich_console.Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    package_logger = _logging.getLogger("strata")
    # Replace handlers from a previous invocation in the same process
    for existing in list(package_logger.handlers):
        if isinstance(existing, _rich_logging.RichHandler):
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(strata.__version__, "-v", "--version", prog_name="strata")
@_click.option("--verbose", is_flag=True, help="Enable debug logging")
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """
    Strata - layered values resolver for GitOps deployments.

    Merges values documents (base -> environment -> instance) into one
    resolved document for a delivery controller.

    \b
    Examples:
        strata render deploy/ -e prod                 # base + prod layers
        strata render deploy/ -e prod -i eu-1 -o out/values.yaml
        strata render deploy/ -e dev --set image.tag=v2
        strata resolve base.yaml override.yaml        # explicit files, in order
        strata layers deploy/ -e prod -i eu-1         # show layer files
    """
    # Set up before loading settings so config loading logs at a known level
    _configure_logging("DEBUG" if verbose else "WARNING")

    try:
        settings = config.Settings()
    except (errors.StrataError, _pydantic.ValidationError) as e:
        raise _click.ClickException(f"Invalid strata configuration: {e}") from e

    if not verbose:
        _logging.getLogger("strata").setLevel(settings.log_level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# Resolution Commands
# =============================================================================


def _emit(
    ctx: _click.Context,
    overlay_chain: overlay.OverlayChain,
    *,
    output: _pathlib.Path | None,
    as_json: bool,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Resolve a chain and write or print the result.

    With ``--provenance`` the provenance table takes stdout; the resolved
    document can still be written with ``-o``.
    """
    settings: config.Settings = ctx.obj["settings"]
    color_enabled, force_color = _should_use_color(use_color)

    if provenance and as_json and output is None:
        raise _click.UsageError("--provenance and --json both print to stdout; add -o FILE")

    resolved, leaf_sources = overlay.resolve_with_provenance(overlay_chain)

    fmt: render.OutputFormat
    if as_json:
        fmt = "json"
    elif output is not None:
        fmt = render.format_for_path(output)
    else:
        fmt = settings.output.format

    if output is not None:
        written = render.write_document(resolved, output, fmt=fmt, indent=settings.output.indent)
        _click.echo(f"Wrote {written}", err=True)

    if provenance:
        _click.echo(_format_provenance(resolved, leaf_sources, overlay_chain))
        return

    if output is not None:
        return

    text = render.dump_document(resolved, fmt=fmt, indent=settings.output.indent)
    if fmt == "yaml":
        _print_yaml(text, color=color_enabled, force_color=force_color)
    else:
        _click.echo(text, nl=False)


_output_option = _click.option(
    "-o",
    "--output",
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Write the resolved document to a file (format from suffix)",
)
_json_option = _click.option("--json", "as_json", is_flag=True, help="Output as JSON")
_provenance_option = _click.option(
    "--provenance", is_flag=True, help="Show which layer each value came from"
)
_color_option = _click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)


@cli.command()
@_click.argument(
    "files",
    nargs=-1,
    required=True,
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
)
@_output_option
@_json_option
@_provenance_option
@_color_option
@_click.pass_context
def resolve(
    ctx: _click.Context,
    files: tuple[_pathlib.Path, ...],
    output: _pathlib.Path | None,
    as_json: bool,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Resolve values FILES in order (last file wins).

    \b
    Examples:
        strata resolve values.yaml values-prod.yaml
        strata resolve a.yaml b.json --json
        strata resolve a.yaml b.yaml --provenance
    """
    try:
        overlay_chain = overlay.OverlayChain(
            tuple(documents.load_document(path, name=str(path)) for path in files)
        )
        _emit(
            ctx,
            overlay_chain,
            output=output,
            as_json=as_json,
            provenance=provenance,
            use_color=use_color,
        )
    except errors.StrataError as e:
        raise _click.ClickException(str(e)) from e


@cli.command(name="render")
@_click.argument(
    "values_dir",
    required=False,
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
)
@_click.option("-e", "--env", "environment", type=str, default=None, help="Environment layer to apply")
@_click.option("-i", "--instance", type=str, default=None, help="Instance layer to apply (needs --env)")
@_click.option(
    "-f",
    "--values",
    "extra_files",
    multiple=True,
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    help="Extra values file applied above the directory layers (repeatable)",
)
@_click.option(
    "--set",
    "overrides",
    multiple=True,
    metavar="KEY=VALUE",
    help="Override a value, e.g. --set image.tag=v2 (repeatable, applied last)",
)
@_output_option
@_json_option
@_provenance_option
@_color_option
@_click.pass_context
def render_cmd(
    ctx: _click.Context,
    values_dir: _pathlib.Path | None,
    environment: str | None,
    instance: str | None,
    extra_files: tuple[_pathlib.Path, ...],
    overrides: tuple[str, ...],
    output: _pathlib.Path | None,
    as_json: bool,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Render the values for an environment/instance from VALUES_DIR.

    VALUES_DIR defaults to the configured values_dir (usually ".").

    \b
    Layers, lowest precedence first:
        values.yaml
        environments/<env>/values.yaml
        environments/<env>/<instance>/values.yaml
        -f files, in order
        --set overrides
    """
    settings: config.Settings = ctx.obj["settings"]
    root = values_dir if values_dir is not None else _pathlib.Path(settings.values_dir)

    try:
        overlay_chain = chain.build_chain(
            root,
            environment=environment,
            instance=instance,
            extra_files=extra_files,
            overrides=overrides,
            layout=settings.layout.to_layout(),
        )
        _emit(
            ctx,
            overlay_chain,
            output=output,
            as_json=as_json,
            provenance=provenance,
            use_color=use_color,
        )
    except (errors.StrataError, ValueError) as e:
        raise _click.ClickException(str(e)) from e


@cli.command()
@_click.argument(
    "values_dir",
    required=False,
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
)
@_click.option("-e", "--env", "environment", type=str, default=None, help="Environment layer")
@_click.option("-i", "--instance", type=str, default=None, help="Instance layer (needs --env)")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def layers(
    ctx: _click.Context,
    values_dir: _pathlib.Path | None,
    environment: str | None,
    instance: str | None,
    as_json: bool,
) -> None:
    """Show the layer files for a target and whether they exist.

    Exits with status 1 when a required layer is missing.
    """
    settings: config.Settings = ctx.obj["settings"]
    root = values_dir if values_dir is not None else _pathlib.Path(settings.values_dir)

    try:
        described = chain.describe_layers(
            root,
            environment=environment,
            instance=instance,
            layout=settings.layout.to_layout(),
        )
    except ValueError as e:
        raise _click.ClickException(str(e)) from e

    if as_json:
        _click.echo(
            _json.dumps(
                [
                    {"name": name, "path": str(path), "exists": exists}
                    for name, path, exists in described
                ],
                indent=2,
            )
        )
    else:
        for name, path, exists in described:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {name}: {path}")

    if not all(exists for _, _, exists in described):
        ctx.exit(1)


# =============================================================================
# Config Commands
# =============================================================================

_CONFIG_LAYER_LABELS = {
    "built-in": "Built-in defaults",
    "user": "User config",
    "project": "Project config",
}


@cli.group(name="config")
def config_cmd() -> None:
    """Strata's own configuration."""


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--provenance", is_flag=True, help="Show which config file set each value")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_color_option
@_click.pass_context
def config_show(
    ctx: _click.Context,
    as_json: bool,
    provenance: bool,
    section: str | None,
    use_color: bool | None,
) -> None:
    """Show effective configuration from all sources.

    \b
    Examples:
        strata config show                  # YAML
        strata config show --json           # JSON
        strata config show --section output
        strata config show --provenance     # with source file:line

    Values marked [runtime] come from STRATA_* variables or field defaults.
    """
    settings: config.Settings = ctx.obj["settings"]
    color_enabled, force_color = _should_use_color(use_color)

    full_config = settings.model_dump(mode="json")

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
    elif provenance:
        _click.echo(_format_config_provenance(full_config))
    else:
        _print_yaml(
            render.dump_document(full_config, fmt="yaml"),
            color=color_enabled,
            force_color=force_color,
        )

    unknown = settings.get_unknown_keys()
    if unknown:
        _logger.warning("Unknown config keys (typos?): %s", ", ".join(sorted(unknown)))


@config_cmd.command(name="path")
@_click.option("--all", "show_all", is_flag=True, help="Show all paths even if not found")
def config_path(show_all: bool) -> None:
    """Show configuration file paths and their status.

    \b
    Examples:
        strata config path        # Show existing config files
        strata config path --all  # Show all possible paths
    """
    import strata.config.sources as config_sources

    source = config_sources.LayeredYamlSettingsSource(config.Settings, _pathlib.Path.cwd())

    # get_layer_paths is highest precedence first; list in load order
    for name, path, exists in reversed(source.get_layer_paths()):
        if exists or show_all:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {_CONFIG_LAYER_LABELS[name]}: {path}")


# =============================================================================
# Output helpers
# =============================================================================


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. NO_COLOR env var (if set, disable color)
    3. Auto-detect: color if stdout is a TTY

    Returns:
        Tuple of (color_enabled, force_color).
        force_color is True when color was explicitly requested.
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting.

    Args:
        yaml_text: The YAML text to print
        color: Whether to use syntax highlighting
        force_color: Force color even when not a TTY (for piping with --color)
    """
    if not color:
        _click.echo(yaml_text, nl=False)
        return

    import rich.syntax as _rich_syntax

    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    syntax = _rich_syntax.Syntax(
        yaml_text.rstrip("\n"),
        "yaml",
        theme="monokai",
        background_color="default",
    )
    console.print(syntax)


def _format_provenance(
    resolved: overlay.ResolvedDocument,
    leaf_sources: overlay.Provenance,
    overlay_chain: overlay.OverlayChain,
    *,
    fallback: str | None = None,
) -> str:
    """Render each leaf as ``path: value  # [layer] file:line``.

    Leaves missing from ``leaf_sources`` are marked with ``fallback``, or
    left unmarked when it is None.
    """
    layer_list = overlay_chain.layers

    def describe(path: overlay.Path) -> str:
        index = leaf_sources.get(path)
        if index is None:
            return fallback or ""
        layer = layer_list[index]
        location = ""
        if layer.source is not None:
            line = layer.line_of(path)
            location = f" {layer.source}" + (f":{line}" if line is not None else "")
        return f"[{layer.name}]{location}"

    rows: list[tuple[str, str]] = []
    for path, value in overlay.iter_leaves(resolved):
        rendered = _json.dumps(render.stringify_keys(value), ensure_ascii=False, default=str)
        rows.append((f"{overlay.format_path(path)}: {rendered}", describe(path)))

    output_lines = ["# Resolved values with provenance"]
    for layer in layer_list:
        source = f" {layer.source}" if layer.source is not None else ""
        output_lines.append(f"# [{layer.name}]{source}")
    output_lines.append("")

    width = max((len(content) for content, _ in rows), default=0)
    for content, origin in rows:
        output_lines.append(f"{content.ljust(width)}  # {origin}" if origin else content)

    return "\n".join(output_lines)


_MISSING = object()


def _value_at(document: _typing.Any, path: overlay.Path) -> _typing.Any:
    """Walk ``path`` through nested mappings; ``_MISSING`` if it is absent."""
    current = document
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _format_config_provenance(full_config: dict[str, _typing.Any]) -> str:
    """Provenance table for the effective settings.

    A leaf is attributed to a config file only while the file value is
    still the effective one; anything else is marked ``[runtime]``.
    """
    import strata.config.sources as config_sources

    source = config_sources.LayeredYamlSettingsSource(config.Settings, _pathlib.Path.cwd())
    file_values = source()
    attributed = {
        path: index
        for path, index in source.provenance.items()
        if _value_at(full_config, path) is not _MISSING
        and _value_at(full_config, path) == _value_at(file_values, path)
    }
    return _format_provenance(full_config, attributed, source.chain, fallback="[runtime]")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="strata")


if __name__ == "__main__":
    main()
