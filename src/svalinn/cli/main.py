"""
Main CLI entry point for Svalinn.

Provides the command-line interface using Click:

- ``svalinn merge TARGET SOURCE``: merge a JSON document into another under a policy
- ``svalinn check``: report the state of the process ambient namespace
- ``svalinn demo``: run the attack walkthrough
- ``svalinn config show|check|path``: inspect layered configuration
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
import rich.syntax as _rich_syntax
import rich.table as _rich_table
import yaml as _yaml

import svalinn
import svalinn.config as config
import svalinn.config.sources as config_sources
import svalinn.config.types as config_types
import svalinn.core.ambient as ambient
import svalinn.core.containers as containers
import svalinn.core.executor as executor
import svalinn.core.outcome as outcome
import svalinn.core.policy as policy_mod
import svalinn.core.values as values
import svalinn.demo as demo_mod
import svalinn.report as report

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

LOG_LEVELS = ("debug", "info", "warning", "error")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(level_name: str) -> None:
    level = getattr(_logging, level_name.upper())
    _logging.basicConfig(level=level, format=LOG_FORMAT)
    # basicConfig is a no-op when handlers already exist
    _logging.getLogger().setLevel(level)


def _load_settings() -> config.Settings:
    try:
        return config.Settings()
    except config.ConfigFileError as e:
        raise _click.ClickException(str(e)) from None
    except _pydantic.ValidationError as e:
        raise _click.ClickException(f"Invalid configuration:\n{e}") from None


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(svalinn.__version__, "-v", "--version", prog_name="svalinn")
@_click.option(
    "--log-level",
    type=_click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (default: logging.level from config)",
)
@_click.pass_context
def cli(ctx: _click.Context, log_level: str | None) -> None:
    """
    Svalinn - sanitizing structural merge.

    Merges untrusted JSON documents into trusted ones while rejecting
    ancestor-alias keys, off-schema values and runaway nesting.

    \b
    Examples:
        svalinn merge defaults.json request.json       # Merge under config policy
        cat request.json | svalinn merge base.json -   # Source from stdin
        svalinn merge base.json req.json --policy p.yaml --json
        svalinn demo                                   # Attack walkthrough
        svalinn config show                            # Effective configuration
    """
    settings = _load_settings()
    _configure_logging(log_level or settings.logging.level)

    if settings.guard.install_on_startup:
        ambient.install()

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# merge
# =============================================================================


def _read_json_document(stream: _typing.IO[str], label: str) -> _typing.Any:
    try:
        return _json.load(stream)
    except _json.JSONDecodeError as e:
        raise _click.ClickException(f"{label} is not valid JSON: {e}") from None


def _load_policy_file(path: _pathlib.Path) -> policy_mod.MergePolicy:
    """
    Load a merge policy from a YAML file.

    The file holds either the policy fields at top level or a ``policy:``
    section in the same shape as the config file.
    """
    try:
        data = _yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise _click.ClickException(f"Cannot read policy file {path}: {e}") from None
    except _yaml.YAMLError as e:
        raise _click.ClickException(f"Invalid YAML in policy file {path}: {e}") from None

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise _click.ClickException(
            f"Policy file {path} must be a YAML mapping, got {type(data).__name__}"
        )
    if "policy" in data:
        data = data["policy"]

    try:
        section = config_types.PolicyConfig.model_validate(data)
        return section.to_policy()
    except _pydantic.ValidationError as e:
        raise _click.ClickException(f"Invalid policy file {path}:\n{e}") from None
    except policy_mod.PolicyError as e:
        raise _click.ClickException(f"Invalid policy file {path}: {e}") from None


def _print_violations(violations: _typing.Sequence[outcome.Violation], *, title: str) -> None:
    """Render violations as a table on stderr."""
    table = _rich_table.Table(title=title)
    table.add_column("Path", style="cyan")
    table.add_column("Kind", style="red")
    table.add_column("Detail")
    for violation in violations:
        table.add_row(violation.path_str, violation.kind.value, violation.detail)
    _rich_console.Console(stderr=True).print(table)


@cli.command(name="merge")
@_click.argument("target", type=_click.File("r", encoding="utf-8"))
@_click.argument("source", type=_click.File("r", encoding="utf-8"))
@_click.option(
    "--policy",
    "policy_path",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="YAML policy file (default: policy section of the config)",
)
@_click.option("--json", "as_json", is_flag=True, help="Output a JSON envelope")
@_click.option(
    "--partial",
    is_flag=True,
    help="Apply every top-level field that passes; report the rest",
)
@_click.pass_context
def merge_cmd(
    ctx: _click.Context,
    target: _typing.IO[str],
    source: _typing.IO[str],
    policy_path: _pathlib.Path | None,
    as_json: bool,
    partial: bool,
) -> None:
    """Merge SOURCE into TARGET and print the result.

    TARGET is trusted; SOURCE is untrusted. Either may be '-' for stdin.
    Exits with status 1 when the merge is rejected.

    \b
    Examples:
        svalinn merge base.json request.json
        svalinn merge base.json request.json --json
        svalinn merge base.json request.json --partial
    """
    settings: config.Settings = ctx.obj["settings"]

    target_doc = _read_json_document(target, "TARGET")
    source_doc = _read_json_document(source, "SOURCE")
    if not isinstance(target_doc, dict):
        raise _click.ClickException(
            f"TARGET must be a JSON object, got {type(target_doc).__name__}"
        )

    if policy_path is not None:
        merge_policy = _load_policy_file(policy_path)
    else:
        try:
            merge_policy = settings.merge_policy()
        except policy_mod.PolicyError as e:
            raise _click.ClickException(f"Invalid policy in configuration: {e}") from None

    if partial:
        value, dropped = executor.merge_fields(target_doc, source_doc, merge_policy)
        if as_json:
            _click.echo(_json.dumps({
                "ok": not dropped,
                "value": containers.to_plain(value),
                "dropped": [report.violation_to_dict(v) for v in dropped],
            }, indent=2))
        else:
            _click.echo(_json.dumps(containers.to_plain(value), indent=2))
            if dropped:
                _print_violations(dropped, title="Dropped fields")
        return

    result = executor.merge(target_doc, source_doc, merge_policy)

    if isinstance(result, outcome.Rejected):
        if as_json:
            body = report.rejection_report(result)
            _click.echo(_json.dumps({"ok": False, **body}, indent=2))
        else:
            _print_violations(result.violations, title=report.summarize(result))
        ctx.exit(1)

    if as_json:
        _click.echo(_json.dumps({
            "ok": True,
            "value": containers.to_plain(result.value),
            "unvalidated_paths": [
                values.format_path(path) for path in result.unvalidated_paths
            ],
        }, indent=2))
    else:
        _click.echo(_json.dumps(containers.to_plain(result.value), indent=2))


# =============================================================================
# check
# =============================================================================


@cli.command(name="check")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def check_cmd(ctx: _click.Context, as_json: bool) -> None:
    """Report whether the process ambient namespace is guarded and clean.

    Exits with status 1 if any name on the namespace differs from baseline.
    """
    settings: config.Settings = ctx.obj["settings"]
    try:
        denied = settings.merge_policy().denied_keys
    except policy_mod.PolicyError as e:
        raise _click.ClickException(f"Invalid policy in configuration: {e}") from None
    polluted = ambient.polluted_keys(denied)
    installed = ambient.is_installed()

    if as_json:
        _click.echo(_json.dumps({
            "guard_installed": installed,
            "clean": not polluted,
            "polluted_keys": polluted,
        }, indent=2))
    else:
        _click.echo(f"Guard installed: {'yes' if installed else 'no'}")
        if polluted:
            _click.echo(f"Ambient namespace POLLUTED: {', '.join(polluted)}")
        else:
            _click.echo("Ambient namespace clean")

    if polluted:
        ctx.exit(1)


# =============================================================================
# demo
# =============================================================================


@cli.command(name="demo")
@_click.option(
    "--scenario",
    "scenario_names",
    type=_click.Choice([s.name for s in demo_mod.SCENARIOS]),
    multiple=True,
    help="Run only the named scenario (repeatable)",
)
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def demo_cmd(scenario_names: tuple[str, ...], as_json: bool) -> None:
    """Run the attack walkthrough against sandbox namespaces.

    Each payload goes through a naive merge, a naive merge against a frozen
    namespace, and svalinn's merge. The process namespace is never touched.
    """
    scenarios = [
        s for s in demo_mod.SCENARIOS if not scenario_names or s.name in scenario_names
    ]
    results = demo_mod.run_all(scenarios)

    if as_json:
        _click.echo(_json.dumps([r.to_dict() for r in results], indent=2))
        return

    table = _rich_table.Table(title="Naive merge vs svalinn")
    table.add_column("Scenario", style="cyan", no_wrap=True)
    table.add_column("Naive readout")
    table.add_column("Polluted")
    table.add_column("Frozen guard")
    table.add_column("Svalinn")
    for r in results:
        table.add_row(
            r.scenario,
            repr(r.naive_readout),
            ", ".join(r.naive_polluted) or "-",
            "raised" if r.guard_raised else "-",
            r.safe_summary,
        )
    _rich_console.Console().print(table)


# =============================================================================
# config
# =============================================================================


@cli.group(name="config")
def config_cmd() -> None:
    """Configuration management commands."""


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def config_show(
    ctx: _click.Context,
    as_json: bool,
    section: str | None,
    use_color: bool | None,
) -> None:
    """Show effective configuration from all sources.

    Displays the merged configuration from built-in defaults, user config,
    and project config, with environment overrides applied.

    \b
    Examples:
        svalinn config show                  # Show all config as YAML
        svalinn config show --json           # Show as JSON
        svalinn config show --section policy # One section
    """
    settings: config.Settings = ctx.obj["settings"]
    full_config = settings.to_dict()

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
    else:
        color_enabled, force_color = _should_use_color(use_color)
        yaml_text = _yaml.safe_dump(full_config, default_flow_style=False, sort_keys=False)
        _print_yaml(yaml_text, color=color_enabled, force_color=force_color)


@config_cmd.command(name="check")
@_click.pass_context
def config_check(ctx: _click.Context) -> None:
    """Report unknown (likely misspelled) configuration fields.

    Exits with status 1 if any are found, or if the configured policy is invalid.
    """
    settings: config.Settings = ctx.obj["settings"]
    failed = False

    if settings.has_extra_fields():
        failed = True
        _click.echo("Unknown configuration fields:")
        for path in sorted(settings.collect_all_extra_fields()):
            _click.echo(f"  {path}")

    try:
        settings.merge_policy()
    except policy_mod.PolicyError as e:
        failed = True
        _click.echo(f"Invalid policy: {e}")

    if failed:
        ctx.exit(1)
    _click.echo("Configuration OK")


@config_cmd.command(name="path")
@_click.option("--all", "show_all", is_flag=True, help="Show all paths even if not found")
def config_path(show_all: bool) -> None:
    """Show configuration file paths and their status."""
    paths = [
        ("Built-in defaults", config_sources.get_builtin_defaults_path()),
        ("User config", config_sources.get_user_config_path()),
        ("Project config", config_sources.get_project_config_path(config.find_project_root())),
    ]

    for name, path in paths:
        exists = path.exists()
        if exists or show_all:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {name}: {path}")


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. NO_COLOR env var (if set, disable color)
    3. Auto-detect: color if stdout is a TTY

    Returns:
        Tuple of (color_enabled, force_color).
        force_color is True when color was explicitly requested (not auto-detected).
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting."""
    if not color:
        _click.echo(yaml_text)
        return

    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    syntax = _rich_syntax.Syntax(
        yaml_text,
        "yaml",
        theme="monokai",
        background_color="default",
    )
    console.print(syntax)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="svalinn")


if __name__ == "__main__":
    main()
