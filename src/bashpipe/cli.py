"""Click entry point — all commands."""

import dataclasses
import shlex
import sys

import click
import yaml

from bashpipe import __version__, log, runner
from bashpipe import config as config_mod
from bashpipe.process import LaunchError


@click.group()
@click.version_option(version=__version__, prog_name="bashpipe")
def main():
    """Run shell commands with piped input and captured output."""


@main.command(name="run")
@click.argument("command")
@click.option("--input", "input_file", type=click.File("rb"), default=None, help="Feed FILE to the command ('-' for stdin)")
@click.option("--data", default=None, help="Feed TEXT to the command")
@click.option("--env", "env_pairs", multiple=True, help="Set KEY=VALUE in the command's environment")
@click.option("--shell", default=None, help="Interpreter to run the command with, e.g. '/bin/sh -c'")
@click.option("--trace/--no-trace", default=None, help="Trace every read, write and state change on stderr")
@click.option("--config", "config_path", default=None, help="Path to a YAML config file")
def run_cmd(command, input_file, data, env_pairs, shell, trace, config_path):
    """Run COMMAND and write its output to stdout."""
    if input_file is not None and data is not None:
        log.error("--input and --data are mutually exclusive")
        sys.exit(1)

    try:
        cfg = config_mod.load_config(config_path)
        overrides = config_mod.parse_env_pairs(env_pairs)
        if shell:
            cfg = dataclasses.replace(cfg, interpreter=tuple(shlex.split(shell)))
    except config_mod.ConfigError as e:
        log.error(str(e))
        sys.exit(1)
    if trace is not None:
        cfg = dataclasses.replace(cfg, trace=trace)

    source = input_file if input_file is not None else data
    try:
        result = runner.run(command, input=source, env=overrides, config=cfg)
    except (LaunchError, config_mod.ConfigError) as e:
        log.error(str(e))
        sys.exit(1)

    click.echo(result.output, nl=False)
    sys.exit(_exit_code(result))


def _exit_code(result: runner.Result) -> int:
    if result.returncode < 0:
        # Killed by signal, reported the way shells do.
        return 128 - result.returncode
    if result.returncode == 0 and result.read_failed:
        return 1
    return result.returncode


@main.command(name="config")
@click.option("--config", "config_path", default=None, help="Path to a YAML config file")
def show_config(config_path):
    """Show the resolved configuration."""
    try:
        cfg = config_mod.load_config(config_path)
    except config_mod.ConfigError as e:
        log.error(str(e))
        sys.exit(1)
    click.echo(yaml.safe_dump(cfg.to_dict(), sort_keys=False), nl=False)


if __name__ == "__main__":
    main()
