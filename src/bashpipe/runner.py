"""Run a command with piped input and captured output."""

from collections.abc import Mapping
from dataclasses import dataclass

from bashpipe import log, process
from bashpipe.config import Config
from bashpipe.pump import InputSource, PipeDriver


@dataclass
class Result:
    output: bytes
    success: bool
    returncode: int
    read_failed: bool = False

    @property
    def text(self) -> str:
        return self.output.decode("utf-8", errors="replace")

    def __iter__(self):
        # Allows `output, ok = run(...)`
        return iter((self.output, self.success))


def run(
    command: str,
    input=None,
    env: Mapping[str, str] | None = None,
    config: Config | None = None,
) -> Result:
    """Run *command* under the configured interpreter.

    *input* (bytes, str, binary file or None) is fed to the child's stdin
    while its stdout is collected. *env* entries are merged over the
    config's env for this call only.

    Success requires exit code 0 and a clean read of the output. A failed
    read still returns whatever output was captured before it.
    """
    config = (config or Config()).with_env(env)
    source = None if input is None else InputSource(input)

    if config.trace:
        log.trace(f"executing command: {command}")
        for key, value in config.env.items():
            log.trace(f"setting env {key}={value}")

    child = process.spawn(
        command,
        interpreter=config.interpreter,
        env=config.env,
        with_input=source is not None,
    )
    try:
        driver = PipeDriver(child.stdout, child.stdin, source, trace=config.trace)
        drive = driver.run()
    finally:
        # Always reap, even if the pump raised.
        returncode = child.wait()

    if config.trace:
        log.trace(f"command exited with rc={returncode}")

    return Result(
        output=drive.output,
        success=returncode == 0 and not drive.read_failed,
        returncode=returncode,
        read_failed=drive.read_failed,
    )


def bash(command: str, input=None, config: Config | None = None, **env) -> tuple[bytes, bool]:
    """Short form of run(): returns (output, success).

    Keyword arguments become environment variables of the child, so the
    command can refer to them as shell variables:

        bash('echo "$greeting"', greeting="hi")
    """
    result = run(command, input=input, env={k: str(v) for k, v in env.items()}, config=config)
    return result.output, result.success
