"""Subprocess launcher — the single mock seam for all tests."""

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import IO

from bashpipe.config import DEFAULT_INTERPRETER


class LaunchError(Exception):
    """The interpreter could not be started."""

    def __init__(self, path: str):
        super().__init__(f"failed to launch {path}")
        self.path = path


@dataclass
class Child:
    """A running child with its stdin writer (or None) and stdout reader."""

    proc: subprocess.Popen
    stdin: IO[bytes] | None
    stdout: IO[bytes]

    @property
    def pid(self) -> int:
        return self.proc.pid

    @property
    def args(self) -> list[str]:
        return list(self.proc.args)

    def wait(self) -> int:
        """Block until the child exits and reap it. Returns the exit code."""
        return self.proc.wait()


class ProcessLauncher:
    def spawn(
        self,
        command: str,
        interpreter: Sequence[str] = DEFAULT_INTERPRETER,
        env: Mapping[str, str] | None = None,
        with_input: bool = True,
    ) -> Child:
        """Start *command* under *interpreter* with blocking, unbuffered pipes.

        *env* is merged over os.environ for the child only.
        """
        args = list(interpreter) + [command]
        merged_env = None
        if env:
            merged_env = {**os.environ, **{str(k): str(v) for k, v in env.items()}}

        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE if with_input else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                env=merged_env,
                bufsize=0,
            )
        except (OSError, ValueError) as e:
            # ValueError: env names or values Popen cannot pass on.
            raise LaunchError(args[0]) from e
        return Child(proc=proc, stdin=proc.stdin, stdout=proc.stdout)


def spawn(
    command: str,
    interpreter: Sequence[str] = DEFAULT_INTERPRETER,
    env: Mapping[str, str] | None = None,
    with_input: bool = True,
) -> Child:
    return ProcessLauncher().spawn(command, interpreter=interpreter, env=env, with_input=with_input)
