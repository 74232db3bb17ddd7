"""Output sinks for task execution."""

from __future__ import annotations

import io
import sys
from dataclasses import dataclass
from typing import TextIO


@dataclass(frozen=True)
class Output:
    """Stdout/stderr pair a runnable writes to."""

    stdout: TextIO
    stderr: TextIO

    @classmethod
    def std(cls) -> Output:
        return cls(stdout=sys.stdout, stderr=sys.stderr)


class BufferedOutput:
    """Private buffers for one parallel branch, flushed to ``parent`` once."""

    def __init__(self, parent: Output):
        self.parent = parent
        self._stdout = io.StringIO()
        self._stderr = io.StringIO()
        self.output = Output(stdout=self._stdout, stderr=self._stderr)

    def flush(self) -> None:
        """Copy buffered text to the parent; caller serialises flushes."""
        out = self._stdout.getvalue()
        err = self._stderr.getvalue()
        if out:
            self.parent.stdout.write(out)
            self.parent.stdout.flush()
        if err:
            self.parent.stderr.write(err)
            self.parent.stderr.flush()
