from dataclasses import dataclass
from io import StringIO

import pytest
from rich.console import Console

from flaredeck.logger import Logger


@dataclass
class CapturedOutput:
    logger: Logger
    out_buffer: StringIO
    err_buffer: StringIO

    @property
    def out(self) -> str:
        return self.out_buffer.getvalue()

    @property
    def err(self) -> str:
        return self.err_buffer.getvalue()


@pytest.fixture
def output() -> CapturedOutput:
    """A Logger whose stdout and stderr text can be inspected."""
    out_buffer, err_buffer = StringIO(), StringIO()
    logger = Logger(
        out=Console(file=out_buffer, width=200, soft_wrap=True, highlight=False),
        err=Console(file=err_buffer, width=200, soft_wrap=True, highlight=False),
    )
    return CapturedOutput(logger=logger, out_buffer=out_buffer, err_buffer=err_buffer)
