from __future__ import annotations

import json
from typing import List, Optional, TextIO

from rich.console import Console

from sqlpoll.domain.models import Record, to_jsonable
from sqlpoll.sinks.abstract import AbstractRecordSink


class ConsoleSink(AbstractRecordSink):
    """
    Write records to stdout.

    Plain mode emits one JSON document per line, suitable for piping into
    other tools. Pretty mode renders indented, highlighted JSON through rich.
    """

    def __init__(self, pretty: bool = False, file: Optional[TextIO] = None) -> None:
        self.pretty = pretty
        self.console = Console(file=file, highlight=pretty, soft_wrap=True)
        self.records_written = 0

    async def send_batch(self, records: List[Record]) -> None:
        for record in records:
            payload = to_jsonable(record)
            if self.pretty:
                self.console.print_json(data=payload)
            else:
                self.console.print(json.dumps(payload), markup=False, emoji=False, highlight=False)
            self.records_written += 1


__all__ = ["ConsoleSink"]
