"""
Record sinks: where emitted records go.
"""

from sqlpoll.sinks.abstract import AbstractRecordSink, RecordSink
from sqlpoll.sinks.console import ConsoleSink

__all__ = [
    "AbstractRecordSink",
    "ConsoleSink",
    "RecordSink",
]
