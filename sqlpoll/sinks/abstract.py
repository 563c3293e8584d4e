"""
Sink interfaces for emitted records.

The pipeline that receives records is external to sqlpoll. Anything that
implements `RecordSink` can be handed to a source: the source awaits
`send_batch` once per tick, so a sink applies backpressure simply by not
returning until it is ready for more.
"""

from __future__ import annotations

import abc
from typing import List, Protocol, runtime_checkable

from sqlpoll.domain.models import Record


@runtime_checkable
class RecordSink(Protocol):
    """
    Common interface every record sink must implement.
    """

    async def send_batch(self, records: List[Record]) -> None:
        """
        Accept a batch of records.

        Parameters
        ----------
        records : List[Record]
            Records to deliver. Sources always send single-record batches.
        """
        ...


class AbstractRecordSink(abc.ABC):
    """
    Optional ABC helper for class-based sinks.
    """

    @abc.abstractmethod
    async def send_batch(self, records: List[Record]) -> None:  # pragma: no cover - interface only
        """Deliver the records."""
        raise NotImplementedError


__all__ = [
    "RecordSink",
    "AbstractRecordSink",
]
