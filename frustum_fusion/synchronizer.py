"""
Exact-time synchronizer for the three fusion inputs.

Messages are matched on header.stamp. The callback fires once per stamp
as soon as every input slot holds a message with that stamp.
"""

import logging
from collections import OrderedDict
from typing import Callable, List

from .config import SYNC_QUEUE_SIZE

logger = logging.getLogger(__name__)


class ExactTimeSynchronizer:
    """
    Match messages from N inputs with identical stamps.

    Attributes:
        n_inputs: Number of input slots
        queue_size: Distinct stamps kept before the oldest is evicted
    """

    def __init__(self, n_inputs: int = 3, queue_size: int = None):
        self.n_inputs = n_inputs
        self.queue_size = queue_size if queue_size is not None else SYNC_QUEUE_SIZE
        self._pending: 'OrderedDict[float, List]' = OrderedDict()
        self._callbacks: List[Callable] = []

    def register_callback(self, callback: Callable):
        self._callbacks.append(callback)

    def add(self, index: int, msg):
        """Add a message on input slot index."""
        if not 0 <= index < self.n_inputs:
            raise IndexError(f"Input index {index} out of range [0, {self.n_inputs})")

        stamp = msg.header.stamp
        slots = self._pending.get(stamp)
        if slots is None:
            slots = [None] * self.n_inputs
            self._pending[stamp] = slots
            self._pending = OrderedDict(sorted(self._pending.items()))
        slots[index] = msg

        if all(slot is not None for slot in slots):
            del self._pending[stamp]
            # Anything older than a completed set can never complete
            for old in [s for s in self._pending if s < stamp]:
                del self._pending[old]
            for callback in self._callbacks:
                callback(*slots)
            return

        while len(self._pending) > self.queue_size:
            evicted, _ = self._pending.popitem(last=False)
            logger.debug("Dropping unmatched messages at %.6f", evicted)

    def pending(self) -> int:
        return len(self._pending)
