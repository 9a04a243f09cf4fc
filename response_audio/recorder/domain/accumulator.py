"""Append-only mono sample storage for the active recording."""

from __future__ import annotations

import numpy as np


class MonoSampleBuffer:
    """Growing mono buffer; every appended chunk is kept exactly once.

    Once frozen the buffer rejects further appends until it is cleared.
    """

    def __init__(self) -> None:
        self._chunks: list[np.ndarray] = []
        self._length = 0
        self._frozen = False

    def __len__(self) -> int:
        return self._length

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def append(self, mono: np.ndarray) -> None:
        if self._frozen:
            raise RuntimeError("Cannot append to a frozen sample buffer")
        array = np.array(mono, dtype=np.float32, copy=True).reshape(-1)
        if array.size == 0:
            return
        self._chunks.append(array)
        self._length += array.size

    def clear(self) -> None:
        self._chunks = []
        self._length = 0
        self._frozen = False

    def to_array(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0, dtype=np.float32)
        if len(self._chunks) > 1:
            # Collapse in place so repeated reads stay cheap.
            self._chunks = [np.concatenate(self._chunks)]
        return self._chunks[0].copy()

    def freeze(self) -> np.ndarray:
        self._frozen = True
        return self.to_array()


class SampleAccumulator:
    """Feeds downmixed chunks into the buffer of the recording in progress."""

    def __init__(self) -> None:
        self.buffer = MonoSampleBuffer()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def sample_count(self) -> int:
        return len(self.buffer)

    def begin(self) -> None:
        self.buffer.clear()
        self._active = True

    def accept(self, mono: np.ndarray) -> None:
        if not self._active:
            return
        self.buffer.append(mono)

    def finish(self) -> np.ndarray:
        """Stop accepting samples and return the frozen buffer contents."""
        self._active = False
        return self.buffer.freeze()

    def discard(self) -> None:
        self._active = False
        self.buffer.clear()


__all__ = ["MonoSampleBuffer", "SampleAccumulator"]
