# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Sparse memory image.

The decoders fill a :class:`SparseImage`, which stores only the addresses
explicitly written by data records.
"""

from typing import Any
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple

from bytesparse import Memory
from bytesparse.base import MutableMemory


class SparseImage:
    r"""Sparse address space of byte values.

    Each address maps to at most one byte; writing an address again
    overwrites its previous value.
    Unwritten addresses are simply absent: there is no implicit fill.

    The actual storage is a :class:`bytesparse.Memory`, which keeps
    contiguous runs of written addresses as blocks.

    Args:
        memory (:class:`bytesparse.base.MutableMemory`):
            Backing memory object, taken as is.
            If ``None``, a new empty one is created.

    Examples:
        >>> from hexload import SparseImage
        >>> image = SparseImage()
        >>> image.set(0x1000, 0xAA)
        >>> image.set(0x1001, 0xBB)
        >>> image.set(0x2000, 0xCC)
        >>> image.get(0x1001)
        187
        >>> image.get(0x1002) is None
        True
        >>> list(image.items())
        [(4096, 170), (4097, 187), (8192, 204)]
        >>> image.blocks()
        [(4096, b'\xaa\xbb'), (8192, b'\xcc')]
    """

    def __init__(self, memory: Optional[MutableMemory] = None):

        if memory is None:
            memory = Memory()
        self._memory: MutableMemory = memory

    def __bool__(self) -> bool:

        return bool(self._memory.content_size)

    def __contains__(self, address: int) -> bool:

        return self.contains(address)

    def __eq__(self, other: Any) -> bool:

        if isinstance(other, SparseImage):
            return self._memory == other._memory
        return NotImplemented

    def __getitem__(self, address: int) -> int:

        value = self._memory.peek(address)
        if value is None:
            raise KeyError(address)
        return value

    def __iter__(self) -> Iterator[int]:

        yield from self.keys()

    def __len__(self) -> int:

        return self._memory.content_size

    def __repr__(self) -> str:

        return f'<{type(self).__name__} size={len(self)} span=({self.start}, {self.endex})>'

    def __setitem__(self, address: int, value: int) -> None:

        self.set(address, value)

    def blocks(self) -> List[Tuple[int, bytes]]:
        r"""Contiguous runs.

        Returns:
            list of (int, bytes): Start address and contents of each run of
            consecutive written addresses, by ascending address.

        Examples:
            >>> from hexload import SparseImage
            >>> image = SparseImage()
            >>> for address in (5, 1, 2):
            ...     image.set(address, address)
            >>> image.blocks()
            [(1, b'\x01\x02'), (5, b'\x05')]
        """

        return [(start, bytes(data)) for start, data in self._memory.to_blocks()]

    def contains(self, address: int) -> bool:
        r"""Tells whether an address was written."""

        return self._memory.peek(address) is not None

    def copy(self) -> 'SparseImage':

        return type(self)(self._memory.copy())

    @property
    def endex(self) -> int:
        r"""int: Exclusive end address of the written span; 0 if empty."""

        return self._memory.endex if self else 0

    def get(self, address: int, default: Optional[int] = None) -> Optional[int]:
        r"""Reads a byte.

        Args:
            address (int):
                Address to read.

            default:
                Value returned when `address` was never written.

        Returns:
            int: The byte at `address`, or `default`.
        """

        value = self._memory.peek(address)
        return default if value is None else value

    def items(self) -> Iterator[Tuple[int, int]]:
        r"""Iterates over written bytes.

        Each call starts a new iteration over the current contents.

        Yields:
            (int, int): Address and byte value, by ascending address.
        """

        for start, data in self._memory.to_blocks():
            for offset, value in enumerate(data):
                yield start + offset, value

    def keys(self) -> Iterator[int]:

        for address, _ in self.items():
            yield address

    @property
    def memory(self) -> MutableMemory:
        r""":class:`bytesparse.base.MutableMemory`: Backing memory object."""

        return self._memory

    def set(self, address: int, value: int) -> None:
        r"""Writes a byte, overwriting any previous value."""

        self._memory.poke(address, value)

    @property
    def start(self) -> int:
        r"""int: Inclusive start address of the written span; 0 if empty."""

        return self._memory.start if self else 0

    def values(self) -> Iterator[int]:

        for _, value in self.items():
            yield value
