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

r"""Motorola S-record format.

See Also:
    `<https://en.wikipedia.org/wiki/SREC_(file_format)>`_
"""

import enum
from typing import Any
from typing import Mapping
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import cast as _cast

from ..base import AnyBytes
from ..base import BaseDecoder
from ..base import BaseRecord
from ..base import BaseTag
from ..base import ChecksumMismatch
from ..base import MalformedRecord
from ..base import TypeAlias
from ..base import unhexlify_record
from ..image import SparseImage
from ..utils import hexlify

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any


class SrecTag(BaseTag, enum.IntEnum):
    r"""Motorola S-record tag."""

    HEADER = 0
    r"""Header string. Optional."""

    DATA_16 = 1
    r"""16-bit address data record."""

    DATA_24 = 2
    r"""24-bit address data record."""

    DATA_32 = 3
    r"""32-bit address data record."""

    RESERVED = 4
    r"""Reserved tag."""

    COUNT_16 = 5
    r"""16-bit record count. Optional."""

    COUNT_24 = 6
    r"""24-bit record count. Optional."""

    START_32 = 7
    r"""32-bit start address. Terminates :attr:`DATA_32`."""

    START_24 = 8
    r"""24-bit start address. Terminates :attr:`DATA_24`."""

    START_16 = 9
    r"""16-bit start address. Terminates :attr:`DATA_16`."""

    def get_address_size(self) -> int:
        r"""Calculates the address field size.

        Returns:
            int: *Address* field size, in bytes; zero if not supported.

        Examples:
            >>> from hexload import SrecTag
            >>> SrecTag.DATA_24.get_address_size()
            3
            >>> SrecTag.RESERVED.get_address_size()
            0
        """

        SIZES = (2, 2, 3, 4, 0, 2, 3, 4, 3, 2)
        size = SIZES[self]
        return size

    def is_count(self) -> bool:

        return ((self == self.COUNT_16) or
                (self == self.COUNT_24))

    def is_data(self) -> bool:

        return ((self == self.DATA_16) or
                (self == self.DATA_24) or
                (self == self.DATA_32))

    def is_file_termination(self) -> bool:

        return self.is_start()

    def is_header(self) -> bool:

        return self == self.HEADER

    def is_start(self) -> bool:
        r"""Tells whether this is a start address record tag.

        Start address records also terminate the record file.

        Returns:
            bool: This is a start address record tag.

        Examples:
            >>> from hexload import SrecTag
            >>> SrecTag.START_16.is_start()
            True
            >>> SrecTag.DATA_16.is_start()
            False
        """

        return ((self == self.START_16) or
                (self == self.START_24) or
                (self == self.START_32))


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='SrecRecord')


class SrecRecord(BaseRecord):
    r"""Motorola S-record record object.

    A record line has the following layout, with each field but the tag made
    of hexadecimal digit pairs::

        STCC[AAAA...][DD...]KK

    where ``T`` is the tag digit, ``CC`` the byte count of the remaining
    fields, ``AAAA...`` the big-endian address (2, 3, or 4 bytes, depending on
    the tag), ``DD...`` the data bytes, and ``KK`` the ones' complement
    checksum.

    Examples:
        >>> from hexload import SrecRecord
        >>> record = SrecRecord.parse(b'S106003002337A1A')
        >>> record.tag
        <SrecTag.DATA_16: 1>
        >>> hex(record.address), record.data
        ('0x30', b'\x023z')
    """

    Tag: Type[SrecTag] = SrecTag

    def compute_checksum(self) -> int:

        checksum = self.count & 0xFF
        address = self.address & 0xFFFFFFFF
        while address > 0:
            checksum += address & 0xFF
            address >>= 8
        checksum += sum(iter(self.data))
        checksum = (checksum & 0xFF) ^ 0xFF
        return checksum

    @classmethod
    def parse(cls, line: AnyBytes) -> Self:

        if line[:1] not in (b'S', b's'):
            raise MalformedRecord('missing record marker')

        tag_digit = line[1:2]
        if not tag_digit.isdigit():
            raise MalformedRecord('unknown record type')
        tag = cls.Tag(int(tag_digit))

        # The ones' complement checksum makes all the record bytes sum to 0xFF
        raw = unhexlify_record(line[2:])
        if not raw:
            raise MalformedRecord('record too short')
        if (sum(raw) & 0xFF) != 0xFF:
            raise ChecksumMismatch('checksum mismatch')

        count = raw[0]
        if len(raw) - 1 < count:
            raise MalformedRecord('record too short')
        if len(raw) - 1 > count:
            raise MalformedRecord('record too long')

        if tag == tag.RESERVED:
            raise MalformedRecord('unknown record type')

        address_size = tag.get_address_size()
        if count < address_size + 1:
            raise MalformedRecord('record too short')

        record = cls(tag,
                     address=int.from_bytes(raw[1:(1 + address_size)], byteorder='big'),
                     data=raw[(1 + address_size):-1],
                     count=count,
                     checksum=raw[-1])
        return record

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:

        tag = _cast(SrecTag, self.tag)
        address_size = tag.get_address_size()
        return {
            'begin': b'S',
            'tag': b'%d' % tag,
            'count': b'%02X' % (self.count & 0xFF),
            'address': b'%0*X' % (address_size * 2, self.address),
            'data': hexlify(self.data),
            'checksum': b'%02X' % (self.checksum & 0xFF),
            'end': end,
        }

    def validate(self) -> Self:

        super().validate()

        tag = _cast(SrecTag, self.tag)
        if tag == tag.RESERVED:
            raise MalformedRecord('unknown record type')

        address_size = tag.get_address_size()
        if self.address >> (address_size * 8):
            raise MalformedRecord('address overflow')

        if self.count != address_size + len(self.data) + 1:
            raise MalformedRecord('wrong count')

        if self.checksum != self.compute_checksum():
            raise ChecksumMismatch('checksum mismatch')

        return self


class SrecDecoder(BaseDecoder):
    r"""Motorola S-record decoder.

    *Data* records are written at their own address; *header* and *count*
    records are ignored.
    Any *start address* record terminates the file.
    Any other tag is rejected as *malformed*.

    Examples:
        >>> from hexload import SrecDecoder
        >>> lines = [
        ...     b'S00600004844521B',
        ...     b'S106003002337A1A',
        ...     b'S9030000FC',
        ... ]
        >>> image = SrecDecoder.decode(lines)
        >>> image.blocks()
        [(48, b'\x023z')]
    """

    Record: Type[SrecRecord] = SrecRecord

    SIGNATURES: Sequence[bytes] = [b'S', b's']

    def apply_record(self, record: SrecRecord, image: SparseImage) -> None:

        tag = _cast(SrecTag, record.tag)

        if tag.is_data():
            address = record.address
            for index, value in enumerate(record.data):
                image.set(address + index, value)

        elif not (tag.is_header() or tag.is_count() or tag.is_start()):
            raise MalformedRecord('unknown record type')
