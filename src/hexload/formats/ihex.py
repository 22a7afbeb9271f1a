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

r"""Intel HEX format.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
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


class IhexTag(BaseTag, enum.IntEnum):
    r"""Intel HEX tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    EXTENDED_SEGMENT_ADDRESS = 2
    r"""Extended Segment Address."""

    START_SEGMENT_ADDRESS = 3
    r"""Start Segment Address."""

    EXTENDED_LINEAR_ADDRESS = 4
    r"""Extended Linear Address."""

    START_LINEAR_ADDRESS = 5
    r"""Start Linear Address."""

    def is_data(self) -> bool:

        return self == self.DATA

    def is_eof(self) -> bool:
        r"""Tells whether this is an End Of File record tag.

        Returns:
            bool: This is an End Of File record tag.

        Examples:
            >>> from hexload import IhexTag
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_extension(self) -> bool:
        r"""Tells whether this is an Extended Address record tag.

        Returns:
            bool: This is an Extended Address record tag.

        Examples:
            >>> from hexload import IhexTag
            >>> IhexTag.EXTENDED_LINEAR_ADDRESS.is_extension()
            True
            >>> IhexTag.EXTENDED_SEGMENT_ADDRESS.is_extension()
            True
            >>> IhexTag.DATA.is_extension()
            False
        """

        return ((self == self.EXTENDED_SEGMENT_ADDRESS) or
                (self == self.EXTENDED_LINEAR_ADDRESS))

    def is_file_termination(self) -> bool:

        return self.is_eof()

    def is_start(self) -> bool:
        r"""Tells whether this is a Start Address record tag.

        Start address records carry the program entry point, which has no
        effect on the memory image.

        Returns:
            bool: This is a Start Address record tag.

        Examples:
            >>> from hexload import IhexTag
            >>> IhexTag.START_LINEAR_ADDRESS.is_start()
            True
            >>> IhexTag.START_SEGMENT_ADDRESS.is_start()
            True
            >>> IhexTag.DATA.is_start()
            False
        """

        return ((self == self.START_SEGMENT_ADDRESS) or
                (self == self.START_LINEAR_ADDRESS))


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='IhexRecord')


class IhexRecord(BaseRecord):
    r"""Intel HEX record object.

    A record line has the following layout, with each field made of
    hexadecimal digit pairs::

        :LLOOOOTT[DD...]CC

    where ``LL`` is the data byte count, ``OOOO`` the big-endian 16-bit
    address offset, ``TT`` the record type, ``DD...`` the data bytes, and
    ``CC`` the two's complement checksum.

    Examples:
        >>> from hexload import IhexRecord
        >>> record = IhexRecord.parse(b':0300300002337A1E')
        >>> record.tag
        <IhexTag.DATA: 0>
        >>> hex(record.address), record.data
        ('0x30', b'\x023z')
    """

    Tag: Type[IhexTag] = IhexTag

    def compute_checksum(self) -> int:

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        sum_address = (address >> 8) + (address & 0xFF)
        sum_data = sum(iter(self.data))
        tag = _cast(IhexTag, self.tag) & 0xFF
        checksum = (count + sum_address + tag + sum_data)
        checksum = (0x100 - (checksum & 0xFF)) & 0xFF
        return checksum

    @classmethod
    def parse(cls, line: AnyBytes) -> Self:

        if line[:1] != b':':
            raise MalformedRecord('missing record marker')

        # The two's complement checksum makes all the record bytes sum to zero
        raw = unhexlify_record(line[1:])
        if sum(raw) & 0xFF:
            raise ChecksumMismatch('checksum mismatch')

        if len(raw) < 5:
            raise MalformedRecord('record too short')
        count = raw[0]
        size = 5 + count
        if len(raw) < size:
            raise MalformedRecord('record too short')
        if len(raw) > size:
            raise MalformedRecord('record too long')

        try:
            tag = cls.Tag(raw[3])
        except ValueError:
            raise MalformedRecord('unknown record type') from None

        record = cls(tag,
                     address=((raw[1] << 8) | raw[2]),
                     data=raw[4:-1],
                     count=count,
                     checksum=raw[-1])
        return record

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:

        return {
            'begin': b':',
            'count': b'%02X' % (self.count & 0xFF),
            'address': b'%04X' % (self.address & 0xFFFF),
            'tag': b'%02X' % (_cast(IhexTag, self.tag) & 0xFF),
            'data': hexlify(self.data),
            'checksum': b'%02X' % (self.checksum & 0xFF),
            'end': end,
        }

    def validate(self) -> Self:

        super().validate()

        if not 0 <= self.address <= 0xFFFF:
            raise MalformedRecord('address overflow')

        if self.count != len(self.data):
            raise MalformedRecord('wrong count')

        if self.checksum != self.compute_checksum():
            raise ChecksumMismatch('checksum mismatch')

        tag = _cast(IhexTag, self.tag)
        if tag.is_extension():
            if len(self.data) != 2:
                raise MalformedRecord('extension data size overflow')

        return self


class IhexDecoder(BaseDecoder):
    r"""Intel HEX decoder.

    *Data* record addresses are extended by the most recent address extension
    record:

    * after an *Extended Segment Address* record (and by default), the
      address is ``segment + offset + index``, with ``segment`` being the
      record value shifted left by 4 bits;

    * after an *Extended Linear Address* record, the address is
      ``linear | ((offset + index) & 0xFFFF)``, with ``linear`` being the
      record value shifted left by 16 bits.

    Switching addressing mode keeps the value of the other extension, which
    is simply no longer applied.
    *Start address* records leave the image untouched.

    Examples:
        >>> from hexload import IhexDecoder
        >>> lines = [
        ...     b':020000040010EA',
        ...     b':01001000559A',
        ...     b':00000001FF',
        ... ]
        >>> image = IhexDecoder.decode(lines)
        >>> hex(image.start), image.get(image.start)
        ('0x100010', 85)
    """

    Record: Type[IhexRecord] = IhexRecord

    SIGNATURES: Sequence[bytes] = [b':']

    def __init__(self):

        self._linear: int = 0
        self._segment: int = 0
        self._use_linear: bool = False

    def apply_record(self, record: IhexRecord, image: SparseImage) -> None:

        tag = _cast(IhexTag, record.tag)

        if tag.is_data():
            offset = record.address
            if self._use_linear:
                linear = self._linear
                for index, value in enumerate(record.data):
                    image.set(linear | ((offset + index) & 0xFFFF), value)
            else:
                base = self._segment + offset
                for index, value in enumerate(record.data):
                    image.set(base + index, value)

        elif tag.is_extension():
            if tag == tag.EXTENDED_LINEAR_ADDRESS:
                self._linear = record.data_to_int() << 16
                self._use_linear = True
            else:
                self._segment = record.data_to_int() << 4
                self._use_linear = False

        elif not (tag.is_start() or tag.is_eof()):
            raise MalformedRecord('unknown record type')

    @property
    def linear(self) -> int:
        r"""int: Last Extended Linear Address, shifted into bits 16-31."""

        return self._linear

    @property
    def segment(self) -> int:
        r"""int: Last Extended Segment Address, shifted left by 4 bits."""

        return self._segment

    @property
    def use_linear(self) -> bool:
        r"""bool: Linear addressing mode is active."""

        return self._use_linear
