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

r"""Generic utility functions."""

import binascii
import re
from typing import Any
from typing import Iterator
from typing import Optional
from typing import Tuple
from typing import Union

from .base import AnyBytes

INT_REGEX = re.compile(r'^\s*(?P<sign>[+-]?)\s*'
                       r'(?:0x(?P<hex>[0-9a-f]+)'
                       r'|0b(?P<bin>[01]+)'
                       r'|0o?(?P<oct>[0-7]+)'
                       r'|(?P<hexh>[0-9a-f]+)h'
                       r'|(?P<dec>[0-9]+))\s*$')

INT_GROUP_BASES: Tuple[Tuple[str, int], ...] = (
    ('hex', 16),
    ('bin', 2),
    ('oct', 8),
    ('hexh', 16),
    ('dec', 10),
)
r"""Numeric base of each digits group of :data:`INT_REGEX`."""


def chop(
    data: AnyBytes,
    width: int,
    address: int = 0,
) -> Iterator[Tuple[int, AnyBytes]]:
    r"""Splits a run of data into address-aligned rows.

    Rows start at addresses multiple of `width`, so the first row is shorter
    if `address` is not aligned.

    Args:
        data (bytes):
            Contiguous data bytes.

        width (int):
            Maximum row length; must be positive.

        address (int):
            Address of the first byte of `data`.

    Yields:
        (int, bytes): Address and contents of each row.

    Examples:
        >>> list(chop(b'ABCDEFG', 4, 0x102))
        [(258, b'AB'), (260, b'CDEF'), (264, b'G')]
    """

    width = int(width)
    if width <= 0:
        raise ValueError('non-positive width')

    offset = 0
    size = len(data)

    while offset < size:
        endex = offset + width - ((address + offset) % width)
        yield address + offset, data[offset:endex]
        offset = endex


def hexlify(
    data: AnyBytes,
    sep: Optional[bytes] = None,
    upper: bool = True,
) -> bytes:
    r"""Converts raw bytes into hexadecimal digit pairs.

    Examples:
        >>> hexlify(b'\xAA\xBB\xCC', sep=b' ', upper=False)
        b'aa bb cc'
    """

    hexstr = binascii.hexlify(data, sep) if sep else binascii.hexlify(data)
    return hexstr.upper() if upper else hexstr


def parse_int(
    value: Union[str, Any],
) -> Optional[int]:
    r"""Parses an integer, like an address typed on the command line.

    Args:
        value:
            Case-insensitive :obj:`str` with an optional sign, either
            decimal, or hexadecimal (``0x`` prefix or ``h`` suffix), or
            binary (``0b`` prefix), or octal (``0o`` or plain ``0`` prefix).
            ``None`` evaluates as ``None``; any other object is passed to
            :func:`int`.

    Returns:
        int: None if `value` is ``None``, its integer conversion otherwise.

    Examples:
        >>> parse_int('-0x100')
        -256
        >>> parse_int('8000h')
        32768
    """

    if value is None:
        return None

    if not isinstance(value, str):
        return int(value)

    m = INT_REGEX.match(value.lower())
    if not m:
        raise ValueError(f'invalid syntax: {value!r}')

    for name, base in INT_GROUP_BASES:
        digits = m.group(name)
        if digits is not None:
            break

    i = int(digits, base)
    return -i if m.group('sign') == '-' else i
