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

r""" Base types and classes."""

import abc
import binascii
import io
import os
import sys
from typing import IO
from typing import Any
from typing import AsyncIterable
from typing import Iterable
from typing import Iterator
from typing import Literal
from typing import Mapping
from typing import MutableMapping
from typing import Optional
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import Union

import colorama

from .image import SparseImage

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

ByteOrder: TypeAlias = Literal['big', 'little']
AnyBytes: TypeAlias = Union[bytes, bytearray, memoryview]
AnyPath: TypeAlias = Union[bytes, bytearray, str, os.PathLike]
AnyLine: TypeAlias = Union[bytes, bytearray, memoryview, str]
LineSource: TypeAlias = Union[AnyBytes, str, Iterable[AnyLine]]

decoder_types: MutableMapping[bytes, Type['BaseDecoder']] = {}
r"""Registered decoder types.

Each key is the leading byte which identifies the record format, as found
at the very beginning of a record file."""

TOKEN_COLOR_CODES: Mapping[str, bytes] = {
    '':         colorama.Style.RESET_ALL.encode(),
    '<':        colorama.Style.RESET_ALL.encode(),
    '>':        colorama.Style.RESET_ALL.encode(),
    'address':  colorama.Fore.RED.encode(),
    'begin':    colorama.Fore.YELLOW.encode(),
    'checksum': colorama.Fore.MAGENTA.encode(),
    'count':    colorama.Fore.BLUE.encode(),
    'data':     colorama.Fore.CYAN.encode(),
    'dataalt':  colorama.Fore.LIGHTCYAN_EX.encode(),
    'end':      colorama.Style.RESET_ALL.encode(),
    'tag':      colorama.Fore.GREEN.encode(),
}
r"""ANSI color codes for each possible token type."""


class DecodeError(ValueError):
    r"""Record file decoding failure.

    Any decoding failure aborts the whole decoding process; the image being
    filled must then be considered indeterminate.

    Args:
        reason (str):
            Short description of the failure.

        line (int):
            1-based number of the offending line, if known.
    """

    def __init__(self, reason: str, line: Optional[int] = None):

        super().__init__(reason)
        self.reason: str = reason
        self.line: Optional[int] = line

    def __str__(self) -> str:

        if self.line is None:
            return self.reason
        return f'line {self.line}: {self.reason}'


class UnsupportedFormat(DecodeError):
    r"""The leading byte does not match any registered decoder."""


class MalformedRecord(DecodeError):
    r"""Record syntax violation."""


class ChecksumMismatch(DecodeError):
    r"""Record checksum verification failure."""


class TruncatedInput(DecodeError):
    r"""Input exhausted before the termination record."""


class Cancelled(Exception):
    r"""Decoding cancelled between records."""


def check_cancel(cancel: Optional[Any]) -> None:
    r"""Raises :class:`Cancelled` if cancellation was requested.

    Args:
        cancel:
            Cancellation signal, exposing an ``is_set()`` method, like
            :class:`threading.Event` and :class:`asyncio.Event`.
            ``None`` never cancels.

    Raises:
        :class:`Cancelled`: `cancel` is set.
    """

    if cancel is not None and cancel.is_set():
        raise Cancelled('decoding cancelled')


def colorize_tokens(
    tokens: Mapping[str, bytes],
    altdata: bool = True,
) -> Mapping[str, bytes]:
    r"""Prepends ANSI color codes to record field tokens.

    For each token within `tokens`, its key is used to look up the ANSI color
    code from :data:`TOKEN_COLOR_CODES`.
    The retrieved code (byte string) is prepended to the token.
    All the modified tokens are then collected and returned.

    Args:
        tokens (dict):
            A mapping of each token key name to token byte string.

        altdata (bool):
            If true, it alternates each byte (two hex digits) between the ANSI
            color codes mapped with keys ``data`` (even byte index) and
            ``dataalt`` (odd byte index).
            If false, only the ``data`` code is prepended.

    Returns:
        dict: `tokens` with prepended ANSI color codes.

    Examples:
        >>> from hexload.base import colorize_tokens
        >>> from hexload import IhexRecord
        >>> from pprint import pprint

        >>> record = IhexRecord.parse(b':00000001FF')
        >>> colorized = colorize_tokens(record.to_tokens())
        >>> pprint(colorized)  # doctest: +NORMALIZE_WHITESPACE
        {'<': b'\x1b[0m',
         '>': b'\x1b[0m',
         'address': b'\x1b[31m0000',
         'begin': b'\x1b[33m:',
         'checksum': b'\x1b[35mFF',
         'count': b'\x1b[34m00',
         'end': b'\x1b[0m\n',
         'tag': b'\x1b[32m01'}
    """

    codes = TOKEN_COLOR_CODES
    colorized = {}
    colorized.setdefault('<', codes['<'])

    for key, value in tokens.items():
        if key not in codes:
            key = ''
        if value:
            code = codes[key]

            if key == 'data' and altdata:
                altcode = codes['dataalt']
                buffer = bytearray()
                length = len(value)
                i = 0

                for i in range(0, length - 1, 2):
                    buffer.extend(altcode if i & 2 else code)
                    buffer.append(value[i])
                    buffer.append(value[i + 1])

                if length & 1:
                    buffer.extend(code if i & 2 else altcode)
                    buffer.append(value[length - 1])

                colorized[key] = bytes(buffer)
            else:
                colorized[key] = code + value

    colorized.setdefault('>', codes['>'])
    return colorized


def detect_and_decode(
    stream: Union[AnyBytes, str, IO],
    cancel: Optional[Any] = None,
) -> SparseImage:
    r"""Decodes a record file of any registered format.

    It peeks the first byte of `stream`, without consuming it, and looks it up
    within :data:`decoder_types` to select the decoder.

    Args:
        stream (bytes IO or buffer):
            Byte buffer, or stream supporting either ``peek()`` (e.g.
            :class:`io.BufferedReader`) or ``seek()`` (e.g.
            :class:`io.BytesIO`).
            Text streams and strings are accepted as well.

        cancel:
            Cancellation signal, see :func:`check_cancel`.

    Returns:
        :class:`SparseImage`: Decoded image.

    Raises:
        :class:`UnsupportedFormat`: Unknown leading byte.
        :class:`MalformedRecord`: Empty input, or bad record syntax.
        ValueError: `stream` can neither peek nor seek.

    Examples:
        >>> from hexload import detect_and_decode
        >>> image = detect_and_decode(b':0300300002337A1E\n:00000001FF\n')
        >>> list(image.items())
        [(48, 2), (49, 51), (50, 122)]
        >>> detect_and_decode(b'\x00')
        Traceback (most recent call last):
            ...
        hexload.base.UnsupportedFormat: unsupported format
    """

    if isinstance(stream, (bytes, bytearray, memoryview)):
        stream = io.BytesIO(stream)
    elif isinstance(stream, str):
        stream = io.StringIO(stream)

    decoder_type = guess_decoder_type(stream)
    return decoder_type.decode(stream, cancel=cancel)


def guess_decoder_type(stream: IO) -> Type['BaseDecoder']:
    r"""Guesses the decoder type of a stream.

    It peeks the first byte of `stream` via :func:`peek_signature`, and looks
    it up within :data:`decoder_types`.
    The stream position is left untouched.

    Args:
        stream (bytes IO):
            Stream supporting either ``peek()`` or ``seek()``.

    Returns:
        type: Registered decoder type.

    Raises:
        :class:`UnsupportedFormat`: Unknown leading byte.
        :class:`MalformedRecord`: Empty input.
        ValueError: `stream` can neither peek nor seek.
    """

    signature = peek_signature(stream)
    if not signature:
        raise MalformedRecord('empty input')
    if isinstance(signature, str):
        signature = signature.encode('ascii', errors='replace')

    try:
        return decoder_types[signature]
    except KeyError:
        raise UnsupportedFormat('unsupported format') from None


def load(
    in_path_or_stream: Optional[Union[AnyPath, IO]],
    cancel: Optional[Any] = None,
) -> SparseImage:
    r"""Loads a record file.

    This is a simple helper function to decode a record file from the
    filesystem, via :func:`detect_and_decode`.

    Args:
        in_path_or_stream (str):
            Input file path or stream.
            If ``None``, ``sys.stdin.buffer`` is used.

        cancel:
            Cancellation signal, see :func:`check_cancel`.

    Returns:
        :class:`SparseImage`: Decoded image.

    See Also:
        :data:`decoder_types`
        :func:`detect_and_decode`
    """

    if in_path_or_stream is None:
        in_path_or_stream = sys.stdin.buffer

    if isinstance(in_path_or_stream, io.IOBase):
        return detect_and_decode(in_path_or_stream, cancel=cancel)
    else:
        path = os.fsdecode(in_path_or_stream)
        with open(path, 'rb') as stream:
            return detect_and_decode(stream, cancel=cancel)


def peek_signature(stream: IO) -> Union[bytes, str]:
    r"""Reads the first byte, leaving the stream position untouched.

    Args:
        stream (IO):
            Stream supporting either ``peek()`` or ``seek()``.

    Returns:
        bytes or str: Leading byte or character; empty at end of stream.

    Raises:
        ValueError: `stream` can neither peek nor seek.
    """

    peek = getattr(stream, 'peek', None)
    if peek is not None:
        return peek(1)[:1]

    seekable = getattr(stream, 'seekable', None)
    if seekable is None or not seekable():
        raise ValueError('stream must support peek or seek')

    offset = stream.tell()
    signature = stream.read(1)
    stream.seek(offset)
    return signature


def register_decoder(decoder_type: Type['BaseDecoder']) -> None:
    r"""Registers a decoder type.

    The `decoder_type` is mapped to each of its
    :attr:`BaseDecoder.SIGNATURES` within :data:`decoder_types`, replacing
    any previous registrations of the same signatures.

    Args:
        decoder_type (type):
            :class:`BaseDecoder` subclass to register.
    """

    for signature in decoder_type.SIGNATURES:
        if len(signature) != 1:
            raise ValueError('signature must be a single byte')
        decoder_types[bytes(signature)] = decoder_type


def unhexlify_record(hexstr: AnyBytes) -> bytes:
    r"""Converts the hexadecimal body of a record into raw bytes.

    Args:
        hexstr (bytes):
            Hexadecimal digits, in pairs.

    Returns:
        bytes: Raw byte string.

    Raises:
        :class:`MalformedRecord`: Odd number of digits, or non-hex characters.
    """

    try:
        return binascii.unhexlify(hexstr)
    except binascii.Error:
        raise MalformedRecord('invalid hexadecimal digits') from None


class BaseTag:
    r"""Record tag.

    The *record tag* indicates the *nature* of a record.
    The record tag class usually enumerates all the possible natures of a
    record within a *record file format*.

    The tag is commonly (but not necessarily) an integer, directly written into
    the *serialized* representation of a record.
    """

    @abc.abstractmethod
    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        This method returns true if this data record is used for records
        containing plain data (i.e. without special meaning for the record file
        format).

        Returns:
            bool: This is a data record tag.
        """
        ...

    # noinspection PyMethodMayBeStatic
    def is_file_termination(self) -> bool:
        r"""Tells whether this is record tag terminates a record file.

        Decoding stops right after such a record: anything after it is
        never read.

        Returns:
            bool: This is a file termination tag.
        """

        return False


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='BaseRecord')


class BaseRecord(abc.ABC):
    r"""Record.

    A *record* is a line of text containing some binary data in hexadecimal
    representation, or some *meta* information (e.g. *start address*,
    *address extension*), often allocated at some *address* into the target
    system.

    Records are created by parsing text lines; parsing verifies the checksum
    and the record syntax, while :meth:`validate` checks the consistency of
    the fields with the record *nature*.

    Attributes:
        tag (:class:`BaseTag`):
            The mandatory *tag*, indicating the *nature* of the record.

        address (int):
            The *address* field, as found within the record.

        data (bytes):
            Binary data carried by the record.

        count (int):
            The *count* field, as found within the record.

        checksum (int):
            The *checksum* field, as found within the record.

        coords (int couple):
            Line number and column of the parsed record, for debug only.
    """

    EQUALITY_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Meta keys for equality checks."""

    Tag: Type[BaseTag] = None  # override
    r"""Tag object type."""

    def __eq__(self, other: Any) -> bool:

        for key in self.EQUALITY_KEYS:
            if not hasattr(other, key):
                return False
            if getattr(self, key) != getattr(other, key):
                return False
        return True

    def __init__(
        self,
        tag: BaseTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: int = 0,
        checksum: int = 0,
        coords: Sequence[int] = (-1, -1),
    ):

        self.address: int = address.__index__()
        self.checksum: int = checksum.__index__()
        self.coords: Sequence[int] = coords
        self.count: int = count.__index__()
        self.data: bytes = bytes(data)
        self.tag: BaseTag = tag

    def __repr__(self) -> str:

        return (f'<{type(self).__name__} tag={self.tag!r} address=0x{self.address:X}'
                f' data={self.data!r} count={self.count} checksum=0x{self.checksum:02X}>')

    @abc.abstractmethod
    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        It computes the format-specific *checksum* value from the other fields
        of the record.

        Returns:
            int: Computed checksum value.
        """
        ...

    def data_to_int(
        self,
        byteorder: ByteOrder = 'big',
        signed: bool = False,
    ) -> int:
        r"""Interprets data bytes as integer.

        Args:
            byteorder ('big' or 'little'):
                Byte order (endianness): either ``'big'`` (default) or
                ``'little'``.

            signed (bool):
                Signed integer (2-complement); default false.

        Returns:
            int: Interpreted integer value.
        """

        value = int.from_bytes(self.data, byteorder=byteorder, signed=signed)
        return value

    @classmethod
    @abc.abstractmethod
    def parse(cls, line: AnyBytes) -> Self:
        r"""Parses a record from a text line.

        Args:
            line (bytes):
                Record line, without line terminator.

        Returns:
            :class:`BaseRecord`: Parsed record.

        Raises:
            :class:`MalformedRecord`: Syntax error.
            :class:`ChecksumMismatch`: Checksum verification failure.
        """
        ...

    def print(
        self,
        stream: Optional[IO] = None,
        color: bool = False,
    ) -> Self:
        r"""Prints a record.

        The record is converted into tokens (eventually colorized) then joined
        and written onto a byte stream (*stdout* by default).

        Args:
            stream (bytes IO):
                The byte stream where the record tokens are printed.
                If ``None``, *stdout* is selected.

            color (bool):
                Tokens are colorized before printing.

        Returns:
            :class:`BaseRecord`: *self*.
        """

        if stream is None:
            stream = sys.stdout.buffer
        tokens = self.to_tokens()
        if color:
            tokens = colorize_tokens(tokens)
        stream.writelines(tokens.values())
        return self

    @abc.abstractmethod
    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:
        r"""Converts into byte string tokens.

        Args:
            end (bytes):
                Line termination.

        Returns:
            dict: Mapping of each field name to its text token, in line order.
        """
        ...

    def validate(self) -> Self:
        r"""Validates the consistency of the record fields.

        Returns:
            :class:`BaseRecord`: *self*.

        Raises:
            :class:`MalformedRecord`: Inconsistent fields.
        """

        if self.address < 0:
            raise MalformedRecord('address overflow')

        return self


class BaseDecoder(abc.ABC):
    r"""Record file decoder.

    A decoder folds the lines of a record file into a :class:`SparseImage`.
    Lines are parsed into :attr:`Record` objects, which are applied in order
    via :meth:`apply_record`, until a *file termination* record.

    Each call to :meth:`decode` or :meth:`decode_async` creates a brand new
    decoder object, holding the transient decoding state (e.g. address
    extensions) for that call only.
    """

    Record: Type[BaseRecord] = None  # override
    r"""Record object type."""

    SIGNATURES: Sequence[bytes] = ()
    r"""Leading bytes identifying the record format."""

    @abc.abstractmethod
    def apply_record(self, record: BaseRecord, image: SparseImage) -> None:
        r"""Applies a record.

        Args:
            record (:class:`BaseRecord`):
                Record to apply, already parsed and validated.

            image (:class:`SparseImage`):
                Image being decoded.
        """
        ...

    @classmethod
    def decode(
        cls,
        stream: LineSource,
        cancel: Optional[Any] = None,
    ) -> SparseImage:
        r"""Decodes a record file.

        Args:
            stream (bytes IO or buffer):
                Source of record lines: a byte buffer, a string, a stream,
                or any iterable of lines (either bytes or strings).

            cancel:
                Cancellation signal, see :func:`check_cancel`.

        Returns:
            :class:`SparseImage`: Decoded image.

        Raises:
            :class:`DecodeError`: Decoding failure.
            :class:`Cancelled`: Cancellation requested.
        """

        decoder = cls()
        image = SparseImage()

        for record in cls.iter_records(stream, cancel=cancel):
            decoder.apply_record(record, image)

        return image

    @classmethod
    async def decode_async(
        cls,
        stream: AsyncIterable[AnyLine],
        cancel: Optional[Any] = None,
    ) -> SparseImage:
        r"""Decodes a record file from an asynchronous line source.

        It behaves like :meth:`decode`, awaiting each line from `stream`
        (e.g. :class:`asyncio.StreamReader`).

        Args:
            stream (async iterable):
                Asynchronous source of record lines.

            cancel:
                Cancellation signal, see :func:`check_cancel`.

        Returns:
            :class:`SparseImage`: Decoded image.

        Raises:
            :class:`DecodeError`: Decoding failure.
            :class:`Cancelled`: Cancellation requested.
        """

        decoder = cls()
        image = SparseImage()
        lines = stream.__aiter__()
        row = 0

        while True:
            check_cancel(cancel)
            try:
                line = await lines.__anext__()
            except StopAsyncIteration:
                raise TruncatedInput('missing termination record') from None

            row += 1
            record = cls.parse_line(line, row)
            decoder.apply_record(record, image)

            if record.tag.is_file_termination():
                return image

    @classmethod
    def iter_records(
        cls,
        stream: LineSource,
        cancel: Optional[Any] = None,
    ) -> Iterator[BaseRecord]:
        r"""Iterates over the records of a record file.

        Records are parsed and validated lazily, one line at a time, up to
        and including the *file termination* record.

        Args:
            stream (bytes IO or buffer):
                Source of record lines, as per :meth:`decode`.

            cancel:
                Cancellation signal, checked before reading each line.

        Yields:
            :class:`BaseRecord`: Parsed records.

        Raises:
            :class:`DecodeError`: Decoding failure.
            :class:`Cancelled`: Cancellation requested.
        """

        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(stream)
        elif isinstance(stream, str):
            stream = io.StringIO(stream)

        lines = iter(stream)
        row = 0

        while True:
            check_cancel(cancel)
            line = next(lines, None)
            if line is None:
                raise TruncatedInput('missing termination record')

            row += 1
            record = cls.parse_line(line, row)
            yield record

            if record.tag.is_file_termination():
                return

    @classmethod
    def parse_line(cls, line: AnyLine, row: int = 0) -> BaseRecord:
        r"""Parses and validates a single line.

        The line terminator is stripped before parsing.

        Args:
            line (bytes or str):
                Record line.

            row (int):
                1-based line number, reported by errors; 0 if unknown.

        Returns:
            :class:`BaseRecord`: Parsed record.

        Raises:
            :class:`DecodeError`: Decoding failure.
        """

        try:
            if isinstance(line, str):
                try:
                    line = line.encode('ascii')
                except UnicodeEncodeError:
                    raise MalformedRecord('non-ASCII characters') from None

            line = bytes(line).rstrip(b'\r\n')
            record = cls.Record.parse(line)
            record.coords = (row, 0)
            record.validate()

        except DecodeError as exc:
            if row:
                exc.line = row
            raise

        return record
