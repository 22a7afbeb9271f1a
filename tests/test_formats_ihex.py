import asyncio
import io
import threading

import pytest

from hexload.base import Cancelled
from hexload.base import ChecksumMismatch
from hexload.base import DecodeError
from hexload.base import MalformedRecord
from hexload.base import TruncatedInput
from hexload.formats.ihex import IhexDecoder
from hexload.formats.ihex import IhexRecord
from hexload.formats.ihex import IhexTag
from hexload.image import SparseImage

DATA = IhexTag.DATA
EOF = IhexTag.END_OF_FILE
ESA = IhexTag.EXTENDED_SEGMENT_ADDRESS
SSA = IhexTag.START_SEGMENT_ADDRESS
ELA = IhexTag.EXTENDED_LINEAR_ADDRESS
SLA = IhexTag.START_LINEAR_ADDRESS

# https://en.wikipedia.org/wiki/Intel_HEX#Record_types
WIKI_DATA = b':10010000214601360121470136007EFE09D2190140'
WIKI_BYTES = bytes.fromhex('214601360121470136007EFE09D21901')


class _CountdownCancel:

    def __init__(self, countdown):
        self.countdown = countdown

    def is_set(self):
        self.countdown -= 1
        return self.countdown < 0


class _AsyncLines:

    def __init__(self, lines):
        self.lines = list(lines)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.lines:
            raise StopAsyncIteration
        await asyncio.sleep(0)
        return self.lines.pop(0)


class TestIhexTag:

    def test_enum(self):
        assert IhexTag.DATA == 0
        assert IhexTag.END_OF_FILE == 1
        assert IhexTag.EXTENDED_SEGMENT_ADDRESS == 2
        assert IhexTag.START_SEGMENT_ADDRESS == 3
        assert IhexTag.EXTENDED_LINEAR_ADDRESS == 4
        assert IhexTag.START_LINEAR_ADDRESS == 5

    def test_is_data(self):
        assert DATA.is_data() is True
        assert EOF.is_data() is False
        assert ESA.is_data() is False
        assert SSA.is_data() is False
        assert ELA.is_data() is False
        assert SLA.is_data() is False

    def test_is_eof(self):
        assert DATA.is_eof() is False
        assert EOF.is_eof() is True
        assert ESA.is_eof() is False
        assert SSA.is_eof() is False
        assert ELA.is_eof() is False
        assert SLA.is_eof() is False

    def test_is_extension(self):
        assert DATA.is_extension() is False
        assert EOF.is_extension() is False
        assert ESA.is_extension() is True
        assert SSA.is_extension() is False
        assert ELA.is_extension() is True
        assert SLA.is_extension() is False

    def test_is_file_termination(self):
        assert DATA.is_file_termination() is False
        assert EOF.is_file_termination() is True
        assert ESA.is_file_termination() is False
        assert SSA.is_file_termination() is False
        assert ELA.is_file_termination() is False
        assert SLA.is_file_termination() is False

    def test_is_start(self):
        assert DATA.is_start() is False
        assert EOF.is_start() is False
        assert ESA.is_start() is False
        assert SSA.is_start() is True
        assert ELA.is_start() is False
        assert SLA.is_start() is True


class TestIhexRecord:

    def test_compute_checksum(self):
        vector = [
            (0xA7, b':0B0010006164647265737320676170A7'),
            (0xFF, b':00000001FF'),
            (0xEA, b':020000021200EA'),
            (0xC1, b':0400000300003800C1'),
            (0xF2, b':020000040800F2'),
            (0x2A, b':04000005000000CD2A'),
        ]
        for expected, line in vector:
            record = IhexRecord.parse(line)
            assert record.checksum == expected
            assert record.compute_checksum() == expected

    # https://en.wikipedia.org/wiki/Intel_HEX#Checksum_calculation
    def test_compute_checksum_wikipedia(self):
        record = IhexRecord.parse(b':0300300002337A1E')
        assert record.compute_checksum() == 0x1E

    def test___eq__(self):
        record1 = IhexRecord.parse(b':0300300002337A1E')
        record2 = IhexRecord.parse(b':0300300002337a1e')
        record3 = IhexRecord.parse(b':00000001FF')
        assert record1 == record2
        assert record1 != record3
        assert record1 != object()

    def test___repr__(self):
        record = IhexRecord.parse(b':00000001FF')
        text = repr(record)
        assert text.startswith('<IhexRecord tag=')
        assert 'checksum=0xFF' in text

    def test_data_to_int(self):
        record = IhexRecord.parse(b':020000041234B4')
        assert record.data_to_int() == 0x1234
        assert record.data_to_int(byteorder='little') == 0x3412

    def test_parse(self):
        record = IhexRecord.parse(WIKI_DATA)
        assert record.tag == DATA
        assert record.count == 16
        assert record.address == 0x0100
        assert record.data == WIKI_BYTES
        assert record.checksum == 0x40

    def test_parse_lowercase(self):
        record = IhexRecord.parse(b':0300300002337a1e')
        assert record.data == b'\x02\x33\x7A'

    def test_parse_raises_marker(self):
        lines = [
            b'',
            b'0300300002337A1E',
            b' :0300300002337A1E',
            b';0300300002337A1E',
        ]
        for line in lines:
            with pytest.raises(MalformedRecord, match='missing record marker'):
                IhexRecord.parse(line)

    def test_parse_raises_hex(self):
        lines = [
            b':0300300002337G1E',
            b':0300300002337A1',
            b':03 00300002337A1E',
            b':00000001FF ',
        ]
        for line in lines:
            with pytest.raises(MalformedRecord, match='invalid hexadecimal digits'):
                IhexRecord.parse(line)

    def test_parse_raises_checksum(self):
        lines = [
            b':0300300002337A1F',
            b':0300300002337B1E',
            b':0400300002337A1E',
            b':00000001FE',
        ]
        for line in lines:
            with pytest.raises(ChecksumMismatch, match='checksum mismatch'):
                IhexRecord.parse(line)

    def test_parse_raises_short(self):
        lines = [
            b':',
            b':0300300002CB',
            b':01000001FE',
        ]
        for line in lines:
            with pytest.raises(MalformedRecord, match='record too short'):
                IhexRecord.parse(line)

    def test_parse_raises_long(self):
        with pytest.raises(MalformedRecord, match='record too long'):
            IhexRecord.parse(b':00000001FF00')

    def test_parse_raises_tag(self):
        with pytest.raises(MalformedRecord, match='unknown record type'):
            IhexRecord.parse(b':00000006FA')

    def test_single_digit_corruption(self):
        line = WIKI_DATA.decode()
        for index in range(1, len(line)):
            for digit in '0123456789ABCDEFG':
                if digit == line[index]:
                    continue
                corrupted = line[:index] + digit + line[(index + 1):]
                with pytest.raises((ChecksumMismatch, MalformedRecord)):
                    IhexRecord.parse(corrupted.encode())

    def test_to_tokens(self):
        record = IhexRecord.parse(WIKI_DATA)
        tokens = record.to_tokens()
        assert list(tokens.keys()) == ['begin', 'count', 'address', 'tag', 'data', 'checksum', 'end']
        assert b''.join(tokens.values()) == WIKI_DATA + b'\n'

    def test_print(self):
        stream = io.BytesIO()
        record = IhexRecord.parse(b':0300300002337a1e')
        record.print(stream=stream)
        assert stream.getvalue() == b':0300300002337A1E\n'

    def test_print_color(self):
        stream = io.BytesIO()
        record = IhexRecord.parse(b':00000001FF')
        record.print(stream=stream, color=True)
        expected = (b'\x1b[0m\x1b[33m:\x1b[34m00\x1b[31m0000\x1b[32m01'
                    b'\x1b[35mFF\x1b[0m\n\x1b[0m')
        assert stream.getvalue() == expected

    def test_validate(self):
        record = IhexRecord.parse(b':020000021200EA')
        assert record.validate() is record

    def test_validate_raises_extension_size(self):
        with pytest.raises(MalformedRecord, match='extension data size overflow'):
            IhexRecord.parse(b':0100000210ED').validate()

    def test_validate_raises_address(self):
        record = IhexRecord.parse(b':00000001FF')
        record.address = 0x10000
        with pytest.raises(MalformedRecord, match='address overflow'):
            record.validate()

    def test_validate_raises_count(self):
        record = IhexRecord.parse(b':00000001FF')
        record.data = b'x'
        with pytest.raises(MalformedRecord, match='wrong count'):
            record.validate()

    def test_validate_raises_checksum(self):
        record = IhexRecord.parse(b':00000001FF')
        record.checksum = 0x00
        with pytest.raises(ChecksumMismatch):
            record.validate()


class TestIhexDecoder:

    def test_signatures(self):
        assert list(IhexDecoder.SIGNATURES) == [b':']

    def test___init__(self):
        decoder = IhexDecoder()
        assert decoder.segment == 0
        assert decoder.linear == 0
        assert decoder.use_linear is False

    def test_decode_wikipedia(self):
        lines = [WIKI_DATA, b':00000001FF']
        image = IhexDecoder.decode(lines)
        assert len(image) == 16
        assert image.blocks() == [(0x0100, WIKI_BYTES)]
        assert image.get(0x0100) == 0x21
        assert image.get(0x0101) == 0x46
        assert image.get(0x010F) == 0x01
        assert image.get(0x0110) is None

    def test_decode_address_zero(self):
        lines = [
            b':10000000214601360121470136007EFE09D2190141',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == list(enumerate(WIKI_BYTES))
        assert image.get(0x000F) == 0x01
        assert image.get(0x0010) is None

    def test_decode_address_zero_raises_checksum(self):
        lines = [
            b':10000000214601360121470136007EFE09D2190140',
            b':00000001FF',
        ]
        with pytest.raises(ChecksumMismatch):
            IhexDecoder.decode(lines)

    def test_decode_buffer(self):
        buffer = WIKI_DATA + b'\r\n:00000001FF\r\n'
        image = IhexDecoder.decode(buffer)
        assert image.blocks() == [(0x0100, WIKI_BYTES)]

    def test_decode_stream(self):
        stream = io.BytesIO(WIKI_DATA + b'\n:00000001FF\n')
        image = IhexDecoder.decode(stream)
        assert image.blocks() == [(0x0100, WIKI_BYTES)]

    def test_decode_text(self):
        text = WIKI_DATA.decode() + '\n:00000001FF\n'
        assert IhexDecoder.decode(text).blocks() == [(0x0100, WIKI_BYTES)]
        assert IhexDecoder.decode(io.StringIO(text)).blocks() == [(0x0100, WIKI_BYTES)]

    def test_decode_twice(self):
        buffer = b':020000021000EC\n:01002000AB34\n' + WIKI_DATA + b'\n:00000001FF\n'
        image1 = IhexDecoder.decode(io.BytesIO(buffer))
        image2 = IhexDecoder.decode(io.BytesIO(buffer))
        assert image1 == image2
        assert image1 is not image2

    def test_decode_returns_image(self):
        image = IhexDecoder.decode([b':00000001FF'])
        assert isinstance(image, SparseImage)
        assert not image

    def test_decode_overwrite(self):
        lines = [
            b':0100000011EE',
            b':0100000022DD',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x0000, 0x22)]

    def test_decode_extended_linear_address(self):
        lines = [
            b':020000040010EA',
            b':01001000559A',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x00100010, 0x55)]

    def test_decode_extended_segment_address(self):
        lines = [
            b':020000021000EC',
            b':01002000AB34',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x10020, 0xAB)]

    def test_decode_linear_wraps_offset(self):
        lines = [
            b':020000040001F9',
            b':02FFFF00AABB9B',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x10000, 0xBB), (0x1FFFF, 0xAA)]

    def test_apply_record_linear_page_wrap(self):
        decoder = IhexDecoder()
        image = SparseImage()
        decoder.apply_record(IhexRecord.parse(b':020000040001F9'), image)

        record = IhexRecord(DATA, address=0xFFFE, data=b'\x01\x02\x03\x04', count=4)
        decoder.apply_record(record, image)

        # the offset carry never reaches the upper linear address
        assert list(image.items()) == [(0x10000, 0x03), (0x10001, 0x04),
                                       (0x1FFFE, 0x01), (0x1FFFF, 0x02)]
        assert 0x20000 not in image

    def test_decode_segment_carries_offset(self):
        lines = [
            b':020000021000EC',
            b':02FFFF00AABB9B',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x1FFFF, 0xAA), (0x20000, 0xBB)]

    def test_decode_mode_switching(self):
        lines = [
            b':020000040010EA',  # linear 0x00100000
            b':020000021000EC',  # segment 0x00010000
            b':01002000AB34',
            b':020000040010EA',  # linear again
            b':01001000559A',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x10020, 0xAB), (0x00100010, 0x55)]

    def test_apply_record_keeps_other_extension(self):
        decoder = IhexDecoder()
        image = SparseImage()

        decoder.apply_record(IhexRecord.parse(b':020000040010EA'), image)
        assert decoder.use_linear is True
        assert decoder.linear == 0x00100000

        decoder.apply_record(IhexRecord.parse(b':020000021000EC'), image)
        assert decoder.use_linear is False
        assert decoder.segment == 0x10000
        assert decoder.linear == 0x00100000

        decoder.apply_record(IhexRecord.parse(b':020000040800F2'), image)
        assert decoder.use_linear is True
        assert decoder.segment == 0x10000
        assert decoder.linear == 0x08000000
        assert not image

    def test_decode_start_records_ignored(self):
        lines = [
            b':0400000300003800C1',
            b':04000005000000CD2A',
            b':00000001FF',
        ]
        image = IhexDecoder.decode(lines)
        assert not image

    def test_apply_record_start_keeps_state(self):
        decoder = IhexDecoder()
        image = SparseImage()
        decoder.apply_record(IhexRecord.parse(b':020000040800F2'), image)

        for line in (b':0400000300003800C1', b':04000005000000CD2A', b':00000001FF'):
            decoder.apply_record(IhexRecord.parse(line), image)

        assert decoder.use_linear is True
        assert decoder.linear == 0x08000000
        assert decoder.segment == 0
        assert not image

    def test_apply_record_raises_unknown_tag(self):
        class OddTag:
            def is_data(self):
                return False

            def is_eof(self):
                return False

            def is_extension(self):
                return False

            def is_start(self):
                return False

        image = SparseImage()
        with pytest.raises(MalformedRecord, match='unknown record type'):
            IhexDecoder().apply_record(IhexRecord(OddTag()), image)
        assert not image

    def test_decode_ignores_after_eof(self):
        lines = [
            b':0100000011EE',
            b':00000001FF',
            b'garbage',
            b':0100000022DD',
        ]
        image = IhexDecoder.decode(lines)
        assert list(image.items()) == [(0x0000, 0x11)]

    def test_decode_does_not_read_after_eof(self):
        consumed = []

        def lines():
            for line in [b':00000001FF', b':0100000011EE']:
                consumed.append(line)
                yield line

        IhexDecoder.decode(lines())
        assert consumed == [b':00000001FF']

    def test_decode_raises_truncated(self):
        with pytest.raises(TruncatedInput, match='missing termination record'):
            IhexDecoder.decode([b':0100000011EE'])

    def test_decode_raises_truncated_empty(self):
        with pytest.raises(TruncatedInput):
            IhexDecoder.decode(b'')

    def test_decode_raises_empty_line(self):
        with pytest.raises(MalformedRecord) as info:
            IhexDecoder.decode(b':0100000011EE\n\n:00000001FF\n')
        assert info.value.line == 2
        assert str(info.value) == 'line 2: missing record marker'

    def test_decode_raises_checksum_line(self):
        with pytest.raises(ChecksumMismatch) as info:
            IhexDecoder.decode([b':0100000011EE', b':0300300002337A1F', b':00000001FF'])
        assert info.value.line == 2
        assert isinstance(info.value, DecodeError)
        assert isinstance(info.value, ValueError)

    def test_decode_raises_unknown_tag(self):
        with pytest.raises(MalformedRecord, match='unknown record type'):
            IhexDecoder.decode([b':00000006FA', b':00000001FF'])

    def test_decode_raises_extension_size(self):
        with pytest.raises(MalformedRecord, match='extension data size overflow'):
            IhexDecoder.decode([b':0100000210ED', b':00000001FF'])

    def test_decode_raises_non_ascii(self):
        with pytest.raises(MalformedRecord, match='non-ASCII characters'):
            IhexDecoder.decode([':00000001FF\u00e8'])

    def test_decode_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            IhexDecoder.decode([b':00000001FF'], cancel=cancel)

    def test_decode_cancel_between_records(self):
        consumed = []

        def lines():
            for line in [b':0100000011EE', b':0100000022DD', b':00000001FF']:
                consumed.append(line)
                yield line

        with pytest.raises(Cancelled):
            IhexDecoder.decode(lines(), cancel=_CountdownCancel(1))
        assert consumed == [b':0100000011EE']

    def test_decode_cancel_not_set(self):
        cancel = threading.Event()
        image = IhexDecoder.decode([WIKI_DATA, b':00000001FF'], cancel=cancel)
        assert len(image) == 16

    def test_cancelled_is_not_decode_error(self):
        assert not issubclass(Cancelled, DecodeError)

    def test_decode_async(self):
        lines = _AsyncLines([b':020000021000EC\n', b':01002000AB34\n', b':00000001FF\n'])
        image = asyncio.run(IhexDecoder.decode_async(lines))
        assert list(image.items()) == [(0x10020, 0xAB)]

    def test_decode_async_ignores_after_eof(self):
        lines = _AsyncLines([b':00000001FF', b'garbage'])
        image = asyncio.run(IhexDecoder.decode_async(lines))
        assert not image
        assert lines.lines == [b'garbage']

    def test_decode_async_raises_truncated(self):
        lines = _AsyncLines([b':0100000011EE'])
        with pytest.raises(TruncatedInput):
            asyncio.run(IhexDecoder.decode_async(lines))

    def test_decode_async_raises_checksum(self):
        lines = _AsyncLines([b':0100000011EF', b':00000001FF'])
        with pytest.raises(ChecksumMismatch) as info:
            asyncio.run(IhexDecoder.decode_async(lines))
        assert info.value.line == 1

    def test_decode_async_cancel(self):
        lines = _AsyncLines([b':0100000011EE', b':0100000022DD', b':00000001FF'])
        with pytest.raises(Cancelled):
            asyncio.run(IhexDecoder.decode_async(lines, cancel=_CountdownCancel(2)))
        assert lines.lines == [b':00000001FF']

    def test_iter_records(self):
        lines = [b':020000021000EC', b':01002000AB34', b':00000001FF', b'garbage']
        records = list(IhexDecoder.iter_records(lines))
        assert [record.tag for record in records] == [ESA, DATA, EOF]
        assert [record.coords for record in records] == [(1, 0), (2, 0), (3, 0)]

    def test_parse_line(self):
        record = IhexDecoder.parse_line(b':00000001FF\r\n', 7)
        assert record.tag == EOF
        assert record.coords == (7, 0)

    def test_parse_line_raises_no_row(self):
        with pytest.raises(ChecksumMismatch) as info:
            IhexDecoder.parse_line(':00000001FE')
        assert info.value.line is None
        assert str(info.value) == 'checksum mismatch'
