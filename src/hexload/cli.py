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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m hexload` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``hexload.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``hexload.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import contextlib
from typing import IO
from typing import Iterator
from typing import Optional

import click

from . import __version__
from .base import DecodeError
from .base import detect_and_decode
from .base import guess_decoder_type
from .image import SparseImage
from .utils import chop
from .utils import hexlify
from .utils import parse_int


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


BASED_INT = BasedIntParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)


# ----------------------------------------------------------------------------

@contextlib.contextmanager
def open_input(input_path: Optional[str]) -> Iterator[IO]:

    if input_path is None or input_path == '-':
        yield click.get_binary_stream('stdin')
    else:
        with open(input_path, 'rb') as stream:
            yield stream


def load_image(input_path: Optional[str]) -> SparseImage:

    with open_input(input_path) as stream:
        try:
            return detect_and_decode(stream)
        except DecodeError as exc:
            raise click.ClickException(str(exc)) from exc


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ============================================================================

@click.group()
@click.option('-V', '--version', is_flag=True, is_eager=True, expose_value=False,
              callback=print_version, help="""
    Prints the package version number.
""")
def main() -> None:
    """
    A set of command line utilities to inspect record files.

    The record format is detected from the first byte of the input file:
    Intel HEX and Motorola S-record are supported.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for the standard input.
    """


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_IN, required=False)
def blocks(
    infile: str,
) -> None:
    r"""Lists contiguous data blocks.

    Each line lists the start address, the exclusive end address, and the
    byte size of a run of consecutive data bytes.

    ``INFILE`` is the path of the input file.
    Set to ``-`` (or leave empty) to read from standard input.
    """

    image = load_image(infile)

    for start, data in image.blocks():
        size = len(data)
        click.echo(f'0x{start:08X} 0x{start + size:08X} {size}')


# ----------------------------------------------------------------------------

@main.command()
@click.option('-s', '--start', type=BASED_INT, help="""
    Inclusive start address. Negative values are referred to the end of the
    data. By default it applies from the start of the data contents.
""")
@click.option('-e', '--endex', type=BASED_INT, help="""
    Exclusive end address. Negative values are referred to the end of the
    data. By default it applies till the end of the data contents.
""")
@click.option('-w', '--width', type=BASED_INT, default=16, show_default=True, help="""
    Bytes per line.
""")
@click.option('-U', '--upper', 'upper', is_flag=True, help="""
    Uses upper case hex letters.
""")
@click.argument('infile', type=FILE_PATH_IN, required=False)
def dump(
    start: Optional[int],
    endex: Optional[int],
    width: int,
    upper: bool,
    infile: str,
) -> None:
    r"""Dumps data bytes in hexadecimal.

    Each line shows the address of its first byte, followed by the data bytes.
    Lines never cross memory holes, and they are aligned to ``WIDTH``.

    ``INFILE`` is the path of the input file.
    Set to ``-`` (or leave empty) to read from standard input.
    """

    if width <= 0:
        raise click.BadParameter('must be positive', param_hint="'-w' / '--width'")

    image = load_image(infile)

    if start is not None and start < 0:
        start = image.endex + start
    if endex is not None and endex < 0:
        endex = image.endex + endex

    address_format = '{:08X}: {}' if upper else '{:08x}: {}'

    for block_start, data in image.blocks():
        block_endex = block_start + len(data)
        chunk_start = block_start if start is None else max(start, block_start)
        chunk_endex = block_endex if endex is None else min(endex, block_endex)
        if chunk_start >= chunk_endex:
            continue

        chunk = data[(chunk_start - block_start):(chunk_endex - block_start)]

        for address, row in chop(chunk, width, chunk_start):
            text = hexlify(row, sep=b' ', upper=upper).decode()
            click.echo(address_format.format(address, text))


# ----------------------------------------------------------------------------

@main.command()
@click.option('--color/--no-color', default=False, show_default=True, help="""
    Colorizes record fields with ANSI codes.
""")
@click.argument('infile', type=FILE_PATH_IN, required=False)
def records(
    color: bool,
    infile: str,
) -> None:
    r"""Prints the records of a file.

    Records are printed one per line, in their canonical syntax, up to the
    file termination record.

    ``INFILE`` is the path of the input file.
    Set to ``-`` (or leave empty) to read from standard input.
    """

    output = click.get_binary_stream('stdout')

    with open_input(infile) as stream:
        try:
            decoder_type = guess_decoder_type(stream)
            for record in decoder_type.iter_records(stream):
                record.print(stream=output, color=color)
        except DecodeError as exc:
            raise click.ClickException(str(exc)) from exc

    output.flush()


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_IN, required=False)
def validate(
    infile: str,
) -> None:
    r"""Validates a record file.

    The whole file is decoded, failing on the first error.

    ``INFILE`` is the path of the input file.
    Set to ``-`` (or leave empty) to read from standard input.
    """

    load_image(infile)
