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

__version__ = '0.1.0'

from .base import Cancelled
from .base import ChecksumMismatch
from .base import DecodeError
from .base import MalformedRecord
from .base import TruncatedInput
from .base import UnsupportedFormat
from .base import decoder_types
from .base import detect_and_decode
from .base import load
from .base import register_decoder
from .formats.ihex import IhexDecoder
from .formats.ihex import IhexRecord
from .formats.ihex import IhexTag
from .formats.srec import SrecDecoder
from .formats.srec import SrecRecord
from .formats.srec import SrecTag
from .image import SparseImage


def _register_default_decoders():

    defaults = [
        IhexDecoder,
        SrecDecoder,
    ]

    for decoder_type in defaults:
        register_decoder(decoder_type)


# Automatically register default decoders on module load
_register_default_decoders()
