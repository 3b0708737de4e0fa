from typing import BinaryIO, Iterator, Optional, Union

BUFFER_SIZE = 64 * 1024  #: Bytes held before being handed to a sink / read per refill


class BitWriter:
    """Bit-packing writer.

    Accumulates individual bits into bytes, most significant bit first. If a
    ``sink`` is given, completed bytes are written to it whenever
    ``buffer_size`` of them have piled up, and the rest on :meth:`flush`;
    only the partial byte and the pending chunk stay in memory.

    :ivar buffer: Internal byte buffer holding fully written bytes.
    :type buffer: bytearray
    :ivar bit_buffer: 8-bit scratch register for accumulating pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bits_written: Total number of bits written so far (padding excluded).
    :type bits_written: int
    :ivar sink: Optional binary stream receiving completed bytes.
    :type sink: BinaryIO | None
    :ivar buffer_size: Number of buffered bytes that triggers a write to ``sink``.
    :type buffer_size: int
    """

    def __init__(self, sink: Optional[BinaryIO] = None, buffer_size: int = BUFFER_SIZE):
        """Initialize an empty bit writer.

        :param sink: Optional writable binary stream.
        :type sink: BinaryIO | None
        :param buffer_size: Bytes to accumulate before writing to ``sink``.
        :type buffer_size: int
        :returns: None
        :rtype: None
        """
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_written = 0
        self.sink = sink
        self.buffer_size = buffer_size

    def write_bit(self, bit: int):
        """Append a single bit (any non-zero ``bit`` counts as 1).

        :param bit: Bit value.
        :type bit: int
        :returns: None
        :rtype: None
        """
        self.bit_buffer = (self.bit_buffer << 1) | (1 if bit else 0)
        self.bit_count += 1
        self.bits_written += 1
        if self.bit_count == 8:
            self.buffer.append(self.bit_buffer)
            self.bit_buffer = 0
            self.bit_count = 0
            if self.sink is not None and len(self.buffer) >= self.buffer_size:
                self._drain()

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value`` to the buffer, MSB first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write.
        :type nbits: int
        :returns: None
        :rtype: None
        """
        for i in range(nbits - 1, -1, -1):
            self.write_bit((value >> i) & 1)

    def write_code(self, code: str):
        """Write a code given as a string of ``'0'``/``'1'`` characters.

        :param code: Bit string, first character written first.
        :type code: str
        :returns: None
        :rtype: None
        :raises ValueError: If ``code`` contains anything but 0 and 1.
        """
        for ch in code:
            if ch == "0":
                self.write_bit(0)
            elif ch == "1":
                self.write_bit(1)
            else:
                raise ValueError(f"Invalid bit character: {ch!r}")

    def write_bytes(self, data: bytes):
        """Write raw bytes, aligning pending bits to the next byte boundary.

        :param data: Byte sequence to append to the output.
        :type data: bytes
        :returns: None
        :rtype: None
        """
        self._align()
        self.buffer.extend(data)
        self.bits_written += 8 * len(data)
        if self.sink is not None and len(self.buffer) >= self.buffer_size:
            self._drain()

    @property
    def padding(self) -> int:
        """Number of filler bits the next flush will add (0-7)."""
        return (8 - self.bit_count) % 8

    def _align(self):
        if self.bit_count > 0:
            self.bit_buffer <<= (8 - self.bit_count)
            self.buffer.append(self.bit_buffer)
            self.bit_buffer = 0
            self.bit_count = 0

    def _drain(self):
        self.sink.write(bytes(self.buffer))
        self.buffer = bytearray()

    def flush(self) -> bytes:
        """Flush remaining bits (if any) and return the still-buffered bytes.

        Any partial byte in ``bit_buffer`` is padded with zeros. When a sink
        is attached, the buffered bytes are written to it and the internal
        buffer is emptied; bytes already handed to the sink are not returned.

        :returns: The bytes that were buffered at the time of the flush.
        :rtype: bytes
        """
        self._align()
        out = bytes(self.buffer)
        if self.sink is not None:
            self._drain()
        return out


class BitReader:
    """Bit-unpacking reader over a bytes-like object or a binary stream.

    The last ``pad_bits`` bits of the input are filler written by
    :meth:`BitWriter.flush` and are never returned. Streams are read in
    ``buffer_size`` chunks with one chunk of look-ahead, which is how the
    reader recognises the final byte.

    :ivar data: Current chunk of input (all of it for bytes input).
    :type data: bytes
    :ivar pos: Current position in ``data`` (byte index).
    :type pos: int
    :ivar bit_buffer: Scratch register holding the current source byte.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits remaining in ``bit_buffer`` (0-8).
    :type bit_count: int
    :ivar pad_bits: Filler bits at the end of the input (0-7).
    :type pad_bits: int
    """

    def __init__(
        self,
        data: Union[bytes, BinaryIO],
        pad_bits: int = 0,
        buffer_size: int = BUFFER_SIZE,
    ):
        """Create a bit reader for the given input ``data``.

        :param data: Source bytes, or a readable binary stream.
        :type data: bytes | BinaryIO
        :param pad_bits: Number of trailing filler bits to ignore.
        :type pad_bits: int
        :param buffer_size: Bytes requested per read when ``data`` is a stream.
        :type buffer_size: int
        :returns: None
        :rtype: None
        :raises ValueError: If ``pad_bits`` is out of range for ``data``.
        """
        if isinstance(data, (bytes, bytearray, memoryview)):
            self.stream = None
            self.data = bytes(data)
        else:
            self.stream = data
            self.data = b""
        if not 0 <= pad_bits <= 7 or (pad_bits and self.stream is None and not self.data):
            raise ValueError(f"Invalid padding: {pad_bits}")
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.pad_bits = pad_bits
        self.buffer_size = buffer_size
        self._ahead = b""
        # bits of the current byte at or below this count are filler
        self._floor = 0

    def _has_more(self) -> bool:
        if self._ahead:
            return True
        if self.stream is not None:
            self._ahead = self.stream.read(self.buffer_size)
        return bool(self._ahead)

    def _next_byte(self) -> bool:
        if self.pos >= len(self.data):
            if not self._has_more():
                return False
            self.data, self._ahead = self._ahead, b""
            self.pos = 0
        self.bit_buffer = self.data[self.pos]
        self.pos += 1
        self.bit_count = 8
        if self.pad_bits and self.pos >= len(self.data) and not self._has_more():
            self._floor = self.pad_bits
        return True

    def bits_remaining(self) -> Optional[int]:
        """Number of meaningful bits not yet read.

        :returns: Bit count, or ``None`` when reading from a stream, whose
                  length is unknown.
        :rtype: int | None
        """
        if self.stream is not None:
            return None
        return self.bit_count + 8 * (len(self.data) - self.pos) - self.pad_bits

    def read_bit(self) -> Optional[int]:
        """Read one bit, or return ``None`` at the end of meaningful data.

        :returns: 0, 1 or ``None``.
        :rtype: int | None
        """
        if self.bit_count <= self._floor:
            if self._floor or not self._next_byte():
                return None
        self.bit_count -= 1
        return (self.bit_buffer >> self.bit_count) & 1

    def read_bits(self, nbits: int) -> int:
        """Read ``nbits`` bits from the stream and return them as an integer.

        Bits are returned MSB-first in the integer.

        :param nbits: Number of bits to read.
        :type nbits: int
        :returns: The integer value composed of the next ``nbits`` bits.
        :rtype: int
        :raises EOFError: If the end of data is reached before reading ``nbits``.
        """
        result = 0
        for _ in range(nbits):
            bit = self.read_bit()
            if bit is None:
                raise EOFError("Unexpected end of data")
            result = (result << 1) | bit
        return result

    def iter_bits(self) -> Iterator[int]:
        """Yield the remaining meaningful bits one at a time.

        :rtype: Iterator[int]
        """
        while True:
            bit = self.read_bit()
            if bit is None:
                return
            yield bit

    def read_bytes(self, nbytes: int) -> bytes:
        """Read ``nbytes`` raw bytes from the stream.

        Any pending bits are discarded (byte-aligns the stream) before reading.

        :param nbytes: Number of bytes to read.
        :type nbytes: int
        :returns: The next ``nbytes`` bytes (may be shorter only if source is shorter).
        :rtype: bytes
        """
        self.bit_count = 0
        result = bytearray()
        while len(result) < nbytes:
            if self.pos >= len(self.data):
                if not self._has_more():
                    break
                self.data, self._ahead = self._ahead, b""
                self.pos = 0
            take = self.data[self.pos:self.pos + nbytes - len(result)]
            result.extend(take)
            self.pos += len(take)
        return bytes(result)
