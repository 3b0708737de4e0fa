import io
import logging
from typing import BinaryIO, Callable, Mapping, Optional

from bitops import BitReader, BitWriter
from errors import (
    MalformedStreamError,
    OperationCancelled,
    SourceChangedError,
    UnencodableSymbolError,
)
from huffman import (
    CHUNK_SIZE,
    HuffmanNode,
    build_code_table,
    build_tree,
    count_frequencies,
    encoded_bit_length,
    load_tree,
    save_tree,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _report(on_progress: Optional[ProgressCallback], done: int, total: int):
    if on_progress is not None:
        try:
            on_progress(done, total)
        except Exception:
            pass


def encode(
    codes: Mapping[int, str],
    source: BinaryIO,
    writer: BitWriter,
    on_progress: Optional[ProgressCallback] = None,
    total: int = 0,
) -> int:
    """Write the code of every byte read from ``source`` to ``writer``.

    The writer is not flushed; that is up to the caller.

    :param codes: Code table from :func:`huffman.build_code_table`.
    :type codes: Mapping[int, str]
    :param source: Readable binary stream with the data to encode.
    :type source: BinaryIO
    :param writer: Bit sink.
    :type writer: BitWriter
    :param on_progress: Optional callback ``on_progress(done, total)`` called
                        once per chunk with the number of bytes encoded.
    :type on_progress: Optional[Callable[[int, int], None]]
    :param total: Expected input size, passed through to ``on_progress``.
    :type total: int
    :returns: Number of bytes encoded.
    :rtype: int
    :raises UnencodableSymbolError: If a byte has no code.
    """
    done = 0
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        for byte in chunk:
            code = codes.get(byte)
            if code is None:
                raise UnencodableSymbolError(byte)
            writer.write_code(code)
        done += len(chunk)
        _report(on_progress, done, total)
    return done


def decode(
    root: Optional[HuffmanNode],
    reader: BitReader,
    sink: BinaryIO,
    on_progress: Optional[ProgressCallback] = None,
    total_bits: Optional[int] = None,
) -> int:
    """Walk the tree bit by bit and write every symbol reached to ``sink``.

    Decoding stops when ``reader`` runs out of meaningful bits. With no tree
    (empty input) nothing is read and nothing is written.

    :param root: Tree the codes were derived from, or ``None``.
    :type root: HuffmanLeaf | HuffmanInternal | None
    :param reader: Bit source.
    :type reader: BitReader
    :param sink: Writable binary stream for the decoded bytes.
    :type sink: BinaryIO
    :param on_progress: Optional callback ``on_progress(done, total)`` with
                        consumed and total payload bits.
    :type on_progress: Optional[Callable[[int, int], None]]
    :param total_bits: Payload size passed to ``on_progress``; defaults to
                       what ``reader`` reports (0 if unknown).
    :type total_bits: Optional[int]
    :returns: Number of symbols decoded.
    :rtype: int
    :raises MalformedStreamError: If a bit leads to a missing child or the
                                  bits end in the middle of a code.
    """
    if root is None:
        return 0
    if root.is_leaf():
        raise MalformedStreamError("Tree root must be an internal node")

    if total_bits is None:
        total_bits = reader.bits_remaining() or 0
    out = bytearray()
    emitted = 0
    consumed = 0
    cursor = root
    for bit in reader.iter_bits():
        cursor = cursor.right if bit else cursor.left
        consumed += 1
        if cursor is None:
            raise MalformedStreamError(
                f"No {'right' if bit else 'left'} branch at bit {consumed - 1}"
            )
        if cursor.is_leaf():
            out.append(cursor.symbol.value)
            cursor = root
            if len(out) >= CHUNK_SIZE:
                sink.write(out)
                emitted += len(out)
                out = bytearray()
                _report(on_progress, consumed, total_bits)

    if cursor is not root:
        raise MalformedStreamError("Compressed data ends in the middle of a code")
    if out:
        sink.write(out)
        emitted += len(out)
    _report(on_progress, consumed, total_bits)
    return emitted


class HuffmanCodec:
    """Huffman compressor producing self-contained compressed files.

    Layout of a non-empty compressed file:

    - version: 8 bits
    - padding bits in the last byte: 8 bits (0-7)
    - tree metadata length: 16 bits
    - tree metadata (:func:`huffman.save_tree`)
    - payload bits, starting on a byte boundary

    Empty input compresses to zero bytes and back.

    :ivar VERSION: Format version of the encoder/decoder.
    :type VERSION: int
    :ivar should_cancel: Optional check run between passes; returning
                         ``True`` aborts with :class:`OperationCancelled`.
    :type should_cancel: Optional[Callable[[], bool]]
    """

    VERSION = 1

    def __init__(self, should_cancel: Optional[Callable[[], bool]] = None):
        self.should_cancel = should_cancel

    def _check_cancel(self, stage: str):
        if self.should_cancel is not None and self.should_cancel():
            raise OperationCancelled(f"Cancelled before {stage}")

    def compress(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """Compress raw ``data``.

        :param data: Input bytes to compress.
        :type data: bytes
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting input bytes encoded.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Compressed byte stream (empty for empty input).
        :rtype: bytes
        """
        out = io.BytesIO()
        self.compress_stream(io.BytesIO(data), out, on_progress=on_progress)
        return out.getvalue()

    def decompress(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """Decompress data produced by :meth:`compress`.

        :param data: Compressed byte stream.
        :type data: bytes
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting payload bits decoded.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Original uncompressed bytes.
        :rtype: bytes
        :raises MalformedStreamError: If the header or payload is corrupt.
        """
        out = io.BytesIO()
        self.decompress_stream(io.BytesIO(data), out, on_progress=on_progress)
        return out.getvalue()

    def compress_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Compress a seekable binary stream into ``sink``.

        The source is read twice: once to count frequencies, once to encode.

        :param source: Seekable readable binary stream.
        :type source: BinaryIO
        :param sink: Writable binary stream.
        :type sink: BinaryIO
        :param on_progress: See :meth:`compress`.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Number of bytes written to ``sink``.
        :rtype: int
        :raises UnencodableSymbolError: If the second pass meets a byte the
                                        first pass did not count.
        :raises SourceChangedError: If the second pass encodes a different
                                    number of bits than the first predicted.
        """
        start = source.tell()
        frequencies = count_frequencies(source)
        if not frequencies:
            _report(on_progress, 0, 0)
            return 0
        self._check_cancel("tree construction")

        root = build_tree(frequencies)
        codes = build_code_table(root)
        total = sum(frequencies.values())
        payload_bits = encoded_bit_length(frequencies, codes)
        logger.debug(
            "Compressing %d bytes, %d symbols, %d payload bits",
            total, len(codes), payload_bits,
        )

        output = BitWriter(sink)
        output.write_bits(self.VERSION, 8)
        output.write_bits((-payload_bits) % 8, 8)
        metadata = save_tree(root)
        output.write_bits(len(metadata), 16)
        output.write_bytes(metadata)
        header_bits = output.bits_written

        source.seek(start)
        encode(codes, source, output, on_progress=on_progress, total=total)
        written_bits = output.bits_written - header_bits
        if written_bits != payload_bits:
            raise SourceChangedError(
                f"Source changed between passes: expected {payload_bits} bits, "
                f"wrote {written_bits}"
            )
        output.flush()
        return header_bits // 8 + (payload_bits + 7) // 8

    def decompress_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Decompress a binary stream produced by :meth:`compress_stream`.

        :param source: Readable binary stream.
        :type source: BinaryIO
        :param sink: Writable binary stream.
        :type sink: BinaryIO
        :param on_progress: See :meth:`decompress`.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Number of bytes written to ``sink``.
        :rtype: int
        :raises MalformedStreamError: If the version is unsupported, the
                                      header is truncated or the payload
                                      does not match the tree.
        """
        header = source.read(4)
        if not header:
            _report(on_progress, 0, 0)
            return 0

        reader = BitReader(header)
        try:
            version = reader.read_bits(8)
            if version != self.VERSION:
                raise MalformedStreamError(f"Unsupported version: {version}")
            padding = reader.read_bits(8)
            metadata_len = reader.read_bits(16)
        except EOFError as exc:
            raise MalformedStreamError("Truncated header") from exc
        metadata = source.read(metadata_len)
        if len(metadata) != metadata_len:
            raise MalformedStreamError("Truncated tree metadata")
        try:
            root, consumed = load_tree(metadata)
        except EOFError as exc:
            raise MalformedStreamError("Truncated tree metadata") from exc
        if consumed != metadata_len:
            raise MalformedStreamError(
                f"Tree metadata is {metadata_len} bytes but the tree uses {consumed}"
            )
        if root is None or padding > 7:
            raise MalformedStreamError(f"Invalid padding or tree: padding={padding}")
        self._check_cancel("decoding")

        total_bits = 0
        if source.seekable():
            here = source.tell()
            total_bits = max(0, 8 * (source.seek(0, io.SEEK_END) - here) - padding)
            source.seek(here)
        written = decode(
            root,
            BitReader(source, padding),
            sink,
            on_progress=on_progress,
            total_bits=total_bits,
        )
        if written == 0:
            raise MalformedStreamError("Compressed data has no payload")
        return written

    def compress_file(
        self,
        src: str,
        dst: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Compress the file ``src`` into ``dst``.

        :returns: Size of ``dst`` in bytes.
        :rtype: int
        :raises OSError: If either file cannot be opened, read or written.
        """
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            return self.compress_stream(fin, fout, on_progress=on_progress)

    def decompress_file(
        self,
        src: str,
        dst: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Decompress the file ``src`` into ``dst``.

        :returns: Size of ``dst`` in bytes.
        :rtype: int
        :raises OSError: If either file cannot be opened, read or written.
        :raises MalformedStreamError: If ``src`` is not a valid compressed file.
        """
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            return self.decompress_stream(fin, fout, on_progress=on_progress)
