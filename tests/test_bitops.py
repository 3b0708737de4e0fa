import io
import pytest

from bitops import BitWriter, BitReader


def test_bitwriter_write_bits_and_flush_basic():
    bw = BitWriter()
    bw.write_bits(0b1010, 4)
    bw.write_bits(0b11110000, 8)
    out = bw.flush()
    assert isinstance(out, (bytes, bytearray))
    assert len(out) == 2
    assert out[0] == 0b10101111
    assert out[1] == 0b00000000
    assert bw.bits_written == 12


def test_bitwriter_write_code_and_padding():
    bw = BitWriter()
    bw.write_code("101")
    assert bw.padding == 5
    assert bw.flush() == bytes([0b10100000])


def test_bitwriter_write_code_rejects_garbage():
    bw = BitWriter()
    with pytest.raises(ValueError):
        bw.write_code("10x")


def test_bitwriter_write_bytes_aligns():
    bw = BitWriter()
    bw.write_bits(0b1, 1)
    bw.write_bytes(b"AB")
    out = bw.flush()
    assert out[0] == 0b10000000
    assert out[1:] == b"AB"


def test_bitwriter_flushes_into_sink():
    sink = io.BytesIO()
    bw = BitWriter(sink)
    bw.write_bits(0xAB, 8)
    bw.write_bit(1)
    bw.flush()
    assert sink.getvalue() == bytes([0xAB, 0x80])
    assert bw.flush() == b""


def test_bitreader_read_bits_and_bytes_alignment():
    data = bytes([0b11001010, 0xFF, 0x00])
    br = BitReader(data)
    first3 = br.read_bits(3)
    assert first3 == 0b110
    next5 = br.read_bits(5)
    assert next5 == 0b01010
    b = br.read_bytes(2)
    assert b == bytes([0xFF, 0x00])


def test_bitreader_eoferror_on_insufficient_bits():
    br = BitReader(b"\xF0")
    with pytest.raises(EOFError):
        _ = br.read_bits(9)


def test_bitreader_skips_padding_bits():
    br = BitReader(bytes([0b10110000]), pad_bits=4)
    assert br.bits_remaining() == 4
    assert list(br.iter_bits()) == [1, 0, 1, 1]
    assert br.read_bit() is None


def test_bitreader_rejects_bad_padding():
    with pytest.raises(ValueError):
        BitReader(b"\x00", pad_bits=8)
    with pytest.raises(ValueError):
        BitReader(b"", pad_bits=1)


def test_write_zero_bits_is_noop_and_flush_padding():
    bw = BitWriter()
    bw.write_bits(0xAA, 8)
    bw.write_bits(0, 0)
    out = bw.flush()
    assert out == bytes([0xAA])


def test_bitwriter_hands_full_chunks_to_sink_early():
    sink = io.BytesIO()
    bw = BitWriter(sink, buffer_size=2)
    bw.write_bits(0xABCD, 16)
    assert sink.getvalue() == bytes([0xAB, 0xCD])
    bw.write_bits(0b101, 3)
    assert bw.flush() == bytes([0b10100000])
    assert sink.getvalue() == bytes([0xAB, 0xCD, 0b10100000])


def test_bitreader_over_stream_across_chunks_with_padding():
    stream = io.BytesIO(bytes([0xAB, 0xCD, 0b10110000]))
    br = BitReader(stream, pad_bits=4, buffer_size=1)
    assert br.bits_remaining() is None
    assert br.read_bits(16) == 0xABCD
    assert list(br.iter_bits()) == [1, 0, 1, 1]
    assert br.read_bit() is None


def test_bitreader_over_empty_stream():
    br = BitReader(io.BytesIO(b""), pad_bits=3)
    assert br.read_bit() is None
    assert br.read_bytes(4) == b""
