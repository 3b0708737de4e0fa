import pytest

import codec


def test_cli_parser_accepts_subcommands(m):
    parser = m.get_parser()
    ns = parser.parse_args(["compress", "file1", "-o", "out.huf"])
    assert ns.cmd in ("compress", "c")
    assert ns.output == "out.huf"
    ns2 = parser.parse_args(["-v", "d", "in.huf"])
    assert ns2.cmd in ("decompress", "d")
    assert ns2.verbose and ns2.output is None


def test_cli_parser_requires_subcommand(m):
    with pytest.raises(SystemExit):
        m.get_parser().parse_args([])


def test_default_output_path(m):
    assert m.default_output_path("dir/notes.txt", "_compressed") == "dir/notes_compressed.txt"
    assert m.default_output_path("dir/notes_compressed.txt", "_decompressed") == "dir/notes_decompressed.txt"
    assert m.default_output_path("blob", "_decompressed") == "blob_decompressed"


def test_fmt_pct(m):
    assert m._fmt_pct(0, 0) == "0%"
    assert m._fmt_pct(50, 100).strip().endswith("%")
    assert m._fmt_pct(10, 10).strip().startswith("100")


def test_progress_line_calls_bucketed(no_progress, m):
    p = m.ProgressLine("Compressing", "x.txt")
    p(0, 100)
    p(0, 100)
    p(10, 100)
    p(10, 100)
    p(19, 100)
    p(19, 0)
    assert len(no_progress) == 3
    assert all("x.txt" in line for line in no_progress)


def test_main_compress_then_decompress(text_file, no_progress, m, capsys):
    assert m.main(["compress", str(text_file)]) == 0
    packed = text_file.with_name("notes_compressed.txt")
    assert packed.exists()

    assert m.main(["decompress", str(packed), "-P"]) == 0
    restored = text_file.with_name("notes_decompressed.txt")
    assert restored.read_bytes() == text_file.read_bytes()

    out = capsys.readouterr().out
    assert "Compression complete" in out
    assert "Decompression complete" in out


def test_main_empty_file_roundtrip(tmp_path, m):
    src = tmp_path / "empty.bin"
    src.write_bytes(b"")
    packed = tmp_path / "empty.huf"
    restored = tmp_path / "back.bin"
    assert m.main(["c", str(src), "-o", str(packed), "-P"]) == 0
    assert packed.read_bytes() == b""
    assert m.main(["d", str(packed), "-o", str(restored), "-P"]) == 0
    assert restored.read_bytes() == b""


def test_main_reports_missing_file(tmp_path, m, capsys):
    assert m.main(["c", str(tmp_path / "nope.txt"), "-P"]) == 1
    assert "[!] File not found" in capsys.readouterr().out


def test_main_reports_corrupt_stream(tmp_path, m, capsys):
    bad = tmp_path / "bad.huf"
    bad.write_bytes(b"\x63\x00\x00\x00")
    assert m.main(["d", str(bad), "-o", str(tmp_path / "out"), "-P"]) == 1
    assert "Unsupported version" in capsys.readouterr().out


@pytest.mark.parametrize("extra, message", [
    (b"a", "Source changed"),
    (b"z", "not present in the code table"),
])
def test_main_reports_file_changed_during_compression(
        tmp_path, monkeypatch, m, capsys, extra, message
):
    src = tmp_path / "growing.log"
    src.write_bytes(b"aab")
    real_count = codec.count_frequencies

    def count_then_append(stream, *args, **kwargs):
        counts = real_count(stream, *args, **kwargs)
        with open(src, "ab") as f:
            f.write(extra)
        return counts

    monkeypatch.setattr(codec, "count_frequencies", count_then_append)
    assert m.main(["c", str(src), "-o", str(tmp_path / "out.huf"), "-P"]) == 1
    out = capsys.readouterr().out
    assert "[!]" in out and message in out
