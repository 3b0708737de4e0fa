import argparse
import logging
import os
import sys

from codec import HuffmanCodec
from errors import HuffmanError


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Huffman coding file compressor"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details to stderr",
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    compress = subparsers.add_parser(
        "compress", aliases=["c"], help="Compress a file"
    )
    compress.add_argument("input", help="File to compress")
    compress.add_argument(
        "-o",
        "--output",
        help="Output file path (default: <name>_compressed<ext>)",
    )
    compress.add_argument(
        "-P",
        "--no-progress",
        action="store_true",
        help="Hide the progress line",
    )

    decompress = subparsers.add_parser(
        "decompress", aliases=["d"], help="Decompress a file"
    )
    decompress.add_argument("input", help="Compressed file")
    decompress.add_argument(
        "-o",
        "--output",
        help="Output file path (default: <name>_decompressed<ext>)",
    )
    decompress.add_argument(
        "-P",
        "--no-progress",
        action="store_true",
        help="Hide the progress line",
    )

    return parser


def default_output_path(path: str, suffix: str) -> str:
    """Derive an output file name next to ``path``.

    ``notes.txt`` becomes ``notes_compressed.txt`` or
    ``notes_decompressed.txt``; a ``_compressed`` stem is replaced, not
    extended, when decompressing.

    :param path: Input file path.
    :type path: str
    :param suffix: ``"_compressed"`` or ``"_decompressed"``.
    :type suffix: str
    :returns: Output file path.
    :rtype: str
    """
    stem, ext = os.path.splitext(path)
    if suffix == "_decompressed" and stem.endswith("_compressed"):
        stem = stem[:-len("_compressed")]
    return f"{stem}{suffix}{ext}"


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    if total <= 0:
        return "0%"
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


class ProgressLine:
    """Callable progress reporter rendering one in-place line per percent.

    :ivar label: Action label (e.g. "Compressing" or "Decompressing").
    :type label: str
    :ivar path: File name displayed next to the label.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress display.

        :param done: Units processed so far.
        :type done: int
        :param total: Total units.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def run(cmd: str, src: str, dst: str, hide_progress: bool) -> bool:
    """Compress or decompress ``src`` into ``dst``.

    Partially written output is left in place on failure.

    :param cmd: ``"compress"`` or ``"decompress"`` (or their aliases).
    :type cmd: str
    :param src: Input file path.
    :type src: str
    :param dst: Output file path.
    :type dst: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :returns: ``True`` on success.
    :rtype: bool
    """
    codec = HuffmanCodec()
    compressing = cmd in ("compress", "c")
    label = "Compressing" if compressing else "Decompressing"
    on_prog = None if hide_progress else ProgressLine(label, src)
    try:
        if compressing:
            codec.compress_file(src, dst, on_progress=on_prog)
        else:
            codec.decompress_file(src, dst, on_progress=on_prog)
    except FileNotFoundError as e:
        print(f"\n[!] File not found: {e.filename}")
        return False
    except HuffmanError as e:
        print(f"\n[!] {label} {src} failed: {e}")
        return False
    except OSError as e:
        print(f"\n[!] I/O error: {e}")
        return False
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()
    print("Compression complete" if compressing else "Decompression complete")
    return True


def main(argv=None):
    """Entry point for the CLI tool.

    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    suffix = "_compressed" if args.cmd in ("compress", "c") else "_decompressed"
    dst = args.output or default_output_path(args.input, suffix)
    ok = run(args.cmd, args.input, dst, getattr(args, "no_progress", False))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
