class HuffmanError(Exception):
    """Base class for all errors raised by the Huffman compressor."""


class UnencodableSymbolError(HuffmanError, KeyError):
    """Input byte has no code in the code table.

    Raised by the encoder when the data being encoded differs from the data
    the frequencies were counted on.

    :ivar symbol: The byte value that could not be encoded.
    :type symbol: int
    """

    def __init__(self, symbol: int):
        """Create the error for ``symbol``.

        :param symbol: Byte value missing from the code table.
        :type symbol: int
        :returns: None
        :rtype: None
        """
        super().__init__(symbol)
        self.symbol = symbol

    def __str__(self):
        return f"Symbol {self.symbol:#04x} is not present in the code table"


class MalformedStreamError(HuffmanError, ValueError):
    """Compressed data does not match the tree (or the header is broken)."""


class OperationCancelled(HuffmanError):
    """Raised when a caller-supplied cancel check asks to stop."""


class SourceChangedError(HuffmanError):
    """Input read for encoding differs from the input that was counted."""
