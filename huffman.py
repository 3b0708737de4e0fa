import heapq
import itertools
import logging
from collections import Counter
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from bitops import BitReader, BitWriter
from errors import MalformedStreamError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024  #: Bytes read per call while counting frequencies


@dataclass(frozen=True)
class Symbol:
    """A byte value together with its number of occurrences.

    :ivar value: Byte value (0-255).
    :type value: int
    :ivar freq: Frequency of ``value`` in the input.
    :type freq: int
    """

    value: int
    freq: int

    def __post_init__(self):
        if not 0 <= self.value <= 255:
            raise ValueError(f"Symbol value out of byte range: {self.value}")
        if self.freq < 0:
            raise ValueError(f"Negative frequency: {self.freq}")


class HuffmanLeaf:
    """Leaf of a Huffman tree; wraps exactly one :class:`Symbol`.

    :ivar symbol: The wrapped symbol.
    :type symbol: Symbol
    """

    __slots__ = ("symbol",)

    def __init__(self, symbol: Symbol):
        self.symbol = symbol

    @property
    def freq(self) -> int:
        return self.symbol.freq

    @staticmethod
    def is_leaf() -> bool:
        return True

    @staticmethod
    def size() -> int:
        return 1

    def __repr__(self):
        return f"HuffmanLeaf({self.symbol.value!r}, freq={self.freq})"


class HuffmanInternal:
    """Merge node owning a left and a right subtree.

    The left child is ``None`` only for the root built around a lone symbol
    (see :func:`condense`).

    :ivar left: Left subtree (bit 0).
    :type left: HuffmanLeaf | HuffmanInternal | None
    :ivar right: Right subtree (bit 1).
    :type right: HuffmanLeaf | HuffmanInternal
    :ivar freq: Sum of the children's frequencies.
    :type freq: int
    """

    __slots__ = ("left", "right", "freq")

    def __init__(self, left, right, freq: Optional[int] = None):
        if right is None:
            raise ValueError("Internal node needs a right child")
        self.left = left
        self.right = right
        if freq is None:
            freq = right.freq + (left.freq if left is not None else 0)
        self.freq = freq

    @staticmethod
    def is_leaf() -> bool:
        return False

    def size(self) -> int:
        """Count leaves below this node (iteratively).

        :returns: Number of leaves.
        :rtype: int
        """
        count = 0
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                count += 1
                continue
            if node.left is not None:
                stack.append(node.left)
            stack.append(node.right)
        return count

    def __repr__(self):
        return f"HuffmanInternal(freq={self.freq}, left={self.left!r}, right={self.right!r})"


HuffmanNode = Union[HuffmanLeaf, HuffmanInternal]


def count_frequencies(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Counter:
    """Count byte occurrences in ``stream``, reading it once to the end.

    :param stream: Readable binary stream; it is not rewound.
    :type stream: BinaryIO
    :param chunk_size: Number of bytes requested per read.
    :type chunk_size: int
    :returns: Mapping from byte value to count (empty for empty input).
    :rtype: Counter
    """
    counts = Counter()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        counts.update(chunk)
    return counts


def merge_frequencies(*tables: Mapping[int, int]) -> Counter:
    """Sum frequency tables counted over independent chunks of one input.

    :param tables: Per-chunk frequency mappings.
    :returns: Combined mapping.
    :rtype: Counter
    """
    total = Counter()
    for table in tables:
        total.update(table)
    return total


class Forest:
    """Min-priority collection of trees ordered by root frequency.

    Trees with equal frequency come out in insertion order, so the same
    frequency table always yields the same tree.
    """

    def __init__(self, trees: Iterable[HuffmanNode] = ()):
        self._heap: List[Tuple[int, int, HuffmanNode]] = []
        self._seq = itertools.count()
        for tree in trees:
            self.push(tree)

    def push(self, tree: HuffmanNode):
        heapq.heappush(self._heap, (tree.freq, next(self._seq), tree))

    def pop(self) -> HuffmanNode:
        """Remove and return the tree with the smallest root frequency.

        :raises IndexError: If the forest is empty.
        """
        if not self._heap:
            raise IndexError("pop from an empty forest")
        return heapq.heappop(self._heap)[2]

    def peek(self) -> HuffmanNode:
        if not self._heap:
            raise IndexError("peek into an empty forest")
        return self._heap[0][2]

    def __len__(self):
        return len(self._heap)


def build_forest(frequencies: Mapping[int, int]) -> Forest:
    """Wrap every ``(symbol, count)`` pair in a singleton tree.

    Symbols are inserted in ascending value order.

    :param frequencies: Mapping from byte value to count.
    :type frequencies: Mapping[int, int]
    :returns: Forest of leaves, empty if ``frequencies`` is empty.
    :rtype: Forest
    """
    return Forest(
        HuffmanLeaf(Symbol(value, freq))
        for value, freq in sorted(frequencies.items())
    )


def condense(forest: Forest) -> Optional[HuffmanNode]:
    """Merge the forest down to a single Huffman tree.

    The first tree removed becomes the left child of each merge node and the
    second becomes the right child. A tree holding a single leaf is wrapped
    in a root with only a right child, so the symbol gets the code ``"1"``.

    :param forest: Forest to consume; it is left empty.
    :type forest: Forest
    :returns: Root of the final tree, or ``None`` for an empty forest.
    :rtype: HuffmanLeaf | HuffmanInternal | None
    """
    if not forest:
        return None

    merges = 0
    while len(forest) > 1:
        left = forest.pop()
        right = forest.pop()
        forest.push(HuffmanInternal(left, right, left.freq + right.freq))
        merges += 1

    root = forest.pop()
    if root.is_leaf():
        root = HuffmanInternal(None, root)
    logger.debug("Condensed forest with %d merges", merges)
    return root


def build_tree(frequencies: Mapping[int, int]) -> Optional[HuffmanNode]:
    """Build the Huffman tree for a frequency table.

    :param frequencies: Mapping from byte value to count.
    :type frequencies: Mapping[int, int]
    :returns: Tree root, or ``None`` when there are no symbols.
    :rtype: HuffmanInternal | None
    """
    return condense(build_forest(frequencies))


def build_code_table(root: Optional[HuffmanNode]) -> Dict[int, str]:
    """Derive the code of every leaf: ``"0"`` per left edge, ``"1"`` per right.

    Uses an explicit stack, so very deep trees are fine.

    :param root: Tree root or ``None``.
    :type root: HuffmanLeaf | HuffmanInternal | None
    :returns: Mapping from byte value to code string.
    :rtype: Dict[int, str]
    """
    codes: Dict[int, str] = {}
    if root is None:
        return codes

    stack = [(root, "")]
    while stack:
        node, path = stack.pop()
        if node.is_leaf():
            codes[node.symbol.value] = path
            continue
        stack.append((node.right, path + "1"))
        if node.left is not None:
            stack.append((node.left, path + "0"))
    return codes


def encoded_bit_length(frequencies: Mapping[int, int], codes: Mapping[int, str]) -> int:
    """Total payload size in bits: sum of ``freq * len(code)``.

    :raises KeyError: If a symbol with a frequency has no code.
    """
    return sum(freq * len(codes[symbol]) for symbol, freq in frequencies.items())


def save_tree(root: Optional[HuffmanNode]) -> bytes:
    """Serialize the shape and symbols of a tree.

    The format stores the number of leaves (16 bits). A single leaf is
    followed by its symbol (8 bits). Larger trees follow in preorder: bit 0
    for an internal node, bit 1 plus the 8-bit symbol for a leaf.

    :param root: Tree root or ``None``.
    :type root: HuffmanLeaf | HuffmanInternal | None
    :returns: Serialized tree bytes.
    :rtype: bytes
    """
    data = BitWriter()
    leaves = root.size() if root is not None else 0
    data.write_bits(leaves, 16)
    if leaves == 1:
        node = root if root.is_leaf() else root.right
        data.write_bits(node.symbol.value, 8)
    elif leaves > 1:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                data.write_bit(1)
                data.write_bits(node.symbol.value, 8)
            else:
                data.write_bit(0)
                stack.append(node.right)
                stack.append(node.left)
    return data.flush()


def load_tree(data: bytes) -> Tuple[Optional[HuffmanNode], int]:
    """Rebuild a tree serialized by :func:`save_tree`.

    Loaded leaves have a frequency of 0; only the shape matters for decoding.

    :param data: Serialized tree, possibly followed by other bytes.
    :type data: bytes
    :returns: ``(root, consumed)`` where ``consumed`` is the number of bytes read.
    :rtype: Tuple[HuffmanInternal | None, int]
    :raises EOFError: If the data is truncated.
    :raises MalformedStreamError: If the shape does not match the leaf count.
    """
    reader = BitReader(data)
    leaves = reader.read_bits(16)
    if leaves == 0:
        return None, reader.pos
    if leaves == 1:
        leaf = HuffmanLeaf(Symbol(reader.read_bits(8), 0))
        return HuffmanInternal(None, leaf), reader.pos
    if leaves > 256:
        raise MalformedStreamError(f"Too many symbols in tree header: {leaves}")

    seen = set()

    def read_leaf() -> HuffmanLeaf:
        value = reader.read_bits(8)
        if value in seen:
            raise MalformedStreamError(f"Duplicate symbol in tree header: {value}")
        if len(seen) == leaves:
            raise MalformedStreamError("Tree header has more leaves than announced")
        seen.add(value)
        return HuffmanLeaf(Symbol(value, 0))

    if reader.read_bits(1):
        raise MalformedStreamError("Tree header root must be an internal node")

    # One frame per internal node still waiting for its children.
    stack: List[List[HuffmanNode]] = [[]]
    root = None
    while stack:
        if not reader.read_bits(1):
            stack.append([])
            continue
        node = read_leaf()
        while stack:
            frame = stack[-1]
            frame.append(node)
            if len(frame) < 2:
                break
            stack.pop()
            node = HuffmanInternal(frame[0], frame[1], 0)
        else:
            root = node

    if len(seen) != leaves:
        raise MalformedStreamError(
            f"Tree header announced {leaves} symbols but holds {len(seen)}"
        )
    return root, reader.pos
