"""
PKE Scheme Based on Module-LWE (Kyber-style)
============================================

A didactic public-key encryption scheme over the polynomial ring
R_q = Z_q[x]/(x^n + 1), following the module-LWE construction that underlies
the Kyber / ML-KEM family, together with a bit-padding codec that lets
arbitrary text be encrypted block by block.

Mathematical Foundation
-----------------------
Ring elements are coefficient vectors kept in centered (symmetric) form,
i.e. every coefficient lies in (-q/2, q/2], and reduced modulo the
modulus polynomial x^n + 1 by synthetic long division after every
arithmetic operation. Keys and ciphertexts are small matrices whose
entries are ring elements.

PKE Scheme:
    KeyGen:       s, e <- small;  A <- uniform;  t = A·s + e
    Encrypt(m):   r, e1, e2 <- small
                  u = Aᵗ·r + e1,  v = tᵗ·r + e2 + ⌊q/2⌋·m
    Decrypt(u,v): d = v - sᵗ·u,  m_i = 1 iff |d_i| > ⌊q/4⌋

Message Encoding
----------------
Text is expanded to bits (one byte per character, MSB first), packed into
blocks of n bits and terminated with the padding byte 0x80 followed by
zeros. Every block is encrypted independently.

Security Levels
---------------
- L1: k=2, eta1=3, eta2=2
- L3: k=3, eta1=2, eta2=2
- L5: k=4, eta1=2, eta2=2
All with n=256, q=3329. The "toy" level (n=64) exists for testing only.

Limitations
-----------
Multiplication is the O(n^2) schoolbook convolution, arithmetic is not
constant-time and noise is sampled uniformly from [-eta, eta] rather than
from a centered binomial distribution. There is no integrity check: a
tampered ciphertext silently decrypts to garbage.

Usage Example
-------------
>>> from pke_mlwe import MLWE_PKE
>>> pke = MLWE_PKE.from_security_level("L5")
>>> pk, sk = pke.keygen()
>>> blocks = pke.encrypt_message("Hey Bob, Alice here, how are you?", pk)
>>> pke.decrypt_message(blocks, sk)
'Hey Bob, Alice here, how are you?'
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

__version__ = "1.0.0"
__all__ = [
    # Core classes
    "MLWE_PKE",
    "PublicKey",
    "PrivateKey",
    "EncryptedBlock",
    "PolynomialRing",
    "RingElement",
    "PolynomialMatrix",
    # Errors
    "PKEError",
    "ShapeMismatchError",
    "ParameterMismatchError",
    # Arithmetic
    "center_modulo",
    "center_modulo_array",
    "to_bit",
    "to_bits",
    "trim_polynomial",
    "reduce_polynomial",
    "get_ring",
    "sample_matrix",
    # Message codec
    "PADDING_BYTE",
    "text_to_bits",
    "bits_to_blocks",
    "text_to_blocks",
    "remove_padding",
    "strip_padding",
    "blocks_to_bits",
    "blocks_to_text",
    # Parameters
    "SecurityParameters",
    "SECURITY_LEVELS",
    "DEFAULT_SECURITY_LEVEL",
    "get_security_params",
    # Functional interface
    "generate_keys",
    "encrypt_message",
    "decrypt_message",
]

log = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class PKEError(Exception):
    """Base class for errors raised by this module."""


class ShapeMismatchError(PKEError, ValueError):
    """Matrix dimensions are incompatible for the requested operation."""


class ParameterMismatchError(PKEError, ValueError):
    """Operands or keys belong to different rings / parameter sets."""


# =============================================================================
# Security Level Parameters
# =============================================================================

@dataclass(frozen=True)
class SecurityParameters:
    """Security parameters for the different security levels."""
    name: str
    q: int          # Working modulus
    n: int          # Ring degree (modulus polynomial is x^n + 1)
    k: int          # Module rank
    eta1: int       # Secret / encryption randomness bound
    eta2: int       # Error bound
    security_bits: int  # Target security level in bits

    def __post_init__(self):
        if self.n < 1 or self.q < 2 or self.k < 1:
            raise ValueError(f"Invalid parameters: n={self.n}, q={self.q}, k={self.k}")
        if self.eta1 < 0 or self.eta2 < 0:
            raise ValueError(f"Noise bounds must be non-negative: eta1={self.eta1}, eta2={self.eta2}")
        # Schoolbook products sum n terms of up to q^2 before re-centering
        if self.q * self.q * self.n > np.iinfo(np.int64).max:
            raise ValueError(f"q={self.q}, n={self.n} overflow 64-bit coefficient products")


SECURITY_LEVELS: Dict[str, SecurityParameters] = {
    "L1": SecurityParameters(
        name="MLWE-512 (L1)",
        q=3329,
        n=256,
        k=2,
        eta1=3,
        eta2=2,
        security_bits=128
    ),
    "L3": SecurityParameters(
        name="MLWE-768 (L3)",
        q=3329,
        n=256,
        k=3,
        eta1=2,
        eta2=2,
        security_bits=192
    ),
    "L5": SecurityParameters(
        name="MLWE-1024 (L5)",
        q=3329,
        n=256,
        k=4,
        eta1=2,
        eta2=2,
        security_bits=256
    ),
    "toy": SecurityParameters(
        name="MLWE-Toy (Testing only)",
        q=3329,
        n=64,
        k=2,
        eta1=2,
        eta2=2,
        security_bits=0  # Not secure, for testing
    ),
}

DEFAULT_SECURITY_LEVEL = "L5"


def get_security_params(level: str = DEFAULT_SECURITY_LEVEL) -> SecurityParameters:
    """Get security parameters for a given level."""
    if level not in SECURITY_LEVELS:
        raise ValueError(f"Unknown security level: {level}. Choose from {list(SECURITY_LEVELS.keys())}")
    return SECURITY_LEVELS[level]


# =============================================================================
# Modular Arithmetic
# =============================================================================

def center_modulo(value: int, modulus: int) -> int:
    """
    Map value into the symmetric residue range (-modulus/2, modulus/2].

    Python's % already returns a residue in [0, modulus) for negative input,
    so a single conditional subtraction is enough.
    """
    r = int(value) % modulus
    if r > modulus // 2:
        r -= modulus
    return r


def center_modulo_array(values, modulus: int) -> np.ndarray:
    """Vectorised center_modulo."""
    r = np.asarray(values, dtype=np.int64) % modulus
    return np.where(r > modulus // 2, r - modulus, r)


def to_bit(value: int, modulus: int) -> int:
    """
    Decode a centered coefficient to a message bit.

    Returns 1 when the coefficient is closer to ±modulus/2 than to zero,
    i.e. when |value| exceeds half of modulus/2.
    """
    return 1 if abs(int(value)) > modulus // 4 else 0


def to_bits(values, modulus: int) -> np.ndarray:
    """Vectorised to_bit."""
    return (np.abs(np.asarray(values, dtype=np.int64)) > modulus // 4).astype(np.int64)


# =============================================================================
# Polynomial Ring Reduction
# =============================================================================

def trim_polynomial(coeffs) -> np.ndarray:
    """Remove trailing (highest degree) zero coefficients."""
    return np.trim_zeros(np.asarray(coeffs, dtype=np.int64), 'b')


def reduce_polynomial(dividend, divisor, q: int) -> np.ndarray:
    """
    Remainder of dividend / divisor with all arithmetic in centered mod q.

    Synthetic long division: at every step the leading coefficient is divided
    by the divisor's leading coefficient, the scaled divisor is subtracted at
    the matching degree offset, the touched coefficients are re-centered and
    trailing zeros are dropped. Stops once deg(remainder) < deg(divisor).

    Args:
        dividend: Coefficients, index = degree
        divisor: Modulus polynomial, leading coefficient must be ±1
        q: Coefficient modulus

    Returns:
        Trimmed remainder with centered coefficients
    """
    divisor = trim_polynomial(divisor)
    if len(divisor) == 0:
        raise ValueError("Division by zero polynomial")
    lead = int(divisor[-1])
    if lead not in (1, -1):
        raise ValueError(f"Modulus polynomial must have a unit leading coefficient, got {lead}")

    remainder = trim_polynomial(dividend).copy()
    size = len(divisor)

    while len(remainder) >= size:
        offset = len(remainder) - size
        factor = int(remainder[-1]) // lead
        scaled = center_modulo_array(divisor * factor, q)
        remainder[offset:] = center_modulo_array(remainder[offset:] - scaled, q)
        remainder = trim_polynomial(remainder)

    return remainder


def _pad_to(coeffs: np.ndarray, length: int) -> np.ndarray:
    """Extend with implicit zero coefficients up to length."""
    return np.pad(coeffs, (0, length - len(coeffs)))


def _centered_add(a: np.ndarray, b: np.ndarray, q: int) -> np.ndarray:
    length = max(len(a), len(b))
    return center_modulo_array(_pad_to(a, length) + _pad_to(b, length), q)


def _centered_sub(a: np.ndarray, b: np.ndarray, q: int) -> np.ndarray:
    length = max(len(a), len(b))
    return center_modulo_array(_pad_to(a, length) - _pad_to(b, length), q)


def _convolve(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Schoolbook product: c[i + j] += a[i] * b[j]."""
    if len(a) == 0 or len(b) == 0:
        return np.zeros(0, dtype=np.int64)
    return np.convolve(a, b)


class PolynomialRing:
    """
    The quotient ring Z_q[x]/(x^n + 1).

    Holds the modulus polynomial (coefficient 1 at degree 0 and degree n)
    and reduces coefficient vectors against it.
    """

    def __init__(self, n: int, q: int):
        self.n = n
        self.q = q
        # n + 1 coefficients: the modulus is one degree larger than any element
        modulus = np.zeros(n + 1, dtype=np.int64)
        modulus[0] = 1
        modulus[n] = 1
        self.modulus = modulus

    def reduce(self, coeffs) -> np.ndarray:
        """Canonical representative: degree < n, centered coefficients."""
        return reduce_polynomial(coeffs, self.modulus, self.q)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PolynomialRing):
            return NotImplemented
        return self.n == other.n and self.q == other.q

    def __hash__(self) -> int:
        return hash((self.n, self.q))

    def __repr__(self) -> str:
        return f"PolynomialRing(n={self.n}, q={self.q})"


# Ring cache for different (n, q) pairs
_ring_cache: Dict[Tuple[int, int], PolynomialRing] = {}


def get_ring(n: int, q: int) -> PolynomialRing:
    """Get or create the ring for given parameters."""
    key = (n, q)
    if key not in _ring_cache:
        _ring_cache[key] = PolynomialRing(n, q)
    return _ring_cache[key]


# =============================================================================
# Ring Element
# =============================================================================

class RingElement:
    """
    Represents an element of R_q = Z_q[x]/(x^n + 1).

    The coefficient vector is stored as given; every arithmetic operation
    returns a new, reduced element (degree < n, trailing zeros trimmed,
    coefficients centered).
    """

    def __init__(self, coeffs, ring: PolynomialRing):
        self.ring = ring
        self.coeffs = np.array(coeffs, dtype=np.int64).reshape(-1)

    def _check_ring(self, other: 'RingElement') -> None:
        if self.ring != other.ring:
            raise ParameterMismatchError(f"Cannot combine elements of {self.ring} and {other.ring}")

    def __add__(self, other: 'RingElement') -> 'RingElement':
        self._check_ring(other)
        coeffs = _centered_add(self.coeffs, other.coeffs, self.ring.q)
        return RingElement(self.ring.reduce(coeffs), self.ring)

    def __sub__(self, other: 'RingElement') -> 'RingElement':
        self._check_ring(other)
        coeffs = _centered_sub(self.coeffs, other.coeffs, self.ring.q)
        return RingElement(self.ring.reduce(coeffs), self.ring)

    def __mul__(self, other: 'RingElement') -> 'RingElement':
        self._check_ring(other)
        product = center_modulo_array(_convolve(self.coeffs, other.coeffs), self.ring.q)
        return RingElement(self.ring.reduce(product), self.ring)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RingElement):
            return NotImplemented
        return (self.ring == other.ring and
                np.array_equal(trim_polynomial(self.coeffs), trim_polynomial(other.coeffs)))

    def __repr__(self) -> str:
        return f"RingElement({self.coeffs[:min(5, len(self.coeffs))]}..., deg={self.degree})"

    @property
    def degree(self) -> int:
        """Degree of the polynomial, -1 for zero."""
        return len(trim_polynomial(self.coeffs)) - 1

    def is_zero(self) -> bool:
        return not np.any(self.coeffs)

    def padded(self) -> np.ndarray:
        """Coefficients extended (or cut) to exactly n entries."""
        return _pad_to(self.coeffs[:self.ring.n], self.ring.n)

    def to_bytes(self) -> bytes:
        """Convert to bytes for hashing."""
        return self.padded().astype(np.int64).tobytes()

    @classmethod
    def zero(cls, ring: PolynomialRing) -> 'RingElement':
        """Return the zero element."""
        return cls(np.zeros(0, dtype=np.int64), ring)


# =============================================================================
# Matrix of Ring Elements
# =============================================================================

class PolynomialMatrix:
    """
    Represents a rows×cols matrix over R_q = Z_q[x]/(x^n + 1).

    Used for the public matrix A (k×k), the key / noise vectors (k×1) and the
    ciphertext component v (1×1). Dimensions are fixed at construction and
    checked before every binary operation.
    """

    def __init__(self, blocks: list, rows: int, cols: int, ring: PolynomialRing):
        """
        Initialize a rows×cols matrix over R_q.

        Args:
            blocks: List of rows*cols RingElement objects (row-major order)
            rows: Number of rows
            cols: Number of columns
            ring: Ring shared by all entries
        """
        if len(blocks) != rows * cols:
            raise ShapeMismatchError(f"Expected {rows * cols} entries for a {rows}x{cols} matrix, got {len(blocks)}")
        self.rows = rows
        self.cols = cols
        self.ring = ring
        self.blocks = list(blocks)  # rows*cols elements in row-major order

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def get_block(self, i: int, j: int) -> RingElement:
        """Get the (i,j)-th entry (0-indexed)"""
        return self.blocks[i * self.cols + j]

    def _check_ring(self, other: 'PolynomialMatrix') -> None:
        if self.ring != other.ring:
            raise ParameterMismatchError(f"Cannot combine matrices over {self.ring} and {other.ring}")

    def _check_same_shape(self, other: 'PolynomialMatrix', op: str) -> None:
        if self.shape != other.shape:
            raise ShapeMismatchError(
                f"Cannot {op} a {self.rows}x{self.cols} matrix and a {other.rows}x{other.cols} matrix")

    def __add__(self, other: 'PolynomialMatrix') -> 'PolynomialMatrix':
        """Entrywise addition, each entry reduced."""
        self._check_same_shape(other, "add")
        self._check_ring(other)
        new_blocks = [a + b for a, b in zip(self.blocks, other.blocks)]
        return PolynomialMatrix(new_blocks, self.rows, self.cols, self.ring)

    def __sub__(self, other: 'PolynomialMatrix') -> 'PolynomialMatrix':
        """Entrywise subtraction, each entry reduced."""
        self._check_same_shape(other, "subtract")
        self._check_ring(other)
        new_blocks = [a - b for a, b in zip(self.blocks, other.blocks)]
        return PolynomialMatrix(new_blocks, self.rows, self.cols, self.ring)

    def __mul__(self, other: 'PolynomialMatrix') -> 'PolynomialMatrix':
        """
        Matrix multiplication with polynomial convolution as the scalar product.

        Products are accumulated into each output entry with centered
        addition and the entry is reduced once, after the sum over the
        inner dimension.
        """
        if self.cols != other.rows:
            raise ShapeMismatchError(
                f"Cannot multiply a {self.rows}x{self.cols} matrix by a {other.rows}x{other.cols} matrix: "
                f"inner dimensions differ")
        self._check_ring(other)
        q = self.ring.q

        new_blocks = []
        for i in range(self.rows):
            for j in range(other.cols):
                acc = np.zeros(0, dtype=np.int64)
                for l in range(self.cols):
                    product = _convolve(self.get_block(i, l).coeffs, other.get_block(l, j).coeffs)
                    acc = _centered_add(acc, product, q)
                new_blocks.append(RingElement(self.ring.reduce(acc), self.ring))
        return PolynomialMatrix(new_blocks, self.rows, other.cols, self.ring)

    def transpose(self) -> 'PolynomialMatrix':
        """Swap rows and columns (entries are shared, not copied)."""
        new_blocks = [self.get_block(i, j) for j in range(self.cols) for i in range(self.rows)]
        return PolynomialMatrix(new_blocks, self.cols, self.rows, self.ring)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PolynomialMatrix):
            return NotImplemented
        return (self.shape == other.shape and self.ring == other.ring and
                all(a == b for a, b in zip(self.blocks, other.blocks)))

    @classmethod
    def zero(cls, rows: int, cols: int, ring: PolynomialRing) -> 'PolynomialMatrix':
        """Return the zero matrix"""
        return cls([RingElement.zero(ring) for _ in range(rows * cols)], rows, cols, ring)

    @classmethod
    def from_element(cls, element: RingElement) -> 'PolynomialMatrix':
        """Wrap a single ring element as a 1×1 matrix."""
        return cls([element], 1, 1, element.ring)

    @classmethod
    def random(cls, rows: int, cols: int, ring: PolynomialRing, range_modulus: int,
               rng: Optional[np.random.Generator] = None) -> 'PolynomialMatrix':
        """Sample a random matrix (see sample_matrix)"""
        return sample_matrix(rows, cols, ring, range_modulus, rng)

    def to_bytes(self) -> bytes:
        """Convert to bytes for hashing"""
        return b''.join(block.to_bytes() for block in self.blocks)

    def __repr__(self) -> str:
        return f"PolynomialMatrix({self.rows}x{self.cols}, n={self.ring.n}, q={self.ring.q})"


# =============================================================================
# Random Matrix Sampling
# =============================================================================

def _uniform_coefficients(count: int, bound: int,
                          rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """count integers uniform on [0, bound)."""
    if rng is None:
        return np.array([secrets.randbelow(bound) for _ in range(count)], dtype=np.int64)
    return rng.integers(0, bound, size=count, dtype=np.int64)


def sample_matrix(rows: int, cols: int, ring: PolynomialRing, range_modulus: int,
                  rng: Optional[np.random.Generator] = None) -> PolynomialMatrix:
    """
    Sample a rows×cols matrix of ring elements with n coefficients each.

    Every coefficient is drawn uniformly from [0, range_modulus) and then
    centered modulo range_modulus. With range_modulus = q this gives the
    uniform public matrix; with range_modulus = 2*eta + 1 it gives small
    coefficients uniform on [-eta, eta].

    Args:
        rows, cols: Matrix dimensions
        ring: Ring of the entries (provides n)
        range_modulus: Size of the coefficient range
        rng: Optional numpy Generator; defaults to the secrets module

    Returns:
        A new PolynomialMatrix
    """
    blocks = []
    for _ in range(rows * cols):
        coeffs = center_modulo_array(_uniform_coefficients(ring.n, range_modulus, rng), range_modulus)
        blocks.append(RingElement(coeffs, ring))
    return PolynomialMatrix(blocks, rows, cols, ring)


# =============================================================================
# Message Codec
# =============================================================================

PADDING_BYTE = 0x80

# Smallest block that can hold the padding byte
MIN_BLOCK_SIZE = 8


def text_to_bits(text: str) -> np.ndarray:
    """One byte per character, expanded MSB first into 0/1 coefficients."""
    data = text.encode('latin-1')
    return np.unpackbits(np.frombuffer(data, dtype=np.uint8)).astype(np.int64)


def bits_to_blocks(bits, block_size: int) -> List[np.ndarray]:
    """
    Pack bits into blocks of exactly block_size coefficients with padding.

    The padding byte 0x80 is appended bit by bit after the last data bit and
    the rest of the block is zero-filled. When the data exactly fills a block
    the marker starts a new block; when the marker itself exactly fills a
    block, an all-zero block follows it.
    """
    if block_size < MIN_BLOCK_SIZE:
        raise ValueError(f"Block size must be at least {MIN_BLOCK_SIZE}, got {block_size}")

    marker = np.unpackbits(np.array([PADDING_BYTE], dtype=np.uint8)).astype(np.int64)
    stream = np.concatenate([np.asarray(bits, dtype=np.int64).reshape(-1), marker])

    fill = -len(stream) % block_size
    if fill == 0:
        fill = block_size
    stream = np.concatenate([stream, np.zeros(fill, dtype=np.int64)])

    return [stream[i:i + block_size] for i in range(0, len(stream), block_size)]


def text_to_blocks(text: str, block_size: int) -> List[np.ndarray]:
    """Convert text into padded bit blocks."""
    return bits_to_blocks(text_to_bits(text), block_size)


def remove_padding(block) -> np.ndarray:
    """
    Strip the padding from the final block.

    Pops trailing zeros; the first 1 found from the end is the marker bit and
    is popped too. Any other value stops the scan.
    """
    block = np.asarray(block, dtype=np.int64)
    nonzero = np.flatnonzero(block)
    if len(nonzero) == 0:
        return block[:0]
    last = nonzero[-1]
    if block[last] == 1:
        return block[:last]
    return block[:last + 1]


def strip_padding(blocks: Sequence[np.ndarray]) -> List[np.ndarray]:
    """
    Undo bits_to_blocks padding on a decoded block sequence.

    A final all-zero block only carries filler and is dropped; the marker is
    then removed from the (new) final block. Earlier blocks pass unchanged.
    Note: a genuine all-zero final content block cannot be told apart from
    filler.
    """
    blocks = [np.asarray(b, dtype=np.int64) for b in blocks]
    if blocks and not np.any(blocks[-1]):
        blocks.pop()
    if blocks:
        blocks[-1] = remove_padding(blocks[-1])
    return blocks


def blocks_to_bits(blocks: Sequence[np.ndarray]) -> np.ndarray:
    if not blocks:
        return np.zeros(0, dtype=np.int64)
    return np.concatenate([np.asarray(b, dtype=np.int64).reshape(-1) for b in blocks])


def blocks_to_text(blocks: Sequence[np.ndarray], block_size: int) -> str:
    """
    Concatenate block coefficients and regroup every 8 bits into a character.

    An incomplete trailing byte is ignored.
    """
    for block in blocks:
        if len(block) > block_size:
            raise ValueError(f"Block of {len(block)} coefficients exceeds block size {block_size}")
    bits = blocks_to_bits(blocks)
    whole = len(bits) - len(bits) % 8
    data = np.packbits(bits[:whole].astype(np.uint8)).tobytes()
    return data.decode('latin-1')


# =============================================================================
# Keys and Ciphertexts
# =============================================================================

@dataclass(frozen=True)
class PublicKey:
    """Public key (t, A): t = A·s + e (k×1), A uniform (k×k)."""
    t: PolynomialMatrix
    A: PolynomialMatrix
    params: SecurityParameters


@dataclass(frozen=True)
class PrivateKey:
    """Private key: the small secret s (k×1)."""
    s: PolynomialMatrix
    params: SecurityParameters


@dataclass(frozen=True)
class EncryptedBlock:
    """Ciphertext of one message block: u (k×1), v (1×1)."""
    u: PolynomialMatrix
    v: PolynomialMatrix

    def to_bytes(self) -> bytes:
        return self.u.to_bytes() + self.v.to_bytes()


# =============================================================================
# PKE Scheme
# =============================================================================

class MLWE_PKE:
    """
    Public Key Encryption scheme based on module-LWE.

    Supports security levels L1, L3, L5 (and "toy") through SecurityParameters.

    Parameters:
        n: Ring degree
        q: Working modulus
        k: Module rank
        eta1: Bound for secret / encryption randomness
        eta2: Bound for errors
        security_level: Security level ("L1", "L3", "L5", "toy")
        rng: numpy Generator for reproducible sampling (default: secrets)
        logger: Sink for debug tracing of intermediate values
        params: Complete SecurityParameters, overrides the other settings
    """

    def __init__(self, n: int = None, q: int = None, k: int = None,
                 eta1: int = None, eta2: int = None,
                 security_level: str = None,
                 rng: Optional[np.random.Generator] = None,
                 logger: Optional[logging.Logger] = None,
                 params: Optional[SecurityParameters] = None):
        """
        Initialize the PKE scheme with parameters.

        Can specify parameters directly, pass a complete parameter set or
        use a security level. params takes precedence, then security_level.
        Without any of them, the default security level is used.
        """
        if params is None and security_level is None and all(p is None for p in (n, q, k, eta1, eta2)):
            security_level = DEFAULT_SECURITY_LEVEL

        if params is not None:
            self.params = params
        elif security_level is not None:
            self.params = get_security_params(security_level)
        else:
            default = get_security_params(DEFAULT_SECURITY_LEVEL)
            self.params = SecurityParameters(
                name="Custom",
                q=q if q is not None else default.q,
                n=n if n is not None else default.n,
                k=k if k is not None else default.k,
                eta1=eta1 if eta1 is not None else default.eta1,
                eta2=eta2 if eta2 is not None else default.eta2,
                security_bits=0
            )

        self.ring = get_ring(self.params.n, self.params.q)
        self.rng = rng
        self.logger = logger if logger is not None else log

    @classmethod
    def from_security_level(cls, level: str, rng: Optional[np.random.Generator] = None,
                            logger: Optional[logging.Logger] = None) -> 'MLWE_PKE':
        """Create PKE instance from security level."""
        return cls(security_level=level, rng=rng, logger=logger)

    @classmethod
    def from_params(cls, params: SecurityParameters, rng: Optional[np.random.Generator] = None,
                    logger: Optional[logging.Logger] = None) -> 'MLWE_PKE':
        """Create PKE instance for an existing parameter set."""
        return cls(params=params, rng=rng, logger=logger)

    @property
    def n(self) -> int:
        return self.params.n

    @property
    def q(self) -> int:
        return self.params.q

    @property
    def k(self) -> int:
        return self.params.k

    def _sample_small(self, rows: int, cols: int, eta: int) -> PolynomialMatrix:
        """Coefficients uniform on [-eta, eta]."""
        return sample_matrix(rows, cols, self.ring, 2 * eta + 1, self.rng)

    def _sample_uniform(self, rows: int, cols: int) -> PolynomialMatrix:
        return sample_matrix(rows, cols, self.ring, self.q, self.rng)

    def _check_params(self, key) -> None:
        if key.params != self.params:
            raise ParameterMismatchError(
                f"Key was generated for {key.params.name}, scheme uses {self.params.name}")

    def keygen(self) -> Tuple[PublicKey, PrivateKey]:
        """
        Key Generation.

        Returns:
            pk: Public key (t, A) where t = A·s + e
            sk: Secret key s
        """
        s = self._sample_small(self.k, 1, self.params.eta1)
        e = self._sample_small(self.k, 1, self.params.eta2)
        A = self._sample_uniform(self.k, self.k)

        self.logger.debug("keygen s: %r", s.blocks)
        self.logger.debug("keygen e: %r", e.blocks)
        self.logger.debug("keygen A: %r", A)

        t = A * s + e
        self.logger.debug("keygen t: %r", t.blocks)

        return PublicKey(t=t, A=A, params=self.params), PrivateKey(s=s, params=self.params)

    def encrypt(self, pk: PublicKey, m) -> EncryptedBlock:
        """
        Encrypt a single message block.

        Args:
            pk: Public key (t, A)
            m: Up to n bits (0/1 coefficients, index = degree)

        Returns:
            EncryptedBlock (u, v)
        """
        self._check_params(pk)
        bits = np.asarray(m, dtype=np.int64).reshape(-1)
        if len(bits) > self.n:
            raise ValueError(f"Message block has {len(bits)} coefficients, at most {self.n} allowed")
        if np.any((bits != 0) & (bits != 1)):
            raise ValueError("Message block coefficients must be 0 or 1")

        r = self._sample_small(self.k, 1, self.params.eta1)
        e1 = self._sample_small(self.k, 1, self.params.eta2)
        e2 = self._sample_small(1, 1, self.params.eta2)

        self.logger.debug("encrypt e1: %r", e1.blocks)
        self.logger.debug("encrypt e2: %r", e2.blocks)

        m_scaled = PolynomialMatrix.from_element(RingElement(bits * (self.q // 2), self.ring))
        self.logger.debug("encrypt msg: %s", bits)
        self.logger.debug("encrypt msg scaled: %r", m_scaled.blocks)

        u = pk.A.transpose() * r + e1
        v = pk.t.transpose() * r + e2 + m_scaled

        self.logger.debug("encrypt u: %r", u.blocks)
        self.logger.debug("encrypt v: %r", v.blocks)

        return EncryptedBlock(u=u, v=v)

    def decrypt(self, sk: PrivateKey, ct: EncryptedBlock) -> np.ndarray:
        """
        Decrypt a single block.

        Args:
            sk: Secret key s
            ct: EncryptedBlock (u, v)

        Returns:
            The n decoded message bits
        """
        self._check_params(sk)
        d = ct.v - sk.s.transpose() * ct.u
        noisy = d.get_block(0, 0)

        self.logger.debug("decrypt d: %r", noisy)

        bits = to_bits(noisy.padded(), self.q)
        self.logger.debug("decrypt bits: %s", bits)
        return bits

    def encrypt_message(self, message: str, pk: PublicKey) -> List[EncryptedBlock]:
        """Encrypt text block by block; blocks share no randomness."""
        blocks = text_to_blocks(message, self.n)
        self.logger.debug("encrypt_message: %d block(s) to encrypt", len(blocks))
        return [self.encrypt(pk, block) for block in blocks]

    def decrypt_message(self, encrypted: Sequence[EncryptedBlock], sk: PrivateKey) -> str:
        """Decrypt every block, strip the padding and decode the text."""
        decrypted = [self.decrypt(sk, ct) for ct in encrypted]
        self.logger.debug("decrypt_message: %d block(s) decrypted", len(decrypted))
        return blocks_to_text(strip_padding(decrypted), self.n)

    def get_key_sizes(self) -> dict:
        """Return nominal key and ciphertext sizes in bytes."""
        n, k, q = self.n, self.k, self.q

        # Each coefficient needs ceil(log2(q)) bits
        coeff_bits = q.bit_length()

        # Public key: t (k polynomials) + A (k² polynomials)
        pk_size = (k + k * k) * n * coeff_bits // 8

        # Secret key: s (k polynomials)
        sk_size = k * n * coeff_bits // 8

        # Ciphertext block: u (k polynomials) + v (1 polynomial)
        ct_size = (k + 1) * n * coeff_bits // 8

        return {
            "public_key_bytes": pk_size,
            "secret_key_bytes": sk_size,
            "ciphertext_block_bytes": ct_size,
            "n": n, "k": k, "q": q
        }


# =============================================================================
# Functional Interface
# =============================================================================

def generate_keys(params: SecurityParameters) -> Tuple[PublicKey, PrivateKey]:
    """Generate a keypair for the given parameter set."""
    return MLWE_PKE.from_params(params).keygen()


def encrypt_message(text: str, public_key: PublicKey) -> List[EncryptedBlock]:
    """Encrypt text under the public key's parameter set."""
    return MLWE_PKE.from_params(public_key.params).encrypt_message(text, public_key)


def decrypt_message(blocks: Sequence[EncryptedBlock], private_key: PrivateKey) -> str:
    """Decrypt blocks under the private key's parameter set."""
    return MLWE_PKE.from_params(private_key.params).decrypt_message(blocks, private_key)


if __name__ == "__main__":
    print("\n" + "=" * 70)
    print("  MLWE PKE SCHEME - ROUND TRIP CHECK")
    print("=" * 70)

    message = "Testing security levels!"
    all_passed = True

    for level in SECURITY_LEVELS:
        pke = MLWE_PKE.from_security_level(level)
        pk, sk = pke.keygen()
        recovered = pke.decrypt_message(pke.encrypt_message(message, pk), sk)
        if recovered == message:
            print(f"✓ {level}: Encryption/Decryption OK (n={pke.n}, k={pke.k}, q={pke.q})")
        else:
            print(f"✗ {level}: FAILED, got {recovered!r}")
            all_passed = False

    raise SystemExit(0 if all_passed else 1)
