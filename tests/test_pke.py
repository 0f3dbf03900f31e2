"""Tests for the MLWE PKE scheme.

Covers:
    - parameter presets and custom parameters
    - key generation shapes and secret ranges
    - single-block encrypt / decrypt
    - message round trips, measured as a pass rate per preset
    - the Alice / Bob scenario on L5 and the wrong-key negative
    - tampered ciphertexts, parameter mismatches, logger injection
"""

import logging
import unittest

import numpy as np

import pke_mlwe
from benchmark_pke import measure_round_trip_rate, random_message
from pke_mlwe import (
    MLWE_PKE,
    EncryptedBlock,
    ParameterMismatchError,
    PolynomialMatrix,
    RingElement,
    SecurityParameters,
    ShapeMismatchError,
    decrypt_message,
    encrypt_message,
    generate_keys,
    get_security_params,
)

ALICE_MESSAGE = "Hey Bob, Alice here, how are you?"


class TestParameters(unittest.TestCase):

    def test_presets(self):
        expected = {
            "L1": (3329, 256, 2, 3, 2),
            "L3": (3329, 256, 3, 2, 2),
            "L5": (3329, 256, 4, 2, 2),
        }
        for level, values in expected.items():
            p = get_security_params(level)
            self.assertEqual((p.q, p.n, p.k, p.eta1, p.eta2), values)

    def test_unknown_level(self):
        with self.assertRaises(ValueError):
            get_security_params("L9")

    def test_parameters_are_immutable(self):
        with self.assertRaises(AttributeError):
            get_security_params("L1").k = 5

    def test_default_level(self):
        self.assertEqual(MLWE_PKE().params, get_security_params("L5"))

    def test_custom_parameters(self):
        pke = MLWE_PKE(n=32, k=3)
        self.assertEqual(pke.params.name, "Custom")
        self.assertEqual((pke.n, pke.q, pke.k), (32, 3329, 3))
        self.assertEqual((pke.params.eta1, pke.params.eta2), (2, 2))

    def test_from_params_keeps_parameter_set(self):
        params = get_security_params("toy")
        pke = MLWE_PKE.from_params(params)
        self.assertIs(pke.params, params)
        self.assertEqual((pke.ring.n, pke.ring.q), (64, 3329))

    def test_params_argument_takes_precedence(self):
        pke = MLWE_PKE(n=32, security_level="L1", params=get_security_params("toy"))
        self.assertEqual(pke.params.name, "MLWE-Toy (Testing only)")

    def test_invalid_custom_parameters(self):
        with self.assertRaises(ValueError):
            MLWE_PKE(n=0)
        with self.assertRaises(ValueError):
            MLWE_PKE(q=1)
        with self.assertRaises(ValueError):
            MLWE_PKE(eta1=-1)

    def test_products_overflowing_int64_rejected(self):
        with self.assertRaises(ValueError):
            MLWE_PKE(q=2**30, n=256)
        with self.assertRaises(ValueError):
            SecurityParameters("big", 2**31, 8, 2, 2, 2, 0)
        # the largest q that still fits for n=256
        MLWE_PKE(q=2**27, n=256)

    def test_key_sizes(self):
        sizes = MLWE_PKE.from_security_level("L5").get_key_sizes()
        self.assertEqual(sizes["public_key_bytes"], 7680)
        self.assertEqual(sizes["secret_key_bytes"], 1536)
        self.assertEqual(sizes["ciphertext_block_bytes"], 1920)


class TestKeyGeneration(unittest.TestCase):

    def test_shapes_and_ranges(self):
        for level in ("toy", "L1"):
            pke = MLWE_PKE.from_security_level(level)
            pk, sk = pke.keygen()
            k = pke.k
            self.assertEqual(pk.t.shape, (k, 1))
            self.assertEqual(pk.A.shape, (k, k))
            self.assertEqual(sk.s.shape, (k, 1))
            for block in sk.s.blocks:
                self.assertTrue(np.all(np.abs(block.coeffs) <= pke.params.eta1))
            for block in pk.t.blocks:
                self.assertLess(block.degree, pke.n)

    def test_public_key_relation(self):
        pke = MLWE_PKE.from_security_level("toy", rng=np.random.default_rng(9))
        pk, sk = pke.keygen()
        noise = pk.t - pk.A * sk.s
        for block in noise.blocks:
            self.assertTrue(np.all(np.abs(block.coeffs) <= pke.params.eta2))

    def test_seeded_keygen_is_reproducible(self):
        pk1, sk1 = MLWE_PKE.from_security_level("toy", rng=np.random.default_rng(7)).keygen()
        pk2, sk2 = MLWE_PKE.from_security_level("toy", rng=np.random.default_rng(7)).keygen()
        self.assertEqual(pk1.t, pk2.t)
        self.assertEqual(pk1.A, pk2.A)
        self.assertEqual(sk1.s, sk2.s)


class TestSingleBlock(unittest.TestCase):

    def setUp(self):
        self.pke = MLWE_PKE.from_security_level("toy", rng=np.random.default_rng(1))
        self.pk, self.sk = self.pke.keygen()

    def test_round_trip(self):
        bits = np.random.default_rng(2).integers(0, 2, size=self.pke.n)
        ct = self.pke.encrypt(self.pk, bits)
        self.assertEqual(ct.u.shape, (self.pke.k, 1))
        self.assertEqual(ct.v.shape, (1, 1))
        np.testing.assert_array_equal(self.pke.decrypt(self.sk, ct), bits)

    def test_short_block_decrypts_to_full_length(self):
        ct = self.pke.encrypt(self.pk, [1, 0, 1])
        bits = self.pke.decrypt(self.sk, ct)
        self.assertEqual(len(bits), self.pke.n)
        self.assertEqual(bits[:3].tolist(), [1, 0, 1])
        self.assertFalse(np.any(bits[3:]))

    def test_all_zero_block(self):
        ct = self.pke.encrypt(self.pk, np.zeros(self.pke.n, dtype=np.int64))
        self.assertFalse(np.any(self.pke.decrypt(self.sk, ct)))

    def test_encryption_is_randomized(self):
        bits = np.ones(self.pke.n, dtype=np.int64)
        a = self.pke.encrypt(self.pk, bits)
        b = self.pke.encrypt(self.pk, bits)
        self.assertNotEqual(a.to_bytes(), b.to_bytes())

    def test_block_too_long(self):
        with self.assertRaises(ValueError):
            self.pke.encrypt(self.pk, np.zeros(self.pke.n + 1, dtype=np.int64))

    def test_non_binary_block(self):
        with self.assertRaises(ValueError):
            self.pke.encrypt(self.pk, [0, 1, 2])

    def test_malformed_ciphertext_shape(self):
        ct = self.pke.encrypt(self.pk, [1, 1])
        bad = EncryptedBlock(u=ct.v, v=ct.v)
        with self.assertRaises(ShapeMismatchError):
            self.pke.decrypt(self.sk, bad)


class TestMessageRoundTrip(unittest.TestCase):

    def test_toy_boundary_messages(self):
        pke = MLWE_PKE.from_security_level("toy")
        pk, sk = pke.keygen()
        samples = [
            "",
            "a",
            "8 chars!",            # exactly one 64-bit block
            "7 chars",             # marker exactly fills the block
            "x" * 16,
            "".join(chr(i) for i in range(32, 127)),
        ]
        for text in samples:
            self.assertEqual(pke.decrypt_message(pke.encrypt_message(text, pk), sk), text)

    def test_block_counts(self):
        pke = MLWE_PKE.from_security_level("toy")
        pk, _ = pke.keygen()
        self.assertEqual(len(pke.encrypt_message("", pk)), 1)
        self.assertEqual(len(pke.encrypt_message("8 chars!", pk)), 2)
        self.assertEqual(len(pke.encrypt_message("7 chars", pk)), 2)

    def test_empty_ciphertext_sequence(self):
        pke = MLWE_PKE.from_security_level("toy")
        _, sk = pke.keygen()
        self.assertEqual(pke.decrypt_message([], sk), "")

    def test_pass_rate_per_preset(self):
        trials = 24
        for seed, level in enumerate(("L1", "L3", "L5")):
            pke = MLWE_PKE.from_security_level(level, rng=np.random.default_rng(100 + seed))
            passes, total = measure_round_trip_rate(pke, trials, rng=np.random.default_rng(seed))
            rate = passes / total
            self.assertGreaterEqual(rate, 0.95, f"{level}: {passes}/{total} round trips ({rate:.2%})")

    def test_boundary_lengths_per_preset(self):
        rng = np.random.default_rng(31)
        # empty, short, marker fills a block, exact block, one over, two blocks, three blocks
        lengths = (0, 1, 31, 32, 33, 63, 64, 95)
        for level in ("L1", "L3", "L5"):
            pk, sk = generate_keys(get_security_params(level))
            for length in lengths:
                text = random_message(length, rng)
                self.assertEqual(decrypt_message(encrypt_message(text, pk), sk), text,
                                 f"{level}: length {length}")


class TestAliceBobScenario(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.pke = MLWE_PKE.from_security_level("L5")
        cls.alice_pk, cls.alice_sk = cls.pke.keygen()
        cls.bob_pk, cls.bob_sk = cls.pke.keygen()

    def test_matching_keypair(self):
        blocks = self.pke.encrypt_message(ALICE_MESSAGE, self.alice_pk)
        self.assertEqual(self.pke.decrypt_message(blocks, self.alice_sk), ALICE_MESSAGE)

    def test_wrong_private_key(self):
        blocks = self.pke.encrypt_message(ALICE_MESSAGE, self.bob_pk)
        self.assertNotEqual(self.pke.decrypt_message(blocks, self.alice_sk), ALICE_MESSAGE)

    def test_tampered_ciphertext_decrypts_to_garbage(self):
        blocks = self.pke.encrypt_message(ALICE_MESSAGE, self.alice_pk)
        ring = self.pke.ring
        flip = PolynomialMatrix.from_element(RingElement(np.full(ring.n, ring.q // 2), ring))
        tampered = [EncryptedBlock(u=blocks[0].u, v=blocks[0].v + flip)] + blocks[1:]
        self.assertNotEqual(self.pke.decrypt_message(tampered, self.alice_sk), ALICE_MESSAGE)

    def test_functional_interface(self):
        blocks = encrypt_message(ALICE_MESSAGE, self.bob_pk)
        self.assertEqual(decrypt_message(blocks, self.bob_sk), ALICE_MESSAGE)


class TestParameterMismatch(unittest.TestCase):

    def test_key_from_other_preset_rejected(self):
        toy = MLWE_PKE.from_security_level("toy")
        pk, sk = toy.keygen()
        other = MLWE_PKE.from_security_level("L1")
        with self.assertRaises(ParameterMismatchError):
            other.encrypt_message("hello", pk)
        with self.assertRaises(ParameterMismatchError):
            other.decrypt_message(toy.encrypt_message("hello", pk), sk)

    def test_generate_keys_uses_params(self):
        params = get_security_params("toy")
        pk, sk = generate_keys(params)
        self.assertEqual(pk.params, params)
        self.assertEqual(sk.params, params)
        self.assertEqual(decrypt_message(encrypt_message("toy", pk), sk), "toy")


class TestLogging(unittest.TestCase):

    def test_default_logger(self):
        self.assertIs(MLWE_PKE.from_security_level("toy").logger, logging.getLogger(pke_mlwe.__name__))

    def test_injected_logger_receives_traces(self):
        logger = logging.getLogger("tests.pke.trace")
        pke = MLWE_PKE.from_security_level("toy", logger=logger)
        with self.assertLogs(logger, level="DEBUG") as captured:
            pk, sk = pke.keygen()
            pke.decrypt_message(pke.encrypt_message("log me", pk), sk)
        output = "\n".join(captured.output)
        for name in ("keygen t", "encrypt u", "encrypt v", "decrypt d", "decrypt_message"):
            self.assertIn(name, output)
        self.assertTrue(all(line.startswith("DEBUG:") for line in captured.output))

    def test_disabled_logger_is_noop(self):
        logger = logging.getLogger("tests.pke.silent")
        logger.disabled = True
        try:
            pke = MLWE_PKE.from_security_level("toy", logger=logger)
            pk, sk = pke.keygen()
            self.assertEqual(pke.decrypt_message(pke.encrypt_message("quiet", pk), sk), "quiet")
        finally:
            logger.disabled = False


if __name__ == "__main__":
    unittest.main()
