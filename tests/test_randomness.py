import os
import random
import unittest
from unittest import mock

from certprep.util.randomness import make_rng, sample, shuffle_in_place


class RandomnessTests(unittest.TestCase):
    def test_seed_env(self) -> None:
        with mock.patch.dict(os.environ, {"SEED": "11"}):
            a = [make_rng().random() for _ in range(1)]
            b = [make_rng().random() for _ in range(1)]
        self.assertEqual(a, b)

    def test_bad_seed_env_ignored(self) -> None:
        with mock.patch.dict(os.environ, {"SEED": "abc"}):
            self.assertIsInstance(make_rng(), random.Random)

    def test_shuffle_is_a_permutation(self) -> None:
        items = list(range(20))
        shuffle_in_place(items, random.Random(4))
        self.assertEqual(sorted(items), list(range(20)))
        self.assertNotEqual(items, list(range(20)))

    def test_sample_bounds(self) -> None:
        rng = random.Random(1)
        self.assertEqual(sample([1, 2, 3], -2, rng), [])
        self.assertEqual(sorted(sample([1, 2, 3], 10, rng)), [1, 2, 3])
        self.assertEqual(len(set(sample(list(range(10)), 4, rng))), 4)


if __name__ == "__main__":
    unittest.main()
