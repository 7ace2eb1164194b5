"""
Seeded random source and the integer hash used to derive sub-seeds
"""
import numpy as np

MASK32 = 0xFFFFFFFF


def stable_mix(a, b, c, d):
    """
    Mix four integers into one 32-bit seed

    The result depends only on the inputs, never on interpreter hash
    randomization, so derived seeds are reproducible between runs.
    """
    h = 17
    h = ((h * 31) ^ a) & MASK32
    h = ((h * 31) ^ (b * 0x9E3779B9)) & MASK32
    h = ((h * 31) ^ (c * 0x85EBCA6B)) & MASK32
    h = ((h * 31) ^ (d * 0xC2B2AE35)) & MASK32
    h ^= h >> 16
    return h


def track_seed(seed, variant):
    """Seed for the generation RNG of one (seed, variant) pair"""
    return (seed ^ (variant * 0x9E3779B9) ^ 0x7F4A7C15) & MASK32


class SeededRng:
    def __init__(self, seed):
        self.seed = seed
        self._gen = np.random.default_rng(seed & MASK32)

    def value(self):
        return float(self._gen.random())

    def uniform(self, low, high):
        return low + (high - low) * self.value()

    def integers(self, low, high):
        """Integer in [low, high)"""
        return int(self._gen.integers(low, high))

    def chance(self, p):
        return self.value() < p
