"""
Noise Field - Deterministic fractal gradient noise for object placement.

Implements Ken Perlin's improved noise (2002) over a 256-entry permutation
table.  The table is either the identity permutation (unseeded) or a
deterministic shuffle driven by ``random.Random(seed)``, then doubled to
512 entries so corner hashing never needs a modulo.

All outputs are remapped from the natural [-1, 1] range into [0, 1] so
they can be compared directly against placement thresholds.

Usage:
    from mapgen.noise_field import NoiseField

    field = NoiseField(seed=42)
    value = field.octave_noise2d(x * 0.1, y * 0.1, octaves=2)
"""

import logging
import math
import random

log = logging.getLogger(__name__)


class NoiseField:
    """
    3D improved gradient noise with seeded permutation table.

    Provides single-octave evaluation and fractal Brownian motion
    (octave noise) normalised to [0, 1].
    """

    def __init__(self, seed=None):
        """
        Args:
            seed: Integer seed for the permutation shuffle.  ``None`` keeps
                  the identity permutation.
        """
        self.seed = seed
        self._perm = self._generate_permutation(seed)
        if seed is not None:
            log.debug("NoiseField initialised with seed %d", seed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _generate_permutation(seed):
        """Build a 512-entry permutation table from *seed*."""
        p = list(range(256))
        if seed is not None:
            random.Random(seed).shuffle(p)
        return p + p  # double for wrapping

    @staticmethod
    def _fade(t):
        # 6t^5 - 15t^4 + 10t^3
        return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)

    @staticmethod
    def _lerp(t, a, b):
        return a + t * (b - a)

    @staticmethod
    def _grad(hash_val, x, y, z):
        """Dot product with one of the 12 cube-edge gradient directions."""
        h = hash_val & 15
        u = x if h < 8 else y
        if h < 4:
            v = y
        elif h == 12 or h == 14:
            v = x
        else:
            v = z
        return (u if (h & 1) == 0 else -u) + (v if (h & 2) == 0 else -v)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def noise(self, x, y, z=0.0):
        """
        Evaluate improved gradient noise at (*x*, *y*, *z*).

        Returns a float in [0.0, 1.0].
        """
        perm = self._perm
        lerp = self._lerp
        grad = self._grad

        fx = math.floor(x)
        fy = math.floor(y)
        fz = math.floor(z)

        # Unit cube containing the point
        xi = int(fx) & 255
        yi = int(fy) & 255
        zi = int(fz) & 255

        # Relative position inside the cube
        x -= fx
        y -= fy
        z -= fz

        u = self._fade(x)
        v = self._fade(y)
        w = self._fade(z)

        a = perm[xi] + yi
        aa = perm[a] + zi
        ab = perm[a + 1] + zi
        b = perm[xi + 1] + yi
        ba = perm[b] + zi
        bb = perm[b + 1] + zi

        x1 = lerp(u, grad(perm[aa], x, y, z),
                  grad(perm[ba], x - 1, y, z))
        x2 = lerp(u, grad(perm[ab], x, y - 1, z),
                  grad(perm[bb], x - 1, y - 1, z))
        x3 = lerp(u, grad(perm[aa + 1], x, y, z - 1),
                  grad(perm[ba + 1], x - 1, y, z - 1))
        x4 = lerp(u, grad(perm[ab + 1], x, y - 1, z - 1),
                  grad(perm[bb + 1], x - 1, y - 1, z - 1))

        result = lerp(w, lerp(v, x1, x2), lerp(v, x3, x4))

        # Remap [-1, 1] -> [0, 1]
        value = (result + 1.0) * 0.5
        if value < 0.0:
            return 0.0
        if value > 1.0:
            return 1.0
        return value

    def octave_noise(self, x, y, z, octaves, persistence=0.5):
        """
        Generate fractal Brownian motion (fBm) noise.

        Parameters:
            x, y, z:     Sample coordinates.
            octaves:     Number of noise layers (values below 1 use one).
            persistence: Amplitude decay per octave (0-1).

        Returns:
            float in [0.0, 1.0] -- the weighted sum divided by the total
            amplitude.
        """
        octaves = max(1, int(octaves))
        total = 0.0
        amplitude = 1.0
        frequency = 1.0
        max_amplitude = 0.0

        for _ in range(octaves):
            total += self.noise(x * frequency, y * frequency, z * frequency) * amplitude
            max_amplitude += amplitude
            amplitude *= persistence
            frequency *= 2.0

        if max_amplitude <= 0.0:
            return 0.0
        return total / max_amplitude

    def noise2d(self, x, y):
        """Evaluate noise on the z = 0 plane."""
        return self.noise(x, y, 0.0)

    def octave_noise2d(self, x, y, octaves, persistence=0.5):
        """Evaluate octave noise on the z = 0 plane."""
        return self.octave_noise(x, y, 0.0, octaves, persistence)
