"""
Site Sampler - Well-spaced region sites for nearest-site partitioning.

Two strategies share one signature:

    poisson_disk_sampling -- Bridson's algorithm, the canonical path.
    rejection_sampling    -- uniform candidates with brute-force spacing
                             checks; kept as a reference oracle for tests
                             and distribution comparisons.

Both honour a minimum pairwise distance and a circular exclusion zone
(the hideout), snap accepted points to tile centres when a tile size is
given, and stop at a fixed attempt budget instead of looping forever.

:class:`SiteSampler` wraps the samplers, turns points into :class:`Site`
records with region ids 0..n-1 and keeps them for debug queries.
"""

import logging
import math
import random

log = logging.getLogger(__name__)

# Candidates tried around an active point before it is retired
POISSON_CANDIDATES = 30

# Tries to find a first sample outside the exclusion zone
INITIAL_SAMPLE_ATTEMPTS = 1000

# Rejection sampling budget per requested site
REJECTION_ATTEMPTS_PER_SITE = 1000


def resolve_seed(seed):
    """
    Return *seed* unchanged, or a fresh non-reproducible seed for 0 / None.
    """
    if seed:
        return int(seed)
    return random.SystemRandom().randrange(1, 2 ** 32)


# ---------------------------------------------------------------------------
# Site record
# ---------------------------------------------------------------------------

class Site:
    """
    Region seed point.

    Attributes:
        position:  (x, y) world position (a tile centre after snapping).
        tile:      (tx, ty) tile the site sits on.
        region_id: Unique id, equal to the site's index in the sample.
        has_poi:   Set when the POI spawner claims this site.
    """

    __slots__ = ('position', 'tile', 'region_id', 'has_poi')

    def __init__(self, position, tile, region_id):
        self.position = (float(position[0]), float(position[1]))
        self.tile = (int(tile[0]), int(tile[1]))
        self.region_id = region_id
        self.has_poi = False

    def to_dict(self):
        return {
            'region_id': self.region_id,
            'position': list(self.position),
            'tile': list(self.tile),
            'has_poi': self.has_poi,
        }

    def __repr__(self):
        return "Site({}, pos=({:.1f}, {:.1f}), has_poi={})".format(
            self.region_id, self.position[0], self.position[1], self.has_poi
        )


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _snap(x, y, tile_size):
    """Move (x, y) to the centre of the tile containing it."""
    if not tile_size:
        return x, y
    half = tile_size / 2.0
    return (math.floor(x / tile_size) * tile_size + half,
            math.floor(y / tile_size) * tile_size + half)


def _outside_exclusion(x, y, exclusion):
    if exclusion is None:
        return True
    (ex, ey), radius = exclusion
    dx = x - ex
    dy = y - ey
    return dx * dx + dy * dy >= radius * radius


# ---------------------------------------------------------------------------
# Poisson disk sampling
# ---------------------------------------------------------------------------

def poisson_disk_sampling(width, height, min_distance, max_points=None,
                          exclusion=None, tile_size=None,
                          max_attempts=POISSON_CANDIDATES, rng=None):
    """
    Bridson's Poisson disk sampling in a rectangular domain.

    Parameters:
        width, height:  Domain size.
        min_distance:   Minimum distance between any two samples.
        max_points:     Stop once this many samples are accepted (None = fill).
        exclusion:      ((x, y), radius) circle no sample may fall inside.
        tile_size:      Snap every sample to the centre of its tile.
        max_attempts:   Candidates per active sample before rejection.
        rng:            random.Random instance (for reproducibility).

    Returns:
        List of (x, y) tuples, in acceptance order.
    """
    if rng is None:
        rng = random.Random()

    if min_distance <= 0 or width <= 0 or height <= 0:
        return []
    if max_points is not None and max_points <= 0:
        return []

    cell_size = min_distance / math.sqrt(2.0)
    min_dist_sq = min_distance * min_distance
    grid = {}  # (gx, gy) -> point index

    points = []
    active = []

    # Seed point
    seed_point = None
    for _ in range(INITIAL_SAMPLE_ATTEMPTS):
        x0, y0 = _snap(rng.uniform(0, width), rng.uniform(0, height), tile_size)
        if 0 <= x0 < width and 0 <= y0 < height and _outside_exclusion(x0, y0, exclusion):
            seed_point = (x0, y0)
            break

    if seed_point is None:
        log.warning("Poisson sampling: no valid initial sample after %d attempts",
                    INITIAL_SAMPLE_ATTEMPTS)
        return []

    points.append(seed_point)
    active.append(0)
    grid[(int(seed_point[0] / cell_size), int(seed_point[1] / cell_size))] = 0

    while active and (max_points is None or len(points) < max_points):
        idx = rng.randint(0, len(active) - 1)
        px, py = points[active[idx]]
        found = False

        for _ in range(max_attempts):
            angle = rng.uniform(0, 2.0 * math.pi)
            dist = rng.uniform(min_distance, 2.0 * min_distance)
            nx = px + dist * math.cos(angle)
            ny = py + dist * math.sin(angle)

            if nx < 0 or nx >= width or ny < 0 or ny >= height:
                continue

            nx, ny = _snap(nx, ny, tile_size)
            if nx >= width or ny >= height:
                continue

            if not _outside_exclusion(nx, ny, exclusion):
                continue

            gnx = int(nx / cell_size)
            gny = int(ny / cell_size)

            # Check neighbours in a 5x5 grid window
            too_close = False
            for dx in range(-2, 3):
                for dy in range(-2, 3):
                    key = (gnx + dx, gny + dy)
                    if key in grid:
                        ox, oy = points[grid[key]]
                        if (nx - ox) ** 2 + (ny - oy) ** 2 < min_dist_sq:
                            too_close = True
                            break
                if too_close:
                    break

            if not too_close:
                new_idx = len(points)
                points.append((nx, ny))
                active.append(new_idx)
                grid[(gnx, gny)] = new_idx
                found = True
                break

        if not found:
            active.pop(idx)

    return points


# ---------------------------------------------------------------------------
# Rejection sampling (reference)
# ---------------------------------------------------------------------------

def rejection_sampling(width, height, min_distance, num_points,
                       exclusion=None, tile_size=None, rng=None):
    """
    Uniform rejection sampling with the same constraints as the Poisson path.

    Gives up after ``num_points * REJECTION_ATTEMPTS_PER_SITE`` candidates.

    Returns:
        List of (x, y) tuples.
    """
    if rng is None:
        rng = random.Random()

    if num_points <= 0 or width <= 0 or height <= 0:
        return []

    min_dist_sq = min_distance * min_distance
    points = []
    attempts = 0
    max_attempts = num_points * REJECTION_ATTEMPTS_PER_SITE

    while len(points) < num_points and attempts < max_attempts:
        attempts += 1
        x, y = _snap(rng.uniform(0, width), rng.uniform(0, height), tile_size)
        if x >= width or y >= height:
            continue
        if not _outside_exclusion(x, y, exclusion):
            continue
        if any((x - ox) ** 2 + (y - oy) ** 2 < min_dist_sq for ox, oy in points):
            continue
        points.append((x, y))

    return points


# ---------------------------------------------------------------------------
# SiteSampler
# ---------------------------------------------------------------------------

class SiteSampler:
    """
    Produces and holds the region sites of one generation pass.
    """

    def __init__(self):
        self.sites = []
        self._by_region = {}

    def clear(self):
        self.sites = []
        self._by_region = {}

    def generate(self, num_sites, hideout_position, min_site_distance, seed,
                 world_size, hideout_exclusion=0.0, tile_size=None):
        """
        Sample up to *num_sites* sites with Poisson disk sampling.

        Args:
            num_sites:         Requested site count.
            hideout_position:  (x, y) centre of the exclusion zone.
            min_site_distance: Minimum pairwise distance in pixels.
            seed:              RNG seed (0 / None = non-reproducible).
            world_size:        (width, height) of the world in pixels.
            hideout_exclusion: Radius around the hideout kept free of sites.
            tile_size:         Snap sites to tile centres of this size.

        Returns:
            List of Site records (also stored on ``self.sites``).
        """
        rng = random.Random(resolve_seed(seed))
        exclusion = (hideout_position, hideout_exclusion) if hideout_position is not None else None

        points = poisson_disk_sampling(
            world_size[0], world_size[1], min_site_distance,
            max_points=num_sites, exclusion=exclusion, tile_size=tile_size,
            rng=rng,
        )
        return self._store(points, num_sites, tile_size, "Poisson")

    def generate_rejection(self, num_sites, hideout_position, min_site_distance,
                           seed, world_size, hideout_exclusion=0.0, tile_size=None):
        """Same contract as :meth:`generate`, using rejection sampling."""
        rng = random.Random(resolve_seed(seed))
        exclusion = (hideout_position, hideout_exclusion) if hideout_position is not None else None

        points = rejection_sampling(
            world_size[0], world_size[1], min_site_distance, num_sites,
            exclusion=exclusion, tile_size=tile_size, rng=rng,
        )
        return self._store(points, num_sites, tile_size, "Rejection")

    def _store(self, points, requested, tile_size, label):
        self.clear()
        for region_id, (x, y) in enumerate(points):
            if tile_size:
                tile = (int(x // tile_size), int(y // tile_size))
            else:
                tile = (int(x), int(y))
            site = Site((x, y), tile, region_id)
            self.sites.append(site)
            self._by_region[region_id] = site

        if len(self.sites) < requested:
            log.warning("%s sampling: could only place %d of %d sites",
                        label, len(self.sites), requested)
        else:
            log.info("%s sampling: placed %d sites", label, len(self.sites))
        return self.sites

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_site(self, region_id):
        return self._by_region.get(region_id)

    def mark_site_with_poi(self, region_id):
        site = self._by_region.get(region_id)
        if site is None:
            return False
        site.has_poi = True
        return True

    def site_positions(self):
        return [site.position for site in self.sites]
