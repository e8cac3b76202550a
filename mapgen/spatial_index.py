"""
Spatial Index - Uniform bucket grid for neighbour queries over sites.

World space is divided into square cells of ``cell_size``.  Each cell key
(``cy * grid_w + cx``) maps to the ids inserted into it.  With a cell size
equal to the minimum site distance, the 3x3 neighbourhood around a query
point covers every entry within one cell of it, so nearest-site lookups
touch a handful of buckets instead of every site.
"""

import logging
import math

log = logging.getLogger(__name__)


class SpatialIndex:
    """Bucket hash of 2D points keyed by integer ids."""

    def __init__(self):
        self.cell_size = 1.0
        self.grid_w = 0
        self.grid_h = 0
        self._buckets = {}
        self._positions = {}

    def initialize(self, world_width, world_height, cell_size):
        """
        Size the bucket grid for a world of the given extent.

        Args:
            world_width, world_height: World size in pixels.
            cell_size: Bucket edge length (usually the minimum site distance).
        """
        if cell_size <= 0:
            raise ValueError("cell_size must be positive, got {}".format(cell_size))

        self.cell_size = float(cell_size)
        self.grid_w = max(1, int(math.ceil(world_width / self.cell_size)))
        self.grid_h = max(1, int(math.ceil(world_height / self.cell_size)))
        self.clear()
        log.debug("SpatialIndex: %dx%d cells of %.1f",
                  self.grid_w, self.grid_h, self.cell_size)

    def clear(self):
        self._buckets = {}
        self._positions = {}

    def __len__(self):
        return len(self._positions)

    # ------------------------------------------------------------------
    # Cell helpers
    # ------------------------------------------------------------------

    def _cell_coords(self, position):
        cx = int(position[0] // self.cell_size)
        cy = int(position[1] // self.cell_size)
        cx = min(max(cx, 0), self.grid_w - 1)
        cy = min(max(cy, 0), self.grid_h - 1)
        return cx, cy

    def _key(self, cx, cy):
        return cy * self.grid_w + cx

    def _collect(self, min_cx, min_cy, max_cx, max_cy):
        ids = []
        for cy in range(max(min_cy, 0), min(max_cy, self.grid_h - 1) + 1):
            for cx in range(max(min_cx, 0), min(max_cx, self.grid_w - 1) + 1):
                bucket = self._buckets.get(self._key(cx, cy))
                if bucket:
                    ids.extend(bucket)
        return ids

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, entry_id, position):
        """Insert *entry_id* at world *position* ``(x, y)``."""
        cx, cy = self._cell_coords(position)
        self._buckets.setdefault(self._key(cx, cy), []).append(entry_id)
        self._positions[entry_id] = (float(position[0]), float(position[1]))

    def position_of(self, entry_id):
        return self._positions.get(entry_id)

    def query(self, position):
        """
        Return ids in the 3x3 block of cells around *position*.

        Ids come back in row-major cell order, then insertion order, so
        callers that break ties by first occurrence are deterministic.
        """
        cx, cy = self._cell_coords(position)
        return self._collect(cx - 1, cy - 1, cx + 1, cy + 1)

    def query_radius(self, position, radius):
        """Return ids in every cell overlapping the square of half-side *radius*."""
        return self._collect(*self._radius_cells(position, radius))

    def _radius_cells(self, position, radius):
        min_cx, min_cy = self._cell_coords((position[0] - radius, position[1] - radius))
        max_cx, max_cy = self._cell_coords((position[0] + radius, position[1] + radius))
        return min_cx, min_cy, max_cx, max_cy

    def nearest(self, position):
        """
        Return the id of the entry closest to *position*, or -1 when empty.

        Scans the 3x3 neighbourhood first.  When the best candidate lies
        further than one cell away a closer entry could sit outside that
        block, so the search widens to the square covering the best
        distance, or to every entry when that is fewer lookups than the
        square's cells.  An empty neighbourhood goes straight to a full
        scan, which is already exact.
        """
        if not self._positions:
            return -1

        px, py = position[0], position[1]
        candidates = self.query(position)
        if not candidates:
            return self._closest(px, py, self._positions.keys())[0]

        best_id, best_dist_sq = self._closest(px, py, candidates)
        if best_dist_sq <= self.cell_size * self.cell_size:
            return best_id

        min_cx, min_cy, max_cx, max_cy = self._radius_cells(position, math.sqrt(best_dist_sq))
        cells = (max_cx - min_cx + 1) * (max_cy - min_cy + 1)
        if cells > len(self._positions):
            wider = self._positions.keys()
        else:
            wider = self._collect(min_cx, min_cy, max_cx, max_cy)
        return self._closest(px, py, wider)[0]

    def _closest(self, px, py, candidates):
        best_id = -1
        best_dist_sq = float('inf')
        positions = self._positions
        for entry_id in candidates:
            ex, ey = positions[entry_id]
            dx = ex - px
            dy = ey - py
            dist_sq = dx * dx + dy * dy
            # strict < keeps the first-encountered id on ties
            if dist_sq < best_dist_sq:
                best_dist_sq = dist_sq
                best_id = entry_id
        return best_id, best_dist_sq
