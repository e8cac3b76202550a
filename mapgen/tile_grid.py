"""
Tile Grid - Row-major tile storage for a generated world map.

Tiles are stored row-major in three numpy arrays of shape
``(height, width)``:

    terrain   int8   TerrainType value
    walkable  bool   whether entities may stand on the tile
    region    int32  nearest-site region id (-1 = none / blocked)

A :class:`Tile` is a lightweight bounds-checked view onto one cell, so
callers can read and write individual tiles without copying.

The grid also owns the list of points of interest placed on the map.
:meth:`TileGrid.reset` clears tiles and POIs in place, keeping the
allocated arrays for cheap regeneration.
"""

import logging
from enum import IntEnum

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for mapgen. "
        "Install it with: pip install numpy"
    )

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Terrain classification
# ---------------------------------------------------------------------------

class TerrainType(IntEnum):
    """Terrain classification of a single tile."""
    UNKNOWN = 0       # Ungenerated
    GRASS = 1         # Open grassland
    FOREST = 2
    DEEP_FOREST = 3
    DIRT = 4          # Cleared / path areas
    WATER = 5
    STONE = 6
    POI = 7           # Covered by a blocking point of interest


TERRAIN_DEBUG_COLORS = {
    TerrainType.UNKNOWN: (0, 0, 0),
    TerrainType.GRASS: (100, 200, 100),
    TerrainType.FOREST: (50, 150, 50),
    TerrainType.DEEP_FOREST: (20, 100, 20),
    TerrainType.DIRT: (139, 90, 43),
    TerrainType.WATER: (50, 100, 200),
    TerrainType.STONE: (128, 128, 128),
    TerrainType.POI: (200, 50, 50),
}

# Shown for values outside the enum
_ERROR_COLOR = (255, 0, 255)


def terrain_debug_color(terrain):
    """Return the RGB debug colour for a terrain value."""
    try:
        return TERRAIN_DEBUG_COLORS[TerrainType(int(terrain))]
    except ValueError:
        return _ERROR_COLOR


# ---------------------------------------------------------------------------
# Tile view
# ---------------------------------------------------------------------------

class Tile:
    """
    View onto one grid cell.

    Reads and writes go straight to the owning grid's arrays.
    """

    __slots__ = ('_grid', 'x', 'y')

    def __init__(self, grid, x, y):
        self._grid = grid
        self.x = x
        self.y = y

    @property
    def terrain(self):
        return TerrainType(int(self._grid.terrain[self.y, self.x]))

    @terrain.setter
    def terrain(self, value):
        self._grid.terrain[self.y, self.x] = int(value)
        self._grid.version += 1

    @property
    def walkable(self):
        return bool(self._grid.walkable[self.y, self.x])

    @walkable.setter
    def walkable(self, value):
        self._grid.walkable[self.y, self.x] = bool(value)
        self._grid.version += 1

    @property
    def region(self):
        return int(self._grid.region[self.y, self.x])

    @region.setter
    def region(self, value):
        self._grid.region[self.y, self.x] = int(value)
        self._grid.version += 1

    @property
    def debug_color(self):
        return terrain_debug_color(self._grid.terrain[self.y, self.x])

    def __repr__(self):
        return "Tile({}, {}, {}, walkable={}, region={})".format(
            self.x, self.y, self.terrain.name, self.walkable, self.region
        )


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

class TileGrid:
    """
    2D tile grid with world/tile coordinate conversion and POI ownership.

    ``version`` increases on every mutation; render caches keyed on it
    know when to rebuild.
    """

    def __init__(self, width=0, height=0, tile_size=64.0):
        self.width = 0
        self.height = 0
        self.tile_size = float(tile_size)
        self.terrain = np.zeros((0, 0), dtype=np.int8)
        self.walkable = np.zeros((0, 0), dtype=bool)
        self.region = np.full((0, 0), -1, dtype=np.int32)
        self.pois = []
        self.version = 0
        if width and height:
            self.initialize(width, height, tile_size)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def initialize(self, width, height, tile_size):
        """
        Allocate storage for *width* x *height* tiles of *tile_size* pixels.

        All tiles start as UNKNOWN, unwalkable, region -1.
        """
        if width <= 0 or height <= 0:
            raise ValueError("Grid dimensions must be positive, got {}x{}".format(
                width, height))
        if tile_size <= 0:
            raise ValueError("tile_size must be positive, got {}".format(tile_size))

        self.width = int(width)
        self.height = int(height)
        self.tile_size = float(tile_size)
        self.terrain = np.zeros((self.height, self.width), dtype=np.int8)
        self.walkable = np.zeros((self.height, self.width), dtype=bool)
        self.region = np.full((self.height, self.width), -1, dtype=np.int32)
        self.pois = []
        self.version += 1

        world_w, world_h = self.world_size
        log.info("Grid initialized: %dx%d tiles (%.0fx%.0f pixels)",
                 self.width, self.height, world_w, world_h)

    def reset(self):
        """Clear tile state and POIs, keeping the allocated arrays."""
        self.pois = []
        self.terrain.fill(int(TerrainType.UNKNOWN))
        self.walkable.fill(False)
        self.region.fill(-1)
        self.version += 1
        log.info("Grid reset: %dx%d tiles cleared", self.width, self.height)

    # ------------------------------------------------------------------
    # Tile access
    # ------------------------------------------------------------------

    def is_valid_tile(self, x, y):
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile(self, x, y):
        """Return the :class:`Tile` at (*x*, *y*) or None when out of bounds."""
        if not self.is_valid_tile(x, y):
            return None
        return Tile(self, x, y)

    def set_tile(self, x, y, terrain=None, walkable=None, region=None):
        """
        Update any of the tile's fields.  Returns False when out of bounds.
        """
        if not self.is_valid_tile(x, y):
            return False
        if terrain is not None:
            self.terrain[y, x] = int(terrain)
        if walkable is not None:
            self.walkable[y, x] = bool(walkable)
        if region is not None:
            self.region[y, x] = int(region)
        self.version += 1
        return True

    def get_tile_at_world_pos(self, world_pos):
        tx, ty = self.world_to_tile(world_pos)
        return self.get_tile(tx, ty)

    def world_to_tile(self, world_pos):
        """Convert a world position to tile coordinates (floor division)."""
        return (int(world_pos[0] // self.tile_size),
                int(world_pos[1] // self.tile_size))

    def tile_to_world(self, x, y):
        """Return the world position of the centre of tile (*x*, *y*)."""
        half = self.tile_size / 2.0
        return (x * self.tile_size + half, y * self.tile_size + half)

    @property
    def world_size(self):
        return (self.width * self.tile_size, self.height * self.tile_size)

    @property
    def world_bounds(self):
        """(left, top, width, height) of the whole map in world space."""
        world_w, world_h = self.world_size
        return (0.0, 0.0, world_w, world_h)

    # ------------------------------------------------------------------
    # Points of interest
    # ------------------------------------------------------------------

    def add_poi(self, poi):
        if poi is None:
            return
        log.info("Added POI: %s at (%.1f, %.1f)",
                 poi.name, poi.position[0], poi.position[1])
        self.pois.append(poi)
        self.version += 1

    def is_inside_poi(self, world_pos, blocking_only=False):
        """True if *world_pos* lies inside any POI's bounds."""
        for poi in self.pois:
            if blocking_only and not poi.blocking:
                continue
            if poi.contains(world_pos):
                return True
        return False

    def mark_poi_tiles(self):
        """
        Mark every tile covered by a blocking POI as POI terrain.

        Marked tiles become unwalkable and lose their region id.

        Returns:
            int -- number of tiles covered.
        """
        marked = 0
        for poi in self.pois:
            if not poi.blocking:
                continue

            left, top, width, height = poi.bounds().as_tuple()
            x0, y0 = self.world_to_tile((left, top))
            x1, y1 = self.world_to_tile((left + width, top + height))
            x0 = max(x0, 0)
            y0 = max(y0, 0)
            x1 = min(x1, self.width - 1)
            y1 = min(y1, self.height - 1)
            if x0 > x1 or y0 > y1:
                continue

            self.terrain[y0:y1 + 1, x0:x1 + 1] = int(TerrainType.POI)
            self.walkable[y0:y1 + 1, x0:x1 + 1] = False
            self.region[y0:y1 + 1, x0:x1 + 1] = -1
            marked += (x1 - x0 + 1) * (y1 - y0 + 1)

        self.version += 1
        log.debug("Marked %d POI tiles", marked)
        return marked

    # ------------------------------------------------------------------
    # Debug queries
    # ------------------------------------------------------------------

    def blocked_mask(self):
        """Boolean array, True where the tile is POI terrain."""
        return self.terrain == int(TerrainType.POI)

    def region_boundaries(self):
        """
        Find edges between tiles of different regions.

        Returns:
            List of ((x, y), (nx, ny)) pairs where the right or bottom
            neighbour belongs to another region.  Tiles with region -1
            are ignored on either side.
        """
        edges = []
        region = self.region

        right = (region[:, :-1] != region[:, 1:]) & (region[:, :-1] >= 0) & (region[:, 1:] >= 0)
        for y, x in zip(*np.nonzero(right)):
            edges.append(((int(x), int(y)), (int(x) + 1, int(y))))

        down = (region[:-1, :] != region[1:, :]) & (region[:-1, :] >= 0) & (region[1:, :] >= 0)
        for y, x in zip(*np.nonzero(down)):
            edges.append(((int(x), int(y)), (int(x), int(y) + 1)))

        return edges

    def terrain_counts(self):
        """Return {TerrainType: tile count} for every terrain present."""
        values, counts = np.unique(self.terrain, return_counts=True)
        return {TerrainType(int(v)): int(c) for v, c in zip(values, counts)}

    def __repr__(self):
        return "TileGrid({}x{}, tile_size={}, pois={})".format(
            self.width, self.height, self.tile_size, len(self.pois)
        )
