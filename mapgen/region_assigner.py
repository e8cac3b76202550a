"""
Region Assigner - Labels every open tile with its nearest site.

Nearest-site labelling is the discrete counterpart of a Voronoi diagram:
only per-tile region ids are computed, never polygonal cell boundaries.
Lookups go through a :class:`SpatialIndex` built over the sites, so the
cost per tile is bounded by local site density instead of the site count.
"""

import logging

from .spatial_index import SpatialIndex
from .tile_grid import TerrainType

log = logging.getLogger(__name__)


def build_index(grid, sites, cell_size):
    """
    Build a :class:`SpatialIndex` over *sites* covering *grid*'s world.

    Args:
        grid:      TileGrid the sites live on.
        sites:     Iterable of Site records.
        cell_size: Bucket size, normally the minimum site distance.
    """
    world_w, world_h = grid.world_size
    index = SpatialIndex()
    index.initialize(world_w, world_h, cell_size)
    for site in sites:
        index.insert(site.region_id, site.position)
    return index


class RegionAssigner:
    """
    Assigns region ids, terrain and walkability in a single grid pass.

    POI tiles are skipped entirely and keep region id -1.
    """

    def __init__(self, default_terrain=TerrainType.GRASS):
        self.default_terrain = default_terrain

    def assign(self, grid, sites, index):
        """
        Label every non-POI tile with the id of the nearest site.

        Args:
            grid:  TileGrid to update in place.
            sites: Site records the index was built from.
            index: SpatialIndex over *sites*.

        Returns:
            int -- number of tiles assigned.
        """
        if not sites:
            log.warning("No sites available; open tiles keep region -1")

        blocked = grid.blocked_mask()
        region = grid.region
        terrain = grid.terrain
        walkable = grid.walkable
        default_terrain = int(self.default_terrain)
        tile_to_world = grid.tile_to_world
        has_sites = len(index) > 0

        assigned = 0
        for y in range(grid.height):
            for x in range(grid.width):
                if blocked[y, x]:
                    continue

                if has_sites:
                    region[y, x] = index.nearest(tile_to_world(x, y))
                else:
                    region[y, x] = -1
                terrain[y, x] = default_terrain
                walkable[y, x] = True
                assigned += 1

        grid.version += 1
        log.info("Assigned %d tiles to %d regions", assigned, len(sites))
        return assigned
