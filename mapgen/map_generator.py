"""
Map Generator - Orchestrates the full map generation pipeline.

Phases, in order:
    1. Resolve the seed and site count, allocate (or reset) the grid
    2. Place the player hideout at the world centre and block its tiles
    3. Sample region sites with Poisson disk sampling
    4. Label every open tile with its nearest site
    5. Spawn villages and farms on unused sites
    6. Scatter decorative objects with octave noise

Each stochastic phase draws from its own RNG derived from the resolved
seed, so a fixed seed reproduces the map exactly.

Usage:
    from mapgen import GenerationSettings, MapGenerator

    generator = MapGenerator()
    grid = generator.generate(GenerationSettings(seed=42))
"""

import logging
import random
import time

from .object_placer import ObjectPlacer
from .poi import POIConfigRegistry, POITemplateRegistry, POIType, PointOfInterest, Rect
from .region_assigner import RegionAssigner, build_index
from .settings import GenerationSettings, compute_site_count
from .site_sampler import SiteSampler, resolve_seed
from .tile_grid import TileGrid

log = logging.getLogger(__name__)

# Offset added to the map seed for the POI spawner RNG
POI_SEED_OFFSET = 999

# Spawn attempts allowed per requested POI
POI_ATTEMPTS_PER_POI = 20

_SPAWN_NAMES = {
    POIType.VILLAGE: "Village",
    POIType.FARM: "Farm",
}


class MapGenerator:
    """
    Builds a populated :class:`TileGrid` from :class:`GenerationSettings`.

    The generator keeps the results of the last pass (sites, objects,
    seed, timing) for the debug surface.
    """

    def __init__(self, object_placer=None, poi_configs=None, poi_templates=None):
        self.site_sampler = SiteSampler()
        self.object_placer = object_placer if object_placer is not None else ObjectPlacer()
        self.poi_configs = poi_configs if poi_configs is not None else POIConfigRegistry()
        self.poi_templates = poi_templates if poi_templates is not None else POITemplateRegistry()
        self.region_assigner = RegionAssigner()
        self.hideout = None
        self.index = None
        self.last_seed = None
        self.last_site_count = 0
        self.last_elapsed_ms = 0.0

    # ------------------------------------------------------------------
    # Debug surface
    # ------------------------------------------------------------------

    @property
    def sites(self):
        return self.site_sampler.sites

    @property
    def objects(self):
        return self.object_placer.objects

    def get_closest_site_id(self, position):
        """Region id of the site nearest *position*, or -1 without sites."""
        if self.index is None:
            return -1
        return self.index.nearest(position)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def generate(self, settings=None):
        """
        Generate a new map.

        Args:
            settings: GenerationSettings (defaults when None).

        Returns:
            TileGrid -- the populated grid.
        """
        if settings is None:
            settings = GenerationSettings()

        grid = TileGrid()
        grid.initialize(settings.map_width, settings.map_height, settings.tile_size)
        self._run(grid, settings)
        return grid

    def regenerate(self, grid, settings=None):
        """
        Regenerate into an existing grid, keeping its dimensions.

        Returns:
            bool -- False when *grid* is None.
        """
        if grid is None:
            log.error("Cannot regenerate: grid is None")
            return False
        if settings is None:
            settings = GenerationSettings()

        grid.reset()
        self._run(grid, settings)
        return True

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(self, grid, settings):
        start = time.perf_counter()
        seed = resolve_seed(settings.seed)
        num_sites = compute_site_count(settings, grid.world_size)
        self.last_seed = seed
        self.last_site_count = num_sites

        log.info("=== Starting Map Generation ===")
        log.info("Map size: %dx%d tiles, tile size %.0f", grid.width, grid.height, grid.tile_size)
        log.info("Seed: %d, sites: %d, min distance: %.1f",
                 seed, num_sites, settings.min_site_distance)

        self.object_placer.clear_objects()

        self.hideout = self._place_hideout(grid)
        grid.mark_poi_tiles()

        self.site_sampler.generate(
            num_sites, self.hideout.position, settings.min_site_distance, seed,
            grid.world_size, hideout_exclusion=self.hideout.exclusion_radius,
            tile_size=grid.tile_size,
        )

        self.index = build_index(grid, self.sites, settings.min_site_distance)
        self.region_assigner.assign(grid, self.sites, self.index)

        self._spawn_pois(grid, settings, seed)
        grid.mark_poi_tiles()

        if settings.place_objects:
            self._place_objects(grid, settings, seed)
        else:
            log.info("Object placement disabled")

        self.last_elapsed_ms = (time.perf_counter() - start) * 1000.0
        log.info("=== Map Generation Complete (%.1f ms) ===", self.last_elapsed_ms)
        log.info("Sites: %d, POIs: %d, objects: %d",
                 len(self.sites), len(grid.pois), self.object_placer.object_count)

    def _make_poi(self, name, poi_type, position):
        poi = PointOfInterest(name, poi_type, position, self.poi_configs.size_for(poi_type))
        config = self.poi_configs.get_config(poi_type)
        if config is not None and config.template_name and \
                self.poi_templates.has_template(config.template_name):
            self.poi_templates.apply_template_collision(poi, config.template_name)
        return poi

    def _place_hideout(self, grid):
        world_w, world_h = grid.world_size
        hideout = self._make_poi("Player Hideout", POIType.PLAYER_HIDEOUT,
                                 (world_w / 2.0, world_h / 2.0))
        grid.add_poi(hideout)
        log.info("Hideout at (%.1f, %.1f), exclusion radius %.1f",
                 hideout.position[0], hideout.position[1], hideout.exclusion_radius)
        return hideout

    def _fits(self, grid, poi, margin_factor):
        """True if *poi* keeps its edge margin and overlaps no placed POI."""
        world_w, world_h = grid.world_size
        bounds = poi.bounds()
        margin = margin_factor * max(poi.size)
        inner = Rect(margin, margin, world_w - 2.0 * margin, world_h - 2.0 * margin)
        if (bounds.left < inner.left or bounds.top < inner.top or
                bounds.right > inner.right or bounds.bottom > inner.bottom):
            return False
        for other in grid.pois:
            if bounds.intersects(other.bounds()):
                return False
        return True

    def _spawn_pois(self, grid, settings, seed):
        """Place villages and farms at random unused sites."""
        quotas = {
            POIType.VILLAGE: max(0, settings.num_villages),
            POIType.FARM: max(0, settings.num_farms),
        }
        total = sum(quotas.values())
        if total == 0:
            return 0

        rng = random.Random(seed + POI_SEED_OFFSET)
        counters = {poi_type: 0 for poi_type in quotas}
        placed = 0
        attempts = 0
        max_attempts = total * POI_ATTEMPTS_PER_POI

        while placed < total and attempts < max_attempts:
            attempts += 1

            free_sites = [site for site in self.sites if not site.has_poi]
            if not free_sites:
                break

            site = free_sites[rng.randint(0, len(free_sites) - 1)]
            remaining = [t for t in (POIType.VILLAGE, POIType.FARM)
                         if counters[t] < quotas[t]]
            poi_type = remaining[rng.randint(0, len(remaining) - 1)]

            name = "{} {}".format(_SPAWN_NAMES[poi_type], counters[poi_type] + 1)
            poi = self._make_poi(name, poi_type, site.position)
            if not self._fits(grid, poi, settings.edge_margin_factor):
                log.debug("Rejected %s at site %d", name, site.region_id)
                continue

            grid.add_poi(poi)
            self.site_sampler.mark_site_with_poi(site.region_id)
            counters[poi_type] += 1
            placed += 1

        if placed < total:
            log.warning("Could only place %d of %d POIs after %d attempts",
                        placed, total, attempts)
        else:
            log.info("Placed %d POIs (%d villages, %d farms)", placed,
                     counters[POIType.VILLAGE], counters[POIType.FARM])
        return placed

    def _place_objects(self, grid, settings, seed):
        placer = self.object_placer
        if not placer.initialized and settings.object_definitions:
            placer.initialize(settings.object_atlas, settings.object_definitions)

        if not placer.initialized:
            log.info("Object placer not initialized, skipping object placement")
            return 0
        return placer.generate_objects(grid, settings.object_placement, seed)


def generate_map(settings=None, **kwargs):
    """
    Convenience wrapper: generate a map in one call.

    Keyword arguments are passed to :class:`MapGenerator`.

    Returns:
        (grid, generator) tuple.
    """
    generator = MapGenerator(**kwargs)
    grid = generator.generate(settings)
    return grid, generator
