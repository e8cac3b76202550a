"""
Generation settings and their JSON representation.

Settings files are plain JSON objects whose keys mirror the attributes of
:class:`GenerationSettings`; ``object_placement`` is a nested object
holding :class:`PlacementSettings` fields::

    {
        "map_width": 128,
        "map_height": 128,
        "voronoi_sites": 20,
        "seed": 42,
        "object_placement": {"frequency": 0.08, "placement_threshold": 0.65}
    }
"""

import json
import logging
import os

from .object_placer import PlacementSettings

log = logging.getLogger(__name__)

# Density class -> divisor applied to (world area / min_site_distance^2)
DENSITY_FACTORS = {
    'sparse': 4.0,
    'normal': 2.0,
    'dense': 1.0,
}


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def load_json(filepath):
    """
    Load and parse a JSON file.

    Args:
        filepath: Path to the JSON file.

    Returns:
        dict: Parsed JSON data.
    """
    with open(filepath, 'r') as f:
        return json.load(f)


def save_json(filepath, data, indent=2):
    """
    Write a dict to a JSON file, creating parent directories as needed.
    """
    parent = os.path.dirname(filepath)
    if parent and not os.path.exists(parent):
        os.makedirs(parent)
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=indent)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class GenerationSettings:
    """
    Parameters of one map generation pass.

    Attributes:
        map_width, map_height: Grid size in tiles.
        tile_size:             Tile edge length in world pixels.
        voronoi_sites:         Requested site count when no density is set.
        site_density:          None, 'sparse', 'normal', 'dense' or 'auto';
                               derives the site count from the world area.
        min_site_distance:     Minimum distance between sites in pixels.
        seed:                  RNG seed; 0 picks a random seed.
        num_villages:          Villages to spawn.
        num_farms:             Farms to spawn.
        edge_margin_factor:    POIs keep this fraction of their larger side
                               away from the map edge.
        place_objects:         Run the object placement phase.
        object_atlas:          Object atlas image path.
        object_definitions:    Object definitions file path.
        object_placement:      PlacementSettings for the object phase.
    """

    _FIELDS = (
        'map_width', 'map_height', 'tile_size', 'voronoi_sites',
        'site_density', 'min_site_distance', 'seed', 'num_villages',
        'num_farms', 'edge_margin_factor', 'place_objects',
        'object_atlas', 'object_definitions', 'object_placement',
    )

    def __init__(self, map_width=128, map_height=128, tile_size=64.0,
                 voronoi_sites=20, site_density=None, min_site_distance=400.0,
                 seed=0, num_villages=1, num_farms=1, edge_margin_factor=0.25,
                 place_objects=True, object_atlas="", object_definitions="",
                 object_placement=None):
        self.map_width = int(map_width)
        self.map_height = int(map_height)
        self.tile_size = float(tile_size)
        self.voronoi_sites = int(voronoi_sites)
        self.site_density = site_density
        self.min_site_distance = float(min_site_distance)
        self.seed = int(seed) if seed is not None else 0
        self.num_villages = int(num_villages)
        self.num_farms = int(num_farms)
        self.edge_margin_factor = float(edge_margin_factor)
        self.place_objects = bool(place_objects)
        self.object_atlas = object_atlas
        self.object_definitions = object_definitions
        if object_placement is None:
            object_placement = PlacementSettings()
        self.object_placement = object_placement

    @property
    def world_size(self):
        return (self.map_width * self.tile_size, self.map_height * self.tile_size)

    def site_count(self):
        return compute_site_count(self)

    @classmethod
    def from_dict(cls, data):
        """Build settings from a dict; unknown keys are logged and ignored."""
        kwargs = {}
        for key, value in data.items():
            if key not in cls._FIELDS:
                log.warning("Ignoring unknown setting: %s", key)
                continue
            kwargs[key] = value

        placement = kwargs.get('object_placement')
        if isinstance(placement, dict):
            kwargs['object_placement'] = PlacementSettings.from_dict(placement)

        return cls(**kwargs)

    def to_dict(self):
        data = {}
        for key in self._FIELDS:
            data[key] = getattr(self, key)
        data['object_placement'] = self.object_placement.to_dict()
        return data

    def __repr__(self):
        return "GenerationSettings({}x{} tiles, sites={}, seed={})".format(
            self.map_width, self.map_height, self.voronoi_sites, self.seed
        )


def compute_site_count(settings, world_size=None):
    """
    Number of sites to request for *settings*.

    *world_size* overrides the settings' own world size, for grids whose
    dimensions were fixed earlier (regeneration).

    Without a density class this is ``voronoi_sites``.  With one, the world
    area is divided by ``min_site_distance^2`` times the class factor, with
    a floor of one site.

    Raises:
        ValueError: If ``site_density`` names an unknown class.
    """
    density = settings.site_density
    if density is None:
        return settings.voronoi_sites

    if density == 'auto':
        density = 'normal'
    if density not in DENSITY_FACTORS:
        raise ValueError("Unknown site density '{}'. Valid: {}".format(
            settings.site_density, ', '.join(sorted(DENSITY_FACTORS) + ['auto'])))

    world_w, world_h = world_size if world_size is not None else settings.world_size
    spacing_sq = settings.min_site_distance * settings.min_site_distance
    if spacing_sq <= 0:
        return settings.voronoi_sites

    count = int((world_w * world_h) / (spacing_sq * DENSITY_FACTORS[density]))
    return max(1, count)


def load_settings(filepath):
    """Load :class:`GenerationSettings` from a JSON file."""
    data = load_json(filepath)
    log.info("Loaded settings from %s", filepath)
    return GenerationSettings.from_dict(data)


def save_settings(filepath, settings):
    """Write *settings* to a JSON file."""
    save_json(filepath, settings.to_dict())
    log.info("Saved settings to %s", filepath)
