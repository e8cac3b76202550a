"""
mapgen - Procedural tile-world map generator.

Builds a tile map from an integer seed: region sites are sampled with
Poisson disk sampling, every open tile is labelled with its nearest site,
a hideout and randomly sited villages and farms are stamped into the grid,
and decorative objects are scattered with fractal gradient noise.

Exports the generated map as JSON plus a debug PNG via map_exporter, and
checks generation invariants via MapValidator.
"""

from .noise_field import NoiseField
from .spatial_index import SpatialIndex
from .tile_grid import TerrainType, Tile, TileGrid, terrain_debug_color
from .poi import (Rect, POIType, PointOfInterest, POITypeConfig, POIConfigRegistry,
                  POITemplate, POITemplateRegistry, find_collision, collides_with_world)
from .site_sampler import (Site, SiteSampler, poisson_disk_sampling,
                           rejection_sampling, resolve_seed)
from .region_assigner import RegionAssigner, build_index
from .object_placer import (WorldObjectType, WorldObject, ObjectDefinition,
                            PlacementSettings, ObjectPlacer, parse_object_definitions)
from .settings import GenerationSettings, compute_site_count, load_settings, save_settings
from .map_generator import MapGenerator, generate_map
from .map_validator import MapValidator, ValidationResult, ValidationSeverity
from .map_exporter import export_map, render_debug_image, save_debug_image
