"""
Object Placer - Noise-driven scattering of decorative world objects.

Objects (tree tops, roots, ...) are placed by walking the tile grid at a
fixed stride, evaluating octave noise at each sampled tile centre and
instantiating an object wherever the value clears a threshold.  Noise
coherence produces natural clusters; no further spacing is enforced.

Object definitions come from a plain-text atlas description, one object
per line::

    Name,X,Y,Width,Height

where (X, Y, Width, Height) is the sub-rectangle of the object atlas.
Display size is half the atlas size.

Usage:
    from mapgen.object_placer import ObjectPlacer, PlacementSettings

    placer = ObjectPlacer()
    if placer.initialize('forest_atlas.png', 'forest-atlas-points.txt'):
        placer.generate_objects(grid, PlacementSettings(), seed=42)
"""

import logging
import os
from enum import Enum

from .noise_field import NoiseField
from .poi import Rect
from .tile_grid import TerrainType

log = logging.getLogger(__name__)

# Offset added to the map seed so object noise is decorrelated from sites
OBJECT_SEED_OFFSET = 1000

# Atlas pixels -> world pixels
DEFINITION_SCALE = 0.5

# Bounds used when an object has no display size
_FALLBACK_BOUNDS_SIZE = 32.0


class WorldObjectType(Enum):
    SMALL_ROOT = "SmallRoot"
    TREE_TOP_1 = "TreeTop_1"
    TREE_TOP_2 = "TreeTop_2"
    LARGE_ROOT = "LargeRoot"
    SMALL_ROOT_BASIC = "SmallRoot_Basic"


_TYPES_BY_NAME = {t.value: t for t in WorldObjectType}


# ---------------------------------------------------------------------------
# Data holders
# ---------------------------------------------------------------------------

class ObjectDefinition:
    """Atlas region and world display size of one object type."""

    __slots__ = ('name', 'object_type', 'atlas_rect', 'size')

    def __init__(self, name, object_type, atlas_rect, size):
        self.name = name
        self.object_type = object_type
        self.atlas_rect = tuple(atlas_rect)
        self.size = (float(size[0]), float(size[1]))

    def __repr__(self):
        return "ObjectDefinition({!r}, atlas={}, size={})".format(
            self.name, self.atlas_rect, self.size
        )


class WorldObject:
    """A placed decorative object.  Independent of the grid once placed."""

    __slots__ = ('object_type', 'position', 'tile', 'atlas_rect', 'size')

    def __init__(self, object_type, position, tile=None, atlas_rect=None, size=(0.0, 0.0)):
        self.object_type = object_type
        self.position = (float(position[0]), float(position[1]))
        self.tile = tile
        self.atlas_rect = atlas_rect
        self.size = (float(size[0]), float(size[1]))

    def bounds(self):
        """Render bounds centred on the position."""
        w, h = self.size
        if w <= 0 or h <= 0:
            w = h = _FALLBACK_BOUNDS_SIZE
        return Rect(self.position[0] - w / 2.0, self.position[1] - h / 2.0, w, h)

    def to_dict(self):
        return {
            'type': self.object_type.value,
            'position': list(self.position),
            'tile': list(self.tile) if self.tile is not None else None,
            'atlas_rect': list(self.atlas_rect) if self.atlas_rect is not None else None,
            'size': list(self.size),
        }

    def __repr__(self):
        return "WorldObject({}, ({:.1f}, {:.1f}))".format(
            self.object_type.name, self.position[0], self.position[1]
        )


class PlacementSettings:
    """
    Configuration for noise-based placement.

    Attributes:
        frequency:           Noise coordinate scale (lower = larger patches).
        octaves:             Noise layers summed.
        persistence:         Amplitude decay per octave.
        placement_threshold: Place only where noise exceeds this.
        object_type:         WorldObjectType to instantiate.
        respect_pois:        Skip tiles inside blocking POI bounds.
        grass_only:          Only place on GRASS tiles.
        sample_step:         Evaluate every Nth tile in each direction.
    """

    def __init__(self, frequency=0.1, octaves=2, persistence=0.5,
                 placement_threshold=0.6, object_type=WorldObjectType.SMALL_ROOT,
                 respect_pois=True, grass_only=True, sample_step=2):
        self.frequency = float(frequency)
        self.octaves = int(octaves)
        self.persistence = float(persistence)
        self.placement_threshold = float(placement_threshold)
        self.object_type = object_type
        self.respect_pois = respect_pois
        self.grass_only = grass_only
        self.sample_step = max(1, int(sample_step))

    @classmethod
    def from_dict(cls, data):
        kwargs = dict(data)
        if 'object_type' in kwargs and not isinstance(kwargs['object_type'], WorldObjectType):
            kwargs['object_type'] = WorldObjectType(kwargs['object_type'])
        return cls(**kwargs)

    def to_dict(self):
        return {
            'frequency': self.frequency,
            'octaves': self.octaves,
            'persistence': self.persistence,
            'placement_threshold': self.placement_threshold,
            'object_type': self.object_type.value,
            'respect_pois': self.respect_pois,
            'grass_only': self.grass_only,
            'sample_step': self.sample_step,
        }


# ---------------------------------------------------------------------------
# Definition parsing
# ---------------------------------------------------------------------------

def parse_object_definitions(lines):
    """
    Parse ``Name,X,Y,Width,Height`` lines into object definitions.

    Blank lines are ignored.  Unknown names and malformed lines are logged
    and skipped.

    Args:
        lines: Iterable of text lines.

    Returns:
        Dict {WorldObjectType: ObjectDefinition}.
    """
    definitions = {}
    for line_no, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue

        parts = [p.strip() for p in line.split(',')]
        if len(parts) != 5:
            log.warning("Line %d: expected Name,X,Y,Width,Height, got %r", line_no, line)
            continue

        name = parts[0]
        object_type = _TYPES_BY_NAME.get(name)
        if object_type is None:
            log.info("Unknown object type: %s, skipping", name)
            continue

        try:
            x, y, width, height = (int(v) for v in parts[1:])
        except ValueError:
            log.warning("Line %d: non-integer atlas rect in %r", line_no, line)
            continue

        definitions[object_type] = ObjectDefinition(
            name, object_type, (x, y, width, height),
            (width * DEFINITION_SCALE, height * DEFINITION_SCALE),
        )
        log.debug("Loaded object: %s at (%d,%d) size %dx%d", name, x, y, width, height)

    return definitions


# ---------------------------------------------------------------------------
# ObjectPlacer
# ---------------------------------------------------------------------------

class ObjectPlacer:
    """
    Places WorldObjects on a generated grid using octave noise.

    The placer stays disabled until :meth:`initialize` succeeds.
    """

    def __init__(self):
        self.atlas_path = None
        self.definitions = {}
        self.objects = []
        self.initialized = False
        self._noise = None

    def initialize(self, atlas_path, definitions):
        """
        Load object definitions.

        Args:
            atlas_path:  Path of the object atlas image (kept for renderers).
            definitions: Path to a definitions file, or an iterable of lines.

        Returns:
            bool -- False if the file is missing or yields no definitions.
        """
        self.atlas_path = atlas_path
        self.initialized = False

        if isinstance(definitions, str):
            if not os.path.isfile(definitions):
                log.error("Failed to open definitions file: %s", definitions)
                return False
            with open(definitions, 'r') as f:
                self.definitions = parse_object_definitions(f)
        else:
            self.definitions = parse_object_definitions(definitions)

        if not self.definitions:
            log.error("ObjectPlacer: no usable object definitions")
            return False

        self.initialized = True
        log.info("ObjectPlacer initialized with %d object types", len(self.definitions))
        return True

    def get_definition(self, object_type):
        return self.definitions.get(object_type)

    @property
    def object_count(self):
        return len(self.objects)

    def clear_objects(self):
        self.objects = []
        self._noise = None

    def is_valid_placement(self, grid, x, y, world_pos, settings):
        """Apply the POI, terrain and walkability filters to tile (x, y)."""
        if not grid.is_valid_tile(x, y):
            return False
        if settings.respect_pois and grid.is_inside_poi(world_pos, blocking_only=True):
            return False
        if settings.grass_only and grid.terrain[y, x] != int(TerrainType.GRASS):
            return False
        if not grid.walkable[y, x]:
            return False
        return True

    def generate_objects(self, grid, settings, seed):
        """
        Scatter objects over *grid*.

        Args:
            grid:     Populated TileGrid.
            settings: PlacementSettings.
            seed:     Map seed; the noise uses seed + OBJECT_SEED_OFFSET.

        Returns:
            int -- number of objects placed.
        """
        if not self.initialized or grid is None:
            log.error("ObjectPlacer: cannot generate - not initialized or no grid")
            return 0

        self.clear_objects()
        self._noise = NoiseField(seed + OBJECT_SEED_OFFSET)

        log.info("Object placement: frequency=%.3f octaves=%d threshold=%.2f type=%s",
                 settings.frequency, settings.octaves,
                 settings.placement_threshold, settings.object_type.value)

        definition = self.get_definition(settings.object_type)
        if definition is None:
            log.error("No definition found for object type %s", settings.object_type.value)
            return 0

        step = settings.sample_step
        tiles_checked = 0
        for y in range(0, grid.height, step):
            for x in range(0, grid.width, step):
                tiles_checked += 1
                world_pos = grid.tile_to_world(x, y)

                if not self.is_valid_placement(grid, x, y, world_pos, settings):
                    continue

                value = self._noise.octave_noise2d(
                    world_pos[0] * settings.frequency,
                    world_pos[1] * settings.frequency,
                    settings.octaves,
                    settings.persistence,
                )
                if value > settings.placement_threshold:
                    self.objects.append(WorldObject(
                        settings.object_type, world_pos, (x, y),
                        definition.atlas_rect, definition.size,
                    ))

        rate = (len(self.objects) * 100.0 / tiles_checked) if tiles_checked else 0.0
        log.info("Object placement complete: %d tiles checked, %d objects placed (%.1f%%)",
                 tiles_checked, len(self.objects), rate)
        return len(self.objects)

    def objects_in_rect(self, rect, padding=0.0):
        """Objects whose bounds overlap *rect* grown by *padding* (view culling)."""
        view = Rect(rect.left - padding, rect.top - padding,
                    rect.width + padding * 2.0, rect.height + padding * 2.0)
        return [obj for obj in self.objects if obj.bounds().intersects(view)]
