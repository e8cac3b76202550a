"""
Points of Interest - Fixed-footprint prefab areas that block generation.

A point of interest (hideout, village, farm, ...) occupies an axis-aligned
box centred on its world position.  Blocking POIs are stamped into the
tile grid as POI terrain, keep sites away through their exclusion radius
(60% of the bounding diagonal) and provide collision rectangles for
external collision systems.

Also provides:
    POIConfigRegistry   -- per-type defaults (size, sprite, template, ...)
    POITemplateRegistry -- named collision layouts applied to POIs
    find_collision      -- first blocking collision rect hit by an entity
"""

import logging
import math
import os
from enum import Enum

log = logging.getLogger(__name__)

# Exclusion radius as a fraction of the bounding-box diagonal
EXCLUSION_FACTOR = 0.6

# Size used when a type has no configuration
DEFAULT_POI_SIZE = (150.0, 150.0)

# Fallback when an auto-size definition file is missing or unreadable
_FALLBACK_DEFINITION_SIZE = (500.0, 500.0)


# ---------------------------------------------------------------------------
# Rect
# ---------------------------------------------------------------------------

class Rect:
    """Axis-aligned rectangle given by its top-left corner and size."""

    __slots__ = ('left', 'top', 'width', 'height')

    def __init__(self, left, top, width, height):
        self.left = float(left)
        self.top = float(top)
        self.width = float(width)
        self.height = float(height)

    @property
    def right(self):
        return self.left + self.width

    @property
    def bottom(self):
        return self.top + self.height

    @property
    def center(self):
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)

    def contains(self, point):
        """Half-open containment: left/top edges inside, right/bottom outside."""
        px, py = point[0], point[1]
        return self.left <= px < self.right and self.top <= py < self.bottom

    def intersects(self, other):
        return (self.left < other.right and other.left < self.right and
                self.top < other.bottom and other.top < self.bottom)

    def as_tuple(self):
        return (self.left, self.top, self.width, self.height)

    def __eq__(self, other):
        if not isinstance(other, Rect):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __repr__(self):
        return "Rect({}, {}, {}, {})".format(self.left, self.top, self.width, self.height)


def minimum_translation_vector(a, b):
    """
    Shortest (dx, dy) that moves rect *a* out of overlapping rect *b*.

    Only the axis with the smaller overlap is used.
    """
    acx, acy = a.center
    bcx, bcy = b.center
    dx = acx - bcx
    dy = acy - bcy

    overlap_x = (a.width + b.width) / 2.0 - abs(dx)
    overlap_y = (a.height + b.height) / 2.0 - abs(dy)

    if overlap_x < overlap_y:
        return (overlap_x if dx > 0 else -overlap_x, 0.0)
    return (0.0, overlap_y if dy > 0 else -overlap_y)


# ---------------------------------------------------------------------------
# Point of interest
# ---------------------------------------------------------------------------

class POIType(Enum):
    PLAYER_HIDEOUT = "hideout"
    VILLAGE = "village"
    LANDMARK = "landmark"
    FARM = "farm"
    QUARRY = "quarry"


class PointOfInterest:
    """
    A named, fixed-size area placed on the map.

    Attributes:
        name:             Display name (e.g. "Village 1").
        poi_type:         POIType value.
        position:         (x, y) world-space centre.
        size:             (width, height) in pixels.
        exclusion_radius: No site may be generated closer than this.
        blocking:         Blocking POIs are stamped into the grid and
                          skipped by every generation phase.
        collision_rects:  World-space Rect list, the full bounds unless a
                          template has been applied.
    """

    def __init__(self, name, poi_type, position, size, blocking=True):
        self.name = name
        self.poi_type = poi_type
        self.position = (float(position[0]), float(position[1]))
        self.size = (float(size[0]), float(size[1]))
        self.blocking = blocking

        diagonal = math.sqrt(self.size[0] ** 2 + self.size[1] ** 2)
        self.exclusion_radius = diagonal * EXCLUSION_FACTOR

        self.collision_rects = [self.bounds()]

    def bounds(self):
        """Axis-aligned bounding box in world space."""
        w, h = self.size
        return Rect(self.position[0] - w / 2.0, self.position[1] - h / 2.0, w, h)

    def contains(self, world_pos):
        return self.bounds().contains(world_pos)

    def distance_to(self, world_pos):
        dx = world_pos[0] - self.position[0]
        dy = world_pos[1] - self.position[1]
        return math.sqrt(dx * dx + dy * dy)

    def is_in_exclusion_zone(self, world_pos):
        """True if *world_pos* is inside the bounds or the exclusion radius."""
        if self.contains(world_pos):
            return True
        return self.distance_to(world_pos) < self.exclusion_radius

    # ------------------------------------------------------------------
    # Collision geometry
    # ------------------------------------------------------------------

    def clear_collision_rects(self):
        self.collision_rects = []

    def add_collision_rect(self, rect):
        self.collision_rects.append(rect)

    def check_entity_collision(self, entity_rect):
        """Return the first collision rect overlapping *entity_rect*, or None."""
        for rect in self.collision_rects:
            if entity_rect.intersects(rect):
                return rect
        return None

    def to_dict(self):
        return {
            'name': self.name,
            'type': self.poi_type.value,
            'position': list(self.position),
            'size': list(self.size),
            'exclusion_radius': self.exclusion_radius,
            'blocking': self.blocking,
            'collision_rects': [list(r.as_tuple()) for r in self.collision_rects],
        }

    def __repr__(self):
        return "PointOfInterest({!r}, {}, pos=({:.1f}, {:.1f}), size={}x{})".format(
            self.name, self.poi_type.name, self.position[0], self.position[1],
            self.size[0], self.size[1]
        )


# ---------------------------------------------------------------------------
# Collision queries for external systems
# ---------------------------------------------------------------------------

def find_collision(grid, entity_rect):
    """
    Find the first blocking POI collision rect overlapping *entity_rect*.

    Returns:
        (poi, rect, (dx, dy)) where (dx, dy) is the minimum translation
        vector that separates the entity, or None when nothing collides.
    """
    if grid is None:
        return None

    for poi in grid.pois:
        if not poi.blocking:
            continue
        rect = poi.check_entity_collision(entity_rect)
        if rect is not None:
            return poi, rect, minimum_translation_vector(entity_rect, rect)
    return None


def collides_with_world(grid, entity_rect):
    return find_collision(grid, entity_rect) is not None


# ---------------------------------------------------------------------------
# Per-type configuration
# ---------------------------------------------------------------------------

class POITypeConfig:
    """Static configuration for one POI type."""

    def __init__(self, name, size=(0.0, 0.0), sprite_path="", definitions_path="",
                 template_name="", auto_size_from_sprite=False):
        self.name = name
        self.size = (float(size[0]), float(size[1]))
        self.sprite_path = sprite_path
        self.definitions_path = definitions_path
        self.template_name = template_name
        self.auto_size_from_sprite = auto_size_from_sprite

    def __repr__(self):
        return "POITypeConfig({!r}, size={})".format(self.name, self.size)


def parse_size_from_definition(definitions_path, fallback=_FALLBACK_DEFINITION_SIZE):
    """
    Read (width, height) from the first ``Name,X,Y,Width,Height`` line.

    Returns *fallback* when the file is missing or the line is malformed.
    """
    if not definitions_path or not os.path.isfile(definitions_path):
        log.warning("Failed to open POI definition: %s", definitions_path)
        return fallback

    try:
        with open(definitions_path, 'r') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                parts = [p.strip() for p in line.split(',')]
                return (float(parts[3]), float(parts[4]))
    except (OSError, IndexError, ValueError) as e:
        log.warning("Malformed POI definition %s: %s", definitions_path, e)
        return fallback

    return fallback


class POIConfigRegistry:
    """
    Registry of POI type configurations.

    Loads the built-in defaults on construction:
        hideout  481 x 419
        village  500 x 500
        farm     auto-sized from its definitions file (110 x 100 if absent)
    """

    def __init__(self, farm_definitions_path=""):
        self._configs = {}
        self.load_default_configs(farm_definitions_path)

    def register_poi_type(self, poi_type, config):
        self._configs[poi_type] = config

    def get_config(self, poi_type):
        return self._configs.get(poi_type)

    def has_config(self, poi_type):
        return poi_type in self._configs

    def size_for(self, poi_type):
        config = self._configs.get(poi_type)
        if config is None or config.size[0] <= 0 or config.size[1] <= 0:
            return DEFAULT_POI_SIZE
        return config.size

    def load_default_configs(self, farm_definitions_path=""):
        self.register_poi_type(POIType.PLAYER_HIDEOUT, POITypeConfig(
            "Hideout", size=(481.0, 419.0), template_name="hideout",
        ))
        self.register_poi_type(POIType.VILLAGE, POITypeConfig(
            "Village", size=(500.0, 500.0),
        ))
        self.register_poi_type(POIType.FARM, POITypeConfig(
            "Farm", size=(110.0, 100.0),
            definitions_path=farm_definitions_path,
            auto_size_from_sprite=True,
        ))

        for config in self._configs.values():
            if config.auto_size_from_sprite and config.definitions_path:
                config.size = parse_size_from_definition(
                    config.definitions_path, fallback=config.size
                )
                log.info("Auto-sized %s: %.0fx%.0f",
                         config.name, config.size[0], config.size[1])


# ---------------------------------------------------------------------------
# Collision templates
# ---------------------------------------------------------------------------

class POITemplate:
    """
    Collision layout of a prefab.

    ``collision_rects`` are relative to the template's top-left corner.
    """

    def __init__(self, name, size, collision_rects=None):
        self.name = name
        self.size = (float(size[0]), float(size[1]))
        self.collision_rects = list(collision_rects or [])

    @classmethod
    def from_dict(cls, data):
        """
        Build a template from already-parsed prefab data::

            {'name': str, 'size': [w, h], 'collision': [[x, y, w, h], ...]}
        """
        rects = [Rect(*r) for r in data.get('collision', [])]
        return cls(data.get('name', ''), data.get('size', (0.0, 0.0)), rects)


class POITemplateRegistry:
    """Named POI templates, applied to placed POIs by name."""

    def __init__(self):
        self._templates = {}

    def register_template(self, template):
        self._templates[template.name] = template
        log.info("Registered POI template '%s' with %d collision rects",
                 template.name, len(template.collision_rects))

    def get_template(self, name):
        return self._templates.get(name)

    def has_template(self, name):
        return name in self._templates

    def apply_template_collision(self, poi, template_name):
        """
        Replace *poi*'s collision rects with the template's, in world space.

        Returns:
            bool -- False when the template is unknown (POI unchanged).
        """
        template = self.get_template(template_name)
        if template is None:
            log.warning("Template not found: %s", template_name)
            return False

        poi.clear_collision_rects()

        origin_x = poi.position[0] - poi.size[0] / 2.0
        origin_y = poi.position[1] - poi.size[1] / 2.0
        for rect in template.collision_rects:
            poi.add_collision_rect(Rect(
                origin_x + rect.left, origin_y + rect.top, rect.width, rect.height
            ))

        log.debug("Applied %d collision rects to '%s'",
                  len(template.collision_rects), poi.name)
        return True
