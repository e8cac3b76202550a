"""
Map Validator - Invariant checks for a generated map.

Each check returns one :class:`ValidationResult`:

    MAP-001  site spacing          all sites >= min_site_distance apart
    MAP-002  hideout exclusion     no site inside the hideout exclusion zone
    MAP-003  region coverage       every open tile carries a valid region id
    MAP-004  blocked tiles         POI tiles are unwalkable with region -1
    MAP-005  POI count             spawned POIs never exceed the request
    MAP-006  object placement      objects sit on open tiles outside POIs
    MAP-007  grid dimensions       tile arrays match the grid size

Usage:
    from mapgen.map_validator import MapValidator, summarize

    validator = MapValidator(grid, generator.sites, generator.objects,
                             settings, generator.hideout)
    results = validator.run_all()
    print(summarize(results))
"""

import logging
import math
from enum import Enum

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for mapgen. "
        "Install it with: pip install numpy"
    )

from .poi import POIType
from .tile_grid import TerrainType

log = logging.getLogger(__name__)

# Slack for float comparisons on snapped positions
_EPSILON = 1e-6


# ---------------------------------------------------------------------------
# Validation result classes
# ---------------------------------------------------------------------------

class ValidationSeverity(Enum):
    """Severity level for a validation check."""
    ERROR = "ERROR"       # Invariant broken
    WARNING = "WARNING"   # Degraded output (shortfall)
    INFO = "INFO"


class ValidationResult:
    """Single validation check result."""

    def __init__(self, check_id, severity, passed, message, details=None):
        """
        Args:
            check_id: Unique identifier for this check (e.g. 'MAP-001').
            severity: ValidationSeverity enum value.
            passed: True if the check passed, False if it failed.
            message: Short human-readable description of result.
            details: Optional list of offending items.
        """
        self.check_id = check_id
        self.severity = severity
        self.passed = passed
        self.message = message
        self.details = details

    def __repr__(self):
        status = "PASS" if self.passed else "FAIL"
        return "ValidationResult({}, {}, {}, {!r})".format(
            self.check_id, self.severity.value, status, self.message
        )


# ---------------------------------------------------------------------------
# MapValidator
# ---------------------------------------------------------------------------

class MapValidator:
    """Runs invariant checks over one generated map."""

    def __init__(self, grid, sites, objects, settings, hideout=None):
        self.grid = grid
        self.sites = list(sites)
        self.objects = list(objects)
        self.settings = settings
        self.hideout = hideout
        if self.hideout is None:
            for poi in grid.pois:
                if poi.poi_type == POIType.PLAYER_HIDEOUT:
                    self.hideout = poi
                    break

    def run_all(self):
        """
        Run every check.

        Returns:
            List of ValidationResult.
        """
        results = [
            self.check_site_spacing(),
            self.check_hideout_exclusion(),
            self.check_region_coverage(),
            self.check_blocked_tiles(),
            self.check_poi_count(),
            self.check_object_placement(),
            self.check_grid_dimensions(),
        ]
        failed = sum(1 for r in results if not r.passed)
        log.info("Validation: %d checks, %d failed", len(results), failed)
        return results

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_site_spacing(self):
        min_dist = self.settings.min_site_distance
        violations = []
        for i, a in enumerate(self.sites):
            for b in self.sites[i + 1:]:
                dist = math.hypot(a.position[0] - b.position[0],
                                  a.position[1] - b.position[1])
                if dist < min_dist - _EPSILON:
                    violations.append((a.region_id, b.region_id, dist))

        if violations:
            return ValidationResult(
                'MAP-001', ValidationSeverity.ERROR, False,
                "{} site pairs closer than {:.1f}".format(len(violations), min_dist),
                details=violations,
            )
        return ValidationResult(
            'MAP-001', ValidationSeverity.ERROR, True,
            "All {} sites at least {:.1f} apart".format(len(self.sites), min_dist),
        )

    def check_hideout_exclusion(self):
        if self.hideout is None:
            return ValidationResult(
                'MAP-002', ValidationSeverity.WARNING, False, "No hideout on the map",
            )

        radius = self.hideout.exclusion_radius
        inside = [s.region_id for s in self.sites
                  if self.hideout.distance_to(s.position) < radius - _EPSILON]
        if inside:
            return ValidationResult(
                'MAP-002', ValidationSeverity.ERROR, False,
                "{} sites inside the hideout exclusion radius".format(len(inside)),
                details=inside,
            )
        return ValidationResult(
            'MAP-002', ValidationSeverity.ERROR, True,
            "No site within {:.1f} of the hideout".format(radius),
        )

    def check_region_coverage(self):
        grid = self.grid
        open_mask = ~grid.blocked_mask()
        regions = grid.region[open_mask]

        if not self.sites:
            bad = int(np.count_nonzero(regions != -1))
            expected = "-1 (no sites)"
        else:
            valid_ids = np.array([s.region_id for s in self.sites], dtype=np.int32)
            bad = int(np.count_nonzero(~np.isin(regions, valid_ids)))
            expected = "a site id"

        if bad:
            return ValidationResult(
                'MAP-003', ValidationSeverity.ERROR, False,
                "{} open tiles without {}".format(bad, expected),
            )
        return ValidationResult(
            'MAP-003', ValidationSeverity.ERROR, True,
            "All {} open tiles assigned".format(int(regions.size)),
        )

    def check_blocked_tiles(self):
        grid = self.grid
        blocked = grid.blocked_mask()
        bad = int(np.count_nonzero(blocked & (grid.walkable | (grid.region != -1))))
        if bad:
            return ValidationResult(
                'MAP-004', ValidationSeverity.ERROR, False,
                "{} POI tiles walkable or assigned".format(bad),
            )
        return ValidationResult(
            'MAP-004', ValidationSeverity.ERROR, True,
            "{} POI tiles blocked".format(int(np.count_nonzero(blocked))),
        )

    def check_poi_count(self):
        requested = max(0, self.settings.num_villages) + max(0, self.settings.num_farms)
        spawned = sum(1 for p in self.grid.pois if p.poi_type != POIType.PLAYER_HIDEOUT)
        limit = min(requested, len(self.sites))

        if spawned > limit:
            return ValidationResult(
                'MAP-005', ValidationSeverity.ERROR, False,
                "{} POIs spawned, limit {}".format(spawned, limit),
            )
        if spawned < requested:
            return ValidationResult(
                'MAP-005', ValidationSeverity.WARNING, True,
                "Only {} of {} POIs spawned".format(spawned, requested),
            )
        return ValidationResult(
            'MAP-005', ValidationSeverity.INFO, True,
            "{} POIs spawned".format(spawned),
        )

    def check_object_placement(self):
        grid = self.grid
        placement = self.settings.object_placement
        bad = []
        for obj in self.objects:
            tx, ty = obj.tile if obj.tile is not None else grid.world_to_tile(obj.position)
            if not grid.is_valid_tile(tx, ty):
                bad.append(obj)
                continue
            if not grid.walkable[ty, tx] or grid.terrain[ty, tx] == int(TerrainType.POI):
                bad.append(obj)
            elif placement.grass_only and grid.terrain[ty, tx] != int(TerrainType.GRASS):
                bad.append(obj)
            elif placement.respect_pois and grid.is_inside_poi(obj.position, blocking_only=True):
                bad.append(obj)

        if bad:
            return ValidationResult(
                'MAP-006', ValidationSeverity.ERROR, False,
                "{} objects on invalid tiles".format(len(bad)), details=bad,
            )
        return ValidationResult(
            'MAP-006', ValidationSeverity.ERROR, True,
            "All {} objects on valid tiles".format(len(self.objects)),
        )

    def check_grid_dimensions(self):
        """
        Tile arrays must match the grid's own size.  A grid kept by
        regeneration may differ from the requested settings; that is
        reported but does not fail.
        """
        grid = self.grid
        actual = (grid.width, grid.height)
        shapes_ok = grid.width > 0 and grid.height > 0 and all(
            a.shape == (grid.height, grid.width)
            for a in (grid.terrain, grid.walkable, grid.region))
        if not shapes_ok:
            return ValidationResult(
                'MAP-007', ValidationSeverity.ERROR, False,
                "Tile arrays do not match the {}x{} grid".format(actual[0], actual[1]),
            )

        requested = (self.settings.map_width, self.settings.map_height)
        if actual != requested:
            return ValidationResult(
                'MAP-007', ValidationSeverity.INFO, True,
                "Grid kept at {}x{} (settings request {}x{})".format(
                    actual[0], actual[1], requested[0], requested[1]),
            )
        return ValidationResult(
            'MAP-007', ValidationSeverity.ERROR, True,
            "Grid is {}x{}".format(actual[0], actual[1]),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def has_errors(results):
    """True if any ERROR-severity check failed."""
    return any(not r.passed and r.severity == ValidationSeverity.ERROR for r in results)


def summarize(results):
    """Multi-line text summary of *results*."""
    lines = []
    for r in results:
        status = "PASS" if r.passed else "FAIL"
        lines.append("  [{}] {} {:<7} {}".format(status, r.check_id, r.severity.value, r.message))
    passed = sum(1 for r in results if r.passed)
    lines.append("  {}/{} checks passed".format(passed, len(results)))
    return "\n".join(lines)
