"""
Tests for object placement, the generation pipeline and its outer surfaces.

Tests:
  ObjectPlacer:  definition parsing, initialisation, placement validity,
                 threshold and POI filters
  MapGenerator:  spacing, coverage, determinism, seed variation,
                 regeneration stability, POI spawning rules
  Settings:      defaults, density site counts, JSON round-trip
  Validator:     clean map passes, tampered map fails
  Exporter:      JSON files and debug image

Runs standalone (python tests/test_map_generator.py) or under pytest.
"""

import logging
import math
import os
import shutil
import sys
import tempfile
import traceback

# Ensure the project root is on the path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

import numpy as np

from mapgen.map_exporter import export_map, render_debug_image, save_debug_image
from mapgen.map_generator import MapGenerator, generate_map
from mapgen.map_validator import MapValidator, has_errors, summarize
from mapgen.object_placer import (ObjectPlacer, PlacementSettings, WorldObject,
                                  WorldObjectType, parse_object_definitions)
from mapgen.poi import POIType, PointOfInterest, Rect
from mapgen.settings import (GenerationSettings, compute_site_count, load_json,
                             load_settings, save_settings)
from mapgen.tile_grid import TerrainType, TileGrid


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []

DEFINITION_LINES = [
    "SmallRoot,0,0,64,48",
    "TreeTop_1,64,0,128,128",
    "Mushroom,0,0,10,10",
    "",
]


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


class _RecordingHandler(logging.Handler):
    """Collects log records emitted on one logger."""

    def __init__(self, logger_name):
        logging.Handler.__init__(self, level=logging.DEBUG)
        self.records = []
        self.logger = logging.getLogger(logger_name)

    def emit(self, record):
        self.records.append(record)

    def __enter__(self):
        self.logger.addHandler(self)
        return self

    def __exit__(self, *exc):
        self.logger.removeHandler(self)
        return False

    def warnings(self):
        return [r.getMessage() for r in self.records if r.levelno == logging.WARNING]


def _grass_grid(size=64, tile_size=64.0):
    grid = TileGrid(size, size, tile_size)
    grid.terrain.fill(int(TerrainType.GRASS))
    grid.walkable.fill(True)
    grid.region.fill(0)
    return grid


def _placer():
    placer = ObjectPlacer()
    assert placer.initialize("forest_atlas.png", DEFINITION_LINES), "Placer init failed"
    return placer


def _small_settings(**overrides):
    values = dict(map_width=48, map_height=48, tile_size=64.0, voronoi_sites=8,
                  min_site_distance=400.0, seed=42)
    values.update(overrides)
    return GenerationSettings(**values)


# ---------------------------------------------------------------------------
# ObjectPlacer
# ---------------------------------------------------------------------------

def test_parse_definitions():
    defs = parse_object_definitions(DEFINITION_LINES + ["TreeTop_2,1,2,3"])
    assert set(defs) == {WorldObjectType.SMALL_ROOT, WorldObjectType.TREE_TOP_1}, \
        "Unexpected definitions: {}".format(list(defs))
    root = defs[WorldObjectType.SMALL_ROOT]
    assert root.atlas_rect == (0, 0, 64, 48)
    assert root.size == (32.0, 24.0), "Display size should be half the atlas size"


def test_placer_initialize_failures():
    placer = ObjectPlacer()
    assert not placer.initialize("atlas.png", "/nonexistent/definitions.txt")
    assert not placer.initialized
    assert not placer.initialize("atlas.png", ["Unknown,0,0,1,1"])
    assert placer.generate_objects(_grass_grid(8), PlacementSettings(), 1) == 0, \
        "Uninitialized placer must place nothing"


def test_placer_initialize_from_file():
    tmp = tempfile.mkdtemp(prefix='mapgen_defs_')
    try:
        path = os.path.join(tmp, 'forest-atlas-points.txt')
        with open(path, 'w') as f:
            f.write("\n".join(DEFINITION_LINES))
        placer = ObjectPlacer()
        assert placer.initialize("forest_atlas.png", path)
        assert placer.get_definition(WorldObjectType.TREE_TOP_1).size == (64.0, 64.0)
    finally:
        shutil.rmtree(tmp)


def test_placement_on_grass_grid():
    grid = _grass_grid(64)
    placer = _placer()
    settings = PlacementSettings(frequency=0.08, placement_threshold=0.65, grass_only=True)
    count = placer.generate_objects(grid, settings, seed=7)

    assert count > 0, "Expected objects on an all-grass grid"
    assert count == placer.object_count == len(placer.objects)
    for obj in placer.objects:
        tx, ty = obj.tile
        assert grid.terrain[ty, tx] == int(TerrainType.GRASS), "Object off grass"
        assert grid.walkable[ty, tx], "Object on unwalkable tile"
        assert tx % 2 == 0 and ty % 2 == 0, "Object off the sample stride"
        assert obj.position == grid.tile_to_world(tx, ty)


def test_placement_deterministic():
    grid = _grass_grid(32)
    settings = PlacementSettings(frequency=0.08, placement_threshold=0.6)
    a = _placer()
    b = _placer()
    a.generate_objects(grid, settings, seed=3)
    b.generate_objects(grid, settings, seed=3)
    assert [o.position for o in a.objects] == [o.position for o in b.objects], \
        "Same seed placed different objects"


def test_placement_threshold_one_places_nothing():
    placer = _placer()
    count = placer.generate_objects(_grass_grid(32), PlacementSettings(placement_threshold=1.0), 5)
    assert count == 0, "Noise never exceeds 1.0, got {} objects".format(count)


def test_placement_filters():
    grid = _grass_grid(32)
    poi = PointOfInterest("Village 1", POIType.VILLAGE, (1024.0, 1024.0), (640.0, 640.0))
    grid.add_poi(poi)
    grid.terrain[:, :8] = int(TerrainType.WATER)
    grid.walkable[:8, :] = False

    placer = _placer()
    placer.generate_objects(grid, PlacementSettings(placement_threshold=0.0), seed=11)
    assert placer.object_count > 0, "Threshold 0 should fill every valid tile"
    for obj in placer.objects:
        tx, ty = obj.tile
        assert not poi.contains(obj.position), "Object inside a blocking POI"
        assert tx >= 8, "Object on water"
        assert ty >= 8, "Object on an unwalkable tile"


def test_placement_missing_definition():
    placer = _placer()
    settings = PlacementSettings(object_type=WorldObjectType.LARGE_ROOT, placement_threshold=0.0)
    assert placer.generate_objects(_grass_grid(8), settings, 1) == 0


def test_world_object_bounds_and_culling():
    obj = WorldObject(WorldObjectType.SMALL_ROOT, (100.0, 100.0), size=(20.0, 10.0))
    assert obj.bounds() == Rect(90.0, 95.0, 20.0, 10.0)
    fallback = WorldObject(WorldObjectType.SMALL_ROOT, (100.0, 100.0))
    assert fallback.bounds() == Rect(84.0, 84.0, 32.0, 32.0), "Zero size should fall back to 32"

    placer = _placer()
    placer.objects = [obj, WorldObject(WorldObjectType.SMALL_ROOT, (900.0, 900.0), size=(8.0, 8.0))]
    visible = placer.objects_in_rect(Rect(0.0, 0.0, 200.0, 200.0))
    assert visible == [obj], "Culling returned {}".format(visible)


# ---------------------------------------------------------------------------
# MapGenerator
# ---------------------------------------------------------------------------

def test_generate_spacing_and_coverage():
    settings = GenerationSettings(map_width=128, map_height=128, tile_size=64.0,
                                  voronoi_sites=10, min_site_distance=400.0, seed=42)
    generator = MapGenerator()
    grid = generator.generate(settings)
    sites = generator.sites

    assert (grid.width, grid.height) == (128, 128)
    assert 0 < len(sites) <= 10, "Unexpected site count {}".format(len(sites))
    for i, a in enumerate(sites):
        for b in sites[i + 1:]:
            d = math.hypot(a.position[0] - b.position[0], a.position[1] - b.position[1])
            assert d >= 400.0, "Sites {} and {} only {:.1f} apart".format(
                a.region_id, b.region_id, d)

    hideout = generator.hideout
    assert hideout.position == (4096.0, 4096.0), "Hideout not at world centre"
    for site in sites:
        assert hideout.distance_to(site.position) >= hideout.exclusion_radius, \
            "Site {} inside hideout exclusion".format(site.region_id)

    open_mask = ~grid.blocked_mask()
    regions = grid.region[open_mask]
    assert regions.min() >= 0 and regions.max() <= len(sites) - 1, \
        "Open tiles outside [0, {}]".format(len(sites) - 1)
    assert (grid.region[grid.blocked_mask()] == -1).all(), "Blocked tile assigned"


def test_generate_deterministic():
    a = MapGenerator()
    b = MapGenerator()
    grid_a = a.generate(_small_settings())
    grid_b = b.generate(_small_settings())
    assert [s.position for s in a.sites] == [s.position for s in b.sites]
    assert np.array_equal(grid_a.region, grid_b.region), "Region maps differ"
    assert np.array_equal(grid_a.terrain, grid_b.terrain), "Terrain differs"
    assert [p.position for p in grid_a.pois] == [p.position for p in grid_b.pois]
    assert a.last_seed == 42


def test_generate_seed_changes_sites():
    a = MapGenerator()
    b = MapGenerator()
    grid_a = a.generate(GenerationSettings(voronoi_sites=10, seed=42))
    grid_b = b.generate(GenerationSettings(voronoi_sites=10, seed=43))
    assert [s.position for s in a.sites] != [s.position for s in b.sites], \
        "Seeds 42 and 43 gave identical sites"
    assert (grid_a.width, grid_a.height) == (grid_b.width, grid_b.height)


def test_random_seed_is_recorded():
    generator = MapGenerator()
    generator.generate(_small_settings(seed=0, map_width=16, map_height=16,
                                       voronoi_sites=2, num_villages=0, num_farms=0))
    assert generator.last_seed and generator.last_seed > 0, "Seed 0 should resolve"


def test_regenerate_stability():
    generator = MapGenerator(object_placer=_placer())
    settings = _small_settings()
    grid = generator.generate(settings)
    terrain = grid.terrain.copy()
    region = grid.region.copy()
    positions = [s.position for s in generator.sites]
    objects = [o.position for o in generator.objects]

    assert generator.regenerate(grid, settings)
    assert (grid.width, grid.height, grid.tile_size) == (48, 48, 64.0)
    assert np.array_equal(grid.terrain, terrain) and np.array_equal(grid.region, region)
    assert [s.position for s in generator.sites] == positions
    assert [o.position for o in generator.objects] == objects


def test_regenerate_none_grid():
    assert MapGenerator().regenerate(None, _small_settings()) is False


def test_regenerate_site_count_uses_grid():
    generator = MapGenerator()
    grid = generator.generate(_small_settings())
    smaller = _small_settings(map_width=32, map_height=32, site_density='dense')

    assert generator.regenerate(grid, smaller)
    assert (grid.width, grid.height) == (48, 48), "Regeneration resized the grid"
    # 3072^2 / 400^2 on the kept grid, not 2048^2 / 400^2 from the settings
    expected = compute_site_count(smaller, grid.world_size)
    assert expected == 58, "Unexpected density count {}".format(expected)
    assert generator.last_site_count == expected, \
        "Requested {} sites, expected {}".format(generator.last_site_count, expected)
    assert compute_site_count(smaller) == 26


def test_poi_shortfall_logged():
    settings = _small_settings(voronoi_sites=2, num_villages=6, num_farms=0)
    with _RecordingHandler('mapgen.map_generator') as handler:
        grid = MapGenerator().generate(settings)
    spawned = [p for p in grid.pois if p.poi_type != POIType.PLAYER_HIDEOUT]
    assert len(spawned) <= 2, "More POIs than sites: {}".format(len(spawned))
    messages = handler.warnings()
    assert any(m.startswith("Could only place") and "of 6 POIs" in m for m in messages), \
        "POI shortfall not logged as a warning: {}".format(messages)

    with _RecordingHandler('mapgen.map_generator') as handler:
        MapGenerator().generate(_small_settings(num_villages=0, num_farms=0))
    assert handler.warnings() == [], "Empty request should not warn"


def test_poi_spawning_rules():
    settings = GenerationSettings(voronoi_sites=30, min_site_distance=400.0, seed=5,
                                  num_villages=2, num_farms=2)
    generator = MapGenerator()
    grid = generator.generate(settings)
    spawned = [p for p in grid.pois if p.poi_type != POIType.PLAYER_HIDEOUT]
    world_w, world_h = grid.world_size

    assert len(spawned) <= 4, "Too many POIs"
    assert len([p for p in grid.pois if p.poi_type == POIType.PLAYER_HIDEOUT]) == 1
    for poi in spawned:
        b = poi.bounds()
        margin = settings.edge_margin_factor * max(poi.size)
        assert b.left >= margin and b.top >= margin, "{} too close to edge".format(poi.name)
        assert b.right <= world_w - margin and b.bottom <= world_h - margin
    for i, a in enumerate(grid.pois):
        for other in grid.pois[i + 1:]:
            assert not a.bounds().intersects(other.bounds()), \
                "{} overlaps {}".format(a.name, other.name)

    claimed = [s for s in generator.sites if s.has_poi]
    assert len(claimed) == len(spawned), "Each spawned POI claims one site"
    names = sorted(p.name for p in spawned)
    for name in names:
        assert name.startswith("Village ") or name.startswith("Farm "), name


def test_no_pois_requested():
    generator = MapGenerator()
    grid = generator.generate(_small_settings(num_villages=0, num_farms=0))
    assert len(grid.pois) == 1 and grid.pois[0].poi_type == POIType.PLAYER_HIDEOUT


def test_generated_objects_valid():
    settings = _small_settings()
    settings.object_placement = PlacementSettings(frequency=0.08, placement_threshold=0.55)
    grid, generator = generate_map(settings, object_placer=_placer())
    for obj in generator.objects:
        tx, ty = obj.tile
        assert grid.terrain[ty, tx] == int(TerrainType.GRASS)
        assert grid.walkable[ty, tx]
        assert not grid.is_inside_poi(obj.position, blocking_only=True)


def test_objects_disabled():
    settings = _small_settings(place_objects=False)
    generator = MapGenerator(object_placer=_placer())
    generator.generate(settings)
    assert generator.objects == [], "Objects placed although disabled"


def test_closest_site_id():
    generator = MapGenerator()
    assert generator.get_closest_site_id((0.0, 0.0)) == -1, "No map yet"
    generator.generate(_small_settings())
    site = generator.sites[0]
    assert generator.get_closest_site_id(site.position) == site.region_id


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def test_settings_defaults_and_density():
    s = GenerationSettings()
    assert (s.map_width, s.map_height, s.tile_size) == (128, 128, 64.0)
    assert s.voronoi_sites == 20 and s.min_site_distance == 400.0 and s.seed == 0
    assert compute_site_count(s) == 20
    s.site_density = 'normal'
    assert compute_site_count(s) == 209
    s.site_density = 'auto'
    assert compute_site_count(s) == 209
    s.site_density = 'sparse'
    assert compute_site_count(s) == 104
    s.site_density = 'dense'
    assert compute_site_count(s) == 419

    tiny = GenerationSettings(map_width=2, map_height=2, site_density='sparse')
    assert compute_site_count(tiny) == 1, "Density count has a floor of one"

    s.site_density = 'crowded'
    try:
        compute_site_count(s)
    except ValueError:
        return
    raise AssertionError("Unknown density should raise ValueError")


def test_settings_round_trip():
    tmp = tempfile.mkdtemp(prefix='mapgen_settings_')
    try:
        path = os.path.join(tmp, 'nested', 'map.json')
        original = _small_settings(num_farms=3, site_density='dense')
        original.object_placement = PlacementSettings(
            frequency=0.2, object_type=WorldObjectType.TREE_TOP_2)
        save_settings(path, original)
        loaded = load_settings(path)
        assert loaded.to_dict() == original.to_dict(), "Settings changed on round-trip"
        assert loaded.object_placement.object_type == WorldObjectType.TREE_TOP_2
    finally:
        shutil.rmtree(tmp)


def test_settings_unknown_keys_ignored():
    s = GenerationSettings.from_dict({'map_width': 10, 'weather': 'rain'})
    assert s.map_width == 10 and not hasattr(s, 'weather')


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

def test_validator_clean_map():
    settings = _small_settings()
    generator = MapGenerator(object_placer=_placer())
    grid = generator.generate(settings)
    results = MapValidator(grid, generator.sites, generator.objects, settings,
                           generator.hideout).run_all()
    assert [r.check_id for r in results] == ['MAP-{:03d}'.format(i) for i in range(1, 8)]
    assert not has_errors(results), "Clean map failed:\n{}".format(summarize(results))


def test_validator_detects_tampering():
    settings = _small_settings()
    generator = MapGenerator()
    grid = generator.generate(settings)
    blocked = np.argwhere(grid.blocked_mask())
    y, x = blocked[0]
    grid.walkable[y, x] = True

    results = {r.check_id: r for r in MapValidator(
        grid, generator.sites, [], settings).run_all()}
    assert not results['MAP-004'].passed, "Walkable POI tile not detected"
    assert results['MAP-001'].passed and results['MAP-007'].passed


def test_validator_regenerated_grid():
    generator = MapGenerator()
    grid = generator.generate(_small_settings())
    smaller = _small_settings(map_width=32, map_height=32)
    assert generator.regenerate(grid, smaller)

    results = {r.check_id: r for r in MapValidator(
        grid, generator.sites, generator.objects, smaller, generator.hideout).run_all()}
    dims = results['MAP-007']
    assert dims.passed, "Kept grid failed the dimension check: {}".format(dims.message)
    assert dims.severity.value == 'INFO', "Expected an INFO note, got {}".format(dims.severity)
    assert not has_errors(list(results.values())), \
        "Regenerated map failed:\n{}".format(summarize(list(results.values())))


# ---------------------------------------------------------------------------
# Exporter
# ---------------------------------------------------------------------------

def test_export_map():
    tmp = tempfile.mkdtemp(prefix='mapgen_export_')
    try:
        settings = _small_settings(map_width=24, map_height=20, voronoi_sites=4,
                                   min_site_distance=300.0)
        generator = MapGenerator(object_placer=_placer())
        grid = generator.generate(settings)
        out = os.path.join(tmp, 'map')
        files = export_map(grid, out, generator.sites, generator.objects,
                           seed=generator.last_seed)

        for name in ('manifest', 'tiles', 'pois', 'sites', 'objects'):
            assert os.path.isfile(files[name]), "{} not written".format(name)
        manifest = load_json(files['manifest'])
        assert manifest['width'] == 24 and manifest['height'] == 20
        assert manifest['seed'] == 42
        assert manifest['site_count'] == len(generator.sites)
        assert manifest['object_count'] == len(generator.objects)
        tiles = load_json(files['tiles'])
        assert len(tiles['terrain']) == 20 and len(tiles['terrain'][0]) == 24
        assert len(load_json(files['pois'])) == len(grid.pois)
    finally:
        shutil.rmtree(tmp)


def test_debug_image():
    tmp = tempfile.mkdtemp(prefix='mapgen_image_')
    try:
        settings = _small_settings(map_width=24, map_height=20, voronoi_sites=4,
                                   min_site_distance=300.0)
        generator = MapGenerator()
        grid = generator.generate(settings)
        img = render_debug_image(grid, generator.sites, generator.objects, pixels_per_tile=3)
        assert img.size == (72, 60), "Unexpected image size {}".format(img.size)
        assert img.mode == 'RGB'

        path = save_debug_image(grid, os.path.join(tmp, 'debug', 'map.png'), generator.sites)
        assert os.path.isfile(path)
    finally:
        shutil.rmtree(tmp)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("mapgen: objects / generator / settings / validator / exporter")
    print("=" * 70)

    print("\n--- ObjectPlacer ---")
    _test("parse_definitions", test_parse_definitions)
    _test("placer_initialize_failures", test_placer_initialize_failures)
    _test("placer_initialize_from_file", test_placer_initialize_from_file)
    _test("placement_on_grass_grid", test_placement_on_grass_grid)
    _test("placement_deterministic", test_placement_deterministic)
    _test("placement_threshold_one", test_placement_threshold_one_places_nothing)
    _test("placement_filters", test_placement_filters)
    _test("placement_missing_definition", test_placement_missing_definition)
    _test("world_object_bounds_and_culling", test_world_object_bounds_and_culling)

    print("\n--- MapGenerator ---")
    _test("generate_spacing_and_coverage", test_generate_spacing_and_coverage)
    _test("generate_deterministic", test_generate_deterministic)
    _test("generate_seed_changes_sites", test_generate_seed_changes_sites)
    _test("random_seed_is_recorded", test_random_seed_is_recorded)
    _test("regenerate_stability", test_regenerate_stability)
    _test("regenerate_none_grid", test_regenerate_none_grid)
    _test("regenerate_site_count_uses_grid", test_regenerate_site_count_uses_grid)
    _test("poi_spawning_rules", test_poi_spawning_rules)
    _test("no_pois_requested", test_no_pois_requested)
    _test("poi_shortfall_logged", test_poi_shortfall_logged)
    _test("generated_objects_valid", test_generated_objects_valid)
    _test("objects_disabled", test_objects_disabled)
    _test("closest_site_id", test_closest_site_id)

    print("\n--- Settings ---")
    _test("settings_defaults_and_density", test_settings_defaults_and_density)
    _test("settings_round_trip", test_settings_round_trip)
    _test("settings_unknown_keys_ignored", test_settings_unknown_keys_ignored)

    print("\n--- Validator ---")
    _test("validator_clean_map", test_validator_clean_map)
    _test("validator_detects_tampering", test_validator_detects_tampering)
    _test("validator_regenerated_grid", test_validator_regenerated_grid)

    print("\n--- Exporter ---")
    _test("export_map", test_export_map)
    _test("debug_image", test_debug_image)

    print("\n" + "=" * 70)
    print("Results: {} passed, {} failed".format(_PASSED, _FAILED))
    if _ERRORS:
        print("\nFailures:")
        for name, err in _ERRORS:
            print("  {} -- {}".format(name, err))
    print("=" * 70)
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
