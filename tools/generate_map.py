#!/usr/bin/env python
"""
Command-line map generator.

Generates a tile map, prints a summary and optionally exports JSON, a
debug PNG and a validation report.

Usage:
  python generate_map.py --seed 42 --sites 10 --export out/map
  python generate_map.py --settings map.json --image out/map.png --validate
  python generate_map.py --density dense --no-objects -v
"""

import argparse
import logging
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from mapgen.map_exporter import export_map, save_debug_image
from mapgen.map_generator import MapGenerator
from mapgen.map_validator import MapValidator, has_errors, summarize
from mapgen.settings import DENSITY_FACTORS, GenerationSettings, load_settings


def build_settings(args):
    """Settings file (if any) overridden by explicit command-line flags."""
    if args.settings:
        settings = load_settings(args.settings)
    else:
        settings = GenerationSettings()

    overrides = (
        ('width', 'map_width'),
        ('height', 'map_height'),
        ('tile_size', 'tile_size'),
        ('sites', 'voronoi_sites'),
        ('density', 'site_density'),
        ('min_distance', 'min_site_distance'),
        ('seed', 'seed'),
        ('villages', 'num_villages'),
        ('farms', 'num_farms'),
        ('atlas', 'object_atlas'),
        ('definitions', 'object_definitions'),
    )
    for arg_name, attr in overrides:
        value = getattr(args, arg_name)
        if value is not None:
            setattr(settings, attr, value)

    if args.no_objects:
        settings.place_objects = False
    return settings


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Procedural tile-world map generator')
    parser.add_argument('--width', type=int, help='Map width in tiles (default 128)')
    parser.add_argument('--height', type=int, help='Map height in tiles (default 128)')
    parser.add_argument('--tile-size', type=float, help='Tile size in pixels (default 64)')
    parser.add_argument('--sites', type=int, help='Number of region sites (default 20)')
    parser.add_argument('--density',
                        choices=sorted(DENSITY_FACTORS) + ['auto'],
                        help='Derive the site count from the map area')
    parser.add_argument('--min-distance', type=float,
                        help='Minimum distance between sites in pixels (default 400)')
    parser.add_argument('--seed', type=int, help='RNG seed (0 = random)')
    parser.add_argument('--villages', type=int, help='Villages to spawn (default 1)')
    parser.add_argument('--farms', type=int, help='Farms to spawn (default 1)')
    parser.add_argument('--settings', help='JSON settings file')
    parser.add_argument('--atlas', help='Object atlas image')
    parser.add_argument('--definitions', help='Object definitions file (Name,X,Y,W,H)')
    parser.add_argument('--no-objects', action='store_true',
                        help='Skip decorative object placement')
    parser.add_argument('--export', metavar='DIR', help='Write JSON export to DIR')
    parser.add_argument('--image', metavar='PATH', help='Write debug PNG to PATH')
    parser.add_argument('--validate', action='store_true',
                        help='Run invariant checks; exit 1 on errors')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
    )

    settings = build_settings(args)
    generator = MapGenerator()
    grid = generator.generate(settings)

    print("Map {}x{} (seed {}) generated in {:.1f} ms".format(
        grid.width, grid.height, generator.last_seed, generator.last_elapsed_ms))
    print("  {} sites, {} POIs, {} objects".format(
        len(generator.sites), len(grid.pois), len(generator.objects)))

    if args.export:
        export_map(grid, args.export, generator.sites, generator.objects,
                   seed=generator.last_seed)
        print("Exported to {}".format(args.export))

    if args.image:
        save_debug_image(grid, args.image, generator.sites, generator.objects)
        print("Debug image written to {}".format(args.image))

    if args.validate:
        results = MapValidator(grid, generator.sites, generator.objects,
                               settings, generator.hideout).run_all()
        print(summarize(results))
        if has_errors(results):
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
