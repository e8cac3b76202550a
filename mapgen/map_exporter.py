"""
Map Exporter - Writes a generated map to disk.

Output layout of :func:`export_map`::

    <output_dir>/
        manifest.json    map size, tile size, counts, file list
        tiles.json       terrain / region / walkable rows (row-major)
        pois.json        placed points of interest
        sites.json       region sites
        objects.json     placed world objects

:func:`render_debug_image` draws the map with terrain debug colours,
region boundaries, sites and objects, one square of *pixels_per_tile*
pixels per tile.
"""

import logging
import os

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for mapgen. "
        "Install it with: pip install numpy"
    )

try:
    from PIL import Image, ImageDraw
except ImportError:
    raise ImportError(
        "Pillow is required for the map exporter.  "
        "Install with: pip install Pillow"
    )

from .settings import save_json
from .tile_grid import TERRAIN_DEBUG_COLORS, TerrainType, terrain_debug_color

log = logging.getLogger(__name__)

FORMAT_VERSION = 1

_BOUNDARY_COLOR = (0, 0, 0)
_SITE_COLOR = (255, 255, 0)
_SITE_POI_COLOR = (255, 128, 0)
_OBJECT_COLOR = (30, 60, 30)
_POI_OUTLINE_COLOR = (255, 255, 255)


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------

def export_map(grid, output_dir, sites=(), objects=(), seed=None):
    """
    Export a generated map as JSON files.

    Args:
        grid:       Populated TileGrid.
        output_dir: Destination directory (created if missing).
        sites:      Site records of the generation pass.
        objects:    Placed WorldObjects.
        seed:       Resolved seed, recorded in the manifest.

    Returns:
        Dict {name: path} of written files.
    """
    if not os.path.exists(output_dir):
        os.makedirs(output_dir)

    sites = list(sites)
    objects = list(objects)

    files = {
        'tiles': os.path.join(output_dir, 'tiles.json'),
        'pois': os.path.join(output_dir, 'pois.json'),
        'sites': os.path.join(output_dir, 'sites.json'),
        'objects': os.path.join(output_dir, 'objects.json'),
        'manifest': os.path.join(output_dir, 'manifest.json'),
    }

    save_json(files['tiles'], {
        'width': grid.width,
        'height': grid.height,
        'terrain_names': {int(t): t.name for t in TerrainType},
        'terrain': grid.terrain.tolist(),
        'region': grid.region.tolist(),
        'walkable': grid.walkable.tolist(),
    })
    save_json(files['pois'], [poi.to_dict() for poi in grid.pois])
    save_json(files['sites'], [site.to_dict() for site in sites])
    save_json(files['objects'], [obj.to_dict() for obj in objects])

    world_w, world_h = grid.world_size
    save_json(files['manifest'], {
        'format_version': FORMAT_VERSION,
        'seed': seed,
        'width': grid.width,
        'height': grid.height,
        'tile_size': grid.tile_size,
        'world_size': [world_w, world_h],
        'site_count': len(sites),
        'poi_count': len(grid.pois),
        'object_count': len(objects),
        'terrain_counts': {t.name: c for t, c in grid.terrain_counts().items()},
        'files': {k: os.path.basename(v) for k, v in files.items() if k != 'manifest'},
    })

    log.info("Exported map to %s (%d sites, %d POIs, %d objects)",
             output_dir, len(sites), len(grid.pois), len(objects))
    return files


# ---------------------------------------------------------------------------
# Debug rendering
# ---------------------------------------------------------------------------

def _terrain_rgb(grid):
    """(height, width, 3) uint8 array of terrain debug colours."""
    lut = np.zeros((256, 3), dtype=np.uint8)
    lut[:] = terrain_debug_color(-1)
    for terrain, color in TERRAIN_DEBUG_COLORS.items():
        lut[int(terrain)] = color
    return lut[grid.terrain.astype(np.uint8)]


def render_debug_image(grid, sites=(), objects=(), pixels_per_tile=4,
                       draw_boundaries=True):
    """
    Render the map to a Pillow RGB image.

    Args:
        grid:            Populated TileGrid.
        sites:           Site records, drawn as dots (orange once claimed
                         by a POI).
        objects:         WorldObjects, drawn as small squares.
        pixels_per_tile: Image pixels per tile edge.
        draw_boundaries: Draw edges between differing regions.

    Returns:
        PIL.Image.Image
    """
    ppt = max(1, int(pixels_per_tile))
    img = Image.fromarray(_terrain_rgb(grid))
    if ppt > 1:
        img = img.resize((grid.width * ppt, grid.height * ppt), Image.NEAREST)
    draw = ImageDraw.Draw(img)

    if draw_boundaries and ppt > 1:
        for (x, y), (nx, ny) in grid.region_boundaries():
            if nx != x:
                px = nx * ppt
                draw.line([(px, y * ppt), (px, (y + 1) * ppt - 1)], fill=_BOUNDARY_COLOR)
            else:
                py = ny * ppt
                draw.line([(x * ppt, py), ((x + 1) * ppt - 1, py)], fill=_BOUNDARY_COLOR)

    scale = ppt / grid.tile_size

    for poi in grid.pois:
        left, top, width, height = poi.bounds().as_tuple()
        draw.rectangle([left * scale, top * scale,
                        (left + width) * scale, (top + height) * scale],
                       outline=_POI_OUTLINE_COLOR)

    radius = max(1, ppt // 2)
    for obj in objects:
        ox, oy = obj.position[0] * scale, obj.position[1] * scale
        draw.rectangle([ox - radius / 2.0, oy - radius / 2.0,
                        ox + radius / 2.0, oy + radius / 2.0], fill=_OBJECT_COLOR)

    for site in sites:
        sx, sy = site.position[0] * scale, site.position[1] * scale
        color = _SITE_POI_COLOR if site.has_poi else _SITE_COLOR
        draw.ellipse([sx - radius, sy - radius, sx + radius, sy + radius], fill=color)

    return img


def save_debug_image(grid, output_path, sites=(), objects=(), pixels_per_tile=4):
    """Render the debug image and write it as PNG, creating parent dirs."""
    img = render_debug_image(grid, sites, objects, pixels_per_tile)
    parent = os.path.dirname(output_path)
    if parent and not os.path.exists(parent):
        os.makedirs(parent)
    img.save(output_path, "PNG")
    log.info("Saved debug image %dx%d to %s", img.size[0], img.size[1], output_path)
    return output_path
