"""
Metadata descriptor written next to a tile tree before packaging.

mb-util copies every key of metadata.json into the database metadata table.
"""

import json
import os

import rasterio
import rasterio.errors
from rasterio.warp import transform_bounds

METADATA_FILE = 'metadata.json'
METADATA_VERSION = '1.1'


def bounds_from_raster(filepath):
    """Read geographic bounds from a raster (TIF or VRT).

    Returns (lon_min, lat_min, lon_max, lat_max) in EPSG:4326, or None if
    the file is missing, unreadable or not georeferenced.
    """
    if not os.path.exists(filepath):
        return None

    try:
        with rasterio.open(filepath) as src:
            if src.crs is None:
                return None

            bounds = src.bounds
            return transform_bounds(
                src.crs, 'EPSG:4326',
                bounds.left, bounds.bottom, bounds.right, bounds.top
            )
    except (rasterio.errors.RasterioError, OSError):
        return None


def union_bounds(filepaths):
    """Union of the bounds of all readable rasters, or None if there are none."""
    all_bounds = [b for b in (bounds_from_raster(f) for f in filepaths) if b is not None]
    if not all_bounds:
        return None

    lon_mins, lat_mins, lon_maxs, lat_maxs = zip(*all_bounds)
    return min(lon_mins), min(lat_mins), max(lon_maxs), max(lat_maxs)


def build_metadata(chart_name, settings, bounds=None):
    """
    Build the metadata dictionary for one chart database.

    The description is the chart name with underscores as spaces. Zoom levels
    are written as strings.
    """
    minzoom, maxzoom = settings.zooms
    metadata = {
        'name': chart_name,
        'description': f'{chart_name.replace("_", " ")} Charts',
        'version': METADATA_VERSION,
        'type': settings.layer_type,
        'format': settings.image_format,
        'quality': settings.tile_image_quality,
        'minzoom': minzoom,
        'maxzoom': maxzoom,
        'attribution': settings.attribution,
    }

    if bounds is not None:
        west, south, east, north = bounds
        metadata['bounds'] = f'{west:.6f},{south:.6f},{east:.6f},{north:.6f}'
        metadata['center'] = f'{(west + east) / 2:.6f},{(south + north) / 2:.6f},{minzoom}'

    return metadata


def write_metadata(folder, metadata):
    """Write metadata.json into folder and return its path."""
    path = os.path.join(folder, METADATA_FILE)
    with open(path, 'w') as f:
        json.dump(metadata, f, indent=4)
    return path
