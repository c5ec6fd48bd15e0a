'''
Command lines for the external raster tools, and the quantization batch.

Each builder returns an argument list ready for tool_runner.run_command.
'''

import os

from workspace import StageFolder


def raster_area_commands(job, area, settings):
    '''
    The four GDAL steps for one chart area, in order.

    1) gdal_translate: expand the color table to RGBA (VFR) into a VRT
    2) gdalwarp: warp to EPSG:4326 and clip off the borders and legend
    3) gdaladdo: build overviews for all zoom levels
    4) gdal2tiles: render the tiles

    Parameters
    ----------
    job: ChartJob
        The chart being processed
    area: str
        Normalized chart area name (file stem in the unzipped folder)
    settings: Settings
        Run configuration

    Returns
    -------
    list
        Four argument lists
    '''
    shapefile = os.path.join(job.clip_shape_folder, f'{area}.shp')
    sourcetif = os.path.join(job.folder(StageFolder.UNZIPPED), f'{area}.tif')
    expanded = os.path.join(job.folder(StageFolder.EXPANDED), f'{area}.vrt')
    clipped = os.path.join(job.folder(StageFolder.CLIPPED), f'{area}.vrt')
    tiled = os.path.join(job.folder(StageFolder.TILED), area)

    # IFR charts are already RGB, they only need their SRS read from the EPSG code
    if job.is_ifr:
        translate = ['gdal_translate', '-strict', '-of', 'vrt', '-co', 'TILED=YES', '-co', 'GTIFF_SRS_SOURCE=EPSG', sourcetif, expanded]
    else:
        translate = ['gdal_translate', '-strict', '-of', 'vrt', '-co', 'TILED=YES', '-expand', 'rgba', sourcetif, expanded]

    warp = ['gdalwarp', '-t_srs', 'EPSG:4326', '-dstalpha', '-cblend', '6', '-cutline', shapefile, '-crop_to_cutline', expanded, clipped]

    addo = ['gdaladdo', '--config', 'GDAL_NUM_THREADS', 'ALL_CPUS', clipped]

    return [translate, warp, addo, tile_command(clipped, tiled, settings)]


def tile_command(source, destination, settings):
    '''gdal2tiles command. Quality only applies to WEBP here, PNG is quantized later.'''
    formatargs = ['--tiledriver=PNG']
    if settings.image_format == 'webp':
        formatargs = ['--tiledriver=WEBP', f'--webp-quality={settings.tile_image_quality}']

    return [*settings.gdal2tiles_command,
            f'--zoom={settings.zoom_range}',
            f'--processes={settings.tile_processes}',
            *formatargs,
            '--tmscompatible',
            '--webviewer=leaflet',
            source, destination]


def merge_command(source, destination, settings):
    '''Merge one area tile tree into the chart's merged tree.'''
    return [*settings.merge_command, source, destination]


def quantize_command(source, destination, settings):
    return [*settings.quantize_command, '--strip', '--skip-if-larger', '--force',
            '--quality', str(settings.tile_image_quality), source, '--output', destination]


def package_command(source_folder, database, settings):
    return [*settings.package_command, f'--image_format={settings.image_format}', '--scheme=tms', source_folder, database]


def build_quantizing_pairs(merged_folder, quantized_folder):
    '''
    Walk a merged tile tree (zoom/x/y.png) and pair every tile with its path
    in the quantized tree. Destination folders are created as they are first
    needed so every pair can be written straight away.

    Files directly in the zoom level folders or the tree root (metadata,
    leaflet viewer) are not tiles and are skipped.

    Returns:
        list: (source path, destination path) tuples, one per tile.
    '''
    pairs = []
    for zoomlevel in sorted(os.listdir(merged_folder)):
        zoomfolder = os.path.join(merged_folder, zoomlevel)
        if not os.path.isdir(zoomfolder):
            continue

        quantzoomfolder = os.path.join(quantized_folder, zoomlevel)
        os.makedirs(quantzoomfolder, exist_ok=True)

        for x in sorted(os.listdir(zoomfolder)):
            xfolder = os.path.join(zoomfolder, x)
            if not os.path.isdir(xfolder):
                continue

            quantxfolder = os.path.join(quantzoomfolder, x)
            os.makedirs(quantxfolder, exist_ok=True)

            for image in sorted(os.listdir(xfolder)):
                imgpath = os.path.join(xfolder, image)
                if os.path.isfile(imgpath):
                    pairs.append((imgpath, os.path.join(quantxfolder, image)))
    return pairs
