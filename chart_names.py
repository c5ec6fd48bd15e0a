'''
Chart file name normalization and chart area discovery.

FAA archives name their GeoTIFFs with spaces, dashes, apostrophes and a
trailing chart type ("Denver SEC.tif", "Chicago O'Hare Inset TAC.tif"). The
downstream tools address files by a plain lower case name instead.
'''

import logging
import os
import re

logger = logging.getLogger(__name__)

# Primary raster and its two georeferencing sidecars
CHART_IMAGE_EXTENSION = '.tif'
CHART_EXTENSIONS = (CHART_IMAGE_EXTENSION, '.tfw', '.tfwx')

# Chart type suffixes dropped from the name, only as whole "_xxx" tokens
_SUFFIX_PATTERN = re.compile(r'_(?:sec|tac)(?=[_.]|$)')

# Chart areas containing any of these are not processed
EXCLUDED_AREA_MARKERS = ('fly', 'planning')


def normalize_file_name(name):
    '''
    Canonicalize a chart file name.

    Lower case, spaces and dashes become underscores, single quotes are removed
    and the "_sec" / "_tac" chart type suffix is stripped. Applying it to an
    already normalized name returns the name unchanged.

    Example:
        >>> normalize_file_name('VFR Sectional-Denver_SEC.TIF')
        'vfr_sectional_denver.tif'
    '''
    newname = name.lower().replace(' ', '_').replace('-', '_').replace("'", '')
    return _SUFFIX_PATTERN.sub('', newname)


def is_chart_file(name):
    '''True if the file has one of the chart image or sidecar extensions.'''
    return os.path.splitext(name)[1].lower() in CHART_EXTENSIONS


def normalize_chart_names(folder):
    '''
    Rename every chart image and sidecar in folder through normalize_file_name.
    Other files are left alone.

    Returns:
        list: (old name, new name) for each file that was actually renamed.
    '''
    renamed = []
    for name in sorted(os.listdir(folder)):
        if not is_chart_file(name):
            continue

        newname = normalize_file_name(name)
        if newname == name:
            continue

        os.rename(os.path.join(folder, name), os.path.join(folder, newname))
        logger.debug(f'Renamed {name} -> {newname}')
        renamed.append((name, newname))
    return renamed


def build_chart_area_list(folder):
    '''
    List the chart areas found in folder, i.e. the stems of all .tif files
    except flyway and planning charts.

    Returns:
        list: Sorted lower case area names without extension.
    '''
    areas = []
    for name in os.listdir(folder):
        fname = name.lower()
        if not fname.endswith(CHART_IMAGE_EXTENSION):
            continue
        if any(marker in fname for marker in EXCLUDED_AREA_MARKERS):
            continue
        areas.append(fname[:-len(CHART_IMAGE_EXTENSION)])
    return sorted(areas)
