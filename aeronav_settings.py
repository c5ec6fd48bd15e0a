'''
Run configuration for aeronav2mbtiles.

Settings are read once from a JSON file and are read-only for the rest of the
run. See settings.json for a complete example.
'''

import json
import os
import sys
from dataclasses import dataclass, field, replace
from typing import NamedTuple, Optional, Tuple

IFR = 'ifr'
VFR = 'vfr'

IMAGE_FORMATS = ('png', 'webp')
LAYER_TYPES = ('overlay', 'baselayer')

# Placeholders in the download URL templates
CHART_DATE_TOKEN = '<chartdate>'
CHART_TYPE_TOKEN = '<charttype>'

# The tile merge script ships next to this module
_HERE = os.path.dirname(os.path.abspath(__file__))


class ChartDef(NamedTuple):
    '''One entry of the chart catalog.'''
    work_name: str
    category: str
    alias: Optional[str] = None

    @property
    def is_ifr(self):
        return self.category == IFR


@dataclass(frozen=True)
class Settings:
    charts: Tuple[ChartDef, ...]
    process_indexes: Tuple[int, ...]
    ifr_download_template: str
    vfr_download_template: str
    zoom_range: str = '0-11'
    image_format: str = 'png'
    tile_image_quality: int = 100
    layer_type: str = 'overlay'
    attribution: str = 'Aeronautical data courtesy of the FAA'
    rename_workarea: bool = False
    clean_process_folders: bool = False
    log_to_file: bool = False
    tile_processes: int = field(default_factory=lambda: os.cpu_count() or 1)
    gdal2tiles_command: Tuple[str, ...] = (sys.executable, '-m', 'osgeo_utils.gdal2tiles')
    merge_command: Tuple[str, ...] = ('perl', os.path.join(_HERE, 'mergetiles.pl'))
    quantize_command: Tuple[str, ...] = ('pngquant',)
    package_command: Tuple[str, ...] = ('mb-util',)

    @property
    def zooms(self):
        '''(minzoom, maxzoom) as strings. A single value is used for both.'''
        parts = self.zoom_range.split('-')
        return parts[0], parts[-1]

    @property
    def quantize(self):
        '''PNG tiles below full quality are quantized after merging. WEBP quality is applied by the tiler.'''
        return self.image_format == 'png' and self.tile_image_quality < 100

    def selected_charts(self):
        return [self.charts[i] for i in self.process_indexes]

    def select(self, work_names):
        '''
        Return a copy of the settings processing only the named charts.

        Raises:
            ValueError: If a name is not in the chart catalog.
        '''
        names = [c.work_name for c in self.charts]
        indexes = []
        for work_name in work_names:
            if work_name not in names:
                raise ValueError(f'Unknown chart "{work_name}"')
            indexes.append(names.index(work_name))
        return replace(self, process_indexes=tuple(indexes))

    def select_all(self):
        return replace(self, process_indexes=tuple(range(len(self.charts))))

    def download_url(self, chart, chart_date):
        template = self.ifr_download_template if chart.is_ifr else self.vfr_download_template
        return template.replace(CHART_DATE_TOKEN, chart_date).replace(CHART_TYPE_TOKEN, chart.work_name)


def _parse_chart(entry):
    if not 2 <= len(entry) <= 3:
        raise ValueError(f'Chart entry must be [work_name, category] or [work_name, category, alias]: {entry}')

    chart = ChartDef(*entry)
    if chart.category not in (IFR, VFR):
        raise ValueError(f'Chart "{chart.work_name}" has unknown category "{chart.category}"')
    if chart.is_ifr and not chart.alias:
        raise ValueError(f'IFR chart "{chart.work_name}" requires an alias')
    return chart


def _pick(values, index, what):
    try:
        return values[index]
    except (IndexError, TypeError):
        raise ValueError(f'{what} index {index} is out of range for {values}')


def settings_from_dict(data):
    '''
    Build Settings from a parsed settings dictionary, validating every value.

    Raises:
        ValueError: On any missing or invalid setting.
    '''
    try:
        charts = tuple(_parse_chart(entry) for entry in data['charts'])
        kwargs = {
            'charts': charts,
            'process_indexes': tuple(int(i) for i in data.get('process_indexes', [])),
            'ifr_download_template': data['ifr_download_template'],
            'vfr_download_template': data['vfr_download_template'],
        }
    except KeyError as e:
        raise ValueError(f'Missing setting {e}')

    for i in kwargs['process_indexes']:
        if not 0 <= i < len(charts):
            raise ValueError(f'Process index {i} is out of range for {len(charts)} charts')

    if 'tile_drivers' in data:
        kwargs['image_format'] = _pick(data['tile_drivers'], data.get('tile_driver_index', 0), 'Tile driver').lower()
    if 'layer_types' in data:
        kwargs['layer_type'] = _pick(data['layer_types'], data.get('layer_type_index', 0), 'Layer type')

    for key in ('zoom_range', 'attribution'):
        if key in data:
            kwargs[key] = str(data[key])
    for key in ('rename_workarea', 'clean_process_folders', 'log_to_file'):
        if key in data:
            kwargs[key] = bool(data[key])
    for key in ('tile_image_quality', 'tile_processes'):
        if key in data:
            kwargs[key] = int(data[key])
    for key in ('gdal2tiles_command', 'merge_command', 'quantize_command', 'package_command'):
        if key in data:
            kwargs[key] = tuple(data[key])

    settings = Settings(**kwargs)

    # Validate derived values
    if settings.image_format not in IMAGE_FORMATS:
        raise ValueError(f'Image format must be one of {IMAGE_FORMATS}, not "{settings.image_format}"')
    if settings.layer_type not in LAYER_TYPES:
        raise ValueError(f'Layer type must be one of {LAYER_TYPES}, not "{settings.layer_type}"')
    if not 1 <= settings.tile_image_quality <= 100:
        raise ValueError(f'Tile image quality must be between 1 and 100, not {settings.tile_image_quality}')
    if settings.tile_processes < 1:
        raise ValueError('tile_processes must be at least 1')

    zoom_parts = settings.zoom_range.split('-')
    if len(zoom_parts) > 2 or not all(p.isdigit() for p in zoom_parts):
        raise ValueError(f'Zoom range must be "min-max" or a single zoom level, not "{settings.zoom_range}"')
    minzoom, maxzoom = settings.zooms
    if int(minzoom) > int(maxzoom):
        raise ValueError(f'Zoom range "{settings.zoom_range}" is reversed')

    return settings


def load_settings(filename):
    '''Load and validate settings from a JSON file.'''
    with open(filename, 'r') as f:
        return settings_from_dict(json.load(f))
