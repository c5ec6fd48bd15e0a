'''
Working folder layout.

    <basedir>/chartcache/                   downloaded zips, kept between runs
    <basedir>/workarea[_MM-DD-YYYY]/        one run
        <chart name>.db                     finished databases
        <chart name>/1_unzipped ... 6_quantized
'''

import enum
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)

CACHE_FOLDER = 'chartcache'
WORKAREA_FOLDER = 'workarea'
CLIPSHAPES_FOLDER = 'clipshapes'
DATABASE_EXTENSION = '.db'


class StageFolder(enum.Enum):
    '''Per chart intermediate folders. The value is the folder name on disk.'''
    UNZIPPED = '1_unzipped'
    EXPANDED = '2_expanded'
    CLIPPED = '3_clipped'
    TILED = '4_tiled'
    MERGED = '5_merged'
    QUANTIZED = '6_quantized'


@dataclass(frozen=True)
class ChartJob:
    '''Everything one chart needs to be processed. Built fresh for each chart.'''
    work_name: str
    chart_name: str
    is_ifr: bool
    url: str
    chart_date: str
    cache_folder: str
    workarea: str
    clip_shape_folder: str
    chart_folder: str
    folders: Dict[StageFolder, str]

    def folder(self, stage):
        return self.folders[stage]

    @property
    def archive_path(self):
        return os.path.join(self.cache_folder, cached_archive_name(self.work_name, self.chart_date))

    @property
    def database_path(self):
        return os.path.join(self.workarea, f'{self.chart_name}{DATABASE_EXTENSION}')


def cached_archive_name(work_name, chart_date):
    return f'{work_name}-{chart_date}.zip'


def workarea_path(basedir, chart_date, rename_workarea=False):
    '''Path of the run's work area, suffixed with the chart date if requested.'''
    name = WORKAREA_FOLDER
    if rename_workarea:
        name += f'_{chart_date}'
    return os.path.join(basedir, name)


def cache_path(basedir):
    return os.path.join(basedir, CACHE_FOLDER)


def make_chart_job(settings, chart, chart_date, basedir):
    '''
    Build the ChartJob for one catalog entry.

    IFR charts are addressed by their alias (folder, database and clip shapes),
    VFR charts by their work name. The download and cache always use the work
    name.
    '''
    workarea = workarea_path(basedir, chart_date, settings.rename_workarea)
    chart_name = chart.alias if chart.is_ifr else chart.work_name
    chart_folder = os.path.join(workarea, chart_name)

    return ChartJob(
        work_name=chart.work_name,
        chart_name=chart_name,
        is_ifr=chart.is_ifr,
        url=settings.download_url(chart, chart_date),
        chart_date=chart_date,
        cache_folder=cache_path(basedir),
        workarea=workarea,
        clip_shape_folder=os.path.join(basedir, CLIPSHAPES_FOLDER, chart_name.lower()),
        chart_folder=chart_folder,
        folders={stage: os.path.join(chart_folder, stage.value) for stage in StageFolder},
    )


def make_base_folders(basedir, chart_date, rename_workarea=False):
    '''Create the cache and the work area. Returns (cache, workarea).'''
    cache = cache_path(basedir)
    workarea = workarea_path(basedir, chart_date, rename_workarea)
    os.makedirs(cache, exist_ok=True)
    os.makedirs(workarea, exist_ok=True)
    return cache, workarea


def make_working_folders(job):
    '''Create the chart folder and its six stage folders. Existing folders are fine.'''
    logger.info('Creating working area subfolders')
    os.makedirs(job.chart_folder, exist_ok=True)
    for stage in StageFolder:
        os.makedirs(job.folder(stage), exist_ok=True)


def cleanup_workarea(workarea, cache):
    '''
    Remove everything in the work area except the finished databases.

    Returns:
        list: Names of the removed entries.

    Raises:
        ValueError: If the work area is, or contains, the download cache.
    '''
    workarea = os.path.realpath(workarea)
    cache = os.path.realpath(cache)
    if os.path.commonpath([workarea, cache]) == workarea:
        raise ValueError(f'Refusing to clean {workarea}, it contains the download cache {cache}')

    removed = []
    for name in sorted(os.listdir(workarea)):
        if name.endswith(DATABASE_EXTENSION):
            continue

        path = os.path.join(workarea, name)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
        removed.append(name)

    logger.info(f'Removed {len(removed)} work area entries from {workarea}')
    return removed
