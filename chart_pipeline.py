'''
The chart processing pipeline.

Every selected chart goes through the stages in STAGE_ORDER:

    acquire -> extract -> normalize -> raster -> merge -> quantize -> package

A failing stage is logged and the next stage (and the next chart) still runs.
Only failing to find a chart cycle date stops the run, and that happens before
anything is created or downloaded.
'''

import glob
import http.client
import logging
import os
import shutil
import urllib.error
import zipfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from aeronav_download import get_chart_archive
from chart_dates import NoValidCycleError, get_best_chart_date
from chart_names import build_chart_area_list, normalize_chart_names
from run_report import RunReport
from tile_commands import (build_quantizing_pairs, merge_command, package_command,
                           quantize_command, raster_area_commands)
from tile_metadata import build_metadata, union_bounds, write_metadata
from tool_runner import Outcome, StageResult, run_command
from workspace import (StageFolder, cleanup_workarea, make_base_folders, make_chart_job,
                       make_working_folders)

logger = logging.getLogger(__name__)

# Nested IFR archives with this in their name hold the enroute low altitude charts
ENROUTE_LOW_MARKER = 'ENR_L'

# Files skipped when unzipping
_EXCLUDED_MEMBER_EXTENSIONS = ('.htm', '.html')

# Extraction leftovers removed from the IFR unzip folder
_IFR_RESIDUAL_PATTERNS = ('*.pdf', '*.htm', '*.html', '*.zip')

# Log quantization progress every this many images
QUANTIZE_PROGRESS_INTERVAL = 1000


def acquire_archive(job, settings, runner=run_command):
    '''Reuse the cached chart zip for this cycle, or download it.'''
    result = StageResult('acquire')
    try:
        path, cached = get_chart_archive(job.url, job.cache_folder, job.work_name, job.chart_date)
        result.value = path
    except (urllib.error.URLError, http.client.HTTPException, ValueError, OSError) as e:
        message = f'Download of {job.url} failed: {e}'
        logger.error(message)
        result.fail(message)
    return result


def _extract(zip_path, folder):
    with zipfile.ZipFile(zip_path, 'r') as zip_archive:
        members = [m for m in zip_archive.namelist() if not m.lower().endswith(_EXCLUDED_MEMBER_EXTENSIONS)]
        zip_archive.extractall(folder, members)
    return members


def extract_archive(job, settings, runner=run_command):
    '''
    Unzip the chart archive into the unzipped folder.

    IFR archives contain more archives. The enroute low ones are unzipped in
    place, then the leftover pdf, htm and zip files are removed.
    '''
    result = StageResult('extract')
    folder = job.folder(StageFolder.UNZIPPED)

    try:
        logger.info(f'Extracting {job.archive_path}')
        result.value = _extract(job.archive_path, folder)

        if job.is_ifr:
            for name in sorted(os.listdir(folder)):
                if ENROUTE_LOW_MARKER in name.upper() and name.lower().endswith('.zip'):
                    logger.info(f'Extracting nested {name}')
                    result.value += _extract(os.path.join(folder, name), folder)

            for pattern in _IFR_RESIDUAL_PATTERNS:
                for path in glob.glob(os.path.join(folder, pattern)):
                    if os.path.isfile(path):
                        os.remove(path)

    except (zipfile.BadZipFile, OSError) as e:
        message = f'Extraction of {job.archive_path} failed: {e}'
        logger.error(message)
        result.fail(message)
    return result


def normalize_names(job, settings, runner=run_command):
    '''Rename the chart images and sidecars to their normalized names.'''
    result = StageResult('normalize')
    try:
        result.value = normalize_chart_names(job.folder(StageFolder.UNZIPPED))
    except OSError as e:
        message = f'Renaming chart files failed: {e}'
        logger.error(message)
        result.fail(message)
    return result


def process_images(job, settings, runner=run_command):
    '''
    Translate, warp, build overviews and tile every chart area.

    Each area is independent. When a step fails the remaining steps of that
    area are skipped and processing moves on to the next area.
    '''
    result = StageResult('raster', value=[])
    for area in build_chart_area_list(job.folder(StageFolder.UNZIPPED)):
        logger.info(f'* chart {area}')
        for command in raster_area_commands(job, area, settings):
            if not result.add(runner(command)).ok:
                break
        else:
            result.value.append(area)
    return result


def merge_tiles(job, settings, runner=run_command):
    '''Merge every area's tile tree into the chart's merged tree, one area at a time.'''
    result = StageResult('merge', value=[])
    tiled = job.folder(StageFolder.TILED)
    merged = job.folder(StageFolder.MERGED)

    for area in sorted(os.listdir(tiled)):
        mergesource = os.path.join(tiled, area)
        if not os.path.isdir(mergesource):
            continue
        if result.add(runner(merge_command(mergesource, merged, settings))).ok:
            result.value.append(area)
    return result


def quantize_images(job, settings, runner=run_command):
    '''
    Quantize every merged PNG tile into the quantized tree.

    Tiles that fail to quantize (including those pngquant skips because the
    result would be larger) are copied unchanged, so no tile is ever lost.
    Does nothing for WEBP or full quality PNG.
    '''
    result = StageResult('quantize')
    if not settings.quantize:
        logger.info('Quantization not needed')
        return result

    try:
        pairs = build_quantizing_pairs(job.folder(StageFolder.MERGED), job.folder(StageFolder.QUANTIZED))
    except OSError as e:
        message = f'Building the quantization list failed: {e}'
        logger.error(message)
        return result.fail(message)

    logger.info(f'quantizing {len(pairs)} png images at {settings.tile_image_quality}%')

    copied = 0
    for i, (source, destination) in enumerate(pairs, start=1):
        if not runner(quantize_command(source, destination, settings), failure_level=logging.DEBUG).ok:
            try:
                shutil.copyfile(source, destination)
                copied += 1
            except OSError as e:
                message = f'Copying {source} failed: {e}'
                logger.error(message)
                result.fail(message)

        if i % QUANTIZE_PROGRESS_INTERVAL == 0:
            logger.info(f'{i} of {len(pairs)} images processed')

    logger.info(f'>> Total processed image count = {len(pairs)}, {copied} copied unquantized')
    result.value = len(pairs)
    return result


def make_mbtiles(job, settings, runner=run_command):
    '''Write metadata.json and package the tile tree into <workarea>/<chart name>.db.'''
    result = StageResult('package')
    sourcefolder = job.folder(StageFolder.QUANTIZED if settings.quantize else StageFolder.MERGED)

    try:
        logger.info('>> generating metadata json')
        clipped = sorted(glob.glob(os.path.join(job.folder(StageFolder.CLIPPED), '*.vrt')))
        metadata = build_metadata(job.chart_name, settings, union_bounds(clipped))
        write_metadata(sourcefolder, metadata)

        if os.path.exists(job.database_path):
            os.remove(job.database_path)
    except OSError as e:
        message = f'Preparing {job.database_path} failed: {e}'
        logger.error(message)
        return result.fail(message)

    logger.info(f'>> creating database: {job.database_path}')
    if result.add(runner(package_command(sourcefolder, job.database_path, settings))).ok:
        result.value = job.database_path
    return result


STAGE_ORDER = (
    acquire_archive,
    extract_archive,
    normalize_names,
    process_images,
    merge_tiles,
    quantize_images,
    make_mbtiles,
)


@dataclass
class RunResult:
    chart_date: Optional[str] = None
    outcome: Outcome = Outcome.SUCCESS
    charts: Dict[str, List[StageResult]] = field(default_factory=dict)
    report: Optional[RunReport] = None

    @property
    def aborted(self):
        return self.outcome is Outcome.FATAL


def run_chart_job(job, settings, runner=run_command):
    '''
    Run every stage for one chart, in order.

    Returns:
        list: One StageResult per stage run. Stops early only on a fatal result.
    '''
    logger.info(f'Processing chart {job.chart_name}')
    try:
        make_working_folders(job)
    except OSError as e:
        message = f'Creating working folders for {job.chart_name} failed: {e}'
        logger.error(message)
        return [StageResult('workspace').fail(message)]

    results = []
    for stage in STAGE_ORDER:
        stage_result = stage(job, settings, runner)
        results.append(stage_result)
        if stage_result.outcome is Outcome.FATAL:
            break
        if not stage_result.ok:
            logger.warning(f'{job.chart_name}: {stage_result.stage} stage had {len(stage_result.errors)} error(s), continuing')
    return results


def resolve_chart_date(candidates, now=None):
    '''Pick the chart cycle date. No valid date is fatal.'''
    result = StageResult('chart date')
    try:
        result.value = get_best_chart_date(candidates, now)
    except NoValidCycleError as e:
        logger.critical(str(e))
        result.fatal(str(e))
    return result


def run_pipeline(settings, basedir, candidates, now=None, runner=run_command, clock=None):
    '''
    Process every selected chart.

    Parameters
    ----------
    settings: Settings
        Run configuration
    basedir: str
        Folder holding chartcache, workarea and clipshapes
    candidates: list
        Candidate chart cycle dates
    now: datetime.date, optional
        Reference date for choosing the chart cycle, defaults to today
    runner: callable, optional
        Replacement for tool_runner.run_command
    clock: callable, optional
        Replacement for datetime.datetime.now in the run report

    Returns
    -------
    RunResult
    '''
    run = RunResult()

    date_result = resolve_chart_date(candidates, now)
    if date_result.outcome is Outcome.FATAL:
        run.outcome = Outcome.FATAL
        return run
    run.chart_date = date_result.value

    run.report = RunReport(clock) if clock else RunReport()

    try:
        cache, workarea = make_base_folders(basedir, run.chart_date, settings.rename_workarea)

        for chart in settings.selected_charts():
            job = make_chart_job(settings, chart, run.chart_date, basedir)
            results = run_chart_job(job, settings, runner)
            run.charts[job.chart_name] = results

            if any(r.outcome is Outcome.FATAL for r in results):
                logger.critical(f'Aborting run after fatal error in {job.chart_name}')
                run.outcome = Outcome.FATAL
                break
            if not all(r.ok for r in results) and run.outcome is Outcome.SUCCESS:
                run.outcome = Outcome.RECOVERABLE

        if settings.clean_process_folders:
            try:
                cleanup_workarea(workarea, cache)
            except OSError as e:
                logger.error(f'Cleaning {workarea} failed: {e}')
    finally:
        run.report.log()

    return run
