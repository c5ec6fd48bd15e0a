#!/usr/bin/env python3
'''
This script downloads FAA Aeronav chart bundles, unzips them, and processes
each selected chart into a single-file tile database (MBTiles) for use with a
web map viewer.

Command Line Arguments:
    --settings: Settings file (default: settings.json next to this script).
    --chartdates: Candidate chart cycle dates (default: chartdates.json next to this script).
    --scrape-dates: Take the candidate chart cycle dates from aeronav.faa.gov instead of --chartdates.
    --basedir: Folder holding chartcache, workarea and clipshapes (default: current directory).
    --charts: Work names of the charts to process, instead of the process_indexes setting.
    --all: Process every chart in the catalog.
    --list-charts: List the chart catalog and exit.
    --cleanup: Remove everything but the databases from the work area after processing.
    --logfile: Log to debug.log in basedir instead of the console.
    --quiet: Only log warnings and errors.

Usage:
    python aeronav2mbtiles.py --basedir /path/to/work --charts Denver Seattle --cleanup

Exit status is 0 unless no valid chart cycle date could be found.
'''

import argparse
import dataclasses
import logging
import os
import sys
import urllib.error

from aeronav_download import scrape_chart_dates
from aeronav_settings import load_settings
from chart_dates import load_chart_dates
from chart_pipeline import run_pipeline

logger = logging.getLogger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

LOG_FILE = 'debug.log'


def setup_logging(log_to_file, basedir, quiet=False):
    '''
    Send log records to the console, or to a fresh debug.log in basedir.
    '''
    if log_to_file:
        handler = logging.FileHandler(os.path.join(basedir, LOG_FILE), mode='w')
    else:
        handler = logging.StreamHandler()

    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[handler],
        force=True,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Download FAA Aeronav charts and build tile databases from them.')
    # Where things are
    parser.add_argument('--settings', default=os.path.join(_HERE, 'settings.json'), help='Settings file. Default is settings.json next to this script.')
    parser.add_argument('--chartdates', default=os.path.join(_HERE, 'chartdates.json'), help='JSON file with the candidate chart cycle dates. Default is chartdates.json next to this script.')
    parser.add_argument('--basedir', default='.', help='Folder holding chartcache, workarea and clipshapes. Default is the current directory.')
    # What to do
    parser.add_argument('--scrape-dates', action='store_true', help='Read the candidate chart cycle dates from aeronav.faa.gov instead of --chartdates.')
    parser.add_argument('--charts', nargs='*', help='Work names of the charts to process. Default is the process_indexes setting.')
    parser.add_argument('--all', action='store_true', help='Process every chart in the catalog, ignoring --charts.')
    parser.add_argument('--list-charts', action='store_true', help='List the chart catalog and exit.')
    parser.add_argument('--cleanup', action='store_true', help='Remove everything except the databases from the work area after processing.')
    # How to report it
    parser.add_argument('--logfile', action='store_true', help='Log to debug.log in basedir instead of the console.')
    parser.add_argument('--quiet', action='store_true', help='Only log warnings and errors.')
    return parser.parse_args(argv)


def main(argv=None):
    '''
    Main function. Returns the process exit status.
    '''
    args = parse_args(argv)

    settings = load_settings(args.settings)

    # List the chart catalog and exit
    if args.list_charts:
        for index, chart in enumerate(settings.charts):
            print(f'{index:3} {chart.work_name:30} {chart.category:4} {chart.alias or ""}')
        return 0

    # Command line switches override the settings file
    if args.all:
        settings = settings.select_all()
    elif args.charts:
        settings = settings.select(args.charts)
    if args.cleanup:
        settings = dataclasses.replace(settings, clean_process_folders=True)
    if args.logfile:
        settings = dataclasses.replace(settings, log_to_file=True)

    os.makedirs(args.basedir, exist_ok=True)
    setup_logging(settings.log_to_file, args.basedir, args.quiet)

    if args.scrape_dates:
        try:
            candidates = scrape_chart_dates()
        except urllib.error.URLError as e:
            logger.critical(f'Could not read chart dates from aeronav.faa.gov: {e}')
            return 1
    else:
        candidates = load_chart_dates(args.chartdates)

    run = run_pipeline(settings, args.basedir, candidates)
    return 1 if run.aborted else 0


if __name__ == '__main__':
    sys.exit(main())
