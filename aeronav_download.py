#!/usr/bin/env python3
'''
FAA Aeronav chart downloads and the local archive cache.

The cache holds one zip per chart, named <work name>-<MM-DD-YYYY>.zip. An
archive for the current cycle is reused as is; an archive from an older cycle
is deleted before the new one is fetched.

Can also be run on its own to list the chart cycle dates currently linked from
aeronav.faa.gov:

Usage:
    python aeronav_download.py
'''

import collections
import datetime
import logging
import os
import re
import urllib.error
import urllib.request

import bs4

from workspace import cached_archive_name

logger = logging.getLogger(__name__)

# FAA Aeronav index URLs
_AERONAV_VFR_URL = 'https://www.faa.gov/air_traffic/flight_info/aeronav/digital_products/vfr/'
_AERONAV_IFR_URL = 'https://www.faa.gov/air_traffic/flight_info/aeronav/digital_products/ifr/'

# Chart type IDs used on the FAA website (div IDs in the HTML)
_VFR_CHART_TYPES = ['sectional', 'terminalArea', 'helicopter', 'grandCanyon', 'Planning', 'caribbean']
_IFR_CHART_TYPES = ['lowsHighsAreas', 'planning', 'caribbean', 'gulf']

_DATE_PATTERN = re.compile(r'/(\d{2}-\d{2}-\d{4})/')


def download(url, filename):
    '''
    Downloads a file from the given URL and saves it to filename.
    The data is written to a temporary ".part" file first and only renamed into
    place once complete, so an interrupted download never looks like a cached file.

    Args:
        url (str): The URL of the file to download.
        filename (str): The full path of the file to save.

    Returns:
        str: The filename of the downloaded file.

    Raises:
        urllib.error.URLError: If the download fails.
    '''
    partial = filename + '.part'
    try:
        with urllib.request.urlopen(url) as response:
            with open(partial, 'wb') as f:
                f.write(response.read())
        os.replace(partial, filename)
    finally:
        if os.path.exists(partial):
            os.remove(partial)

    return filename


def evict_stale_archives(cache_folder, work_name, keep):
    '''
    Delete cached archives of work_name other than keep.

    Returns:
        list: The names of the deleted archives.
    '''
    evicted = []
    for name in sorted(os.listdir(cache_folder)):
        if name != keep and name.startswith(f'{work_name}-') and name.endswith('.zip'):
            os.remove(os.path.join(cache_folder, name))
            logger.info(f'Removed stale archive {name}')
            evicted.append(name)
    return evicted


def get_chart_archive(url, cache_folder, work_name, chart_date):
    '''
    Return the path of the cached archive for (work_name, chart_date), downloading it if needed.

    Parameters
    ----------
    url: str
        Download URL of the chart zip
    cache_folder: str
        The archive cache
    work_name: str
        Chart work name, the cache key prefix
    chart_date: str
        Chart cycle date, MM-DD-YYYY

    Returns
    -------
    tuple
        (path, cached) where cached is True if no download was made
    '''
    name = cached_archive_name(work_name, chart_date)
    chartzip = os.path.join(cache_folder, name)

    if os.path.exists(chartzip):
        logger.info(f'Using cached {chartzip}')
        return chartzip, True

    evict_stale_archives(cache_folder, work_name, keep=name)

    logger.info(f'Downloading {url} to {chartzip}')
    download(url, chartzip)
    return chartzip, False


def get_current_aeronav_urls(index_url, chart_types):
    '''
    Scrapes the aeronav.faa.gov website for the current URLs of the specified chart types.
    '''

    # Read the page for scraping
    with urllib.request.urlopen(index_url) as response:
        html = response.read().decode('utf-8')

    return find_geotiff_urls(html, chart_types)


def find_geotiff_urls(html, chart_types):
    '''
    Find the Geo-TIFF links in an FAA digital products index page.

    Each chart type is a div holding tables with one row per chart. The second
    cell of a row links the current edition.
    '''
    soup = bs4.BeautifulSoup(html, 'html.parser')

    urls = []
    for chart_type in chart_types:
        div = soup.find('div', id=chart_type)
        if not div:
            continue
        for row in div.find_all('tr'):
            cells = row.find_all('td')
            if len(cells) < 2:
                continue
            urls.extend(a['href'] for a in cells[1].find_all('a', href=True)
                        if a.get_text(strip=True).lower() == 'geo-tiff')
    return urls


def fix_faa_incorrect_urls(urls):
    '''
    The FAA's index pages sometimes link a file under the wrong cycle. Rewrite
    every URL onto the most common base (everything up to and including the
    date) so all of them point at the same cycle.

    Raises:
        ValueError: If a URL has no MM-DD-YYYY path segment.
    '''
    parts = []
    for url in urls:
        match = _DATE_PATTERN.search(url)
        if not match:
            raise ValueError(f'Could not find date in aeronav URL {url}')
        parts.append((url[:match.end(1)], url[match.end(1):]))

    bases = collections.Counter(base for base, _ in parts)
    if len(bases) <= 1:
        return urls

    most_common_base = bases.most_common(1)[0][0]
    return [most_common_base + rest for _, rest in parts]


def dates_from_urls(urls):
    '''
    Extract the distinct chart cycle dates from a list of aeronav URLs.

    Returns:
        list: datetime.date values, most recent first.
    '''
    dates = set()
    for url in urls:
        match = _DATE_PATTERN.search(url)
        if match:
            dates.add(datetime.datetime.strptime(match.group(1), '%m-%d-%Y').date())
    return sorted(dates, reverse=True)


def scrape_chart_dates():
    '''
    Candidate chart cycle dates as currently linked from aeronav.faa.gov.
    '''
    logger.info('Scraping aeronav.faa.gov for chart dates...')
    vfr_urls = fix_faa_incorrect_urls(get_current_aeronav_urls(_AERONAV_VFR_URL, _VFR_CHART_TYPES))
    ifr_urls = fix_faa_incorrect_urls(get_current_aeronav_urls(_AERONAV_IFR_URL, _IFR_CHART_TYPES))
    return dates_from_urls(vfr_urls + ifr_urls)


def main():
    '''
    Print the chart cycle dates currently published on aeronav.faa.gov.
    '''
    logging.basicConfig(level=logging.INFO, format='%(message)s')
    for date in scrape_chart_dates():
        print(date.strftime('%m-%d-%Y'))


if __name__ == '__main__':
    main()
