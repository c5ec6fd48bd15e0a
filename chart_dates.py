'''
Chart cycle date selection.

The FAA publishes charts on a fixed (roughly 28 day) cycle. Given a list of
candidate publication dates, pick the one that is valid right now.
'''

import datetime
import json
import logging

logger = logging.getLogger(__name__)

# A candidate is usable if it is at most this many days in the future...
MAX_DAYS_AHEAD = 20

# ...or at most this many days in the past
MAX_DAYS_BEHIND = 36

# Date format used in the FAA download URLs and in the cache file names
CHART_DATE_FORMAT = '%m-%d-%Y'

_INPUT_FORMATS = ('%Y-%m-%d', '%m-%d-%Y', '%m/%d/%Y')


class NoValidCycleError(ValueError):
    '''Raised when no candidate date falls inside the valid window.'''


def parse_chart_date(text):
    '''
    Parse a candidate date string. Accepts YYYY-MM-DD, MM-DD-YYYY and MM/DD/YYYY.

    Raises:
        ValueError: If the string matches none of the accepted formats.
    '''
    for fmt in _INPUT_FORMATS:
        try:
            return datetime.datetime.strptime(text.strip(), fmt).date()
        except ValueError:
            continue
    raise ValueError(f'Unrecognized chart date "{text}"')


def load_chart_dates(filename):
    '''
    Read candidate dates from a JSON file of the form {"ChartDates": [...]}.
    A bare JSON list is accepted too.
    '''
    with open(filename, 'r') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('ChartDates', [])

    return [parse_chart_date(d) for d in data]


def get_best_chart_date(candidates, now=None):
    '''
    Select the most recent candidate date d for which (now - d), in whole days,
    lies in [-MAX_DAYS_AHEAD, MAX_DAYS_BEHIND]. Both ends are inclusive.

    Parameters
    ----------
    candidates: iterable
        datetime.date (or datetime.datetime) values
    now: datetime.date or datetime.datetime, optional
        Reference time, defaults to today

    Returns
    -------
    str
        The selected date formatted as MM-DD-YYYY

    Raises
    ------
    NoValidCycleError
        If no candidate lies inside the window
    '''
    if now is None:
        now = datetime.date.today()
    if isinstance(now, datetime.datetime):
        now = now.date()

    dates = [d.date() if isinstance(d, datetime.datetime) else d for d in candidates]

    # Most recent first, the first one inside the window wins
    for candidate in sorted(dates, reverse=True):
        diffdays = (now - candidate).days
        if -MAX_DAYS_AHEAD <= diffdays <= MAX_DAYS_BEHIND:
            selected = candidate.strftime(CHART_DATE_FORMAT)
            logger.info(f'Using chart cycle date {selected}')
            return selected

    raise NoValidCycleError(f'No suitable chart date was found for {now.isoformat()}')
