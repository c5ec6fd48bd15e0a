'''
Start, end and total processing time of a run.
'''

import datetime
import logging

logger = logging.getLogger(__name__)


def processing_time(start, end):
    '''
    Elapsed time between two local wall-clock times.

    If end is earlier than start the clock went past midnight (or back an
    hour), so end is moved forward one day before subtracting.

    Returns:
        datetime.timedelta
    '''
    if end < start:
        end += datetime.timedelta(days=1)
    return end - start


def format_duration(elapsed):
    '''H:MM:SS, hours are not wrapped at 24.'''
    seconds = int(elapsed.total_seconds())
    hh, seconds = divmod(seconds, 3600)
    mm, ss = divmod(seconds, 60)
    return f'{hh}:{mm:02}:{ss:02}'


class RunReport:
    '''Records when a run started and ended and logs the total once at the end.'''

    def __init__(self, clock=datetime.datetime.now):
        self._clock = clock
        self.start = clock()
        self.end = None

    def finish(self):
        self.end = self._clock()
        if self.end < self.start:
            self.end += datetime.timedelta(days=1)
        return self.elapsed

    @property
    def elapsed(self):
        if self.end is None:
            return None
        return processing_time(self.start, self.end)

    def summary(self):
        return (f'Start time: {self.start:%Y-%m-%d %H:%M:%S}\n'
                f'End time: {self.end:%Y-%m-%d %H:%M:%S}\n'
                f'Total processing time: {format_duration(self.elapsed)}')

    def log(self):
        if self.end is None:
            self.finish()
        logger.info(self.summary())
