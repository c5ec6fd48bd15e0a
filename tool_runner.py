'''
Run external tools (gdal, pngquant, mb-util, ...) one at a time.

A failing tool never stops the run: the failure is logged and handed back to
the caller as a result value.
'''

import enum
import logging
import shlex
import subprocess
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    SUCCESS = 'success'
    RECOVERABLE = 'recoverable'
    FATAL = 'fatal'


@dataclass(frozen=True)
class ToolResult:
    '''Result of one external command.'''
    command: tuple
    returncode: int
    output: str = ''
    error: str = ''

    @property
    def ok(self):
        return self.returncode == 0


@dataclass
class StageResult:
    '''Result of one pipeline stage for one chart.'''
    stage: str
    outcome: Outcome = Outcome.SUCCESS
    errors: list = field(default_factory=list)
    value: object = None

    @property
    def ok(self):
        return self.outcome is Outcome.SUCCESS

    def fail(self, message):
        '''Record a recoverable failure. A fatal outcome is never downgraded.'''
        self.errors.append(message)
        if self.outcome is not Outcome.FATAL:
            self.outcome = Outcome.RECOVERABLE
        return self

    def fatal(self, message):
        self.errors.append(message)
        self.outcome = Outcome.FATAL
        return self

    def add(self, tool_result):
        '''Fold a ToolResult into this stage result.'''
        if not tool_result.ok:
            self.fail(tool_result.error)
        return tool_result


def format_command(command):
    return ' '.join(shlex.quote(str(arg)) for arg in command)


def run_command(command, failure_level=logging.ERROR):
    '''
    Run a command synchronously and log its combined stdout/stderr.

    There is no timeout and no retry. A non-zero exit status or a failure to
    launch the program is logged and returned, never raised.

    Parameters
    ----------
    command: list
        Program and arguments. Arguments are converted with str().
    failure_level: int
        Log level for a failure, for callers that expect some commands to fail.

    Returns
    -------
    ToolResult
    '''
    command = tuple(str(arg) for arg in command)
    cmdline = format_command(command)
    logger.debug(f'Running: {cmdline}')

    try:
        result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                                text=True, encoding='utf-8', errors='replace')
    except OSError as e:
        message = f'Command failed to start: {cmdline}: {e}'
        logger.log(failure_level, message)
        return ToolResult(command, -1, '', message)

    output = result.stdout or ''
    if output.strip():
        logger.info(output.rstrip())

    if result.returncode != 0:
        message = f'Command failed with exit status {result.returncode}: {cmdline}'
        logger.log(failure_level, message)
        return ToolResult(command, result.returncode, output, message)

    return ToolResult(command, 0, output)
