# Copyright (C) 2009 The Open Planning Project
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; either version 2
# of the License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the
# Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor,
# Boston, MA  02110-1301
# USA

from datetime import timedelta
import logging
import random
import time

__all__ = ['Backoff', 'retry_with_backoff']

log = logging.getLogger(__name__)

class Backoff(object):
    """
    bounded exponential backoff with jitter.  the delay before
    attempt n+1 is backoff * f^(n-1) with f random in [1.5, 2],
    never more than max_backoff.
    """
    def __init__(self, attempts=5, backoff=1.0, max_backoff=3600):
        self.attempts = attempts
        self.backoff = backoff
        self.max_backoff = max_backoff

    def delay(self, failures):
        """
        seconds to wait after the given number of consecutive failures
        """
        if failures <= 0 or self.backoff <= 0:
            return 0
        delay = self.backoff
        for i in range(failures - 1):
            delay *= random.uniform(1.5, 2)
            if delay >= self.max_backoff:
                return self.max_backoff
        return min(delay, self.max_backoff)

    def next_attempt(self, failures, now):
        return now + timedelta(seconds=self.delay(failures))

    def exhausted(self, failures):
        return failures >= self.attempts

    @classmethod
    def from_config(cls, cfg):
        return cls(attempts=int(cfg.get('attempts', 5)),
                   backoff=float(cfg.get('backoff', 1.0)),
                   max_backoff=float(cfg.get('max_backoff', 3600)))


def retry_with_backoff(func, retry_on, backoff, sleep=time.sleep, pass_count=False):
    """
    execute func, re-executing it after a backoff when one of the
    exceptions in retry_on is raised.  gives up (re-raising) once
    backoff.attempts executions have failed.
    """
    executions = 1
    while True:
        try:
            if pass_count:
                return func(executions)
            else:
                return func()
        except retry_on as e:
            if backoff.exhausted(executions):
                log.warning("Giving up after %d attempts: %s" % (executions, e))
                raise
            delay = backoff.delay(executions)
            if executions >= 3:
                log.warning("Failure #%d (%s), retrying in %s seconds" % (executions, e, delay))
            else:
                log.debug("Failure #%d (%s), retrying in %s seconds" % (executions, e, delay))
            sleep(delay)
            executions += 1
