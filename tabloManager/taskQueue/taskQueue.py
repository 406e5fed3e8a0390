#!/usr/bin/env python3

from datetime import datetime, timedelta
from enum import Enum
import logging

from munch import Munch
import pytz


class QueueAction(Enum):
    UPDATEGUIDE = 'UPDATEGUIDE'
    UPDATESCHEDULED = 'UPDATESCHEDULED'
    UPDATERECORDINGS = 'UPDATERECORDINGS'
    EXPORT = 'EXPORT'
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def fromString(cls, action):
        try:
            return cls(action)
        except ValueError:
            return cls.UNKNOWN


DEFAULT_THRESHOLDS = Munch(guide=timedelta(hours=24), scheduled=timedelta(hours=6), recordings=timedelta(hours=6))


class FreshnessScheduler:
    def __init__(self, db, thresholds=DEFAULT_THRESHOLDS):
        self.logger = logging.getLogger(__name__)
        self.db = db
        self.thresholds = thresholds

    def staleCategories(self, now=None):
        if now is None:
            now = datetime.now(pytz.utc)
        lastUpdated = self.db.getLastUpdated()
        return {category for category in ('guide', 'scheduled', 'recordings')
                if now - lastUpdated[category] > self.thresholds[category]}

    def needsRefresh(self, now=None):
        return bool(self.staleCategories(now))

    def enqueueTask(self, action):
        if self.db.countQueued(action.value) > 0:
            self.logger.debug('{} already queued'.format(action.value))
            return False
        queueID = self.db.enqueuePriority(action.value)
        self.logger.info('Queued {} as {}'.format(action.value, queueID))
        return True

    def enqueueDue(self, now=None):
        stale = self.staleCategories(now)
        if 'recordings' in stale:
            self.enqueueTask(QueueAction.UPDATERECORDINGS)
        # a guide refresh also refreshes the schedule
        if 'guide' in stale:
            self.enqueueTask(QueueAction.UPDATEGUIDE)
        elif 'scheduled' in stale:
            self.enqueueTask(QueueAction.UPDATESCHEDULED)
        return stale


class TaskQueueProcessor:
    def __init__(self, db, freshnessScheduler, refresher, exportHandler):
        self.logger = logging.getLogger(__name__)
        self.db = db
        self.freshnessScheduler = freshnessScheduler
        self.exportHandler = exportHandler
        self.dispatch = {
            QueueAction.UPDATEGUIDE: lambda task: refresher.updateGuide(),
            QueueAction.UPDATESCHEDULED: lambda task: refresher.updateScheduled(),
            QueueAction.UPDATERECORDINGS: lambda task: refresher.updateRecordings(),
            QueueAction.EXPORT: lambda task: self.exportHandler(task.details, task.exportPath),
        }

    def loadQueue(self):
        queue = self.db.getQueue()
        for task in queue:
            task.action = QueueAction.fromString(task.action)
        return queue

    def enqueueExport(self, details, exportPath=''):
        return self.db.enqueue(QueueAction.EXPORT.value, details, exportPath)

    def processTask(self, task):
        self.logger.info('Processing queue record {} {} {}'.format(task.queueID, task.action.value, task.details))
        handler = self.dispatch.get(task.action)
        if handler is None:
            self.logger.warning('Unsupported action for queue record {}, skipping'.format(task.queueID))
            return
        handler(task)

    def processQueue(self):
        """
        Run pending tasks in queue order, deleting each record once it has run.

        A task that raises is still deleted; its category is re-derived by the
        freshness scheduler. Returns False when processing stopped early because
        a category that was fresh at the start went stale.
        """
        staleAtStart = self.freshnessScheduler.staleCategories()
        for task in self.loadQueue():
            try:
                self.processTask(task)
            finally:
                self.logger.info('Deleting queue record {}'.format(task.queueID))
                self.db.deleteQueueRecord(task.queueID)
            newlyStale = self.freshnessScheduler.staleCategories() - staleAtStart
            if newlyStale:
                self.logger.info('Stopping queue processing, {} now stale'.format(', '.join(sorted(newlyStale))))
                return False
        self.logger.info('All queue records processed')
        return True
