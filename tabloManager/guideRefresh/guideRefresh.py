#!/usr/bin/env python3

from datetime import datetime
import logging

import pytz


class EmptyResultError(Exception):
    pass


class NoAiringsReturnedError(EmptyResultError):
    pass


class GuideRefresher:
    def __init__(self, api, db, conflictEngine, exportReconciler, priorities=None):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.db = db
        self.conflictEngine = conflictEngine
        self.exportReconciler = exportReconciler
        self.priorities = priorities or {}

    def fetchObjects(self, listPath, description, errorClass=EmptyResultError):
        objects = self.api.getObjects(listPath)
        if not objects:
            raise errorClass('No {} returned from {}'.format(description, listPath))
        return objects

    def refreshChannels(self, listPath='/guide/channels'):
        channels = self.fetchObjects(listPath, 'channels')
        count = self.db.upsertChannels(channels)
        self.logger.info('{} channels updated from {}'.format(count, listPath))

    def refreshShows(self, listPath='/guide/shows'):
        shows = self.fetchObjects(listPath, 'shows')
        count = self.db.upsertShows(shows)
        self.logger.info('{} shows updated from {}'.format(count, listPath))
        for title, priority in self.priorities.items():
            self.db.setPriorityByTitle(title, priority)

    def refreshAirings(self, listPath='/guide/airings'):
        airings = self.fetchObjects(listPath, 'airings', NoAiringsReturnedError)
        count = self.db.upsertAirings(airings)
        self.logger.info('{} airings updated from {}'.format(count, listPath))

    def refreshScheduledAirings(self):
        self.logger.info('Resetting schedule state of {} airings'.format(self.db.resetScheduled()))
        for state in ('scheduled', 'conflicted'):
            try:
                self.refreshAirings('/guide/airings?state={}'.format(state))
            except NoAiringsReturnedError as error:
                self.logger.info(error)

    def refreshSpace(self):
        drives = self.api.get('/server/harddrives')
        totalSize = sum(drive.get('size') or 0 for drive in drives)
        freeSize = sum(drive.get('free') or 0 for drive in drives)
        self.db.updateSpace(totalSize, freeSize)
        self.logger.info('{} of {} bytes free'.format(freeSize, totalSize))

    def runPass(self, fullGuide):
        """
        One pass of the refresh pipeline.

        Returns the number of airings unscheduled because their export already
        exists on disk. Priority conflict resolution only runs on a pass where
        that number is zero.
        """
        self.logger.info('Purged {} expired airings'.format(self.db.purgeExpiredAirings()))
        self.refreshChannels()
        self.refreshShows()
        if fullGuide:
            self.refreshAirings()
        else:
            self.refreshScheduledAirings()
        self.conflictEngine.rebuildConflicts()
        self.refreshSpace()
        unscheduledCount = 0
        if self.db.getDefaultExportPath():
            unscheduledCount = self.exportReconciler.reconcileExports()
        if unscheduledCount == 0:
            self.conflictEngine.autoresolveConflicts()
        return unscheduledCount

    # unscheduling an exported airing can change what the tablo reports as conflicted, so keep going until nothing moves
    def refreshUntilStable(self, fullGuide):
        while True:
            unscheduledCount = self.runPass(fullGuide)
            if unscheduledCount == 0:
                break
            self.logger.info('{} exported airings unscheduled, refreshing again'.format(unscheduledCount))

    def updateGuide(self):
        self.logger.info('Updating guide')
        self.refreshUntilStable(True)
        now = datetime.now(pytz.utc)
        self.db.updateGuideLastUpdated(now)
        self.db.updateScheduledLastUpdated(now)
        self.logger.info('Guide updated')

    def updateScheduled(self):
        self.logger.info('Updating scheduled airings')
        self.refreshUntilStable(False)
        self.db.updateScheduledLastUpdated(datetime.now(pytz.utc))
        self.logger.info('Scheduled airings updated')

    def updateRecordings(self):
        self.logger.info('Updating recordings')
        self.refreshChannels('/recordings/channels')
        self.refreshShows('/recordings/shows')
        recordings = self.fetchObjects('/recordings/airings', 'recordings')
        count = self.db.upsertRecordings(recordings)
        self.logger.info('{} recordings updated'.format(count))
        fetchedIDs = {recording['object_id'] for recording in recordings.values() if recording.get('object_id')}
        deletedIDs = self.db.getRecordingIDs() - fetchedIDs
        if deletedIDs:
            self.logger.info('Removing {} recordings no longer on the tablo'.format(len(deletedIDs)))
            self.db.deleteRecordings(deletedIDs)
        self.db.updateRecordingsLastUpdated(datetime.now(pytz.utc))
        self.logger.info('Recordings updated')
