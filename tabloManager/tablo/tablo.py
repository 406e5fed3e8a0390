#!/usr/bin/env python3

from datetime import datetime
import logging
import os
import sqlite3

from apscheduler.triggers.date import DateTrigger
import pytz
import requests

from tabloManager.conflicts import ConflictEngine, MissingPriorityError, UnscheduleFailedError
from tabloManager.exporter import ExportPathError, ExportReconciler
from tabloManager.guideRefresh import EmptyResultError, GuideRefresher
from tabloManager.sqliteDatabase import DataIntegrityError, SqliteDatabase
from tabloManager.tabloAPI import TabloAPI, TabloAPIError, discoverTablos
from tabloManager.taskQueue import DEFAULT_THRESHOLDS, FreshnessScheduler, TaskQueueProcessor


# errors that abandon the current pass; the next scheduled run starts over
PROCESSING_ERRORS = (TabloAPIError, requests.exceptions.RequestException, EmptyResultError, DataIntegrityError,
                     MissingPriorityError, UnscheduleFailedError, ExportPathError, sqlite3.Error, OSError)


def logExportRequest(details, exportPath):
    logger = logging.getLogger(__name__)
    logger.warning('No exporter attached, skipping export of {} to {}'.format(details, exportPath))


class Tablo:
    def __init__(self, serverID, name, api, db, thresholds=DEFAULT_THRESHOLDS, priorities=None, exportHandler=logExportRequest):
        self.logger = logging.getLogger(__name__)
        self.serverID = serverID
        self.name = name
        self.api = api
        self.db = db
        self.conflictEngine = ConflictEngine(api, db)
        self.exportReconciler = ExportReconciler(api, db)
        self.refresher = GuideRefresher(api, db, self.conflictEngine, self.exportReconciler, priorities)
        self.freshnessScheduler = FreshnessScheduler(db, thresholds)
        self.queueProcessor = TaskQueueProcessor(db, self.freshnessScheduler, self.refresher, exportHandler)

    def process(self):
        self.logger.info('Processing tablo {} ({})'.format(self.name, self.serverID))
        try:
            while True:
                self.freshnessScheduler.enqueueDue()
                if self.queueProcessor.processQueue():
                    break
        except PROCESSING_ERRORS as error:
            self.logger.error('Processing of tablo {} abandoned: {}'.format(self.serverID, error))
            return False
        self.logger.info('Tablo {} processed'.format(self.serverID))
        return True

    def close(self):
        self.db.close()


# the next run starts loopDelay after the previous one finishes
def scheduleProcessing(scheduler, tablo, loopDelay, runDate=None):
    if runDate is None:
        runDate = datetime.now(pytz.utc) + loopDelay
    scheduler.add_job(processAndReschedule, trigger=DateTrigger(run_date=runDate), args=[scheduler, tablo, loopDelay],
                      id=tablo.serverID, replace_existing=True)


def processAndReschedule(scheduler, tablo, loopDelay):
    try:
        tablo.process()
    finally:
        scheduleProcessing(scheduler, tablo, loopDelay)


# a cache that exists but cannot be opened is thrown away and rebuilt from the tablo
def openCache(cacheFile):
    logger = logging.getLogger(__name__)
    try:
        return SqliteDatabase(cacheFile)
    except sqlite3.DatabaseError as error:
        logger.warning('Unable to open {} ({}), recreating it'.format(cacheFile, error))
    os.remove(cacheFile)
    return SqliteDatabase(cacheFile)


def createTablos(config, exportHandler=logExportRequest):
    logger = logging.getLogger(__name__)
    tabloInfos = config.tablo.tablos
    if not tabloInfos:
        tabloInfos = discoverTablos(config.tablo.discoveryURL, config.tablo.retryDelaySeconds)
    os.makedirs(config.general.cacheDir, exist_ok=True)
    tablos = []
    for tabloInfo in tabloInfos:
        logger.info('Tablo {} ({}) at {}'.format(tabloInfo.name, tabloInfo.serverID, tabloInfo.ipAddress))
        db = openCache(os.path.join(config.general.cacheDir, '{}.cache'.format(tabloInfo.serverID)))
        db.upsertSystemInfo(tabloInfo.serverID, tabloInfo.name, tabloInfo.ipAddress)
        if config.tablo.exportPath:
            db.setDefaultExportPath(config.tablo.exportPath)
        api = TabloAPI(tabloInfo.ipAddress, config.tablo.port, config.tablo.retryDelaySeconds, config.tablo.batchSize)
        tablos.append(Tablo(tabloInfo.serverID, tabloInfo.name, api, db, config.freshness, config.priorities, exportHandler))
    return tablos
