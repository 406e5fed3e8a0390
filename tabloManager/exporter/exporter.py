#!/usr/bin/env python3

from collections import deque
from datetime import datetime
import logging
import os
import re

from tabloManager.conflicts import unscheduleAirings


EXPORT_CATEGORIES = ['Movies', 'Sports', 'TV']


class ExportPathError(Exception):
    pass


def sanitizeFileString(value):
    return re.sub(r'[<>:"/\\|?*]', '_', value)


def getSeason(season, padSingleDigit):
    if not season:
        return '00'
    if padSingleDigit and len(season) == 1:
        return '0' + sanitizeFileString(season)
    return sanitizeFileString(season)


def getExportFilename(airing):
    """
    Export filename of a scheduled airing, relative to the export root.

    Returns None for a show type with no naming rule.
    """
    showTitle = sanitizeFileString(airing.showTitle)
    if airing.showType == 'series':
        season = getSeason(airing.season, True)
        episode = '{:02d}'.format(airing.episode or 0)
        if episode == '00':
            episode = datetime.fromtimestamp(airing.airDate).strftime('%Y%m%d%H%M')
        filename = '{} - s{}e{} - {}.mp4'.format(showTitle, season, episode, sanitizeFileString(airing.episodeTitle))
        return os.path.join('TV', showTitle, 'Season {}'.format(season), filename)
    if airing.showType == 'movies':
        year = '0000'
        if airing.releaseDate is not None:
            year = '{:04d}'.format(datetime.fromtimestamp(airing.releaseDate).year)
        return os.path.join('Movies', '{} - {}.mp4'.format(showTitle, year))
    if airing.showType == 'sports':
        season = getSeason(airing.season, False)
        filename = '{} - {} - {}.mp4'.format(showTitle, season, sanitizeFileString(airing.episodeTitle))
        return os.path.join('Sports', showTitle, filename)
    return None


def checkExported(known, exportPath):
    """
    Compare the exported file index against the export tree.

    Returns (missing, found): indexed paths no longer on disk, and every file
    under the category directories, walked breadth first.
    """
    missing = [path for path in known if not os.path.exists(path)]
    found = []
    pending = deque(os.path.join(exportPath, category) for category in EXPORT_CATEGORIES)
    while pending:
        directory = pending.popleft()
        if not os.path.isdir(directory):
            continue
        for entry in sorted(os.listdir(directory)):
            entryPath = os.path.join(directory, entry)
            if os.path.isdir(entryPath):
                pending.append(entryPath)
            else:
                found.append(entryPath)
    return missing, found


class ExportReconciler:
    def __init__(self, api, db):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.db = db

    def reconcileExports(self, alternatePath=None):
        exportPath = alternatePath or self.db.getDefaultExportPath()
        if not exportPath:
            raise ExportPathError('No export path specified')
        self.logger.info('Reconciling exported files under {}'.format(exportPath))

        known = self.db.getExported()
        missing, found = checkExported(known, exportPath)
        if missing:
            self.logger.info('{} exported files no longer on disk'.format(len(missing)))
            self.db.deleteExported(missing)
        if not found:
            return 0
        self.db.insertExported(found)

        foundPaths = set(found)
        toUnschedule = []
        for airing in self.db.getScheduledAirings():
            filename = getExportFilename(airing)
            if filename is not None and os.path.join(exportPath, filename) in foundPaths:
                self.logger.info('Airing {} already exported as {}'.format(airing.airingID, filename))
                toUnschedule.append(airing)
        if not toUnschedule:
            return 0
        return unscheduleAirings(self.api, self.db, toUnschedule).unscheduled
