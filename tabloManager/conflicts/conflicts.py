#!/usr/bin/env python3

import logging

from munch import Munch


# remote object subpath used to patch an airing of each show type
SHOW_TYPE_SUBPATH = {
    'series': '/series/episodes',
    'movies': '/movies/airings',
    'sports': '/sports/events',
}


class MissingPriorityError(Exception):
    pass


class UnscheduleFailedError(Exception):
    pass


def overlaps(airDate1, endDate1, airDate2, endDate2):
    return (airDate1 == airDate2 or
            endDate1 == endDate2 or
            (airDate1 > airDate2 and airDate1 < endDate2) or
            (endDate1 > airDate2 and endDate1 < endDate2) or
            (airDate1 < airDate2 and endDate1 > endDate2))


def findConflicts(conflicted, scheduled):
    """
    Every conflicted airing, plus each scheduled airing that overlaps one of them.

    A scheduled airing is attached to the first conflicted airing it overlaps
    and is not considered again.
    """
    conflicts = []
    matched = set()
    for conflict in conflicted:
        conflicts.append(Munch(airingID=conflict.airingID, showID=conflict.showID, airDate=conflict.airDate, endDate=conflict.endDate))
        for airing in scheduled:
            if airing.airingID in matched:
                continue
            if overlaps(conflict.airDate, conflict.endDate, airing.airDate, airing.endDate):
                matched.add(airing.airingID)
                conflicts.append(Munch(airingID=airing.airingID, showID=airing.showID, airDate=airing.airDate, endDate=airing.endDate))
    return conflicts


def selectEvictions(conflicts):
    """
    Greedy eviction over conflicts ordered by (airDate, endDate, priority, airingID).

    Each pass opens a window at the head, walks forward while entries start before
    the (shrinking) window end and evicts the entry with the largest priority value.
    A head that overlaps nothing is dropped without being evicted. The last two
    entries are left alone.
    """
    remaining = sorted(conflicts, key=lambda c: (c.airDate, c.endDate, c.priority, c.airingID))
    evictions = []
    while len(remaining) > 2:
        windowEnd = remaining[0].endDate
        leastImportant = 0
        index = 1
        while index < len(remaining) and remaining[index].airDate < windowEnd:
            windowEnd = min(windowEnd, remaining[index].endDate)
            if remaining[index].priority > remaining[leastImportant].priority:
                leastImportant = index
            index += 1
        if index < 2:
            remaining.pop(0)
            continue
        evictions.append(remaining.pop(leastImportant))
    return evictions


def unscheduleAirings(api, db, airings):
    """
    Ask the appliance to stop recording each airing.

    An airing the appliance no longer knows about is deleted locally and counted
    as notFound. Any state other than unscheduled/none after the patch aborts
    the batch.
    """
    logger = logging.getLogger(__name__)
    logger.info('Unscheduling {} airings'.format(len(airings)))
    result = Munch(unscheduled=0, notFound=0)
    for airing in airings:
        subpath = '/guide{}/{}'.format(SHOW_TYPE_SUBPATH[airing.showType], airing.airingID)
        response = api.unschedule(subpath)
        error = response.get('error') or {}
        if error.get('code') == 'object_not_found':
            logger.info('Airing {} not found on the tablo, deleting it locally'.format(airing.airingID))
            db.deleteAiring(airing.airingID)
            result.notFound += 1
            continue
        state = (response.get('schedule') or {}).get('state')
        if state not in ('unscheduled', 'none'):
            logger.error('Unschedule failed for {}: {}'.format(airing.airingID, response))
            raise UnscheduleFailedError('Unschedule failed for {} (state={})'.format(airing.airingID, state))
        db.upsertAirings({subpath: response})
        result.unscheduled += 1
    logger.info('{} airings unscheduled, {} not found'.format(result.unscheduled, result.notFound))
    return result


class ConflictEngine:
    def __init__(self, api, db):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.db = db

    def rebuildConflicts(self):
        conflicted = self.db.getAiringsByState('conflict')
        scheduled = self.db.getAiringsByState('scheduled')
        conflicts = findConflicts(conflicted, scheduled)
        self.db.replaceConflicts(conflicts)
        self.logger.info('{} conflict records from {} conflicted airings'.format(len(conflicts), len(conflicted)))
        return conflicts

    def loadConflicts(self):
        conflicts = self.db.getConflicts()
        for conflict in conflicts:
            if conflict.showType == 'movies':
                conflict.priority = 0
            elif conflict.priority is None:
                raise MissingPriorityError('No priority for show {} ("{}")'.format(conflict.showID, conflict.title))
        return conflicts

    def autoresolveConflicts(self):
        conflicts = self.loadConflicts()
        evictions = selectEvictions(conflicts)
        if not evictions:
            self.logger.info('No conflicts to resolve')
            return 0
        for conflict in evictions:
            self.logger.info('Evicting airing {} ("{}", priority {})'.format(conflict.airingID, conflict.title, conflict.priority))
        result = unscheduleAirings(self.api, self.db, evictions)
        return result.unscheduled + result.notFound
