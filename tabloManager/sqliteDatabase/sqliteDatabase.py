#!/usr/bin/env python3

import argparse
from contextlib import contextmanager
from datetime import date, datetime
import logging
import threading
import time

import isodate
from munch import Munch
import pytz
import sqlite3


SCHEMA_VERSION = 1


class DataIntegrityError(Exception):
    pass


def fromTimestamp(fieldValue):
    return datetime.fromtimestamp(fieldValue, tz=pytz.utc)

def toTimestamp(datetimeValue):
    if datetimeValue.tzinfo is None:
        datetimeValue = pytz.utc.localize(datetimeValue)
    return int(datetimeValue.timestamp())

# the appliance sends either a bare date (local midnight) or a minute-resolution UTC datetime
def dateStringToTimestamp(fieldValue):
    if len(fieldValue) == 10:
        return int(time.mktime(isodate.parse_date(fieldValue).timetuple()))
    datetimeValue = isodate.parse_datetime(fieldValue)
    return toTimestamp(datetimeValue)

def yearToTimestamp(year):
    return int(time.mktime(date(year, 1, 1).timetuple()))

# "/guide/series/1234" -> 1234
def objectIDFromPath(path):
    return int(path.split('/')[3])

def isRecordingsPath(path):
    return path.split('/')[1] == 'recordings'

# recorded snapshots are stored under the negative of their remote ID so they never collide with guide data
def mirrorID(objectID, recorded):
    return -objectID if recorded else objectID

def getEpisodeID(showID, season, episode, airDate):
    if not season:
        season = '0'
    if not episode:
        return '{}.{}.{}'.format(showID, season, airDate)
    return '{}.{}.{}'.format(showID, season, episode)


class SqliteDatabase:
    def __init__(self, dbFile):
        self.logger = logging.getLogger(__name__)
        self.dbFile = dbFile
        # one connection per thread; only close() touches another thread's connection
        self.threadLocal = threading.local()
        # every open connection, including those of the scheduler's worker threads
        self.connections = []
        self.connectionsLock = threading.Lock()
        self.initializeSchema()

    def getConnection(self):
        connection = getattr(self.threadLocal, 'connection', None)
        if connection is not None and connection in self.connections:
            return connection
        connection = sqlite3.connect(self.dbFile, isolation_level=None, check_same_thread=False)
        self.threadLocal.connection = connection
        with self.connectionsLock:
            self.connections.append(connection)
        return connection

    def close(self):
        with self.connectionsLock:
            connections, self.connections = self.connections, []
        for connection in connections:
            connection.close()
        self.threadLocal.connection = None

    @contextmanager
    def transaction(self):
        cursor = self.getConnection().cursor()
        cursor.execute("BEGIN")
        try:
            yield cursor
        except Exception:
            if self.getConnection().in_transaction:
                cursor.execute("ROLLBACK")
            raise
        cursor.execute("COMMIT")

    def initializeSchema(self):
        if self.getSchemaVersion() != 0:
            return
        self.logger.info('Creating database tables in {}'.format(self.dbFile))
        schemaScript = '''
        CREATE TABLE schema_version (
            version integer);
        CREATE TABLE systemInfo (
            serverID              text NOT NULL PRIMARY KEY,
            serverName            text NOT NULL,
            privateIP             text NOT NULL,
            guideLastUpdated      integer NOT NULL,
            scheduledLastUpdated  integer NOT NULL,
            recordingsLastUpdated integer NOT NULL,
            exportPath            text,
            totalSize             integer,
            freeSize              integer);
        CREATE TABLE channel (
            channelID      integer NOT NULL PRIMARY KEY,
            callSign       text NOT NULL,
            major          integer NOT NULL,
            minor          integer NOT NULL,
            network        text);
        CREATE TABLE show (
            showID         integer NOT NULL PRIMARY KEY,
            parentShowID   integer,
            rule           text,
            channelID      integer,
            keepRecording  text NOT NULL,
            count          integer,
            showType       text NOT NULL,
            title          text NOT NULL,
            descript       text,
            releaseDate    integer,
            origRunTime    integer,
            rating         text,
            stars          integer,
            FOREIGN KEY (channelID) REFERENCES channel(channelID));
        CREATE TABLE showAward (
            showID         integer NOT NULL,
            won            integer NOT NULL,
            awardName      text NOT NULL,
            awardCategory  text NOT NULL,
            awardYear      integer NOT NULL,
            nominee        text NOT NULL,
            PRIMARY KEY (showID, awardName, awardCategory, awardYear, nominee),
            FOREIGN KEY (showID) REFERENCES show(showID));
        CREATE TABLE showGenre (
            showID         integer NOT NULL,
            genre          text NOT NULL,
            PRIMARY KEY (showID, genre),
            FOREIGN KEY (showID) REFERENCES show(showID));
        CREATE TABLE showCastMember (
            showID         integer NOT NULL,
            castMember     text NOT NULL,
            PRIMARY KEY (showID, castMember),
            FOREIGN KEY (showID) REFERENCES show(showID));
        CREATE TABLE showDirector (
            showID         integer NOT NULL,
            director       text NOT NULL,
            PRIMARY KEY (showID, director),
            FOREIGN KEY (showID) REFERENCES show(showID));
        CREATE TABLE team (
            teamID         integer NOT NULL PRIMARY KEY,
            team           text NOT NULL);
        CREATE TABLE episode (
            episodeID       text NOT NULL PRIMARY KEY,
            showID          integer NOT NULL,
            title           text,
            descript        text,
            episode         integer,
            season          text,
            seasonType      text,
            originalAirDate integer,
            homeTeamID      integer,
            FOREIGN KEY (showID) REFERENCES show(showID),
            FOREIGN KEY (homeTeamID) REFERENCES team(teamID));
        CREATE TABLE episodeTeam (
            episodeID      text NOT NULL,
            teamID         integer NOT NULL,
            PRIMARY KEY (episodeID, teamID),
            FOREIGN KEY (episodeID) REFERENCES episode(episodeID),
            FOREIGN KEY (teamID) REFERENCES team(teamID));
        CREATE TABLE airing (
            airingID       integer NOT NULL PRIMARY KEY,
            showID         integer NOT NULL,
            airDate        integer NOT NULL,
            duration       integer NOT NULL,
            channelID      integer NOT NULL,
            scheduled      text NOT NULL,
            episodeID      text,
            FOREIGN KEY (showID) REFERENCES show(showID),
            FOREIGN KEY (channelID) REFERENCES channel(channelID),
            FOREIGN KEY (episodeID) REFERENCES episode(episodeID));
        CREATE TABLE recording (
            recordingID       integer NOT NULL PRIMARY KEY,
            showID            integer NOT NULL,
            airDate           integer NOT NULL,
            airingDuration    integer NOT NULL,
            channelID         integer NOT NULL,
            recordingState    text NOT NULL,
            clean             integer NOT NULL,
            recordingDuration integer NOT NULL,
            recordingSize     integer NOT NULL,
            comSkipState      text NOT NULL,
            episodeID         text,
            FOREIGN KEY (showID) REFERENCES show(showID),
            FOREIGN KEY (channelID) REFERENCES channel(channelID),
            FOREIGN KEY (episodeID) REFERENCES episode(episodeID));
        CREATE TABLE error (
            recordingID       integer NOT NULL PRIMARY KEY,
            showID            integer NOT NULL,
            episodeID         text,
            channelID         integer NOT NULL,
            airDate           integer NOT NULL,
            airingDuration    integer NOT NULL,
            recordingDuration integer NOT NULL,
            recordingSize     integer NOT NULL,
            recordingState    text NOT NULL,
            clean             integer NOT NULL,
            comSkipState      text NOT NULL,
            comSkipError      text,
            errorCode         text,
            errorDetails      text,
            errorDescription  text);
        CREATE TABLE queue (
            queueID        INTEGER PRIMARY KEY,
            action         text NOT NULL,
            details        text NOT NULL,
            exportPath     text NOT NULL);
        CREATE TABLE conflict (
            airingID       integer NOT NULL PRIMARY KEY,
            showID         integer NOT NULL,
            airDate        integer NOT NULL,
            endDate        integer NOT NULL);
        CREATE TABLE priority (
            showID         integer NOT NULL PRIMARY KEY,
            priority       integer NOT NULL);
        CREATE TABLE exported (
            path           text NOT NULL PRIMARY KEY);'''
        self.getConnection().executescript(schemaScript)
        self.getConnection().execute("INSERT INTO schema_version VALUES (?)", (SCHEMA_VERSION, ))

    def getSchemaVersion(self):
        try:
            row = self.getConnection().execute("SELECT version FROM schema_version").fetchone()
            if row is None:
                return 0
            return row[0]
        except sqlite3.OperationalError:
            return 0


    #
    # systemInfo
    #


    # systemInfo holds exactly one row: a different serverID replaces the existing one
    def upsertSystemInfo(self, serverID, serverName, privateIP):
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM systemInfo WHERE serverID <> ?", (serverID, ))
            cursor.execute(
                "INSERT INTO systemInfo(serverID, serverName, privateIP, guideLastUpdated, scheduledLastUpdated, recordingsLastUpdated) "
                "VALUES (?, ?, ?, 0, 0, 0) "
                "ON CONFLICT(serverID) DO UPDATE SET serverName = excluded.serverName, privateIP = excluded.privateIP",
                (serverID, serverName, privateIP))

    def getSystemInfo(self):
        row = self.getConnection().execute(
            "SELECT serverID, serverName, privateIP, exportPath, totalSize, freeSize FROM systemInfo").fetchone()
        if row is None:
            return None
        return Munch(serverID=row[0], serverName=row[1], privateIP=row[2], exportPath=row[3], totalSize=row[4], freeSize=row[5])

    def getLastUpdated(self):
        row = self.getConnection().execute(
            "SELECT guideLastUpdated, scheduledLastUpdated, recordingsLastUpdated FROM systemInfo").fetchone()
        if row is None:
            row = (0, 0, 0)
        return Munch(guide=fromTimestamp(row[0]), scheduled=fromTimestamp(row[1]), recordings=fromTimestamp(row[2]))

    def updateGuideLastUpdated(self, lastUpdated):
        self.getConnection().execute("UPDATE systemInfo SET guideLastUpdated = ?", (toTimestamp(lastUpdated), ))

    def updateScheduledLastUpdated(self, lastUpdated):
        self.getConnection().execute("UPDATE systemInfo SET scheduledLastUpdated = ?", (toTimestamp(lastUpdated), ))

    def updateRecordingsLastUpdated(self, lastUpdated):
        self.getConnection().execute("UPDATE systemInfo SET recordingsLastUpdated = ?", (toTimestamp(lastUpdated), ))

    def getDefaultExportPath(self):
        row = self.getConnection().execute("SELECT exportPath FROM systemInfo").fetchone()
        if row is None or row[0] is None:
            return ''
        return row[0]

    def setDefaultExportPath(self, exportPath):
        self.getConnection().execute("UPDATE systemInfo SET exportPath = ?", (exportPath, ))

    def updateSpace(self, totalSize, freeSize):
        self.getConnection().execute("UPDATE systemInfo SET totalSize = ?, freeSize = ?", (totalSize, freeSize))


    #
    # Queue
    #


    def enqueue(self, action, details='', exportPath=''):
        cursor = self.getConnection().execute(
            "INSERT INTO queue(action, details, exportPath) VALUES (?, ?, ?)",
            (action, details, exportPath))
        return cursor.lastrowid

    # takes a key one less than the current minimum so the task runs ahead of everything pending
    def enqueuePriority(self, action, details='', exportPath=''):
        with self.transaction() as cursor:
            queueID = cursor.execute("SELECT COALESCE(MIN(queueID), 1) - 1 FROM queue").fetchone()[0]
            cursor.execute(
                "INSERT INTO queue(queueID, action, details, exportPath) VALUES (?, ?, ?, ?)",
                (queueID, action, details, exportPath))
        return queueID

    def countQueued(self, action):
        return self.getConnection().execute("SELECT count(*) FROM queue WHERE action = ?", (action, )).fetchone()[0]

    def getQueue(self):
        queue = []
        for row in self.getConnection().execute("SELECT queueID, action, details, exportPath FROM queue ORDER BY queueID ASC"):
            queue.append(Munch(queueID=row[0], action=row[1], details=row[2], exportPath=row[3]))
        return queue

    def deleteQueueRecord(self, queueID):
        cursor = self.getConnection().execute("DELETE FROM queue WHERE queueID = ?", (queueID, ))
        return cursor.rowcount


    #
    # Channels and shows
    #


    def upsertChannels(self, channels):
        channelValues = []
        for path, channel in channels.items():
            objectID = channel.get('object_id')
            if not objectID:
                continue
            details = channel.get('channel') or {}
            channelValues.append((
                mirrorID(objectID, isRecordingsPath(path)),
                details.get('call_sign') or '',
                details.get('major') or 0,
                details.get('minor') or 0,
                details.get('network')))
        if not channelValues:
            return 0
        with self.transaction() as cursor:
            cursor.executemany(
                "INSERT INTO channel(channelID, callSign, major, minor, network) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(channelID) DO UPDATE SET callSign = excluded.callSign, major = excluded.major, "
                "minor = excluded.minor, network = excluded.network",
                channelValues)
        return len(channelValues)

    def upsertShows(self, shows):
        showValues = []
        genreValues = []
        castValues = []
        directorValues = []
        awardValues = []
        for path, show in shows.items():
            objectID = show.get('object_id')
            if not objectID:
                continue
            recorded = isRecordingsPath(path)
            showID = mirrorID(objectID, recorded)
            showType = show['path'].split('/')[2]
            schedule = show.get('schedule') or {}
            keep = show.get('keep') or {}

            parentShowID = None
            if show.get('guide_path'):
                parentShowID = objectIDFromPath(show['guide_path'])
            channelID = None
            if schedule.get('channel_path'):
                channelID = mirrorID(objectIDFromPath(schedule['channel_path']), recorded)

            if showType == 'series':
                series = show.get('series') or {}
                releaseDate = None
                if series.get('orig_air_date'):
                    releaseDate = dateStringToTimestamp(series['orig_air_date'])
                metadata = (series.get('title') or '', series.get('description'), releaseDate,
                            series.get('episode_runtime'), series.get('series_rating'), None)
                details = series
            elif showType == 'movies':
                movie = show.get('movie') or {}
                releaseDate = None
                if movie.get('release_year'):
                    releaseDate = yearToTimestamp(movie['release_year'])
                metadata = (movie.get('title') or '', movie.get('plot'), releaseDate,
                            movie.get('original_runtime'), movie.get('film_rating'), movie.get('quality_rating'))
                details = movie
            elif showType == 'sports':
                sport = show.get('sport') or {}
                metadata = (sport.get('title') or '', sport.get('description'), None, None, None, None)
                details = sport
            else:
                raise DataIntegrityError('Invalid show type "{}" for {}'.format(showType, path))

            showValues.append((showID, parentShowID, schedule.get('rule'), channelID, keep.get('rule') or 'none',
                               keep.get('count'), showType) + metadata)
            genreValues.extend((showID, genre) for genre in details.get('genres') or [])
            castValues.extend((showID, castMember) for castMember in details.get('cast') or [])
            directorValues.extend((showID, director) for director in details.get('directors') or [])
            for award in details.get('awards') or []:
                awardValues.append((showID, 1 if award.get('won') else 0, award.get('name') or '',
                                    award.get('category') or '', award.get('year') or 0, award.get('nominee') or ''))
        if not showValues:
            return 0

        with self.transaction() as cursor:
            cursor.executemany(
                "INSERT INTO show(showID, parentShowID, rule, channelID, keepRecording, count, showType, "
                "title, descript, releaseDate, origRunTime, rating, stars) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(showID) DO UPDATE SET parentShowID = excluded.parentShowID, rule = excluded.rule, "
                "channelID = excluded.channelID, keepRecording = excluded.keepRecording, count = excluded.count, "
                "showType = excluded.showType, title = excluded.title, descript = excluded.descript, "
                "releaseDate = excluded.releaseDate, origRunTime = excluded.origRunTime, rating = excluded.rating, "
                "stars = excluded.stars",
                showValues)
            cursor.executemany("INSERT INTO showGenre(showID, genre) VALUES (?, ?) ON CONFLICT DO NOTHING", genreValues)
            cursor.executemany("INSERT INTO showCastMember(showID, castMember) VALUES (?, ?) ON CONFLICT DO NOTHING", castValues)
            cursor.executemany("INSERT INTO showDirector(showID, director) VALUES (?, ?) ON CONFLICT DO NOTHING", directorValues)
            cursor.executemany(
                "INSERT INTO showAward(showID, won, awardName, awardCategory, awardYear, nominee) VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(showID, awardName, awardCategory, awardYear, nominee) DO UPDATE SET won = excluded.won",
                awardValues)
        return len(showValues)

    def getShow(self, showID):
        row = self.getConnection().execute(
            "SELECT showID, parentShowID, showType, title, releaseDate, channelID FROM show WHERE showID = ?", (showID, )).fetchone()
        if row is None:
            return None
        return Munch(showID=row[0], parentShowID=row[1], showType=row[2], title=row[3], releaseDate=row[4], channelID=row[5])


    #
    # Airings and recordings
    #


    # builds the episode/team rows shared by airings and recordings, returns (showID, episodeID)
    def extractEpisode(self, objectID, airing, airDate, recorded, episodeValues, teamValues, episodeTeamValues):
        if airing.get('series_path'):
            showID = mirrorID(objectIDFromPath(airing['series_path']), recorded)
            episode = airing.get('episode') or {}
            season = str(episode.get('season_number') or 0)
            episodeID = getEpisodeID(showID, season, episode.get('number'), airDate)
            originalAirDate = None
            if episode.get('orig_air_date'):
                originalAirDate = dateStringToTimestamp(episode['orig_air_date'])
            episodeValues.append((episodeID, showID, episode.get('title') or None, episode.get('description') or None,
                                  episode.get('number') or 0, season, None, originalAirDate, None))
            return showID, episodeID
        if airing.get('movie_path'):
            return mirrorID(objectIDFromPath(airing['movie_path']), recorded), None
        if airing.get('sport_path'):
            showID = mirrorID(objectIDFromPath(airing['sport_path']), recorded)
            event = airing.get('event') or {}
            episodeID = getEpisodeID(showID, event.get('season'), 0, airDate)
            for team in event.get('teams') or []:
                teamValues.append((team['team_id'], team.get('name') or ''))
                episodeTeamValues.append((episodeID, team['team_id']))
            episodeValues.append((episodeID, showID, event.get('title') or '', event.get('description') or '', 0,
                                  event.get('season') or None, event.get('season_type') or None, None, event.get('home_team_id')))
            return showID, episodeID
        raise DataIntegrityError('No show path for {}'.format(objectID))

    def writeEpisodes(self, cursor, episodeValues, teamValues, episodeTeamValues):
        cursor.executemany(
            "INSERT INTO team(teamID, team) VALUES (?, ?) ON CONFLICT(teamID) DO UPDATE SET team = excluded.team",
            teamValues)
        cursor.executemany(
            "INSERT INTO episode(episodeID, showID, title, descript, episode, season, seasonType, originalAirDate, homeTeamID) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(episodeID) DO UPDATE SET showID = excluded.showID, title = excluded.title, "
            "descript = excluded.descript, episode = excluded.episode, season = excluded.season, "
            "seasonType = excluded.seasonType, originalAirDate = excluded.originalAirDate, homeTeamID = excluded.homeTeamID",
            episodeValues)
        cursor.executemany("INSERT INTO episodeTeam(episodeID, teamID) VALUES (?, ?) ON CONFLICT DO NOTHING", episodeTeamValues)

    def upsertAirings(self, airings):
        airingValues = []
        episodeValues = []
        teamValues = []
        episodeTeamValues = []
        for airing in airings.values():
            objectID = airing.get('object_id')
            if not objectID:
                continue
            airingDetails = airing.get('airing_details') or {}
            airDate = dateStringToTimestamp(airingDetails['datetime'])
            showID, episodeID = self.extractEpisode(objectID, airing, airDate, False, episodeValues, teamValues, episodeTeamValues)
            channel = airingDetails.get('channel') or {}
            schedule = airing.get('schedule') or {}
            airingValues.append((objectID, showID, airDate, airingDetails.get('duration') or 0,
                                 channel.get('object_id') or 0, schedule.get('state') or 'none', episodeID))
        if not airingValues:
            return 0

        with self.transaction() as cursor:
            self.writeEpisodes(cursor, episodeValues, teamValues, episodeTeamValues)
            cursor.executemany(
                "INSERT INTO airing(airingID, showID, airDate, duration, channelID, scheduled, episodeID) "
                "VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(airingID) DO UPDATE SET showID = excluded.showID, airDate = excluded.airDate, "
                "duration = excluded.duration, channelID = excluded.channelID, scheduled = excluded.scheduled, "
                "episodeID = excluded.episodeID",
                airingValues)
        return len(airingValues)

    def upsertRecordings(self, recordings):
        recordingValues = []
        errorValues = []
        episodeValues = []
        teamValues = []
        episodeTeamValues = []
        for recording in recordings.values():
            objectID = recording.get('object_id')
            if not objectID:
                continue
            airingDetails = recording.get('airing_details') or {}
            airDate = dateStringToTimestamp(airingDetails['datetime'])
            showID, episodeID = self.extractEpisode(objectID, recording, airDate, True, episodeValues, teamValues, episodeTeamValues)
            channelID = -((airingDetails.get('channel') or {}).get('object_id') or 0)
            video = recording.get('video_details') or {}
            comSkip = video.get('comskip') or {}
            clean = 1 if video.get('clean') else 0
            state = video.get('state') or ''
            comSkipState = comSkip.get('state') or 'none'
            recordingValues.append((objectID, showID, airDate, airingDetails.get('duration') or 0, channelID, state, clean,
                                    video.get('duration') or 0, video.get('size') or 0, comSkipState, episodeID))
            if state == 'failed' or not clean or comSkipState != 'none':
                error = video.get('error') or {}
                errorValues.append((objectID, showID, episodeID, channelID, airDate, airingDetails.get('duration') or 0,
                                    video.get('duration') or 0, video.get('size') or 0, state, clean, comSkipState,
                                    comSkip.get('error'), error.get('code'), error.get('details'), error.get('description')))
        if not recordingValues:
            return 0

        with self.transaction() as cursor:
            self.writeEpisodes(cursor, episodeValues, teamValues, episodeTeamValues)
            cursor.executemany(
                "INSERT INTO recording(recordingID, showID, airDate, airingDuration, channelID, recordingState, clean, "
                "recordingDuration, recordingSize, comSkipState, episodeID) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(recordingID) DO UPDATE SET showID = excluded.showID, airDate = excluded.airDate, "
                "airingDuration = excluded.airingDuration, channelID = excluded.channelID, "
                "recordingState = excluded.recordingState, clean = excluded.clean, "
                "recordingDuration = excluded.recordingDuration, recordingSize = excluded.recordingSize, "
                "comSkipState = excluded.comSkipState, episodeID = excluded.episodeID",
                recordingValues)
            cursor.executemany(
                "INSERT INTO error(recordingID, showID, episodeID, channelID, airDate, airingDuration, recordingDuration, "
                "recordingSize, recordingState, clean, comSkipState, comSkipError, errorCode, errorDetails, errorDescription) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(recordingID) DO UPDATE SET recordingDuration = excluded.recordingDuration, "
                "recordingSize = excluded.recordingSize, recordingState = excluded.recordingState, clean = excluded.clean, "
                "comSkipState = excluded.comSkipState, comSkipError = excluded.comSkipError, errorCode = excluded.errorCode, "
                "errorDetails = excluded.errorDetails, errorDescription = excluded.errorDescription",
                errorValues)
        return len(recordingValues)

    def getRecordingIDs(self):
        return {row[0] for row in self.getConnection().execute("SELECT recordingID FROM recording")}

    def deleteRecordings(self, recordingIDs):
        with self.transaction() as cursor:
            cursor.executemany("DELETE FROM error WHERE recordingID = ?", [(recordingID, ) for recordingID in recordingIDs])
            cursor.executemany("DELETE FROM recording WHERE recordingID = ?", [(recordingID, ) for recordingID in recordingIDs])
        return len(recordingIDs)

    def getAiring(self, airingID):
        row = self.getConnection().execute(
            "SELECT airingID, showID, airDate, duration, channelID, scheduled, episodeID FROM airing WHERE airingID = ?",
            (airingID, )).fetchone()
        if row is None:
            return None
        return Munch(airingID=row[0], showID=row[1], airDate=row[2], duration=row[3], channelID=row[4], scheduled=row[5], episodeID=row[6])

    # the conflict rows of a deleted airing go with it
    def deleteAiring(self, airingID):
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM conflict WHERE airingID = ?", (airingID, ))
            cursor.execute("DELETE FROM airing WHERE airingID = ?", (airingID, ))
            return cursor.rowcount

    def purgeExpiredAirings(self, now=None):
        if now is None:
            now = int(time.time())
        cursor = self.getConnection().execute("DELETE FROM airing WHERE airDate < ?", (now, ))
        return cursor.rowcount

    # airings that dropped off the scheduled/conflicted lists must not keep a stale state
    def resetScheduled(self):
        cursor = self.getConnection().execute("UPDATE airing SET scheduled = 'none' WHERE scheduled <> 'none'")
        return cursor.rowcount

    def getAiringsByState(self, state):
        query = str("SELECT airing.airingID, airing.showID, airing.airDate, airing.airDate + airing.duration, show.showType "
                    "FROM airing "
                    "LEFT JOIN show ON (airing.showID = show.showID) "
                    "WHERE airing.scheduled = ? "
                    "ORDER BY airing.airDate, airing.airingID")
        airings = []
        for row in self.getConnection().execute(query, (state, )):
            airings.append(Munch(airingID=row[0], showID=row[1], airDate=row[2], endDate=row[3], showType=row[4]))
        return airings

    def getScheduledAirings(self):
        query = str("SELECT airing.airingID, show.showType, show.title, episode.season, episode.episode, "
                    "airing.airDate, episode.title, show.releaseDate "
                    "FROM airing "
                    "INNER JOIN show ON (airing.showID = show.showID) "
                    "LEFT JOIN episode ON (airing.episodeID = episode.episodeID) "
                    "WHERE airing.scheduled IN ('scheduled', 'conflict') "
                    "ORDER BY airing.airDate, airing.airingID")
        airings = []
        for row in self.getConnection().execute(query):
            airings.append(Munch(airingID=row[0], showType=row[1], showTitle=row[2], season=row[3] or '', episode=row[4] or 0,
                                 airDate=row[5], episodeTitle=row[6] or '', releaseDate=row[7]))
        return airings


    #
    # Conflicts and priorities
    #


    def replaceConflicts(self, conflicts):
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM conflict")
            cursor.executemany(
                "INSERT INTO conflict(airingID, showID, airDate, endDate) VALUES (?, ?, ?, ?)",
                [(conflict.airingID, conflict.showID, conflict.airDate, conflict.endDate) for conflict in conflicts])
        return len(conflicts)

    # priority is NULL where neither the show nor its parent has one; movies are handled by the caller
    def getConflicts(self):
        query = str("SELECT conflict.airingID, conflict.showID, conflict.airDate, conflict.endDate, show.showType, show.title, "
                    "COALESCE(showPriority.priority, parentPriority.priority) "
                    "FROM conflict "
                    "LEFT JOIN show ON (conflict.showID = show.showID) "
                    "LEFT JOIN priority AS showPriority ON (conflict.showID = showPriority.showID) "
                    "LEFT JOIN priority AS parentPriority ON (show.parentShowID = parentPriority.showID) "
                    "ORDER BY conflict.airDate, conflict.endDate, conflict.airingID")
        conflicts = []
        for row in self.getConnection().execute(query):
            conflicts.append(Munch(airingID=row[0], showID=row[1], airDate=row[2], endDate=row[3], showType=row[4],
                                   title=row[5], priority=row[6]))
        return conflicts

    def setPriority(self, showID, priority):
        self.getConnection().execute(
            "INSERT INTO priority(showID, priority) VALUES (?, ?) ON CONFLICT(showID) DO UPDATE SET priority = excluded.priority",
            (showID, priority))

    def setPriorityByTitle(self, title, priority):
        cursor = self.getConnection().execute(
            "INSERT INTO priority(showID, priority) SELECT showID, ? FROM show WHERE title = ? AND showID > 0 "
            "ON CONFLICT(showID) DO UPDATE SET priority = excluded.priority",
            (priority, title))
        return cursor.rowcount


    #
    # Exported file index
    #


    def getExported(self):
        return [row[0] for row in self.getConnection().execute("SELECT path FROM exported ORDER BY path")]

    def insertExported(self, paths):
        with self.transaction() as cursor:
            cursor.executemany("INSERT INTO exported(path) VALUES (?) ON CONFLICT DO NOTHING", [(path, ) for path in paths])

    def deleteExported(self, paths):
        with self.transaction() as cursor:
            cursor.executemany("DELETE FROM exported WHERE path = ?", [(path, ) for path in paths])


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='SqliteDatabase utilities')
    parser.add_argument('dbFile', help='The filename of the cache to open or initialize')
    parser.add_argument('--queue', action='store_true', help='List pending queue records')
    args = parser.parse_args()
    db = SqliteDatabase(args.dbFile)
    if args.queue:
        for record in db.getQueue():
            print('{queueID:>6} {action:<17} {details} {exportPath}'.format(**record))
    db.close()
