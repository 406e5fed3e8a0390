from .sqliteDatabase import SqliteDatabase, DataIntegrityError, getEpisodeID, dateStringToTimestamp
