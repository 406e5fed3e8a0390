from .conflicts import ConflictEngine, MissingPriorityError, UnscheduleFailedError, findConflicts, overlaps, selectEvictions, unscheduleAirings
