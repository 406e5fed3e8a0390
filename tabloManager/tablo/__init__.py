from .tablo import Tablo, createTablos, logExportRequest, openCache, processAndReschedule, scheduleProcessing
