from .exporter import ExportPathError, ExportReconciler, checkExported, getExportFilename, sanitizeFileString
