#!/usr/bin/env python3

from datetime import timedelta
import logging
import os

from munch import Munch
import yaml

from tabloManager.tabloAPI import TABLO_WEB_URI


def section(config, name):
    return config.get(name) or {}


def loadConfig(configFile=None):
    """
    Read the yaml configuration file into Munch records, filling in defaults.

    With no file every setting takes its default, and the tablos are found
    through the discovery service.
    """
    logger = logging.getLogger(__name__)
    config = {}
    if configFile is not None:
        with open(configFile) as yamlFile:
            config = yaml.safe_load(yamlFile) or {}

    general = section(config, 'general')
    cacheDir = os.path.expanduser(general.get('cacheDir') or '~/.tablomanager')
    generalConfig = Munch(
        cacheDir = cacheDir,
        loopDelayMinutes = int(general.get('loopDelayMinutes') or 15),
        logFile = os.path.expanduser(general.get('logFile') or os.path.join(cacheDir, 'main.log')))
    logger.info('Cache directory: %s', generalConfig.cacheDir)
    logger.info('Loop delay: %d minutes', generalConfig.loopDelayMinutes)
    logger.info('Log file: %s', generalConfig.logFile)

    tablo = section(config, 'tablo')
    tabloConfig = Munch(
        discoveryURL = tablo.get('discoveryURL') or TABLO_WEB_URI,
        port = int(tablo.get('port') or 8885),
        retryDelaySeconds = int(30 if tablo.get('retryDelaySeconds') is None else tablo['retryDelaySeconds']),
        batchSize = int(tablo.get('batchSize') or 50),
        exportPath = os.path.expanduser(tablo.get('exportPath') or ''),
        tablos = [Munch(serverID=entry['serverID'], name=entry.get('name') or entry['serverID'], ipAddress=entry['ipAddress'])
                  for entry in tablo.get('tablos') or []])
    logger.info('Tablo discovery URL: %s', tabloConfig.discoveryURL)
    logger.info('Tablo export path: %s', tabloConfig.exportPath)
    logger.info('%d tablos configured', len(tabloConfig.tablos))

    freshness = section(config, 'freshness')
    freshnessConfig = Munch(
        guide = timedelta(hours=float(freshness.get('guideHours') or 24)),
        scheduled = timedelta(hours=float(freshness.get('scheduledHours') or 6)),
        recordings = timedelta(hours=float(freshness.get('recordingsHours') or 6)))

    priorities = {str(title): int(priority) for title, priority in section(config, 'priorities').items()}
    logger.info('%d show priorities configured', len(priorities))

    return Munch(general=generalConfig, tablo=tabloConfig, freshness=freshnessConfig, priorities=priorities)
