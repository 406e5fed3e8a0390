#!/usr/bin/env python3

import argparse
from datetime import datetime, timedelta
import logging
import os
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
import pytz

from tabloManager.config import loadConfig
from tabloManager.tablo import createTablos, scheduleProcessing


def main():
    FORMAT = "%(asctime)-15s: %(name)s:  %(message)s"
    logging.basicConfig(level=logging.INFO, format=FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description='Keep a local cache of tablo guide, schedule and recording data in sync.')
    parser.add_argument('-c', '--configFile', dest='configFile', default=None)
    args = parser.parse_args()

    config = loadConfig(args.configFile)

    os.makedirs(os.path.dirname(config.general.logFile) or '.', exist_ok=True)
    fileHandler = logging.FileHandler(config.general.logFile)
    fileHandler.setFormatter(logging.Formatter(FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logging.getLogger().addHandler(fileHandler)

    tablos = createTablos(config)
    if not tablos:
        logger.error('No tablos found')
        return 1

    scheduler = BlockingScheduler(timezone=pytz.utc)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)            # turn down the logging from apscheduler
    logging.getLogger('apscheduler.scheduler').setLevel(logging.ERROR)    # turn down the logging from apscheduler

    loopDelay = timedelta(minutes=config.general.loopDelayMinutes)
    for tablo in tablos:
        scheduleProcessing(scheduler, tablo, loopDelay, runDate=datetime.now(pytz.utc))

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info('Shutting down')
    finally:
        for tablo in tablos:
            tablo.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
