import os
import pytz
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta
from munch import Munch
from unittest.mock import Mock, patch
from tabloManager.config import loadConfig
from tabloManager.guideRefresh import NoAiringsReturnedError
from tabloManager.sqliteDatabase import SqliteDatabase
from tabloManager.tablo import Tablo, createTablos, openCache, processAndReschedule, scheduleProcessing


class TestTablo(unittest.TestCase):

    def setUp(self):
        self.db = SqliteDatabase(":memory:")
        self.db.upsertSystemInfo('SID_1', 'Tablo', '10.0.0.2')
        self.tablo = Tablo('SID_1', 'Tablo', Mock(), self.db)
        self.tablo.freshnessScheduler = Mock()
        self.tablo.queueProcessor = Mock()

    def test_process(self):
        self.tablo.queueProcessor.processQueue.side_effect = [False, True]
        self.assertTrue(self.tablo.process())
        self.assertEqual(2, self.tablo.freshnessScheduler.enqueueDue.call_count)
        self.assertEqual(2, self.tablo.queueProcessor.processQueue.call_count)

    def test_process_errorIsLogged(self):
        self.tablo.queueProcessor.processQueue.side_effect = NoAiringsReturnedError('No airings returned from /guide/airings')
        with self.assertLogs('tabloManager.tablo.tablo', level='ERROR'):
            self.assertFalse(self.tablo.process())

    def test_process_exportHandler(self):
        exportHandler = Mock()
        tablo = Tablo('SID_1', 'Tablo', Mock(), self.db, exportHandler=exportHandler)
        tablo.freshnessScheduler = Mock()
        tablo.freshnessScheduler.staleCategories.return_value = set()
        tablo.queueProcessor.freshnessScheduler = tablo.freshnessScheduler
        tablo.queueProcessor.enqueueExport('recording 7', '/export')
        self.assertTrue(tablo.process())
        exportHandler.assert_called_once_with('recording 7', '/export')

    def test_processAndReschedule(self):
        scheduler = Mock()
        self.tablo.queueProcessor.processQueue.return_value = True
        before = datetime.now(pytz.utc)
        processAndReschedule(scheduler, self.tablo, timedelta(minutes=15))
        self.assertEqual(1, self.tablo.queueProcessor.processQueue.call_count)
        args, kwargs = scheduler.add_job.call_args
        self.assertEqual(processAndReschedule, args[0])
        self.assertEqual([scheduler, self.tablo, timedelta(minutes=15)], kwargs['args'])
        self.assertEqual('SID_1', kwargs['id'])
        self.assertTrue(kwargs['replace_existing'])
        self.assertGreaterEqual(kwargs['trigger'].run_date, before + timedelta(minutes=15))

    def test_processAndReschedule_afterUnexpectedError(self):
        scheduler = Mock()
        self.tablo.queueProcessor.processQueue.side_effect = RuntimeError('boom')
        with self.assertRaises(RuntimeError):
            processAndReschedule(scheduler, self.tablo, timedelta(minutes=15))
        scheduler.add_job.assert_called_once()

    def test_scheduleProcessing_runDate(self):
        scheduler = Mock()
        runDate = datetime(2023, 5, 1, 12, 0, tzinfo=pytz.utc)
        scheduleProcessing(scheduler, self.tablo, timedelta(minutes=15), runDate=runDate)
        self.assertEqual(runDate, scheduler.add_job.call_args[1]['trigger'].run_date)


class TestCreateTablos(unittest.TestCase):

    def setUp(self):
        self.cacheDir = tempfile.mkdtemp()
        self.config = loadConfig()
        self.config.general.cacheDir = os.path.join(self.cacheDir, 'cache')
        self.config.tablo.exportPath = '/media/export'

    def tearDown(self):
        for tablo in getattr(self, 'tablos', []):
            tablo.close()
        shutil.rmtree(self.cacheDir)

    def test_createTablos_static(self):
        self.config.tablo.tablos = [Munch(serverID='SID_1', name='Den', ipAddress='10.0.0.2')]
        self.tablos = createTablos(self.config)
        self.assertEqual(1, len(self.tablos))
        self.assertEqual('SID_1', self.tablos[0].serverID)
        self.assertEqual('http://10.0.0.2:8885', self.tablos[0].api.baseURI)
        self.assertTrue(os.path.exists(os.path.join(self.config.general.cacheDir, 'SID_1.cache')))
        info = self.tablos[0].db.getSystemInfo()
        self.assertEqual('Den', info.serverName)
        self.assertEqual('/media/export', info.exportPath)

    @patch('tabloManager.tablo.tablo.discoverTablos')
    def test_createTablos_discovered(self, mockDiscoverTablos):
        mockDiscoverTablos.return_value = [Munch(serverID='SID_1', name='Den', ipAddress='10.0.0.2'),
                                           Munch(serverID='SID_2', name='Attic', ipAddress='10.0.0.3')]
        self.tablos = createTablos(self.config)
        mockDiscoverTablos.assert_called_once_with(self.config.tablo.discoveryURL, 30)
        self.assertEqual(['SID_1', 'SID_2'], [tablo.serverID for tablo in self.tablos])
        self.assertIsNot(self.tablos[0].db, self.tablos[1].db)

    def test_openCache_recreatesUnreadableCache(self):
        cacheFile = os.path.join(self.cacheDir, 'SID_1.cache')
        with open(cacheFile, 'w') as garbage:
            garbage.write('x' * 4096)
        db = openCache(cacheFile)
        self.assertEqual(1, db.getSchemaVersion())
        self.assertEqual([], db.getQueue())
        db.close()


if __name__ == '__main__':
    unittest.main()
