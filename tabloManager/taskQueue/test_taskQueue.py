import unittest
import pytz
from datetime import datetime, timedelta
from unittest.mock import Mock, call
from tabloManager.sqliteDatabase import SqliteDatabase
from tabloManager.taskQueue import FreshnessScheduler, QueueAction, TaskQueueProcessor


class TestQueueAction(unittest.TestCase):

    def test_fromString(self):
        self.assertEqual(QueueAction.UPDATEGUIDE, QueueAction.fromString('UPDATEGUIDE'))
        self.assertEqual(QueueAction.EXPORT, QueueAction.fromString('EXPORT'))
        self.assertEqual(QueueAction.UNKNOWN, QueueAction.fromString('REBOOT'))


class TestFreshnessScheduler(unittest.TestCase):

    def setUp(self):
        self.db = SqliteDatabase(":memory:")
        self.db.upsertSystemInfo('SID_1', 'Tablo', '10.0.0.2')
        self.now = datetime(2023, 5, 1, 12, 0, tzinfo=pytz.utc)
        self.scheduler = FreshnessScheduler(self.db)

    def setLastUpdated(self, guide, scheduled, recordings):
        self.db.updateGuideLastUpdated(self.now - guide)
        self.db.updateScheduledLastUpdated(self.now - scheduled)
        self.db.updateRecordingsLastUpdated(self.now - recordings)

    def queuedActions(self):
        return [task.action for task in self.db.getQueue()]

    def test_staleCategories(self):
        self.assertEqual({'guide', 'scheduled', 'recordings'}, self.scheduler.staleCategories(self.now))
        self.setLastUpdated(timedelta(hours=1), timedelta(hours=1), timedelta(hours=1))
        self.assertEqual(set(), self.scheduler.staleCategories(self.now))
        self.assertFalse(self.scheduler.needsRefresh(self.now))
        self.setLastUpdated(timedelta(hours=25), timedelta(hours=1), timedelta(hours=7))
        self.assertEqual({'guide', 'recordings'}, self.scheduler.staleCategories(self.now))
        self.assertTrue(self.scheduler.needsRefresh(self.now))

    def test_staleCategories_thresholds(self):
        scheduler = FreshnessScheduler(self.db, thresholds={'guide': timedelta(hours=48), 'scheduled': timedelta(hours=1), 'recordings': timedelta(hours=6)})
        self.setLastUpdated(timedelta(hours=25), timedelta(hours=2), timedelta(hours=1))
        self.assertEqual({'scheduled'}, scheduler.staleCategories(self.now))

    def test_enqueueDue_guideTakesPrecedence(self):
        self.scheduler.enqueueDue(self.now)
        self.assertEqual(['UPDATEGUIDE', 'UPDATERECORDINGS'], self.queuedActions())

    def test_enqueueDue_scheduledOnly(self):
        self.setLastUpdated(timedelta(hours=1), timedelta(hours=7), timedelta(hours=1))
        self.scheduler.enqueueDue(self.now)
        self.assertEqual(['UPDATESCHEDULED'], self.queuedActions())

    def test_enqueueDue_onePendingTaskPerCategory(self):
        for _ in range(3):
            self.scheduler.enqueueDue(self.now)
        self.setLastUpdated(timedelta(hours=1), timedelta(hours=7), timedelta(hours=7))
        for _ in range(3):
            self.scheduler.enqueueDue(self.now)
        actions = self.queuedActions()
        self.assertEqual(len(actions), len(set(actions)))
        self.assertEqual({'UPDATEGUIDE', 'UPDATESCHEDULED', 'UPDATERECORDINGS'}, set(actions))

    def test_enqueueDue_runsAheadOfExports(self):
        exportIDs = [self.db.enqueue('EXPORT', 'recording {}'.format(i), '/export') for i in range(3)]
        self.scheduler.enqueueDue(self.now)
        queue = self.db.getQueue()
        updates = [task.queueID for task in queue if task.action != 'EXPORT']
        self.assertEqual(2, len(updates))
        self.assertLess(max(updates), min(exportIDs))
        self.assertEqual('EXPORT', queue[-1].action)


class TestTaskQueueProcessor(unittest.TestCase):

    def setUp(self):
        self.db = SqliteDatabase(":memory:")
        self.freshnessScheduler = Mock()
        self.freshnessScheduler.staleCategories.return_value = set()
        self.refresher = Mock()
        self.exportHandler = Mock()
        self.processor = TaskQueueProcessor(self.db, self.freshnessScheduler, self.refresher, self.exportHandler)

    def test_loadQueue(self):
        self.processor.enqueueExport('recording 1', '/export')
        self.db.enqueuePriority('UPDATEGUIDE')
        self.db.enqueue('REBOOT')
        queue = self.processor.loadQueue()
        self.assertEqual([QueueAction.UPDATEGUIDE, QueueAction.EXPORT, QueueAction.UNKNOWN], [task.action for task in queue])
        self.assertEqual('recording 1', queue[1].details)
        self.assertEqual('/export', queue[1].exportPath)

    def test_processQueue(self):
        self.processor.enqueueExport('recording 1', '/export')
        self.db.enqueue('REBOOT')
        self.db.enqueuePriority('UPDATERECORDINGS')
        self.db.enqueuePriority('UPDATESCHEDULED')
        self.db.enqueuePriority('UPDATEGUIDE')
        self.assertTrue(self.processor.processQueue())
        self.assertEqual([call.updateGuide(), call.updateScheduled(), call.updateRecordings()], self.refresher.method_calls)
        self.exportHandler.assert_called_once_with('recording 1', '/export')
        self.assertEqual([], self.db.getQueue())

    def test_processQueue_stopsWhenNewlyStale(self):
        self.db.enqueue('UPDATEGUIDE')
        self.db.enqueue('UPDATERECORDINGS')
        self.db.enqueue('EXPORT', 'recording 1', '/export')
        self.freshnessScheduler.staleCategories.side_effect = [{'recordings'}, {'recordings'}, {'recordings', 'scheduled'}]
        self.assertFalse(self.processor.processQueue())
        self.exportHandler.assert_not_called()
        self.assertEqual(['EXPORT'], [task.action for task in self.db.getQueue()])

    def test_processQueue_failedTaskIsDeleted(self):
        self.db.enqueue('UPDATEGUIDE')
        self.db.enqueue('UPDATERECORDINGS')
        self.refresher.updateGuide.side_effect = RuntimeError('connection refused')
        with self.assertRaises(RuntimeError):
            self.processor.processQueue()
        self.refresher.updateRecordings.assert_not_called()
        self.assertEqual(['UPDATERECORDINGS'], [task.action for task in self.db.getQueue()])


if __name__ == '__main__':
    unittest.main()
