import requests
import unittest
from unittest.mock import Mock, call, patch
from tabloManager.tabloAPI import TabloAPI, TabloAPIError, discoverTablos


def jsonResponse(value):
    response = Mock()
    response.json.return_value = value
    return response


class TestTabloAPI(unittest.TestCase):

    def setUp(self):
        self.session = Mock()
        self.api = TabloAPI('10.0.0.2', retryDelay=0, session=self.session)

    def test_get(self):
        self.session.request.return_value = jsonResponse(['/guide/channels/1'])
        self.assertEqual(['/guide/channels/1'], self.api.get('/guide/channels'))
        self.session.request.assert_called_once_with('GET', 'http://10.0.0.2:8885/guide/channels')
        self.session.request.return_value.raise_for_status.assert_called_once_with()

    @patch('tabloManager.tabloAPI.tabloAPI.time.sleep')
    def test_request_retriesOnce(self, mockSleep):
        self.session.request.side_effect = [requests.exceptions.ConnectionError('refused'), jsonResponse([])]
        self.assertEqual([], self.api.get('/guide/channels'))
        self.assertEqual(2, self.session.request.call_count)
        mockSleep.assert_called_once_with(0)

    @patch('tabloManager.tabloAPI.tabloAPI.time.sleep')
    def test_request_failsAfterRetry(self, mockSleep):
        self.session.request.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(TabloAPIError):
            self.api.get('/guide/channels')
        self.assertEqual(2, self.session.request.call_count)

    def test_batch_splitsIntoGroups(self):
        paths = ['/guide/shows/{}'.format(i) for i in range(120)]
        self.session.request.side_effect = lambda method, uri, json: jsonResponse({path: {'object_id': 1} for path in json})
        details = self.api.batch(paths)
        self.assertEqual(120, len(details))
        self.assertEqual([50, 50, 20], [len(c[1]['json']) for c in self.session.request.call_args_list])
        self.assertEqual('http://10.0.0.2:8885/batch', self.session.request.call_args_list[0][0][1])

    def test_getObjects_empty(self):
        self.session.request.return_value = jsonResponse([])
        self.assertEqual({}, self.api.getObjects('/guide/airings?state=conflicted'))
        self.assertEqual(1, self.session.request.call_count)

    def test_getObjects(self):
        self.session.request.side_effect = [jsonResponse(['/guide/channels/1']), jsonResponse({'/guide/channels/1': {'object_id': 1}})]
        self.assertEqual({'/guide/channels/1': {'object_id': 1}}, self.api.getObjects('/guide/channels'))
        self.assertEqual(call('POST', 'http://10.0.0.2:8885/batch', json=['/guide/channels/1']), self.session.request.call_args_list[1])

    def test_unschedule_objectNotFound(self):
        response = jsonResponse({'error': {'code': 'object_not_found'}})
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('404')
        self.session.request.return_value = response
        self.assertEqual({'error': {'code': 'object_not_found'}}, self.api.unschedule('/guide/series/episodes/42'))
        self.session.request.assert_called_once_with('PATCH', 'http://10.0.0.2:8885/guide/series/episodes/42', json={'scheduled': False})


class TestDiscoverTablos(unittest.TestCase):

    @patch('tabloManager.tabloAPI.tabloAPI.requests.get')
    def test_discoverTablos(self, mockGet):
        mockGet.return_value = jsonResponse({'cpes': [{'serverid': 'SID_1', 'name': 'Den', 'private_ip': '10.0.0.2', 'public_ip': '1.2.3.4'}]})
        tablos = discoverTablos('http://localhost/getipinfo/', retryDelay=0)
        self.assertEqual(1, len(tablos))
        self.assertEqual('SID_1', tablos[0].serverID)
        self.assertEqual('Den', tablos[0].name)
        self.assertEqual('10.0.0.2', tablos[0].ipAddress)

    @patch('tabloManager.tabloAPI.tabloAPI.requests.get')
    def test_discoverTablos_none(self, mockGet):
        mockGet.return_value = jsonResponse({'success': True})
        self.assertEqual([], discoverTablos(retryDelay=0))


if __name__ == '__main__':
    unittest.main()
