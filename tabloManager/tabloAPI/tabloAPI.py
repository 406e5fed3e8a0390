#!/usr/bin/env python3

import logging
import time

from munch import Munch
import requests


TABLO_WEB_URI = 'https://api.tablotv.com/assocserver/getipinfo/'


class TabloAPIError(Exception):
    pass


class TabloAPI:
    def __init__(self, ipAddress, port=8885, retryDelay=30, batchSize=50, session=None):
        self.logger = logging.getLogger(__name__)
        self.baseURI = 'http://{}:{}'.format(ipAddress, port)
        self.retryDelay = retryDelay
        self.batchSize = batchSize
        self.session = session if session is not None else requests.Session()

    # a failed connection is retried exactly once, after a fixed delay
    def request(self, method, uri, **kwargs):
        try:
            return self.session.request(method, uri, **kwargs)
        except requests.exceptions.ConnectionError:
            self.logger.warning('Error connecting to {}. Waiting {} seconds to retry'.format(uri, self.retryDelay))
        time.sleep(self.retryDelay)
        try:
            return self.session.request(method, uri, **kwargs)
        except requests.exceptions.ConnectionError as error:
            self.logger.error('{} {} failed: {}'.format(method, uri, error))
            raise TabloAPIError('{} {} failed: {}'.format(method, uri, error)) from error

    def get(self, subpath):
        response = self.request('GET', self.baseURI + subpath)
        response.raise_for_status()
        return response.json()

    def post(self, subpath, data):
        response = self.request('POST', self.baseURI + subpath, json=data)
        response.raise_for_status()
        return response.json()

    # no raise_for_status here: a 404 carries an object_not_found error body the caller needs
    def patch(self, subpath, data):
        response = self.request('PATCH', self.baseURI + subpath, json=data)
        return response.json()

    def batch(self, paths):
        details = {}
        for i in range(0, len(paths), self.batchSize):
            chunk = paths[i:i + self.batchSize]
            self.logger.debug('Requesting batch of {} objects'.format(len(chunk)))
            details.update(self.post('/batch', chunk))
        return details

    def getObjects(self, listPath):
        paths = self.get(listPath)
        if not paths:
            return {}
        self.logger.info('Getting details for {} objects from {}'.format(len(paths), listPath))
        return self.batch(paths)

    def unschedule(self, subpath):
        return self.patch(subpath, {'scheduled': False})


def discoverTablos(uri=TABLO_WEB_URI, retryDelay=30):
    logger = logging.getLogger(__name__)
    logger.info('Getting tablo info from {}'.format(uri))
    try:
        response = requests.get(uri)
    except requests.exceptions.ConnectionError:
        logger.warning('Error connecting to {}. Waiting {} seconds to retry'.format(uri, retryDelay))
        time.sleep(retryDelay)
        try:
            response = requests.get(uri)
        except requests.exceptions.ConnectionError as error:
            raise TabloAPIError('GET {} failed: {}'.format(uri, error)) from error
    response.raise_for_status()
    cpes = response.json().get('cpes') or []
    logger.info('{} tablos found'.format(len(cpes)))
    return [Munch(serverID=cpe['serverid'], name=cpe['name'], ipAddress=cpe['private_ip']) for cpe in cpes]
