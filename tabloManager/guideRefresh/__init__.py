from .guideRefresh import EmptyResultError, GuideRefresher, NoAiringsReturnedError
