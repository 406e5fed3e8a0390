from .tabloAPI import TabloAPI, TabloAPIError, discoverTablos, TABLO_WEB_URI
