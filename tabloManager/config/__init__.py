from .config import loadConfig
