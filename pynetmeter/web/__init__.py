from .app import build_app, serve, METERS_KEY, METER_LOGGERS_KEY
