import asyncio
import json

from aiohttp import web

from pynetmeter.meter.clitools import MeterEntry, make_logger
from pynetmeter.meter.connection import split_host_port
from pynetmeter.meter.errors import ConfigurationError, MeterError
from pynetmeter.meter.logger import MeterLogger
from pynetmeter.meter.processing import result_to_dict


METERS_KEY = web.AppKey('meters', dict)
LOGGER_KEY = web.AppKey('logger', MeterLogger)
METER_LOGGERS_KEY = web.AppKey('meter_loggers', dict)


def _error(status: int, msg: str) -> web.Response:
    return web.json_response({"error": msg}, status=status)


async def list_meters(request: web.Request) -> web.Response:
    return web.json_response(sorted(request.app[METERS_KEY]))


async def run_meter(request: web.Request) -> web.Response:
    """
    Запустить клиента или сервер измерителя.

    Тело запроса - документ настроек (накладывается на профиль
    измерителя) с дополнительным полем `"client": true|false`. Клиент
    отвечает результатом в JSON, сервер - `{"status": "done"}` после того,
    как клиент закончит обмен.
    """
    logger = request.app[LOGGER_KEY]
    name = request.match_info['name']
    entry: MeterEntry | None = request.app[METERS_KEY].get(name)
    if entry is None:
        return _error(404, f"unknown meter {name!r}")

    body = await request.read()
    try:
        raw = json.loads(body or b'{}')
    except ValueError as err:
        logger.error("bad request body: %s", err)
        return _error(400, f"malformed JSON: {err}")
    if not isinstance(raw, dict):
        return _error(400, "request body must be a JSON object")

    client = raw.pop('client', False)
    if not isinstance(client, bool):
        return _error(400, "'client' must be a boolean")
    try:
        options = entry.defaults().overlay(raw, entry.unix_address)
    except ConfigurationError as err:
        logger.error("bad options: %s", err)
        return _error(400, str(err))

    # один логгер на измеритель на все запросы
    meter = entry.meter_cls(
        options, logger=request.app[METER_LOGGERS_KEY][name]
    )
    loop = asyncio.get_running_loop()
    role = 'client' if client else 'server'
    logger.info("running %s %s", name, role)
    try:
        if client:
            result = await loop.run_in_executor(None, meter.client)
        else:
            await loop.run_in_executor(None, meter.server)
    except MeterError as err:
        logger.error("%s %s failed: %s", name, role, err)
        return _error(500, str(err))

    if client:
        return web.json_response(result_to_dict(result))
    return web.json_response({"status": "done"})


def build_app(
    meters: dict[str, MeterEntry],
    log_file: str | None = None
) -> web.Application:
    app = web.Application()
    app[METERS_KEY] = dict(meters)
    app[LOGGER_KEY] = make_logger('http', log_file=log_file)
    app[METER_LOGGERS_KEY] = {
        name: make_logger(name, log_file=log_file) for name in meters
    }
    app.router.add_get('/benchmate/meters', list_meters)
    app.router.add_post('/benchmate/{name}', run_meter)
    return app


def serve(
    addr: str,
    meters: dict[str, MeterEntry],
    log_file: str | None = None
) -> None:
    """Запустить HTTP-сервер на адресе вида host:port (блокирующий вызов)."""
    host, port = split_host_port(addr)
    web.run_app(build_app(meters, log_file), host=host or None, port=port)
