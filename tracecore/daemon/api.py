"""HTTP API for the tracecore daemon."""

from typing import Any, Dict, Optional

from aiohttp import web
from loguru import logger

from .models import UsageType


def create_api_app(daemon) -> web.Application:
    """Create the aiohttp application with routes."""
    app = web.Application()
    app['daemon'] = daemon

    app.router.add_get('/search', handle_search)
    app.router.add_post('/select', handle_select)
    app.router.add_post('/activate', handle_activate)
    app.router.add_delete('/usage', handle_clear_usage)
    app.router.add_get('/status', handle_status)
    app.router.add_post('/shutdown', handle_shutdown)

    return app


def _error(code: str, message: str, status: int) -> web.Response:
    return web.json_response({'error': {'code': code, 'message': message}}, status=status)


async def _json_object(request: web.Request) -> Optional[Dict[str, Any]]:
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def handle_search(request: web.Request) -> web.Response:
    """Run one search round; superseded rounds answer with stale=true."""
    dispatcher = request.app['daemon'].dispatcher

    query = request.query.get('q')
    if query is None:
        return _error('invalid_request', 'query parameter q is required', 400)

    try:
        result = await dispatcher.search(query)
    except Exception as e:
        logger.error(f"Search error: {e}")
        return _error('internal_error', str(e), 500)

    if result is None:
        return web.json_response({'query': query, 'stale': True, 'results': []})
    return web.json_response({**result.to_dict(), 'stale': False})


async def handle_select(request: web.Request) -> web.Response:
    """Record a selection without running any action."""
    dispatcher = request.app['daemon'].dispatcher

    data = await _json_object(request)
    if data is None:
        return _error('invalid_request', 'body must be a JSON object', 400)

    identifier = data.get('identifier')
    if not identifier:
        return _error('invalid_request', 'identifier is required', 400)

    try:
        kind = UsageType(data.get('kind', UsageType.APPLICATION.value))
    except ValueError:
        valid = ', '.join(t.value for t in UsageType)
        return _error('invalid_request', f"kind must be one of: {valid}", 400)

    record = dispatcher.record_selection(identifier, kind)
    return web.json_response({
        'status': 'recorded',
        'record': record.model_dump(mode='json', by_alias=True),
    })


async def handle_activate(request: web.Request) -> web.Response:
    """Activate a candidate from the latest published round."""
    dispatcher = request.app['daemon'].dispatcher

    data = await _json_object(request)
    if data is None:
        return _error('invalid_request', 'body must be a JSON object', 400)

    identifier = data.get('identifier')
    if not identifier:
        return _error('invalid_request', 'identifier is required', 400)

    published = dispatcher.current_results
    candidate = published.find(identifier) if published else None
    if candidate is None:
        return _error('not_found', f"{identifier} is not in the current results", 404)

    outcome = await dispatcher.activate(candidate)
    return web.json_response({
        'status': 'activated',
        'identifier': identifier,
        'outcome': outcome if isinstance(outcome, (bool, str, int, float)) else None,
    })


async def handle_clear_usage(request: web.Request) -> web.Response:
    dispatcher = request.app['daemon'].dispatcher
    try:
        await dispatcher.clear_usage()
    except Exception as e:
        logger.error(f"Clear usage error: {e}")
        return _error('internal_error', str(e), 500)
    return web.json_response({'status': 'cleared'})


async def handle_status(request: web.Request) -> web.Response:
    """Get daemon status."""
    daemon = request.app['daemon']

    try:
        status = daemon.get_status()
    except Exception as e:
        logger.error(f"Status error: {e}")
        return _error('internal_error', str(e), 500)
    return web.json_response(status)


async def handle_shutdown(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    logger.info("Shutdown requested via API")
    daemon.request_shutdown()
    return web.json_response({'status': 'shutting_down'})
