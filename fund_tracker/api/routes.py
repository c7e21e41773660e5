import json

from fastapi import APIRouter, Header, HTTPException, Request, WebSocket
from fastapi.concurrency import run_in_threadpool

from fund_tracker.errors import AggregateNoDataError, QuoteSourceError
from fund_tracker.schemas.portfolio import FundChangeRequest, FundRemoveRequest, PortfolioView
from fund_tracker.services.broadcast_hub import WebSocketSubscriber

router = APIRouter()


def _require_owner(x_user_id: str | None) -> str:
    owner = (x_user_id or '').strip()
    if not owner:
        raise HTTPException(status_code=400, detail='X-User-Id header required')
    return owner


def _require_code(code: str) -> str:
    value = code.strip()
    if not value:
        raise HTTPException(status_code=400, detail='CODE_REQUIRED')
    return value


@router.get('/quotes/{code}')
def get_quote(code: str, request: Request):
    reconciler = request.app.state.reconciler
    try:
        quote = reconciler.reconcile(_require_code(code))
    except AggregateNoDataError as exc:
        raise HTTPException(status_code=404, detail='NO_DATA') from exc
    return quote.model_dump(mode='json')


@router.get('/my_data')
def get_my_data(request: Request, x_user_id: str | None = Header(default=None, alias='X-User-Id')):
    owner = _require_owner(x_user_id)
    store = request.app.state.portfolio_store
    view = PortfolioView(holdings=store.holdings(owner), watchlist=store.watchlist(owner))
    return view.model_dump(mode='json')


@router.post('/add')
def add_fund(
    req: FundChangeRequest,
    request: Request,
    x_user_id: str | None = Header(default=None, alias='X-User-Id'),
):
    owner = _require_owner(x_user_id)
    code = _require_code(req.code)
    try:
        request.app.state.reconciler.reconcile(code)
    except AggregateNoDataError as exc:
        raise HTTPException(status_code=400, detail='INVALID_FUND_CODE') from exc

    store = request.app.state.portfolio_store
    if req.type == 'holding':
        store.upsert_holding(owner, code, req.amount)
    else:
        store.add_watch(owner, code)
    return {'success': True}


@router.post('/delete')
def delete_fund(
    req: FundRemoveRequest,
    request: Request,
    x_user_id: str | None = Header(default=None, alias='X-User-Id'),
):
    owner = _require_owner(x_user_id)
    code = _require_code(req.code)
    store = request.app.state.portfolio_store
    if req.type == 'holding':
        removed = store.remove_holding(owner, code)
    else:
        removed = store.remove_watch(owner, code)
    return {'success': True, 'removed': removed}


@router.get('/refresh_market')
async def refresh_market(request: Request, x_user_id: str | None = Header(default=None, alias='X-User-Id')):
    owner = _require_owner(x_user_id)
    orchestrator = request.app.state.refresh_orchestrator
    quotes = await run_in_threadpool(orchestrator.refresh_owner, owner)
    data = [quote.model_dump(mode='json') for quote in quotes]

    hub = request.app.state.broadcast_hub
    if hub.running and data:
        payload = json.dumps({'type': 'quotes', 'data': data}, ensure_ascii=False).encode('utf-8')
        await hub.broadcast(payload)
    return {'data': data}


@router.get('/search')
def search_fund(request: Request, key: str = ''):
    keyword = key.strip()
    if not keyword:
        raise HTTPException(status_code=400, detail='missing key')
    try:
        results = request.app.state.fund_catalog.search(keyword)
    except QuoteSourceError as exc:
        raise HTTPException(status_code=502, detail='UPSTREAM_UNAVAILABLE') from exc
    return {'data': [row.model_dump() for row in results]}


@router.get('/detail')
def get_fund_detail(request: Request, code: str = ''):
    fund_code = _require_code(code)
    try:
        detail = request.app.state.fund_catalog.get_detail(fund_code)
    except QuoteSourceError as exc:
        raise HTTPException(status_code=502, detail='UPSTREAM_UNAVAILABLE') from exc
    return detail.model_dump()


@router.get('/metrics/refresh')
def refresh_metrics(request: Request):
    metrics = request.app.state.refresh_orchestrator.metrics()
    metrics.update(request.app.state.reconciler.metrics())
    return metrics


@router.get('/metrics/ws')
async def ws_metrics(request: Request):
    hub = request.app.state.broadcast_hub
    subscribers = await hub.subscriber_count() if hub.running else 0
    return {
        'running': hub.running,
        'subscribers': subscribers,
        'broadcasts': hub.broadcasts,
        'evictions': hub.evictions,
    }


@router.websocket('/ws')
async def quote_stream(websocket: WebSocket):
    hub = websocket.app.state.broadcast_hub
    await websocket.accept()
    if not hub.running:
        await websocket.close(code=1013)
        return

    subscriber = WebSocketSubscriber(websocket)
    await hub.register(subscriber)
    try:
        while True:
            message = await websocket.receive()
            if message['type'] == 'websocket.disconnect':
                break
    finally:
        if hub.running:
            await hub.unregister(subscriber)
