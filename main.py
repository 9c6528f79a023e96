import os, logging, secrets
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as ModelError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
import config, models, printer, security, validation, acquisition
from errors import PrintAgentError

logger = logging.getLogger(__name__)

app = FastAPI(title="Local Print Agent")


def cors_headers():
    allowed = 'Content-Type'
    if config.REQUIRE_TOKEN:
        allowed += ', ' + config.TOKEN_HEADER
    return {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'GET,POST,OPTIONS',
        'Access-Control-Allow-Headers': allowed,
        'Access-Control-Max-Age': '86400',
    }


def fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({'ok': False, 'message': message}, status_code=status_code)


def require_token(request: Request):
    """Only enforced when PRINT_AGENT_REQUIRE_TOKEN is set; the origin check always applies."""
    if not config.REQUIRE_TOKEN:
        return
    expected = config.load_agent_config().token
    token = request.headers.get(config.TOKEN_HEADER) or ''
    if not expected or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail='unauthorized')


@app.middleware('http')
async def local_origin_only(request: Request, call_next):
    host = request.client.host if request.client else None
    if not security.is_local_client(host):
        logger.warning('rejected %s %s from %s', request.method, request.url.path, host)
        response = fail(401, 'unauthorized')
    elif request.method == 'OPTIONS':
        response = Response(status_code=204)
    else:
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception('unhandled error on %s %s', request.method, request.url.path)
            response = fail(500, str(e) or e.__class__.__name__)
    response.headers.update(cors_headers())
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    # unknown paths and unsupported methods are both "not found"
    if exc.status_code in (404, 405):
        return fail(404, 'not found')
    return fail(exc.status_code, str(exc.detail))


@app.get('/health')
def api_health():
    return {'ok': True, 'message': 'alive'}


@app.get('/printers')
def api_printers(request: Request):
    require_token(request)
    try:
        return {'ok': True, 'printers': printer.list_printers()}
    except PrintAgentError as e:
        return fail(e.status_code, e.message)
    except Exception as e:
        logger.exception('printer enumeration failed')
        return fail(500, str(e) or e.__class__.__name__)


def handle_print(pr: models.PrintRequest) -> models.ResolvedPrintJob:
    """Validate, acquire the PDF and submit it. Runs in a worker thread."""
    validated = validation.validate_request(pr)
    cfg = config.load_agent_config()
    printer_name = printer.resolve_printer_name(validated, cfg)
    pdf_bytes = acquisition.acquire_pdf(validated, cfg)
    return printer.dispatch(validated, printer_name, pdf_bytes)


@app.post('/print')
async def api_print(request: Request):
    require_token(request)
    try:
        body = await request.json()
    except ValueError:
        return fail(400, 'bad json')
    if not isinstance(body, dict):
        return fail(400, 'bad json')
    try:
        pr = models.PrintRequest(**body)
    except ModelError as e:
        return fail(400, f'bad json: {e.errors()[0].get("msg", "invalid field")}')

    try:
        await run_in_threadpool(handle_print, pr)
    except PrintAgentError as e:
        logger.error('print job %s failed: %s', pr.job_id, e.message)
        return fail(e.status_code, e.message)
    except Exception as e:
        logger.exception('print job %s crashed', pr.job_id)
        return fail(500, str(e) or e.__class__.__name__)
    return {'ok': True, 'jobId': pr.job_id, 'message': 'printed'}


def setup_logging():
    handlers = [logging.StreamHandler()]
    try:
        os.makedirs(os.path.dirname(config.LOG_PATH), exist_ok=True)
        handlers.append(logging.FileHandler(config.LOG_PATH, encoding='utf-8'))
    except OSError as e:
        print(f'log file unavailable, logging to console only: {e}')
    logging.basicConfig(level=logging.INFO, handlers=handlers,
                        format='[%(asctime)s] %(levelname)s %(name)s: %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')


def main():
    import uvicorn
    setup_logging()
    logger.info('HTTP listening on: http://%s:%s/', config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, reload=False, log_config=None)


if __name__ == '__main__':
    main()
