from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_fastapi_instrumentator import Instrumentator

from accesscore.api.routes.me import router as me_router
from accesscore.api.routes.organizations import router as organizations_router
from accesscore.auth.errors import AccessError
from accesscore.logging_config import configure_logging
from accesscore.middleware.security_headers import SecurityHeadersMiddleware
from accesscore.tracing import configure_tracing

# ------------------------------------------------------------------
# Configure Observability
# ------------------------------------------------------------------
configure_logging()
configure_tracing()

app = FastAPI(title="accesscore")

app.include_router(me_router, prefix="/api")
app.include_router(organizations_router, prefix="/api")

app.add_middleware(SecurityHeadersMiddleware)


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
def _request_id(request: Request):
    ctx = getattr(request.state, "context", None)
    if ctx is not None:
        return ctx.request_id
    return request.headers.get("x-request-id")


@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError):
    payload = exc.to_dict()
    payload["request_id"] = _request_id(request)
    return JSONResponse(status_code=exc.status_code, content=payload)


# ------------------------------------------------------------------
# Observability
# ------------------------------------------------------------------
FastAPIInstrumentor.instrument_app(app)
Instrumentator().instrument(app).expose(app)


# ------------------------------------------------------------------
# Health Check
# ------------------------------------------------------------------
@app.get("/health")
def health_check():
    return {"status": "ok"}
