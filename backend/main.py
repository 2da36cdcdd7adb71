from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

load_dotenv()

from api import edit, sessions
from config.settings import Settings, get_settings
from models.provider import Provider

ROBOTS_TAG = "noindex, nofollow, nosnippet, noarchive, noimageindex"

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on a bad PROVIDER instead of on the first request
    settings = get_settings()
    print(f"🔧 Active provider: {settings.PROVIDER}")
    yield

app = FastAPI(title="Image Edit Relay API", version="1.0.0", lifespan=lifespan)

def apply_relay_headers(request: Request, response: Response) -> Response:
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("origin") or "*"
    response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "content-type"
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["X-Robots-Tag"] = ROBOTS_TAG
    return response

@app.middleware("http")
async def cors_and_robots(request: Request, call_next):
    """Permissive CORS plus anti-indexing on every response; OPTIONS is answered here"""
    if request.method == "OPTIONS":
        return apply_relay_headers(request, Response(status_code=204))
    return apply_relay_headers(request, await call_next(request))

@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    """Unhandled errors are rendered outside the middleware, so headers are set here too"""
    print(f"❌ Unhandled error on {request.method} {request.url.path}: {exc!r}")
    response = JSONResponse(status_code=500, content={"error": "Internal server error"})
    return apply_relay_headers(request, response)

# Include API routers
app.include_router(edit.router, prefix="/api")
app.include_router(sessions.router, prefix="/api")

@app.get("/")
async def root():
    return {"message": "Image Edit Relay API is running"}

@app.get("/api/health")
async def api_health_check(settings: Settings = Depends(get_settings)):
    return {
        "status": "healthy",
        "provider": settings.PROVIDER,
        "configured": {
            provider.value: bool(settings.credential_for(provider))
            for provider in Provider
        }
    }

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
