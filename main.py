import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from beekeeper.routes import auth, user, article, comment, admin_article, forum, admin_forum, site
from beekeeper.utils.exceptions import InfrastructureError, MaintenanceActive, PolicyError
from config import CORS_ORIGINS, LOG_LEVEL
from database import create_tables
from dependencies import check_maintenance

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="BeeKeeper's Blog API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PolicyError)
async def policy_error_handler(request: Request, exc: PolicyError):
    if exc.reason:
        logger.info(f"{request.method} {request.url.path} refused ({exc.status_code}): {exc.reason}")
    body = {"success": False, "message": exc.message}
    if isinstance(exc, MaintenanceActive):
        body["maintenance"] = {
            "title": exc.title,
            "message": exc.message,
            "estimated_time": exc.estimated_time,
        }
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(request: Request, exc: InfrastructureError):
    logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.cause!r})")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


content_gate = [Depends(check_maintenance)]

app.include_router(auth.router, tags=["Authentication"])
app.include_router(user.router, prefix="/users", tags=["Users"])
app.include_router(site.router, tags=["Site"])
app.include_router(article.router, prefix="/articles", tags=["Articles"], dependencies=content_gate)
app.include_router(comment.router, prefix="/comments", tags=["Comments"], dependencies=content_gate)
app.include_router(forum.router, prefix="/forum", tags=["Forum"], dependencies=content_gate)
app.include_router(admin_article.router, prefix="/admin/articles", tags=["Admin articles"])
app.include_router(admin_forum.router, prefix="/admin/forum", tags=["Admin forum"])


@app.on_event("startup")
async def startup_event():
    await create_tables()


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
