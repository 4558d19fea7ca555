import os

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import admins
import analytics
import catalog
import contact
import database
import promotions
import reviews
import settings
from errors import ApiError, NotFound

settings.configure_logging()
logger = structlog.get_logger(__name__)

# App and CORS
app = FastAPI(title="Salon Catalog API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error responses

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    content = {"success": False, "message": exc.detail}
    if isinstance(exc, ApiError):
        content.update(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e["loc"][1:]) or e["loc"][0], "message": e["msg"]}
        for e in exc.errors()
    ]
    message = f"{errors[0]['field']}: {errors[0]['message']}" if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message, "errors": errors})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    content = {"success": False, "message": "Internal server error"}
    if settings.ENVIRONMENT == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.on_event("startup")
def startup():
    logger.info("starting_api", environment=settings.ENVIRONMENT)
    database.ensure_indexes()


# Routes
app.include_router(admins.router)
app.include_router(catalog.admin_router)
app.include_router(promotions.admin_router)
app.include_router(analytics.router)
app.include_router(catalog.public_router)
app.include_router(promotions.public_router)
app.include_router(reviews.router)
app.include_router(contact.router)


# Utility endpoints
@app.get("/")
def root():
    return {
        "message": "Salon Catalog API running",
        "version": "1.0.0",
        "endpoints": {
            "public": {
                "categories": "/api/categories",
                "category_by_slug": "/api/categories/{slug}",
                "active_promotions": "/api/promotions/active",
                "tombola": "/api/promotions/tombola",
                "reviews": "/api/reviews",
                "contact": "/api/contact/send",
            },
            "admin": {
                "login": "/api/admin/login",
                "categories": "/api/admin/categories",
                "images": "/api/admin/categories/{id}/images",
                "promotions": "/api/admin/promotions",
                "analytics": "/api/admin/analytics/dashboard",
            },
        },
    }


@app.get("/test")
def test_database():
    if database.db is None:
        return {"backend": "ok", "database": "missing", "collections": []}
    try:
        return {"backend": "ok", "database": "ok", "collections": database.db.list_collection_names()}
    except Exception as e:
        logger.warning("database_check_failed", error=str(e))
        return {"backend": "ok", "database": f"error: {e}"}


# Registered last so every real route matches first.
@app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def api_not_found(path: str):
    raise NotFound("API route not found", path=f"/{path}")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
