import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from techtool.core.config import settings
from techtool.core.database import SessionLocal
from techtool.api.routes.tickets import router as tickets_router
from techtool.api.routes.directory import router as directory_router
from techtool.api.routes.chat import router as chat_router
from techtool.api.routes.rephrase import router as rephrase_router

logging.basicConfig(level=settings.LOG_LEVEL.upper())

# 1) Create the app FIRST
app = FastAPI(title="TechTool Helpdesk Backend")

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)


# 3) Every error leaves as {"error": "..."}
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
    return JSONResponse(status_code=422, content={"error": "; ".join(messages)})


# 4) Include routers AFTER app is created
app.include_router(tickets_router)
app.include_router(directory_router)
app.include_router(chat_router)
app.include_router(rephrase_router)


# 5) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "techtool"}

@app.get("/db-health")
def db_health():
    db = SessionLocal()
    try:
        db.execute(text("select 1"))
        return {"ok": True, "db": "connected"}
    except SQLAlchemyError as e:
        raise HTTPException(status_code=500, detail=f"Database unavailable: {str(e)}")
    finally:
        db.close()
