import logging
import traceback

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from config import settings
from database import Base, engine
import models  # noqa: F401  registers the tables on Base.metadata
from routes import (
    itinerary,
    stops,
    accommodations,
    activities,
    itinerary_invites,
    user_invitations,
    files,
    notes,
    session,
)
from utils.auth import initialize_firebase_admin
from utils.logger import setup_api_logger

logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

Base.metadata.create_all(bind=engine)

if settings.environment == "production":
    initialize_firebase_admin()

app = FastAPI(title="Itinerary Planner API (Itineraries, Stops, Accommodations, Activities, Invites)")

# setup file logger for API failures
api_logger = setup_api_logger()


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    # log request info and stacktrace
    try:
        body = await request.body()
    except Exception:
        body = b""
    tb = traceback.format_exc()
    api_logger.error("Unhandled exception on %s %s | body=%s | error=%s\n%s",
                     request.method, request.url.path, body.decode('utf-8', errors='replace'), str(exc), tb)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    try:
        body = await request.body()
    except Exception:
        body = b""
    api_logger.warning("HTTPException on %s %s | status=%s | body=%s | detail=%s",
                       request.method, request.url.path, exc.status_code,
                       body.decode('utf-8', errors='replace'), str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


app.include_router(itinerary.router)
app.include_router(stops.router)
app.include_router(accommodations.router)
app.include_router(activities.router)
app.include_router(itinerary_invites.router)
app.include_router(user_invitations.router)
app.include_router(files.router)
app.include_router(notes.router)
app.include_router(session.router)
