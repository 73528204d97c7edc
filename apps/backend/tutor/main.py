import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from tutor.core.config import AIAvailability, settings
from tutor.db.init import init_db
from tutor.routers import books, chat, upload

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Storybook Tutor Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # malformed or missing request fields are client errors, reported as 400
    return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})


@app.on_event("startup")
async def on_startup():
    await init_db()
    availability = AIAvailability.from_api_key(settings.openai_api_key)
    if not availability.usable:
        logging.warning(f"OpenAI API key is {availability.value}; AI features will use basic fallbacks")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.env}


app.include_router(books.router, prefix="/api")
app.include_router(upload.router, prefix="/api")
app.include_router(chat.router, prefix="/api")
app.mount("/files", StaticFiles(directory=settings.blob_storage_dir, check_dir=False), name="files")
