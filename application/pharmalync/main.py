from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from pharmalync.logging.utils import get_app_logger, initialize_logging
from pharmalync.middlewares.logging_middleware import AuditMiddleware

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

# Initialize Sentry before the app is built so the FastAPI integration hooks in
from pharmalync.config.sentry import init_sentry
init_sentry()

initialize_logging()
logger = get_app_logger('pharmalync.main')
logger.info(f"startup | mode={'debug' if configs.DEBUG else 'production'} storage={configs.STORAGE_BACKEND}")

if configs.STORAGE_BACKEND == "firestore":
    from pharmalync.connections.firebase import initialize_firebase
    initialize_firebase()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("Starting PharmaLync payments")
    yield
    logger.info("Shutting down PharmaLync payments")


docs_url = "/docs" if configs.DEBUG else None
redoc_url = "/redoc" if configs.DEBUG else None

app = FastAPI(
    title="PharmaLync Payments",
    version=configs.APP_VERSION,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)

if configs.ALLOWED_ORIGINS:
    origins = [origin.strip() for origin in configs.ALLOWED_ORIGINS.split(",")]
else:
    origins = ["*"]

app.add_middleware(AuditMiddleware)

logger.info(f"Configuring CORS with allowed origins: {origins}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from pharmalync.middlewares.handlers import register_exception_handlers
register_exception_handlers(app)

# Routes
from pharmalync.routes.fcm import router as fcm_router
from pharmalync.routes.health import router as health_router
from pharmalync.routes.otp import router as otp_router
from pharmalync.routes.payments import router as payments_router

app.include_router(otp_router, prefix="/api")
app.include_router(fcm_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(health_router, tags=["health"])
