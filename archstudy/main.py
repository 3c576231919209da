from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from archstudy.config import settings
from archstudy.context import build_context
from archstudy.routes import auth, questions, study, history, stats, sync, admin, data

logger = logging.getLogger(__name__)

def configure_logging():
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    context = build_context(settings)
    app.state.context = context
    # Serves local data right away; remote sync runs in the background
    await context.session.open()
    logger.info(f"{settings.app_name} started (remote {'enabled' if context.remote else 'disabled'})")
    yield
    await context.engine.wait_for_pushes()
    await context.session.stop()
    context.local.close()

app = FastAPI(
    title="Architect Study API",
    version="1.0.0",
    description="Local-first question practice with cloud sync for the architect licensing exam",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(questions.router, prefix="/questions", tags=["Questions"])
app.include_router(study.router, prefix="/study", tags=["Study"])
app.include_router(history.router, prefix="/history", tags=["History"])
app.include_router(stats.router, prefix="/stats", tags=["Statistics"])
app.include_router(sync.router, prefix="/sync", tags=["Sync"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(data.router, prefix="/data", tags=["Data"])

@app.get("/")
async def root():
    return {"message": "Welcome to Architect Study API", "version": app.version}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("archstudy.main:app", host="0.0.0.0", port=8000, reload=True)
