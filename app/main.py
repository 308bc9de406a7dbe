import logging
from contextlib import asynccontextmanager

import uvicorn

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from routers import leave_management
from utils.app_utils import get_leave_workflow
from config import settings

PROD_MODE = settings.PRODUCTION_MODE

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s',
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # let in-flight notifications finish before the loop goes away
    await get_leave_workflow().wait_for_side_effects()


app = FastAPI(title=settings.PROJECT_TITLE, lifespan=lifespan)

app.include_router(leave_management.router, prefix="/leaves", tags=["leave_management"])

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def index():
    return {"message": settings.PROJECT_TITLE}


if __name__ == "__main__":
    if PROD_MODE == True:
    # Run Uvicorn without reload in production
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=False)

    else:
        # Run Uvicorn with reload=True in development mode
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=True)
