from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import logging

from db import init_db
from friend_recommendation.config import settings
from friend_recommendation.routes import router as friend_recommendation_router, get_engine

load_dotenv()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logging.info("App starting with DATABASE_URL")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    engine = get_engine()
    yield
    await engine.cache.backend.close()


app = FastAPI(title="Friend Recommendations", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(friend_recommendation_router)


@app.get("/", tags=["meta"])
def root():
    return {"service": "friend-recommendations", "docs": "/docs"}
