import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import router

logging.basicConfig(
    level=os.environ.get("CONFIGFLOW_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Comma-separated list of editor origins; "*" allows any
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CONFIGFLOW_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

app = FastAPI(title="Config Flow - Rule Engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

@app.get("/")
async def root():
    return {"message": "Config Flow API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=os.environ.get("CONFIGFLOW_HOST", "0.0.0.0"),
        port=int(os.environ.get("CONFIGFLOW_PORT", "8000")),
    )
