from fastapi import FastAPI

from .api import databases, drives

app = FastAPI(title="Synology HDD db")

app.include_router(drives.router, prefix="/drives", tags=["drives"])
app.include_router(databases.router, prefix="/databases", tags=["databases"])
