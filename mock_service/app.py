import asyncio
import random

from fastapi import FastAPI, HTTPException, Request

app = FastAPI(title="Mock Target Service")


@app.get("/api/demo")
async def demo():
    return {"message": "ok"}


@app.post("/api/echo")
async def echo(request: Request):
    body = await request.body()
    return {"bytes": len(body), "content_type": request.headers.get("content-type")}


@app.get("/api/slow")
async def slow(delay_ms: int = 100):
    await asyncio.sleep(delay_ms / 1000)
    return {"message": "ok", "delay_ms": delay_ms}


@app.get("/api/flaky")
async def flaky(error_rate: float = 0.2):
    if not 0.0 <= error_rate <= 1.0:
        raise HTTPException(status_code=422, detail="error_rate must be between 0 and 1")
    if random.random() < error_rate:
        raise HTTPException(status_code=503, detail="injected failure")
    return {"message": "ok"}


# Run with: uvicorn mock_service.app:app --port 8001 --reload
