"""
Demo service instrumented with InspectrMiddleware.

Run the hub (``python -m inspectr.main``) and this app
(``python -m inspectr.demo``), then call the demo routes and watch the
transactions arrive on http://localhost:4004/api/sse.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from .capture import InspectrMiddleware
from .config import get_settings
from .logging import setup_logging

settings = get_settings()

app = FastAPI(title="Inspectr demo", version="0.1.0")
app.add_middleware(InspectrMiddleware, broadcast=True, print_summary=True)


@app.get("/test")
async def test():
    return {"message": "This is a test endpoint."}


@app.get("/api")
async def welcome():
    return PlainTextResponse("Welcome to the API")


@app.get("/api/services/inspectr")
async def get_service():
    return {"name": "Inspectr demo", "version": "1.0.1"}


@app.post("/api/services/inspectr")
async def create_service(request: Request):
    # Decoded by the middleware before the handler runs
    body = request.state.body
    if not isinstance(body, dict) or not body.get("message") or not body.get("user"):
        return JSONResponse({"error": "Message and user are required"}, status_code=400)
    return {"name": "Service Name", "version": "1.0.0"}


@app.put("/api/services/inspectr")
async def update_service(request: Request):
    body = await request.json()
    if not body.get("name") and not body.get("version"):
        return JSONResponse({"error": "Name or version is required"}, status_code=400)
    return {"message": "Service updated", "data": body}


@app.delete("/api/services/inspectr")
async def delete_service():
    return Response(status_code=204)


@app.get("/api/ping")
async def ping():
    return PlainTextResponse("Pong")


@app.get("/changelog")
async def changelog():
    return RedirectResponse("/api/services/inspectr", status_code=302)


@app.get("/error")
async def error():
    return PlainTextResponse("Internal Server Error", status_code=500)


if __name__ == "__main__":
    import uvicorn

    setup_logging(json_output=settings.LOG_JSON, service_name="inspectr-demo")
    uvicorn.run(app, host="0.0.0.0", port=4005)
