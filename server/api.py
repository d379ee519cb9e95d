"""FastAPI server exposing the lineup engine for deployment."""

from functools import lru_cache
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder

from lineup_app.app import LineupConciergeApp
from lineup_app.logging_config import configure_logging
from logic.validation import FeedbackRequest, LookRequest, TripRequest

configure_logging()

app = FastAPI(title="Lineup Concierge", version="0.1.0")


@lru_cache(maxsize=1)
def get_concierge() -> LineupConciergeApp:
    """Build the facade once per process from the environment config."""

    return LineupConciergeApp()


def _unwrap(response: Dict[str, Any], fallback_message: str) -> Dict[str, Any]:
    status = response.get("status")
    if status == "needs_review":
        raise HTTPException(status_code=422, detail=jsonable_encoder(response))
    if status != "ok":
        raise HTTPException(
            status_code=400,
            detail={"message": response.get("message", fallback_message), "failure": response.get("failure")},
        )
    return response


@app.get("/healthz")
async def healthcheck(concierge: LineupConciergeApp = Depends(get_concierge)) -> dict:
    """Lightweight readiness check."""

    return concierge.health()


@app.post("/looks")
def recommend_look(request: LookRequest, concierge: LineupConciergeApp = Depends(get_concierge)) -> dict:
    """Recommend one lineup for a canonical intent."""

    response = concierge.recommend_look(**request.model_dump())
    return _unwrap(response, "could not build a complete look")


@app.post("/trips")
def plan_trip(request: TripRequest, concierge: LineupConciergeApp = Depends(get_concierge)) -> dict:
    """Plan one lineup per trip day."""

    response = concierge.plan_trip(**request.model_dump())
    return _unwrap(response, "trip planning failed")


@app.post("/feedback")
def record_feedback(request: FeedbackRequest, concierge: LineupConciergeApp = Depends(get_concierge)) -> dict:
    """Store a vote on a lineup."""

    response = concierge.record_feedback(**request.model_dump())
    return _unwrap(response, "feedback rejected")


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=int("8080"), reload=False)
