from typing import Optional

from fastapi import FastAPI, HTTPException

from .errors import ClassifierContractError, UnhandledMissingValueError
from .predict import decide
from .schemas import DecisionRequest, DecisionResponse
from .threshold import GRANT_ALL

app = FastAPI(title="Loan Policy API", version="1.0")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/decide", response_model=DecisionResponse)
def decide_loan(req: DecisionRequest, threshold: Optional[float] = None):
    if threshold is not None and not GRANT_ALL <= threshold <= 1.0:
        raise HTTPException(status_code=422, detail=f"threshold must be within [{GRANT_ALL}, 1]")
    try:
        p, decision, t = decide(req.features, threshold)
    except (ClassifierContractError, UnhandledMissingValueError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return DecisionResponse(probability=p, decision=decision, threshold=t)
