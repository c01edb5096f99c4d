"""Scoring rubric: what each factor checks and how many points each tier is worth."""

from fastapi import APIRouter, HTTPException

from app.engines.scoring.rubric import SCORING_RUBRIC, FactorRubric, get_rubric

router = APIRouter()


@router.get("/rubric", response_model=list[FactorRubric], summary="The ten-factor scoring rubric")
async def list_rubric() -> list[FactorRubric]:
    return SCORING_RUBRIC


@router.get("/rubric/{factor_key}", response_model=FactorRubric, summary="Rubric for one factor")
async def get_factor_rubric(factor_key: str) -> FactorRubric:
    rubric = get_rubric(factor_key)
    if rubric is None:
        raise HTTPException(status_code=404, detail="Unknown factor")
    return rubric
