from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from dashreport.api.deps import get_compiler
from dashreport.report.compiler import LatexCompiler

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"
    pdflatex: bool


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(
    compiler: LatexCompiler = Depends(get_compiler),  # noqa: B008
) -> HealthResponse:
    """Liveness plus whether reports can be compiled on this host."""
    return HealthResponse(status="healthy", pdflatex=compiler.is_available)
