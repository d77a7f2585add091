"""Generation run endpoints."""

from fastapi import APIRouter, Depends

from app_generator.api.deps import get_controller
from app_generator.dtos.generation import CancelResponse, GenerationStatusResponse
from app_generator.entities.generation_run import GenerationRequest
from app_generator.services.orchestrator import AppController

router = APIRouter(prefix="/generation", tags=["Generation"])


@router.post("")
async def start_generation(body: GenerationRequest, controller: AppController = Depends(get_controller)):
    """Run a generation request to completion; progress is streamed on ``/api/events``."""
    result = await controller.start_generation(body)
    return result.to_document()


@router.post("/cancel", response_model=CancelResponse)
def cancel_generation(controller: AppController = Depends(get_controller)):
    cancelled = controller.cancel_generation()
    return CancelResponse(
        cancelled=cancelled,
        message="Remaining apps will be skipped" if cancelled else "No generation in progress",
    )


@router.get("/status", response_model=GenerationStatusResponse)
def generation_status(controller: AppController = Depends(get_controller)):
    return GenerationStatusResponse(
        is_generating=controller.is_generating,
        statistics=controller.get_statistics(),
    )


@router.get("/last")
def last_result(controller: AppController = Depends(get_controller)):
    if controller.last_result is None:
        return None
    return controller.last_result.to_document()


@router.post("/retry/{template_id}")
async def retry_app(
    template_id: str,
    body: GenerationRequest,
    controller: AppController = Depends(get_controller),
):
    outcome = await controller.retry_app(template_id, body)
    return outcome.to_document()
