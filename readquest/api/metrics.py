from fastapi import APIRouter, Request, Response


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def metrics_endpoint(request: Request):
    payload = request.app.state.metrics_registry.export_prometheus()
    return Response(content=payload, media_type="text/plain")
