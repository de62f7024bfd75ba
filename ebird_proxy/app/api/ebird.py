"""eBird proxy endpoint."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from ebird_proxy.app.middleware.request_id import get_request_id
from ebird_proxy.app.services.pipeline import ProxyPipeline, ProxyRequest, ProxyResponse

router = APIRouter()

# Every method is routed here so the pipeline, not the framework, answers
# unsupported ones with its own JSON body and CORS headers.
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_pipeline(request: Request) -> ProxyPipeline:
    """Get the pipeline owned by the application."""
    return request.app.state.pipeline


def to_http_response(result: ProxyResponse) -> Response:
    """Render a pipeline result as a Starlette response."""
    if result.empty:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(
        content=result.body, status_code=result.status_code, headers=result.headers
    )


@router.api_route("/api/ebird", methods=PROXY_METHODS, response_model=None)
async def proxy_ebird(request: Request) -> Response:
    """Proxy a read-only request to the eBird API.

    The upstream path is passed percent-encoded in the ``endpoint`` query
    parameter, e.g. ``/api/ebird?endpoint=%2Fdata%2Fobs%2FUS-MA%2Frecent``.
    """
    pipeline = get_pipeline(request)
    result = await pipeline.handle(
        ProxyRequest(
            method=request.method,
            endpoint_values=request.query_params.getlist("endpoint"),
            headers=request.headers,
            client_host=request.client.host if request.client else None,
            request_id=get_request_id(request),
        )
    )
    return to_http_response(result)
