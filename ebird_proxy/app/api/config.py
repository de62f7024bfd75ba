"""Front-end configuration endpoint.

Serves the Google Maps browser key so it lives in deployment config rather
than in the static HTML.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ebird_proxy.app.core.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.api_route(
    "/api/config",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
async def frontend_config(request: Request) -> JSONResponse:
    """Return the Maps API key for the front-end."""
    headers = {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET",
    }
    if request.method != "GET":
        return JSONResponse(
            status_code=405, content={"error": "Method not allowed"}, headers=headers
        )

    maps_api_key = request.app.state.settings.google_maps_api_key
    if not maps_api_key:
        logger.error(
            "GOOGLE_MAPS_API_KEY environment variable not set",
            extra={"fault": "configuration"},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Maps API key not configured"},
            headers=headers,
        )

    # The key changes only on redeploy
    headers["Cache-Control"] = "s-maxage=3600, stale-while-revalidate"
    return JSONResponse(content={"mapsApiKey": maps_api_key}, headers=headers)
