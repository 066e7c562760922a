"""NutriPulse Server - Entry point.

Runs the MCP server over HTTP. Uses Starlette with the MCP HTTP app mounted
at the root, next to a plain health check.
"""

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from .shell.config import AppConfig
from .shell.mcp_server import mcp


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "service": "nutripulse"})


# ==================== Create ASGI App ====================


def create_app(config: AppConfig | None = None) -> Starlette:
    """Create the Starlette application with MCP at root.

    The MCP streamable_http_app() handles /mcp internally when mounted at
    root; its lifespan context must drive the outer app.
    """
    config = config or AppConfig.from_env()
    mcp_app = mcp.streamable_http_app()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Mount("/", app=mcp_app),
    ]

    return Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.allowed_origins,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            ),
        ],
        lifespan=mcp_app.router.lifespan_context,
    )


# Create app at module level for ASGI servers
app = create_app()


def main() -> None:
    """Run the server."""
    config = AppConfig.from_env()
    configure_logging(config.log_level)

    logger.info("Starting NutriPulse MCP server on %s:%d", config.host, config.port)

    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
