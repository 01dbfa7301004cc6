from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from storysync.sync.config import load_config
from storysync.sync.error_tracker import ConfigurationError, SyncException, UnauthorizedEditorError
from storysync.sync.orchestrator import SyncOrchestrator
from storysync.sync.webhook import WebhookEvent


def create_app(orchestrator: Optional[SyncOrchestrator] = None) -> FastAPI:
    """Build the HTTP host. The orchestrator is created from environment variables on first use if not given."""
    app = FastAPI(openapi_url=None, redirect_slashes=False)
    app.state.orchestrator = orchestrator

    # Enable CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_orchestrator(request: Request) -> SyncOrchestrator:
        if request.app.state.orchestrator is None:
            try:
                config = load_config()
            except ConfigurationError as e:
                raise HTTPException(status_code=500, detail=e.message)
            request.app.state.orchestrator = SyncOrchestrator(config)
        return request.app.state.orchestrator

    @app.post("/webhook")
    def webhook_handler(event: WebhookEvent, request: Request) -> Dict[str, Any]:
        """Storyblok webhook: published / unpublished / branch_deployed."""
        try:
            result = get_orchestrator(request).handle_hook(event)
        except SyncException as e:
            raise HTTPException(status_code=500, detail=e.message)
        return result.to_dict()

    @app.get("/story")
    def story_handler(request: Request, path: str = Query(..., description="full_slug of the story")) -> Dict[str, Any]:
        return get_orchestrator(request).get_story(path)

    @app.get("/editor")
    def editor_handler(
        request: Request,
        space_id: str = Query(..., alias="spaceId"),
        timestamp: str = Query(...),
        token: str = Query(...),
    ) -> Dict[str, Any]:
        try:
            return get_orchestrator(request).validate_editor(space_id, timestamp, token)
        except UnauthorizedEditorError as e:
            raise HTTPException(status_code=401, detail=e.message)

    @app.get("/status")
    def status_handler(request: Request) -> Dict[str, Any]:
        return get_orchestrator(request).get_statistics()

    return app
