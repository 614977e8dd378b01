from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from chatdeck.bootstrap import build_app
from chatdeck.config_loader import ConfigError, normalise_provider
from chatdeck.core.errors import SessionBusyError


class ChatRequest(BaseModel):
    message: str
    chat_id: Optional[str] = None


class SelectionRequest(BaseModel):
    provider: str
    model: str


class ApiKeyRequest(BaseModel):
    provider: str
    key: str = ""


class ArtifactUpdate(BaseModel):
    content: str


class SearchToggle(BaseModel):
    enabled: bool


def create_app(config_path: Path, *, repo_root: Optional[Path] = None) -> FastAPI:
    ctx = build_app(Path(config_path), repo_root=repo_root)
    store = ctx["store"]
    session = ctx["session"]
    catalog = ctx["catalog"]

    app = FastAPI()
    app.state.ctx = ctx

    def _models_payload(listing):
        return {name: [m.to_dict() for m in models] for name, models in listing.items()}

    @app.get("/api/config")
    def api_config():
        return JSONResponse(
            {
                "provider": store.selected_provider,
                "model": store.selected_model,
                "search_enabled": session.search_enabled,
                "busy": session.busy,
                "credentials": {
                    name: ctx["secrets"].has(name) for name in ("openai", "groq", "gemini", "tavily")
                },
            }
        )

    @app.put("/api/selection")
    def api_selection(req: SelectionRequest):
        try:
            provider = normalise_provider(req.provider)
        except ConfigError as e:
            raise HTTPException(status_code=400, detail=str(e))
        store.select(provider, req.model)
        return {"provider": provider, "model": req.model}

    @app.put("/api/keys")
    def api_keys(req: ApiKeyRequest):
        store.set_api_key(req.provider.lower(), req.key.strip())
        # Key changes can change what discovery returns
        catalog.cache.invalidate(req.provider.lower())
        return {"provider": req.provider.lower(), "set": bool(req.key.strip())}

    @app.put("/api/search")
    def api_search(req: SearchToggle):
        session.search_enabled = req.enabled
        return {"search_enabled": session.search_enabled}

    @app.get("/api/models")
    def api_models():
        return _models_payload(catalog.all_models())

    @app.post("/api/models/refresh")
    def api_models_refresh():
        return _models_payload(catalog.refresh())

    @app.get("/api/chats")
    def api_chats():
        return {"current_chat_id": store.current_chat_id, "chats": store.chats}

    @app.post("/api/chats")
    def api_new_chat():
        return store.create_chat()

    @app.post("/api/chats/{chat_id}/select")
    def api_switch_chat(chat_id: str):
        try:
            return store.switch_to(chat_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown chat")

    @app.delete("/api/chats/{chat_id}")
    def api_delete_chat(chat_id: str):
        store.delete_chat(chat_id)
        return {"current_chat_id": store.current_chat_id}

    @app.post("/api/chats/clear")
    def api_clear_chat():
        store.clear_chat()
        return store.current()

    @app.get("/api/artifacts/{artifact_id}")
    def api_get_artifact(artifact_id: str):
        artifact = store.get_artifact(artifact_id)
        if artifact is None:
            raise HTTPException(status_code=404, detail="Unknown artifact")
        return artifact.to_dict()

    @app.put("/api/artifacts/{artifact_id}")
    def api_update_artifact(artifact_id: str, req: ArtifactUpdate):
        try:
            return store.update_artifact_content(artifact_id, req.content).to_dict()
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown artifact")

    @app.post("/api/chat")
    def api_chat(req: ChatRequest):
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Empty message")
        chat_id = req.chat_id or store.current_chat_id
        if store.get_chat(chat_id) is None:
            raise HTTPException(status_code=404, detail="Unknown chat")
        try:
            records = session.send_stream(req.message, chat_id=chat_id)
        except SessionBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if chat_id != store.current_chat_id:
            store.switch_to(chat_id)

        def gen():
            try:
                for record in records:
                    yield json.dumps(record, ensure_ascii=False) + "\n"
            finally:
                records.close()

        return StreamingResponse(
            gen(),
            media_type="application/x-ndjson",
            headers={"X-Chat-Id": chat_id},
        )

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port)
