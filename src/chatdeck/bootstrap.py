from __future__ import annotations
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .config_loader import load_config
from .catalog import ModelCache, ModelCatalog
from .core.chat_session import ChatSession
from .providers.registry import create_provider
from .search import TavilyClient
from .secrets.sources import SecretsResolver
from .storage.chat_store import ChatStore

_logger = logging.getLogger(__name__)


def build_session(cfg: Dict[str, Any], store: ChatStore, secrets: SecretsResolver) -> ChatSession:
    providers_cfg = cfg.get("providers") or {}
    return ChatSession(
        store,
        secrets,
        provider_factory=partial(create_provider, secrets=secrets, providers_cfg=providers_cfg),
        search_enabled=bool(cfg["search"]["enabled"]),
        search_client_factory=TavilyClient,
    )


def build_app(config_path: Path, repo_root: Optional[Path] = None) -> Dict[str, Any]:
    """
    Composition root: load YAML, open the chat store, wire credentials, catalog and session.
    Returns: dict with cfg, paths, store, secrets, catalog, session.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent
    repo_root = repo_root or Path(__file__).resolve().parents[2]

    # ----- Chat state -----
    state_raw = Path(cfg["storage"]["state_path"])
    state_path = (repo_root / state_raw).resolve() if not state_raw.is_absolute() else state_raw
    backend = cfg["storage"]["backend"]
    store = ChatStore(state_path if backend == "file" else None)

    # Configured model is only the starting selection; the user's choice persists
    if not store.selected_provider or not store.selected_model:
        store.select(cfg["model"]["provider"], cfg["model"]["name"])

    # ----- Credentials -----
    secrets_cfg = cfg.get("secrets") or {}
    secrets = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping", {}),
        explicit=store.api_keys,
    )

    # ----- Catalog -----
    ttl = float((cfg.get("catalog") or {}).get("ttl_seconds", 300))
    catalog = ModelCatalog(secrets, cache=ModelCache(ttl=ttl), providers_cfg=cfg.get("providers"))

    session = build_session(cfg, store, secrets)
    _logger.debug("Loaded %s (provider=%s, model=%s, state=%s)",
                  config_path, store.selected_provider, store.selected_model,
                  state_path if backend == "file" else "memory")

    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir, "repo_root": repo_root, "state_path": state_path},
        "store": store,
        "secrets": secrets,
        "catalog": catalog,
        "session": session,
    }
