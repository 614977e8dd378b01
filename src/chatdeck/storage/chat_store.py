from __future__ import annotations
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from chatdeck.artifacts import Artifact
from chatdeck.core.ports import Role

_logger = logging.getLogger(__name__)

NEW_CHAT_TITLE = 'New Chat'
TITLE_MAX = 50


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_chat() -> Dict[str, Any]:
    now = _now_ms()
    return {
        'id': uuid.uuid4().hex,
        'title': NEW_CHAT_TITLE,
        'messages': [],
        'artifacts': [],
        'created_at': now,
        'updated_at': now,
    }


def _title_from(content: str) -> str:
    return content[:TITLE_MAX] + '...' if len(content) > TITLE_MAX else content


class ChatStore:
    """
    Local chat state as one JSON document.
    - If path is provided: the document is read on start and rewritten after each change
    - If path is None: in-memory only
    - Keys: chat_history, current_chat_id, selected_provider, selected_model, api_keys
    - There is always at least one chat; the newest chat comes first
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else None
        self._state: Dict[str, Any] = {
            'chat_history': [],
            'current_chat_id': None,
            'selected_provider': None,
            'selected_model': None,
            'api_keys': {},
        }
        if self._path and self._path.exists() and self._path.stat().st_size > 0:
            self._load()
        if not self._state['chat_history']:
            self._state['chat_history'] = [_new_chat()]
        if self._find(self._state['current_chat_id']) is None:
            self._state['current_chat_id'] = self._state['chat_history'][0]['id']

    # Selection and credentials

    @property
    def selected_provider(self) -> Optional[str]:
        return self._state['selected_provider']

    @property
    def selected_model(self) -> Optional[str]:
        return self._state['selected_model']

    def select(self, provider: Optional[str], model: Optional[str]) -> None:
        self._state['selected_provider'] = provider
        self._state['selected_model'] = model
        self.save()

    @property
    def api_keys(self) -> Dict[str, str]:
        # Shared with SecretsResolver's explicit source
        return self._state['api_keys']

    def set_api_key(self, provider: str, key: str) -> None:
        if key:
            self._state['api_keys'][provider] = key
        else:
            self._state['api_keys'].pop(provider, None)
        self.save()

    # Chats

    @property
    def chats(self) -> List[Dict[str, Any]]:
        return list(self._state['chat_history'])

    @property
    def current_chat_id(self) -> str:
        return self._state['current_chat_id']

    def current(self) -> Dict[str, Any]:
        return self._find(self.current_chat_id)

    def get_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        return self._find(chat_id)

    def create_chat(self) -> Dict[str, Any]:
        chat = _new_chat()
        self._state['chat_history'].insert(0, chat)
        self._state['current_chat_id'] = chat['id']
        self.save()
        return chat

    def switch_to(self, chat_id: str) -> Dict[str, Any]:
        chat = self._find(chat_id)
        if chat is None:
            raise KeyError(f"Unknown chat '{chat_id}'")
        self._state['current_chat_id'] = chat_id
        self.save()
        return chat

    def delete_chat(self, chat_id: str) -> None:
        remaining = [c for c in self._state['chat_history'] if c['id'] != chat_id]
        if not remaining:
            remaining = [_new_chat()]
        self._state['chat_history'] = remaining
        if chat_id == self.current_chat_id:
            self._state['current_chat_id'] = remaining[0]['id']
        self.save()

    def clear_chat(self) -> None:
        chat = self.current()
        chat['messages'] = []
        chat['artifacts'] = []
        self._touch(chat)

    # Messages

    def conversation(self, chat_id: Optional[str] = None) -> List[Dict[str, str]]:
        """Provider-ready turns for the given chat (default: current)."""
        chat = self._target(chat_id)
        if chat is None:
            return []
        return [{'role': m['role'], 'content': m['content']} for m in chat['messages']]

    def add_message(
        self, role: Role, content: str, chat_id: Optional[str] = None, **metadata: Any
    ) -> Dict[str, Any]:
        """
        Append to the given chat (default: current). A message for a chat
        deleted in the meantime is returned but not stored.
        """
        chat = self._target(chat_id)
        msg = {
            'id': uuid.uuid4().hex,
            'role': role,
            'content': content,
            'timestamp': _now_ms(),
            'thinking': metadata.get('thinking'),
            'thinking_tokens': metadata.get('thinking_tokens'),
            'duration_ms': metadata.get('duration_ms'),
        }
        if chat is None:
            _logger.warning("Chat %s no longer exists, message not stored", chat_id)
            return msg
        if role == 'user' and not chat['messages']:
            chat['title'] = _title_from(content)
        chat['messages'].append(msg)
        self._touch(chat)
        return msg

    # Artifacts

    def add_artifact(self, artifact: Artifact, chat_id: Optional[str] = None) -> Artifact:
        chat = self._target(chat_id)
        if chat is None:
            _logger.warning("Chat %s no longer exists, artifact not stored", chat_id)
            return artifact
        chat['artifacts'].insert(0, artifact.to_dict())
        self._touch(chat)
        return artifact

    def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        for chat in self._state['chat_history']:
            for a in chat['artifacts']:
                if a['id'] == artifact_id:
                    return Artifact.from_dict(a)
        return None

    def update_artifact_content(self, artifact_id: str, content: str) -> Artifact:
        for chat in self._state['chat_history']:
            for i, a in enumerate(chat['artifacts']):
                if a['id'] == artifact_id:
                    updated = Artifact.from_dict(a).with_content(content)
                    chat['artifacts'][i] = updated.to_dict()
                    self._touch(chat)
                    return updated
        raise KeyError(f"Unknown artifact '{artifact_id}'")

    # Persistence

    def save(self) -> None:
        if not self._path:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + '.tmp')
            tmp.write_text(json.dumps(self._state, ensure_ascii=False, indent=2), encoding='utf-8')
            tmp.replace(self._path)
        except OSError as e:
            _logger.warning("Could not save chat state to %s: %s", self._path, e)

    # Internal helpers

    def _find(self, chat_id: Optional[str]) -> Optional[Dict[str, Any]]:
        for chat in self._state['chat_history']:
            if chat['id'] == chat_id:
                return chat
        return None

    def _target(self, chat_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return self.current() if chat_id is None else self._find(chat_id)

    def _touch(self, chat: Dict[str, Any]) -> None:
        chat['updated_at'] = _now_ms()
        self.save()

    def _load(self) -> None:
        try:
            raw = json.loads(self._path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            _logger.warning("Chat state at %s is unreadable, starting fresh: %s", self._path, e)
            return
        if not isinstance(raw, dict):
            _logger.warning("Chat state at %s is not an object, starting fresh", self._path)
            return
        for key in ('current_chat_id', 'selected_provider', 'selected_model'):
            self._state[key] = raw.get(key)
        chats = raw.get('chat_history')
        if isinstance(chats, list):
            self._state['chat_history'] = [c for c in chats if isinstance(c, dict) and 'id' in c]
            for c in self._state['chat_history']:
                c.setdefault('messages', [])
                c.setdefault('artifacts', [])
                c.setdefault('title', NEW_CHAT_TITLE)
        keys = raw.get('api_keys')
        if isinstance(keys, dict):
            self._state['api_keys'].update({str(k): str(v) for k, v in keys.items()})
