import pickle
from typing import Any, Iterable, Optional, Sequence, Tuple

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import (
    ChannelVersions,
    Checkpoint,
    CheckpointMetadata,
    CheckpointTuple,
)
from langgraph.checkpoint.memory import InMemorySaver
from langgraph.graph import START

from .crypto import FieldCipher

_ENVELOPE = "__enc__"


class EncryptedMemorySaver(InMemorySaver):
    """
    In-memory checkpointer that never holds sensitive channels in plaintext.

    Channels named in ``encrypt_keys`` (from the constructor or from
    ``config["configurable"]["encrypt_keys"]``) are pickled and sealed with
    AES-GCM before storage. The graph input is stored under the START channel
    as a dict, so its matching entries are sealed one level down.
    """

    def __init__(self, cipher: FieldCipher, encrypt_keys: Iterable[str] = (), **kwargs: Any):
        super().__init__(**kwargs)
        self.cipher = cipher
        self.encrypt_keys = frozenset(encrypt_keys)

    def _keys(self, config: RunnableConfig) -> frozenset:
        return self.encrypt_keys | set(config["configurable"].get("encrypt_keys", []))

    @staticmethod
    def _aad(config: RunnableConfig, section: str) -> bytes:
        thread_id = config["configurable"]["thread_id"]
        checkpoint_ns = config["configurable"].get("checkpoint_ns", "")
        return f"{thread_id}|{checkpoint_ns}|{section}".encode("utf-8")

    def _seal(self, key: str, value: Any, keys: frozenset, aad: bytes) -> Any:
        if self.cipher.should_encrypt(key, keys):
            raw = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
            enc = self.cipher.encrypt_bytes(raw, aad + b"|" + key.encode())
            return {_ENVELOPE: enc, "__fmt__": "pickle"}
        if key == START and isinstance(value, dict):
            return {k: self._seal(k, v, keys, aad + b"|" + key.encode()) for k, v in value.items()}
        return value

    def _open(self, key: str, value: Any, aad: bytes) -> Any:
        if isinstance(value, dict) and _ENVELOPE in value:
            raw = self.cipher.decrypt_bytes(value[_ENVELOPE], aad + b"|" + key.encode())
            return pickle.loads(raw)
        if key == START and isinstance(value, dict):
            return {k: self._open(k, v, aad + b"|" + key.encode()) for k, v in value.items()}
        return value

    def put(
        self,
        config: RunnableConfig,
        checkpoint: Checkpoint,
        metadata: CheckpointMetadata,
        new_versions: ChannelVersions,
    ) -> RunnableConfig:
        aad = self._aad(config, "channel_values")
        keys = self._keys(config)

        cp = dict(checkpoint)
        cp["channel_values"] = {
            k: self._seal(k, v, keys, aad) for k, v in cp.get("channel_values", {}).items()
        }

        # older langgraph releases copy node outputs into metadata["writes"]
        writes = metadata.get("writes") if isinstance(metadata, dict) else None
        if isinstance(writes, dict):
            meta_aad = self._aad(config, "metadata")
            metadata = {
                **metadata,
                "writes": {
                    node: self._seal(START, out, keys, meta_aad) for node, out in writes.items()
                },
            }
        return super().put(config, cp, metadata, new_versions)

    def put_writes(
        self,
        config: RunnableConfig,
        writes: Sequence[Tuple[str, Any]],
        task_id: str,
        task_path: str = "",
    ) -> None:
        aad = self._aad(config, "writes")
        keys = self._keys(config)
        sealed = [(channel, self._seal(channel, value, keys, aad)) for channel, value in writes]
        super().put_writes(config, sealed, task_id, task_path)

    def _decrypt_tuple(self, config: RunnableConfig, t: CheckpointTuple) -> CheckpointTuple:
        cv_aad = self._aad(config, "channel_values")
        cp = dict(t.checkpoint)
        cp["channel_values"] = {
            k: self._open(k, v, cv_aad) for k, v in cp.get("channel_values", {}).items()
        }

        writes_aad = self._aad(config, "writes")
        pending = t.pending_writes
        if pending:
            pending = [
                (task_id, channel, self._open(channel, value, writes_aad))
                for task_id, channel, value in pending
            ]
        return t._replace(checkpoint=cp, pending_writes=pending)

    def get_tuple(self, config: RunnableConfig) -> Optional[CheckpointTuple]:
        t = super().get_tuple(config)
        if t is None:
            return None
        return self._decrypt_tuple(t.config, t)

    def list(self, config: Optional[RunnableConfig], *args: Any, **kwargs: Any):
        for t in super().list(config, *args, **kwargs):
            yield self._decrypt_tuple(t.config, t)
