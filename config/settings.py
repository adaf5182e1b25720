import base64
import binascii
import os
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from registration.errors import ConfigError

load_dotenv()

DEFAULT_ENCRYPT_KEYS = ["email", "password", "mobile_number"]


class FormConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    encryption_key: Optional[str] = Field(
        default=None, description="Base64 AES-256 key for session snapshots"
    )
    encrypt_keys: List[str] = Field(default_factory=lambda: list(DEFAULT_ENCRYPT_KEYS))
    validation_mode: Literal["on_submit", "on_change", "on_blur"] = "on_submit"
    mask_secrets: bool = True
    log_level: str = "INFO"

    def key_bytes(self) -> Optional[bytes]:
        if self.encryption_key is None:
            return None
        try:
            key = base64.b64decode(self.encryption_key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ConfigError("FORM_ENCRYPTION_KEY is not valid base64.") from exc
        if len(key) != 32:
            raise ConfigError(
                f"FORM_ENCRYPTION_KEY must decode to 32 bytes for AES-256. Got {len(key)} bytes.",
                details={"length": len(key)},
            )
        return key

    @classmethod
    def from_env(cls) -> "FormConfig":
        keys = os.getenv("FORM_ENCRYPT_KEYS")
        try:
            return cls(
                encryption_key=os.getenv("FORM_ENCRYPTION_KEY") or None,
                encrypt_keys=(
                    [k.strip() for k in keys.split(",") if k.strip()]
                    if keys is not None
                    else list(DEFAULT_ENCRYPT_KEYS)
                ),
                validation_mode=os.getenv("FORM_VALIDATION_MODE", "on_submit"),
                mask_secrets=os.getenv("FORM_MASK_SECRETS", "true").strip().lower()
                not in {"0", "false", "no", "off"},
                log_level=os.getenv("FORM_LOG_LEVEL", "INFO").upper(),
            )
        except ValidationError as exc:
            raise ConfigError("Invalid form configuration.", details={"errors": exc.errors()}) from exc
