from __future__ import annotations

from typing import Optional

from pydantic import Field, SecretStr

from core.settings.base import SeoAgentBaseSettings


class WorkerSettings(SeoAgentBaseSettings):
    """
    Credentials handed to action handlers.
    Loaded from .env file with exact variable name matching.
    """

    openai_api_key: Optional[SecretStr] = Field(None, alias="OPENAI_API_KEY")
    cms_api_token: Optional[SecretStr] = Field(None, alias="CMS_API_TOKEN")
    gsc_service_account_json: Optional[SecretStr] = Field(None, alias="GSC_SERVICE_ACCOUNT_JSON")

    def credentials(self) -> dict[str, Optional[str]]:
        """Return {ENV_NAME: secret value or None} for every credential."""
        result: dict[str, Optional[str]] = {}
        for name, field in type(self).model_fields.items():
            secret = getattr(self, name)
            result[field.alias or name.upper()] = secret.get_secret_value() if secret else None
        return result
