"""Environment-backed defaults for :mod:`veo_signer`."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .algorithms import DEFAULT_HASH_ALGORITHM
from .secret import DEFAULT_MAX_SECRET_LENGTH

__all__ = ["SignerSettings", "get_settings"]


class SignerSettings(BaseSettings):
    """Configuration read from the environment.

    Command-line options always win over these values.

    Attributes:
        password: Secret unlocking the PFX file (``VEO_SIGNER_PASSWORD``).
            When unset and no secret is given on the command line the
            secret is read interactively.
        hash_algorithm: Default hash algorithm
            (``VEO_SIGNER_HASH_ALGORITHM``).
        output_dir: Default output directory (``VEO_SIGNER_OUTPUT_DIR``).
        max_secret_length: Upper bound on an interactively entered secret
            (``VEO_SIGNER_MAX_SECRET_LENGTH``).
    """

    password: str | None = Field(default=None, alias="VEO_SIGNER_PASSWORD", repr=False)
    hash_algorithm: str = Field(default=DEFAULT_HASH_ALGORITHM, alias="VEO_SIGNER_HASH_ALGORITHM")
    output_dir: str | None = Field(default=None, alias="VEO_SIGNER_OUTPUT_DIR")
    max_secret_length: int = Field(
        default=DEFAULT_MAX_SECRET_LENGTH, alias="VEO_SIGNER_MAX_SECRET_LENGTH", gt=0
    )

    model_config = SettingsConfigDict(env_file=None, extra="ignore", populate_by_name=True)

    @field_validator("output_dir", "password", mode="before")
    @classmethod
    def _empty_as_none(cls, value: object) -> object:
        """Treat an empty environment variable as unset."""

        if value == "":
            return None
        return value


def get_settings() -> SignerSettings:
    """Return settings parsed from environment variables."""

    return SignerSettings()
