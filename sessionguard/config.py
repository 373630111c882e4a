import logging

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_INSECURE_DEFAULT = "change-me"
_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_env: str = "production"
    app_debug: bool = False

    database_url: str = "postgresql+asyncpg://sessionguard:sessionguard@db:5432/sessionguard"

    # Redis holds the authoritative revocation records
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout_seconds: float = 2.0

    # Upper bound for a single durable-store call; on timeout checks fail secure
    revocation_store_timeout_seconds: float = 0.5
    revocation_key_prefix: str = "blacklist:"
    revocation_sweep_interval_seconds: int = 3600
    # Safety floor applied when every token of a user is revoked at once
    revocation_bulk_horizon_hours: int = 24
    revocation_resync_max_attempts: int = 5
    revocation_resync_backoff_seconds: float = 1.0
    # An audit write slower than this is logged and dropped, never awaited further
    revocation_audit_timeout_seconds: float = 2.0

    # "database" persists to audit_logs, "log" only writes to the application log
    audit_sink: str = "database"

    jwt_secret_key: str = _INSECURE_DEFAULT
    jwt_algorithm: str = "RS256"
    jwt_access_token_expire_minutes: int = 30

    # RSA keys for RS256 — PEM content or file paths
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    cors_origins: list[str] = ["http://localhost:3000"]

    cookie_name: str = "access_token"
    cookie_domain: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def _resolve_rsa_keys(self) -> None:
        """Load RSA keys from file paths if they point to files, or auto-generate for dev."""
        import os

        for attr in ("jwt_private_key", "jwt_public_key"):
            val = getattr(self, attr)
            if val and not val.startswith("-----") and os.path.isfile(val):
                with open(val) as f:
                    object.__setattr__(self, attr, f.read())

        if self.jwt_algorithm == "RS256" and not self.jwt_private_key:
            if self.app_env == "production":
                raise ValueError(
                    "RS256 requer JWT_PRIVATE_KEY e JWT_PUBLIC_KEY em produção. "
                    "Gere com: openssl genpkey -algorithm RSA -pkeyopt rsa_keygen_bits:2048"
                )
            from cryptography.hazmat.primitives import serialization
            from cryptography.hazmat.primitives.asymmetric import rsa

            logger.warning(
                "SEGURANÇA: Gerando par RSA efêmero para desenvolvimento. "
                "Configure JWT_PRIVATE_KEY e JWT_PUBLIC_KEY para produção."
            )
            private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
            object.__setattr__(
                self,
                "jwt_private_key",
                private_key.private_bytes(
                    serialization.Encoding.PEM,
                    serialization.PrivateFormat.PKCS8,
                    serialization.NoEncryption(),
                ).decode(),
            )
            object.__setattr__(
                self,
                "jwt_public_key",
                private_key.public_key()
                .public_bytes(
                    serialization.Encoding.PEM,
                    serialization.PublicFormat.SubjectPublicKeyInfo,
                )
                .decode(),
            )

    def validate_secrets(self) -> None:
        """Raise if running with insecure default secrets or unusable revocation settings."""
        insecure = []
        # jwt_secret_key only matters for HS256
        if self.jwt_algorithm == "HS256" and self.jwt_secret_key == _INSECURE_DEFAULT:
            insecure.append("JWT_SECRET_KEY")
        if insecure:
            if self.app_env == "production":
                raise ValueError(
                    f"Secrets inseguros em produção — configure: {', '.join(insecure)}"
                )
            logger.warning(
                "SEGURANÇA: Usando secrets padrão inseguros (%s). "
                "Configure variáveis de ambiente antes de ir para produção.",
                ", ".join(insecure),
            )

        if self.app_env == "production":
            if self.jwt_algorithm == "HS256" and len(self.jwt_secret_key) < _MIN_SECRET_LENGTH:
                raise ValueError(
                    f"JWT_SECRET_KEY deve ter no mínimo {_MIN_SECRET_LENGTH} caracteres."
                )

        if self.revocation_store_timeout_seconds <= 0:
            raise ValueError("REVOCATION_STORE_TIMEOUT_SECONDS deve ser maior que zero.")
        if self.revocation_sweep_interval_seconds <= 0:
            raise ValueError("REVOCATION_SWEEP_INTERVAL_SECONDS deve ser maior que zero.")
        if self.revocation_audit_timeout_seconds <= 0:
            raise ValueError("REVOCATION_AUDIT_TIMEOUT_SECONDS deve ser maior que zero.")
        if self.audit_sink not in ("database", "log"):
            raise ValueError(f"AUDIT_SINK inválido: {self.audit_sink!r} (use 'database' ou 'log')")

        self._resolve_rsa_keys()


settings = Settings()
