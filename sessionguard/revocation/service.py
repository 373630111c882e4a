"""Token revocation across two tiers.

Redis is authoritative and shared by every instance; the local cache is a
per-process mirror used as a fallback.  Checks read Redis first and fall back
to the local cache, and when Redis cannot answer and the cache has nothing,
the token is treated as revoked.  ``is_revoked`` therefore always returns a
boolean and never lets a store failure reach the caller.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sessionguard.audit.schemas import AuditEvent
from sessionguard.audit.sink import AuditSink
from sessionguard.revocation.durable import DurableRevocationStore
from sessionguard.revocation.exceptions import StoreUnavailable
from sessionguard.revocation.fingerprint import fingerprint_token, short_fingerprint
from sessionguard.revocation.local_cache import LocalRevocationCache
from sessionguard.revocation.models import RevocationRecord

logger = logging.getLogger(__name__)

ACTION_REVOKE = "token.revoke"
ACTION_REVOKE_ALL = "token.revoke_all"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RevocationService:
    """Revokes credentials and answers whether a credential is revoked.

    Args:
        durable: shared store with per-key TTL.
        local: in-process cache; a fresh one is created when omitted.
        audit_sink: receives security events; failures there are only logged.
        audit_timeout: seconds an audit write may take before it is abandoned.
        clock: returns the current timezone-aware UTC time.
        sweep_interval: seconds between local cache sweeps.
        bulk_horizon: minimum revocation lifetime used by ``revoke_all_for_user``;
            a bulk-revoked token expires at ``max(original expiry, now + bulk_horizon)``.
        resync_max_attempts: retries of a durable write that failed during ``revoke``.
        resync_backoff: initial delay in seconds between those retries, doubled each time.
    """

    def __init__(
        self,
        durable: DurableRevocationStore,
        local: LocalRevocationCache | None = None,
        audit_sink: AuditSink | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sweep_interval: float = 3600,
        bulk_horizon: timedelta = timedelta(hours=24),
        resync_max_attempts: int = 5,
        resync_backoff: float = 1.0,
        audit_timeout: float = 2.0,
    ):
        self._durable = durable
        self._local = local if local is not None else LocalRevocationCache()
        self._audit_sink = audit_sink
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._bulk_horizon = bulk_horizon
        self._resync_max_attempts = resync_max_attempts
        self._resync_backoff = resync_backoff
        self._audit_timeout = audit_timeout
        self._sweep_task: asyncio.Task | None = None
        self._resync_tasks: set[asyncio.Task] = set()

    @property
    def local_cache(self) -> LocalRevocationCache:
        return self._local

    @property
    def durable_store(self) -> DurableRevocationStore:
        return self._durable

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    # --- Public operations ---

    async def revoke(self, token: str, user_id: str, expires_at: datetime) -> None:
        """Revoke ``token`` until ``expires_at`` (its own expiry claim).

        A non-future ``expires_at`` is a no-op.  A Redis failure does not fail
        the call: the local cache already holds the record and a background
        task keeps retrying the durable write.
        """
        fingerprint = fingerprint_token(token)
        record = await self._revoke_fingerprint(fingerprint, user_id, expires_at)
        if record is None:
            return
        await self._emit(
            AuditEvent(
                action=ACTION_REVOKE,
                user_id=user_id,
                description="Token revogado no logout",
                fingerprint=short_fingerprint(fingerprint),
            )
        )

    async def is_revoked(self, token: str) -> bool:
        fingerprint = fingerprint_token(token)
        try:
            record = await self._durable.get(fingerprint)
        except StoreUnavailable as exc:
            return self._fail_secure(fingerprint, str(exc))
        except Exception:
            logger.exception("Erro inesperado ao consultar revogação: fp=%s", short_fingerprint(fingerprint))
            return self._fail_secure(fingerprint, "erro inesperado")

        if record is not None:
            return True
        # Covers revocations whose durable write has not landed yet
        return self._local.get(fingerprint, self._clock()) is not None

    async def revoke_all_for_user(self, user_id: str) -> int:
        """Re-revoke every known token of ``user_id``; return how many.

        Only tokens already revoked somewhere can be found: those in this
        process's cache and those in the durable per-user index.  Each is kept
        revoked until ``max(its original expiry, now + bulk_horizon)``, so a
        record is never shortened.
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id cannot be empty")

        now = self._clock()
        floor = now + self._bulk_horizon
        targets = {r.token_fingerprint: r.expires_at for r in self._local.records_for_user(user_id, now)}

        try:
            indexed = await self._durable.user_fingerprints(user_id)
        except StoreUnavailable as exc:
            logger.warning(
                "Índice de tokens do usuário indisponível, usando apenas o cache local: user_id=%s (%s)",
                user_id,
                exc,
            )
            indexed = set()

        for fingerprint in indexed - targets.keys():
            try:
                record = await self._durable.get(fingerprint)
            except StoreUnavailable:
                # Unknown expiry: revoke for the safety horizon
                targets[fingerprint] = floor
                continue
            if record is not None:
                targets[fingerprint] = record.expires_at

        for fingerprint, expires_at in targets.items():
            await self._revoke_fingerprint(fingerprint, user_id, max(expires_at, floor))
            await self._emit(
                AuditEvent(
                    action=ACTION_REVOKE,
                    user_id=user_id,
                    description="Token revogado por incidente de segurança",
                    fingerprint=short_fingerprint(fingerprint),
                    detail={"reason": "security_incident"},
                )
            )

        await self._emit(
            AuditEvent(
                action=ACTION_REVOKE_ALL,
                user_id=user_id,
                description="Todos os tokens do usuário revogados por incidente de segurança",
                count=len(targets),
            )
        )
        logger.warning("Todos os tokens (%d) revogados para o usuário: %s", len(targets), user_id)
        return len(targets)

    def sweep(self) -> int:
        """Drop expired entries from the local cache once."""
        removed = self._local.sweep(self._clock())
        if removed:
            logger.info("Removidos %d tokens expirados do cache local", removed)
        return removed

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the periodic sweep; must be called from a running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="revocation-sweep")
        logger.info("Limpeza periódica do cache de revogação iniciada: intervalo=%ss", self._sweep_interval)

    async def stop(self) -> None:
        """Cancel the sweep and pending resyncs, and wait for them to finish."""
        tasks = list(self._resync_tasks)
        if self._sweep_task is not None:
            tasks.append(self._sweep_task)
            self._sweep_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Serviço de revogação parado (%d tarefas canceladas)", len(tasks))

    # --- Internals ---

    async def _revoke_fingerprint(
        self, fingerprint: str, user_id: str, expires_at: datetime
    ) -> RevocationRecord | None:
        if expires_at.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")
        now = self._clock()
        if expires_at <= now:
            logger.debug("Token já expirado, nada a revogar: fp=%s", short_fingerprint(fingerprint))
            return None

        record = RevocationRecord(
            token_fingerprint=fingerprint,
            user_id=user_id,
            revoked_at=now,
            expires_at=expires_at,
        )
        self._local.put(record)
        try:
            await self._durable.set(fingerprint, record, record.remaining(now))
        except StoreUnavailable as exc:
            logger.warning(
                "Revogação gravada só no cache local, agendando ressincronização: fp=%s (%s)",
                short_fingerprint(fingerprint),
                exc,
            )
            self._schedule_resync(fingerprint)
        logger.info(
            "Token revogado: user_id=%s, fp=%s, ttl=%ds",
            user_id,
            short_fingerprint(fingerprint),
            record.remaining(now).total_seconds(),
        )
        return record

    def _fail_secure(self, fingerprint: str, reason: str) -> bool:
        cached = self._local.get(fingerprint, self._clock())
        if cached is None:
            logger.warning(
                "Redis indisponível e token ausente do cache local, tratando como revogado: fp=%s (%s)",
                short_fingerprint(fingerprint),
                reason,
            )
        else:
            logger.warning(
                "Redis indisponível, revogação confirmada pelo cache local: fp=%s (%s)",
                short_fingerprint(fingerprint),
                reason,
            )
        return True

    async def _emit(self, event: AuditEvent) -> None:
        if self._audit_sink is None:
            return
        try:
            await asyncio.wait_for(self._audit_sink.record(event), timeout=self._audit_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Auditoria excedeu %.1fs e foi abandonada: action=%s user_id=%s",
                self._audit_timeout,
                event.action,
                event.user_id,
            )
        except Exception:
            logger.exception(
                "Falha ao registrar evento de auditoria: action=%s user_id=%s",
                event.action,
                event.user_id,
            )

    def _schedule_resync(self, fingerprint: str) -> None:
        task = asyncio.create_task(self._resync(fingerprint), name=f"revocation-resync-{fingerprint[:8]}")
        self._resync_tasks.add(task)
        task.add_done_callback(self._resync_tasks.discard)

    async def _resync(self, fingerprint: str) -> None:
        delay = self._resync_backoff
        for attempt in range(1, self._resync_max_attempts + 1):
            await asyncio.sleep(delay)
            now = self._clock()
            # Re-read so a later expiry written meanwhile is the one pushed
            record = self._local.get(fingerprint, now)
            if record is None:
                logger.info("Revogação expirou antes da ressincronização: fp=%s", short_fingerprint(fingerprint))
                return
            try:
                await self._durable.set(fingerprint, record, record.remaining(now))
            except StoreUnavailable as exc:
                logger.warning(
                    "Ressincronização falhou (tentativa %d/%d): fp=%s (%s)",
                    attempt,
                    self._resync_max_attempts,
                    short_fingerprint(fingerprint),
                    exc,
                )
                delay *= 2
                continue
            logger.info("Revogação ressincronizada com o Redis: fp=%s", short_fingerprint(fingerprint))
            return
        logger.error(
            "Revogação não chegou ao Redis após %d tentativas; outras instâncias não a verão: fp=%s",
            self._resync_max_attempts,
            short_fingerprint(fingerprint),
        )

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Erro na limpeza do cache de revogação")
