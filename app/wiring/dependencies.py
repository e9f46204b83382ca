from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging

from app.core.config import Settings, settings
from app.application.ports.audit_log import AuditLogPort
from app.application.ports.directory import DirectoryPort
from app.application.ports.loyalty_store import LoyaltyStorePort
from app.application.ports.push_registry import PushRegistryPort
from app.application.ports.queue_store import QueueStorePort
from app.application.ports.reputation_store import ReputationStorePort
from app.application.ports.transports import EmailTransportPort, PushGatewayPort, SmsTransportPort
from app.application.use_cases.loyalty import LoyaltyUseCase
from app.application.use_cases.maintenance import MaintenanceUseCase
from app.application.use_cases.notification_dispatch import NotificationDispatchUseCase
from app.application.use_cases.otp_verification import OTPVerificationUseCase
from app.application.use_cases.queue_ledger import QueueLedgerUseCase
from app.application.use_cases.reputation import ReputationUseCase
from app.application.use_cases.status_transition import StatusTransitionUseCase
from app.application.utils.retry import RetryPolicy
from app.domain.entities.notification import NotificationChannel
from app.domain.entities.otp_challenge import OTPChannel
from app.domain.entities.reputation import TrustLevel
from app.infrastructure.directory.memory_directory import MemoryDirectory
from app.infrastructure.messaging.mock_transports import MockEmailTransport, MockPushGateway, MockSmsTransport
from app.infrastructure.messaging.push_relay_client import PushRelayClient
from app.infrastructure.messaging.resend_client import ResendEmailClient
from app.infrastructure.messaging.twilio_client import TwilioSmsClient
from app.infrastructure.store.json_store import JsonAuditLog, JsonLoyaltyStore, JsonQueueStore, JsonReputationStore
from app.infrastructure.store.memory_store import (
    MemoryAuditLog,
    MemoryLoyaltyStore,
    MemoryNotificationLog,
    MemoryOTPStore,
    MemoryPushRegistry,
    MemoryQueueStore,
    MemoryReputationStore,
)
from app.infrastructure.workers.dispatch_worker import DispatchWorker
from app.infrastructure.workers.periodic_worker import PeriodicWorker

logger = logging.getLogger(__name__)

MOCK_ENVS = {"dev", "local", "test"}


@dataclass
class Container:
    directory: DirectoryPort
    push_registry: PushRegistryPort
    ledger: QueueLedgerUseCase
    transitions: StatusTransitionUseCase
    dispatcher: NotificationDispatchUseCase
    otp: OTPVerificationUseCase
    loyalty: LoyaltyUseCase
    reputation: ReputationUseCase
    maintenance: MaintenanceUseCase
    dispatch_worker: DispatchWorker
    maintenance_worker: PeriodicWorker

    def start(self) -> None:
        self.dispatch_worker.start()
        self.maintenance_worker.start()

    def stop(self) -> None:
        self.maintenance_worker.stop()
        self.dispatch_worker.stop()


def parse_channels(raw: str) -> tuple[NotificationChannel, ...]:
    return tuple(NotificationChannel(part.strip().lower()) for part in raw.split(",") if part.strip())


def parse_otp_channels(raw: str) -> tuple[OTPChannel, ...]:
    return tuple(OTPChannel(part.strip().lower()) for part in raw.split(",") if part.strip())


def _uses_mocks(cfg: Settings) -> bool:
    return cfg.ENV.lower() in MOCK_ENVS


def _store_provider(cfg: Settings) -> str:
    if cfg.STORE_PROVIDER:
        return cfg.STORE_PROVIDER.lower()
    return "json" if cfg.ENV.lower() in {"dev", "local"} else "memory"


def build_queue_store(cfg: Settings) -> QueueStorePort:
    if _store_provider(cfg) == "json":
        return JsonQueueStore(data_dir=cfg.DATA_DIR)
    return MemoryQueueStore()


def build_loyalty_store(cfg: Settings) -> LoyaltyStorePort:
    if _store_provider(cfg) == "json":
        return JsonLoyaltyStore(data_dir=cfg.DATA_DIR)
    return MemoryLoyaltyStore()


def build_reputation_store(cfg: Settings) -> ReputationStorePort:
    if _store_provider(cfg) == "json":
        return JsonReputationStore(data_dir=cfg.DATA_DIR)
    return MemoryReputationStore()


def build_audit_log(cfg: Settings) -> AuditLogPort:
    if _store_provider(cfg) == "json":
        return JsonAuditLog(data_dir=cfg.DATA_DIR)
    return MemoryAuditLog()


def approval_distances(cfg: Settings) -> dict[TrustLevel, float]:
    return {
        TrustLevel.NEW: cfg.CHECK_IN_APPROVE_METERS_NEW,
        TrustLevel.REGULAR: cfg.CHECK_IN_APPROVE_METERS_REGULAR,
        TrustLevel.TRUSTED: cfg.CHECK_IN_APPROVE_METERS_TRUSTED,
    }


def build_sms(cfg: Settings) -> SmsTransportPort:
    if _uses_mocks(cfg) or not (cfg.TWILIO_ACCOUNT_SID and cfg.TWILIO_AUTH_TOKEN and cfg.TWILIO_PHONE_NUMBER):
        logger.info("Using MockSmsTransport", extra={"reason": "ENV or missing Twilio credentials"})
        return MockSmsTransport()
    return TwilioSmsClient(
        account_sid=cfg.TWILIO_ACCOUNT_SID,
        auth_token=cfg.TWILIO_AUTH_TOKEN,
        from_number=cfg.TWILIO_PHONE_NUMBER,
        base_url=cfg.TWILIO_BASE_URL,
    )


def build_email(cfg: Settings) -> EmailTransportPort:
    if _uses_mocks(cfg) or not cfg.RESEND_API_KEY:
        logger.info("Using MockEmailTransport", extra={"reason": "ENV or missing Resend key"})
        return MockEmailTransport()
    return ResendEmailClient(api_key=cfg.RESEND_API_KEY, from_email=cfg.EMAIL_FROM, base_url=cfg.RESEND_BASE_URL)


def build_push_gateway(cfg: Settings) -> PushGatewayPort:
    if _uses_mocks(cfg) or not cfg.PUSH_GATEWAY_URL:
        logger.info("Using MockPushGateway", extra={"reason": "ENV or missing push gateway"})
        return MockPushGateway()
    return PushRelayClient(relay_url=cfg.PUSH_GATEWAY_URL, api_key=cfg.PUSH_GATEWAY_API_KEY)


def build_container(
    cfg: Settings,
    directory: DirectoryPort | None = None,
    sms: SmsTransportPort | None = None,
    email: EmailTransportPort | None = None,
    push_gateway: PushGatewayPort | None = None,
) -> Container:
    if directory is None:
        directory = MemoryDirectory.seeded() if cfg.DIRECTORY_SEED_ENABLED else MemoryDirectory()

    queue_store = build_queue_store(cfg)
    push_registry = MemoryPushRegistry()

    ledger = QueueLedgerUseCase(
        store=queue_store,
        directory=directory,
        default_service_minutes=cfg.DEFAULT_SERVICE_MINUTES,
        audit=build_audit_log(cfg),
    )
    reputation = ReputationUseCase(store=build_reputation_store(cfg))
    loyalty = LoyaltyUseCase(
        store=build_loyalty_store(cfg),
        points_per_completion=cfg.LOYALTY_POINTS_PER_COMPLETION,
        silver_threshold=cfg.LOYALTY_SILVER_THRESHOLD,
        gold_threshold=cfg.LOYALTY_GOLD_THRESHOLD,
    )
    dispatcher = NotificationDispatchUseCase(
        store=queue_store,
        directory=directory,
        log=MemoryNotificationLog(),
        push_registry=push_registry,
        sms=sms or build_sms(cfg),
        email=email or build_email(cfg),
        push_gateway=push_gateway or build_push_gateway(cfg),
        retry_policy=RetryPolicy(
            max_attempts=cfg.NOTIFICATION_MAX_ATTEMPTS,
            initial_delay=cfg.NOTIFICATION_BACKOFF_SECONDS,
            multiplier=cfg.NOTIFICATION_BACKOFF_MULTIPLIER,
            max_delay=cfg.NOTIFICATION_BACKOFF_MAX_SECONDS,
        ),
        dedupe_seconds=cfg.NOTIFICATION_DEDUPE_SECONDS,
    )
    dispatch_worker = DispatchWorker(handler=dispatcher.dispatch, maxsize=cfg.DISPATCH_QUEUE_SIZE)
    transitions = StatusTransitionUseCase(
        ledger=ledger,
        directory=directory,
        scheduler=dispatch_worker,
        loyalty=loyalty,
        reputation=reputation,
        notify_channels=parse_channels(cfg.NOTIFY_CHANNELS),
        approval_distances=approval_distances(cfg),
        check_in_max_distance_meters=cfg.CHECK_IN_MAX_DISTANCE_METERS,
        default_arrival_minutes=cfg.DEFAULT_ARRIVAL_MINUTES,
    )
    otp = OTPVerificationUseCase(
        store=MemoryOTPStore(),
        directory=directory,
        dispatcher=dispatcher,
        hash_secret=cfg.OTP_HASH_SECRET,
        code_length=cfg.OTP_LENGTH,
        ttl_minutes=cfg.OTP_TTL_MINUTES,
        max_attempts=cfg.OTP_MAX_ATTEMPTS,
        resend_cooldown_seconds=cfg.OTP_RESEND_COOLDOWN_SECONDS,
        required_channels=parse_otp_channels(cfg.OTP_REQUIRED_CHANNELS),
        expose_code=cfg.OTP_EXPOSE_CODE,
    )
    maintenance = MaintenanceUseCase(
        store=queue_store,
        transitions=transitions,
        otp=otp,
        push_registry=push_registry,
        no_show_timeout_minutes=cfg.NO_SHOW_TIMEOUT_MINUTES,
    )
    return Container(
        directory=directory,
        push_registry=push_registry,
        ledger=ledger,
        transitions=transitions,
        dispatcher=dispatcher,
        otp=otp,
        loyalty=loyalty,
        reputation=reputation,
        maintenance=maintenance,
        dispatch_worker=dispatch_worker,
        maintenance_worker=PeriodicWorker(
            job=maintenance.run_once,
            interval_seconds=cfg.MAINTENANCE_INTERVAL_SECONDS,
            name="maintenance-worker",
        ),
    )


@lru_cache
def get_container() -> Container:
    return build_container(settings)
