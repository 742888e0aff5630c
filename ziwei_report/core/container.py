"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, store d'état de génération, moteur de thème, LLM,
notificateur, service) et expose un singleton `container` utilisé par le reste de l'application.
"""

from ziwei_report.core.settings import get_settings
from ziwei_report.domain.generation_policy import GenerationPolicy
from ziwei_report.domain.report_generator import ReportGenerator
from ziwei_report.domain.services import ReportService
from ziwei_report.infra.astro.fake_deterministic import ChartEngine, FakeDeterministicChartEngine
from ziwei_report.infra.llm.openai_client import OpenAILLM
from ziwei_report.infra.location.cities import CityGazetteer
from ziwei_report.infra.notify.email import EmailNotifier
from ziwei_report.infra.ops.enqueue import enqueue_report_email
from ziwei_report.infra.repositories import InMemoryReportRepo, RedisReportRepo


class Container:
    def __init__(self):
        self.settings = get_settings()
        self.policy = GenerationPolicy.from_settings(self.settings)
        if self.settings.REDIS_URL:
            try:
                self.report_repo = RedisReportRepo(
                    self.settings.REDIS_URL,
                    staged_ttl_seconds=self.settings.STAGED_RESULT_TTL_SECONDS,
                )
                self.storage_backend = "redis"
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                self.report_repo = InMemoryReportRepo()
                self.storage_backend = "memory-fallback"
        else:
            if self.settings.REQUIRE_REDIS:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.report_repo = InMemoryReportRepo()
            self.storage_backend = "memory"

        self.chart_engine: ChartEngine = FakeDeterministicChartEngine()
        self.gazetteer = CityGazetteer()
        self.llm = OpenAILLM(
            api_key=self.settings.LLM_API_KEY,
            model=self.settings.LLM_MODEL,
            base_url=self.settings.LLM_BASE_URL,
            timeout=self.settings.LLM_TIMEOUT_SECONDS,
            max_retries=self.settings.LLM_SDK_MAX_RETRIES,
        )
        self.generator = ReportGenerator(
            self.llm,
            max_tokens=self.settings.LLM_MAX_TOKENS,
            temperature=self.settings.LLM_TEMPERATURE,
            min_length=self.settings.MIN_REPORT_LENGTH,
        )
        self.notifier = EmailNotifier(
            api_key=self.settings.RESEND_API_KEY,
            sender=self.settings.EMAIL_FROM,
            public_base_url=self.settings.PUBLIC_BASE_URL,
            api_url=self.settings.RESEND_API_URL,
        )
        self.report_service = ReportService(
            self.report_repo,
            self.chart_engine,
            self.gazetteer,
            self.generator,
            notifier=self.notifier,
            policy=self.policy,
            reference_meridian=self.settings.REFERENCE_MERIDIAN_DEG,
            reference_tz=self.settings.REFERENCE_TZ,
            notify_async=self.settings.NOTIFY_ASYNC,
            enqueue_notification=enqueue_report_email,
        )


container = Container()
