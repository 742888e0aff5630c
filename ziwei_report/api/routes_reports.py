"""
Routes des rapports: soumission, génération idempotente, lecture, utilitaires temps solaire et villes.

Les erreurs métier (`ReportError`) remontent telles quelles et sont converties en enveloppes par
`ziwei_report.apigw.errors`.
"""

from datetime import datetime, time

from fastapi import APIRouter, Depends, Query, Response

from ziwei_report.api.deps import get_gazetteer, get_reference_meridian, get_report_service
from ziwei_report.api.schemas import CityResponse, ReportView, SolarTimeRequest, SolarTimeResponse
from ziwei_report.apigw.errors import APIError, ErrorCodes
from ziwei_report.core.http_constants import HTTP_ACCEPTED, HTTP_CONFLICT, HTTP_CREATED
from ziwei_report.domain.entities import (
    BirthQuery,
    GenerationResult,
    GenerationStatus,
    SubmitResult,
)
from ziwei_report.domain.errors import ValidationError
from ziwei_report.domain.services import ReportService
from ziwei_report.domain.solar_time import double_hour_info, normalize_solar_time
from ziwei_report.infra.location.cities import CityGazetteer

router = APIRouter(tags=["reports"])
service_dep = Depends(get_report_service)
gazetteer_dep = Depends(get_gazetteer)
meridian_dep = Depends(get_reference_meridian)


@router.post("/reports", response_model=SubmitResult, status_code=HTTP_CREATED)
def submit_report(payload: BirthQuery, service: ReportService = service_dep):
    """
    Crée un rapport pour les données de naissance soumises.

    Retour: `SubmitResult`; `free_reuse` ou `deduplicated` indiquent qu'un rapport existant est
    renvoyé au lieu d'en créer un nouveau.
    """
    return service.submit(payload)


@router.post("/reports/{report_id}/generate", response_model=GenerationResult)
def generate_report(report_id: str, response: Response, service: ReportService = service_dep):
    """
    Demande la génération du contenu IA d'un rapport.

    - 200: contenu disponible (frais ou en cache)
    - 202: tentative en cours, réessayer après `Retry-After` secondes
    - 409: génération définitivement en échec
    - 502: la tentative courante a échoué (réessayable plus tard)
    """
    result = service.request_generation(report_id)
    if result.status == GenerationStatus.GENERATING:
        response.status_code = HTTP_ACCEPTED
        response.headers["Retry-After"] = str(result.retry_after or 0)
    elif result.status == GenerationStatus.FAILED:
        raise APIError(
            HTTP_CONFLICT,
            ErrorCodes.GENERATION_FAILED,
            "Report generation failed permanently",
            details={"report_id": report_id},
        )
    return result


@router.get("/reports/{report_id}", response_model=ReportView)
def get_report(report_id: str, service: ReportService = service_dep):
    """Retourne la vue publique d'un rapport existant."""
    record = service.get_report(report_id)
    return ReportView.from_record(record, service.reuse_days_remaining(record))


@router.post("/solar-time", response_model=SolarTimeResponse)
def solar_time(
    payload: SolarTimeRequest,
    gazetteer: CityGazetteer = gazetteer_dep,
    reference_meridian: float = meridian_dep,
):
    """Convertit une heure civile en temps solaire vrai (longitude brute ou ville connue)."""
    longitude = payload.longitude
    if longitude is None and payload.location:
        city = gazetteer.get_city_by_name(payload.location)
        if city is None:
            raise ValidationError(
                f"unknown birth place: {payload.location}", {"location": payload.location}
            )
        longitude = city.longitude
    if longitude is None:
        raise ValidationError("longitude or location is required")

    local_time = datetime.combine(payload.birth_date, time(payload.hour, payload.minute))
    result = normalize_solar_time(local_time, longitude, reference_meridian)
    return SolarTimeResponse(
        true_solar_time=result.true_solar_time,
        double_hour_index=result.double_hour_index,
        double_hour=double_hour_info(result.double_hour_index),
        longitude=longitude,
        longitude_adjustment_minutes=result.longitude_adjustment_minutes,
        equation_of_time_minutes=result.equation_of_time_minutes,
        total_adjustment_minutes=result.total_adjustment_minutes,
    )


@router.get("/cities", response_model=list[CityResponse])
def search_cities(
    q: str = Query("", max_length=50),
    limit: int = Query(10, ge=1, le=50),
    gazetteer: CityGazetteer = gazetteer_dep,
):
    """Recherche de villes connues (nom chinois, pinyin ou province)."""
    return [CityResponse(**vars(c)) for c in gazetteer.search(q, limit)]
