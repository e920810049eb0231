from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import date, datetime, timezone
from typing import Callable

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, EmailStr, field_validator

from . import analytics
from .entity_store import EntityStore
from .errors import (
    BidListLoadError,
    BidSaveError,
    BidValidationError,
    EntityNotFoundError,
    InvalidResponseError,
    ProposalAlreadyAnsweredError,
    ProposalLinkError,
    ProposalPersistError,
    UnknownFieldError,
)
from .file_storage import FileStorage, InMemoryFileStorage
from .insights import InsightsReport, InsightsService
from .invoicing import InvoiceService
from .logging_config import TRACE_HEADER, log_context, parse_trace_header
from .models.bid import Bid, BidStatus
from .models.invoice import Invoice
from .models.proposal import ProposalResponse, ProposalSections, ResponseType
from .models.rate import RateEntry
from .models.profile import UserProfile
from .notifications import ResponseNotifier
from .pricing import normalize_bid
from .profiles import ProfileService
from .proposals import ProposalService, proposal_email_text
from .public_proposals import PublicProposalService, render_public_proposal, render_unavailable
from .rates import RateCatalog, average_margin
from .reconciliation import BidListService
from .repositories import (
    BidRepository,
    InvoiceRepository,
    ProfileRepository,
    ProposalResponseRepository,
    RateRepository,
)
from .text_generation import TextGenerator
from .validation import validate_for_submission

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "http://localhost:8000"
ROI_DEFAULT_LOOKBACK_MONTHS = 3
MAX_LOGO_BYTES = 5 * 1024 * 1024


class RateListResponse(BaseModel):
    rates: list[RateEntry]
    average_margin: float


class BidListResponse(BaseModel):
    bids: list[Bid]
    responses: dict[str, ProposalResponse]
    synced: int


class ProposalPayload(BaseModel):
    bid_id: str
    proposal_html: str
    sections: ProposalSections
    used_fallback: bool = False


class ShareResponse(BaseModel):
    link: str
    status: BidStatus


class ProposalEmailResponse(BaseModel):
    text: str


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    business_name: str | None = None
    business_address: str | None = None
    business_phone: str | None = None
    business_email: str | None = None
    business_website: str | None = None
    business_logo_url: str | None = None
    has_completed_onboarding: bool | None = None


class ProposalAnswer(BaseModel):
    response_type: ResponseType
    notes: str | None = None
    client_email: EmailStr | None = None

    @field_validator("client_email", mode="before")
    @classmethod
    def _blank_email_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ROIResponse(BaseModel):
    report: analytics.ROIReport
    trend: list[analytics.TrendMonth]


def owner_email(x_owner_email: str | None = Header(default=None)) -> str:
    if not x_owner_email or not x_owner_email.strip():
        raise HTTPException(status_code=401, detail="X-Owner-Email header is required")
    return x_owner_email.strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error(status_code: int, exc: Exception, **fields: object) -> JSONResponse:
    return JSONResponse({"detail": str(exc), **fields}, status_code=status_code)


def create_app(
    store: EntityStore,
    *,
    generator: TextGenerator | None = None,
    notifier: ResponseNotifier | None = None,
    files: FileStorage | None = None,
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime] = _utcnow,
) -> FastAPI:
    bid_repo = BidRepository(store)
    response_repo = ProposalResponseRepository(store)
    rate_catalog = RateCatalog(RateRepository(store))
    invoice_repo = InvoiceRepository(store)
    profiles = ProfileService(ProfileRepository(store))
    bid_list = BidListService(bid_repo, response_repo, sleep=sleep)
    proposal_service = ProposalService(bid_repo, generator, sleep=sleep, now=now)
    invoice_service = InvoiceService(invoice_repo, now=now)
    insights_service = InsightsService(generator, sleep=sleep)
    file_storage = files if files is not None else InMemoryFileStorage()
    public_service = PublicProposalService(bid_repo, response_repo, notifier)

    app = FastAPI(title="Contractor Bids API", version="0.1.0")

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        trace_id, span_id = parse_trace_header(request.headers.get(TRACE_HEADER))
        owner = request.headers.get("X-Owner-Email")
        with log_context(trace_id=trace_id or uuid.uuid4().hex, span_id=span_id, owner=owner):
            return await call_next(request)

    @app.exception_handler(EntityNotFoundError)
    async def not_found(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(BidValidationError)
    async def invalid_bid(request: Request, exc: BidValidationError) -> JSONResponse:
        return _error(422, exc, problems=exc.problems)

    @app.exception_handler(UnknownFieldError)
    async def unknown_field(request: Request, exc: UnknownFieldError) -> JSONResponse:
        return _error(422, exc)

    @app.exception_handler(InvalidResponseError)
    async def invalid_response(request: Request, exc: InvalidResponseError) -> JSONResponse:
        return _error(422, exc)

    @app.exception_handler(ProposalAlreadyAnsweredError)
    async def already_answered(request: Request, exc: ProposalAlreadyAnsweredError) -> JSONResponse:
        return _error(409, exc)

    @app.exception_handler(ProposalLinkError)
    async def proposal_missing(request: Request, exc: ProposalLinkError) -> JSONResponse:
        return _error(409, exc)

    @app.exception_handler(BidListLoadError)
    @app.exception_handler(BidSaveError)
    @app.exception_handler(ProposalPersistError)
    async def unavailable(request: Request, exc: Exception) -> JSONResponse:
        return _error(503, exc)

    def owned_bid(bid_id: str, owner: str) -> Bid:
        bid = bid_repo.get(bid_id)
        if bid.created_by != owner:
            raise EntityNotFoundError(bid_repo.collection, bid_id)
        return bid

    def owned_rate(rate_id: str, owner: str) -> RateEntry:
        rate = RateRepository(store).get(rate_id)
        if rate.created_by != owner:
            raise EntityNotFoundError(RateRepository.collection, rate_id)
        return rate

    def owned_invoice(invoice_id: str, owner: str) -> Invoice:
        invoice = invoice_repo.get(invoice_id)
        if invoice.created_by != owner:
            raise EntityNotFoundError(invoice_repo.collection, invoice_id)
        return invoice

    def prepare_bid(bid: Bid) -> Bid:
        normalized = normalize_bid(bid)
        if normalized.status is BidStatus.draft:
            if not normalized.project_title.strip():
                raise BidValidationError(["Project title is required"])
        else:
            validate_for_submission(normalized)
        return normalized

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    # Rates

    @app.get("/v1/rates", response_model=RateListResponse)
    async def list_rates(owner: str = Depends(owner_email)) -> RateListResponse:
        rates = await asyncio.to_thread(rate_catalog.list, owner)
        return RateListResponse(rates=rates, average_margin=average_margin(rates))

    @app.post("/v1/rates", response_model=RateEntry, status_code=201)
    async def create_rate(rate: RateEntry, owner: str = Depends(owner_email)) -> RateEntry:
        return await asyncio.to_thread(rate_catalog.create, owner, rate)

    @app.post("/v1/rates:bulk", response_model=list[RateEntry], status_code=201)
    async def bulk_create_rates(rates: list[RateEntry], owner: str = Depends(owner_email)) -> list[RateEntry]:
        return await asyncio.to_thread(rate_catalog.bulk_create, owner, rates)

    @app.put("/v1/rates/{rate_id}", response_model=RateEntry)
    async def update_rate(rate_id: str, rate: RateEntry, owner: str = Depends(owner_email)) -> RateEntry:
        await asyncio.to_thread(owned_rate, rate_id, owner)
        return await asyncio.to_thread(rate_catalog.update, rate_id, rate)

    @app.delete("/v1/rates/{rate_id}", status_code=204)
    async def delete_rate(rate_id: str, owner: str = Depends(owner_email)) -> None:
        await asyncio.to_thread(owned_rate, rate_id, owner)
        await asyncio.to_thread(rate_catalog.delete, rate_id)

    # Profile

    @app.get("/v1/profile", response_model=UserProfile)
    async def get_profile(owner: str = Depends(owner_email)) -> UserProfile:
        return await asyncio.to_thread(profiles.get, owner)

    @app.put("/v1/profile", response_model=UserProfile)
    async def update_profile(update: ProfileUpdate, owner: str = Depends(owner_email)) -> UserProfile:
        return await asyncio.to_thread(profiles.update, owner, **update.model_dump(exclude_unset=True))

    @app.post("/v1/profile/logo", response_model=UserProfile)
    async def upload_logo(file: UploadFile = File(...), owner: str = Depends(owner_email)) -> UserProfile:
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise HTTPException(status_code=422, detail="Logo must be an image file")
        content = await file.read()
        if not content:
            raise HTTPException(status_code=422, detail="Logo file is empty")
        if len(content) > MAX_LOGO_BYTES:
            raise HTTPException(status_code=413, detail="Logo must be 5 MB or smaller")
        url = await asyncio.to_thread(file_storage.upload, file.filename or "logo", content, content_type)
        return await asyncio.to_thread(profiles.update, owner, business_logo_url=url)

    # Bids

    @app.get("/v1/bids", response_model=BidListResponse)
    async def list_bids(owner: str = Depends(owner_email)) -> BidListResponse:
        listing = await asyncio.to_thread(bid_list.load_and_sync, owner)
        return BidListResponse(bids=listing.bids, responses=listing.responses, synced=listing.synced)

    @app.post("/v1/bids", response_model=Bid, status_code=201)
    async def create_bid(bid: Bid, owner: str = Depends(owner_email)) -> Bid:
        # Saving the example bid creates a fresh bid of its own.
        fresh = prepare_bid(bid.model_copy(update={"id": None, "is_example": False, "proposal_html": None}))
        return await asyncio.to_thread(bid_repo.create, owner, fresh)

    @app.get("/v1/bids/{bid_id}", response_model=Bid)
    async def get_bid(bid_id: str, owner: str = Depends(owner_email)) -> Bid:
        return await asyncio.to_thread(owned_bid, bid_id, owner)

    @app.put("/v1/bids/{bid_id}", response_model=Bid)
    async def update_bid(bid_id: str, bid: Bid, owner: str = Depends(owner_email)) -> Bid:
        current = await asyncio.to_thread(owned_bid, bid_id, owner)
        changes = bid.model_dump(exclude_unset=True, exclude={"id", "created_by", "created_date", "updated_date"})
        merged = prepare_bid(Bid.model_validate({**current.model_dump(), **changes}))
        return await asyncio.to_thread(bid_repo.update, bid_id, merged)

    @app.delete("/v1/bids/{bid_id}", status_code=204)
    async def delete_bid(bid_id: str, owner: str = Depends(owner_email)) -> None:
        await asyncio.to_thread(owned_bid, bid_id, owner)
        await asyncio.to_thread(bid_repo.delete, bid_id)
        logger.info("Deleted bid", extra={"owner": owner, "bid_id": bid_id})

    # Proposals

    @app.post("/v1/bids/{bid_id}/proposal:generate", response_model=ProposalPayload)
    async def generate_proposal(bid_id: str, owner: str = Depends(owner_email)) -> ProposalPayload:
        bid = await asyncio.to_thread(owned_bid, bid_id, owner)
        company = await asyncio.to_thread(profiles.company_info, owner)
        result = await asyncio.to_thread(proposal_service.generate, bid, company)
        return ProposalPayload(
            bid_id=bid_id, proposal_html=result.html, sections=result.sections, used_fallback=result.used_fallback
        )

    @app.put("/v1/bids/{bid_id}/proposal", response_model=ProposalPayload)
    async def edit_proposal(
        bid_id: str, sections: ProposalSections, owner: str = Depends(owner_email)
    ) -> ProposalPayload:
        bid = await asyncio.to_thread(owned_bid, bid_id, owner)
        company = await asyncio.to_thread(profiles.company_info, owner)
        result = await asyncio.to_thread(proposal_service.apply_edits, bid, company, sections)
        return ProposalPayload(bid_id=bid_id, proposal_html=result.html, sections=result.sections)

    @app.post("/v1/bids/{bid_id}/proposal:share", response_model=ShareResponse)
    async def share_proposal(bid_id: str, owner: str = Depends(owner_email)) -> ShareResponse:
        bid = await asyncio.to_thread(owned_bid, bid_id, owner)
        shared, link = await asyncio.to_thread(proposal_service.share, bid, public_base_url)
        return ShareResponse(link=link, status=shared.status)

    @app.get("/v1/bids/{bid_id}/proposal/email", response_model=ProposalEmailResponse)
    async def proposal_email(bid_id: str, owner: str = Depends(owner_email)) -> ProposalEmailResponse:
        bid = await asyncio.to_thread(owned_bid, bid_id, owner)
        company = await asyncio.to_thread(profiles.company_info, owner)
        return ProposalEmailResponse(text=proposal_email_text(bid, company))

    @app.post("/v1/bids/{bid_id}/invoice", response_model=Invoice, status_code=201)
    async def create_invoice(bid_id: str, owner: str = Depends(owner_email)) -> Invoice:
        bid = await asyncio.to_thread(owned_bid, bid_id, owner)
        company = await asyncio.to_thread(profiles.company_info, owner)
        return await asyncio.to_thread(invoice_service.create_from_bid, owner, bid, company)

    # Invoices

    @app.get("/v1/invoices", response_model=list[Invoice])
    async def list_invoices(owner: str = Depends(owner_email)) -> list[Invoice]:
        return await asyncio.to_thread(invoice_service.list, owner)

    @app.put("/v1/invoices/{invoice_id}", response_model=Invoice)
    async def update_invoice(invoice_id: str, invoice: Invoice, owner: str = Depends(owner_email)) -> Invoice:
        await asyncio.to_thread(owned_invoice, invoice_id, owner)
        return await asyncio.to_thread(invoice_service.save, owner, invoice.model_copy(update={"id": invoice_id}))

    @app.delete("/v1/invoices/{invoice_id}", status_code=204)
    async def delete_invoice(invoice_id: str, owner: str = Depends(owner_email)) -> None:
        await asyncio.to_thread(owned_invoice, invoice_id, owner)
        await asyncio.to_thread(invoice_service.delete, invoice_id)

    @app.post("/v1/invoices/{invoice_id}:mark-paid", response_model=Invoice)
    async def mark_invoice_paid(invoice_id: str, owner: str = Depends(owner_email)) -> Invoice:
        await asyncio.to_thread(owned_invoice, invoice_id, owner)
        return await asyncio.to_thread(invoice_service.mark_paid, invoice_id)

    @app.post("/v1/invoices/{invoice_id}:unmark-paid", response_model=Invoice)
    async def unmark_invoice_paid(invoice_id: str, owner: str = Depends(owner_email)) -> Invoice:
        await asyncio.to_thread(owned_invoice, invoice_id, owner)
        return await asyncio.to_thread(invoice_service.unmark_paid, invoice_id)

    # Analytics

    def today() -> date:
        return now().date()

    @app.get("/v1/analytics/dashboard", response_model=analytics.DashboardStats)
    async def dashboard(owner: str = Depends(owner_email)) -> analytics.DashboardStats:
        bids = await asyncio.to_thread(bid_repo.list_for_owner, owner)
        return analytics.dashboard_stats(bids)

    @app.get("/v1/analytics/forecast", response_model=analytics.Forecast)
    async def forecast(months: int = 6, owner: str = Depends(owner_email)) -> analytics.Forecast:
        if months not in (3, 6, 12):
            raise HTTPException(status_code=422, detail="months must be 3, 6 or 12")
        bids = await asyncio.to_thread(bid_repo.list_for_owner, owner)
        return analytics.monthly_forecast(bids, months=months, today=today())

    @app.get("/v1/analytics/roi", response_model=ROIResponse)
    async def roi(
        start_date: date | None = None,
        monthly_subscription: float = analytics.DEFAULT_SUBSCRIPTION,
        time_saved_hours: float = analytics.DEFAULT_HOURS_SAVED,
        hourly_rate: float = analytics.DEFAULT_HOURLY_RATE,
        owner: str = Depends(owner_email),
    ) -> ROIResponse:
        current = today()
        start = start_date or analytics.months_before(current, ROI_DEFAULT_LOOKBACK_MONTHS)
        bids = await asyncio.to_thread(bid_repo.list_for_owner, owner)
        report = analytics.roi(
            bids,
            start_date=start,
            today=current,
            monthly_subscription=monthly_subscription,
            time_saved_hours=time_saved_hours,
            hourly_rate=hourly_rate,
        )
        return ROIResponse(report=report, trend=analytics.monthly_trend(bids, start_date=start, today=current))

    @app.get("/v1/analytics/insights", response_model=InsightsReport)
    async def insights(owner: str = Depends(owner_email)) -> InsightsReport:
        bids = await asyncio.to_thread(bid_repo.list_for_owner, owner)
        return await asyncio.to_thread(insights_service.analyze, bids)

    @app.get("/v1/analytics/alerts", response_model=list[analytics.CashFlowAlert])
    async def alerts(owner: str = Depends(owner_email)) -> list[analytics.CashFlowAlert]:
        bids = await asyncio.to_thread(bid_repo.list_for_owner, owner)
        return analytics.cash_flow_alerts(bids, today=today())

    # Public proposal link

    @app.get("/p/{bid_id}", response_class=HTMLResponse)
    async def view_proposal(bid_id: str) -> HTMLResponse:
        try:
            proposal = await asyncio.to_thread(public_service.load, bid_id)
        except ProposalLinkError as exc:
            return HTMLResponse(render_unavailable(str(exc)), status_code=404)
        return HTMLResponse(render_public_proposal(proposal))

    @app.post("/p/{bid_id}/responses", response_model=ProposalResponse, status_code=201)
    async def answer_proposal(bid_id: str, answer: ProposalAnswer) -> ProposalResponse:
        try:
            return await asyncio.to_thread(
                public_service.respond,
                bid_id,
                answer.response_type,
                notes=answer.notes,
                client_email=answer.client_email,
            )
        except ProposalLinkError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    return app


__all__ = ["create_app", "owner_email"]
