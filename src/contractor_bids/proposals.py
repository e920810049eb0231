from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from html.parser import HTMLParser
from typing import Callable, Sequence

from tenacity import RetryError, Retrying, before_sleep_log, stop_after_attempt, wait_incrementing

from .errors import ProposalLinkError, ProposalPersistError
from .models.bid import Bid, BidStatus
from .models.proposal import CompanyInfo, ProposalSections
from .pricing import billable_amounts
from .rendering import money, render
from .repositories import BidRepository
from .text_generation import TextGenerator

logger = logging.getLogger(__name__)

GENERATION_ATTEMPTS = 3

BREAKDOWN_LABELS = {
    "materials_total": "Materials & Supplies",
    "labor_total": "Labor & Services",
    "equipment_total": "Equipment Rental",
    "overhead_total": "Overhead & Admin",
    "custom_expenses_total": "Other Direct Costs",
    "markup_amount": "Project Management",
}

SECTION_PLACEHOLDERS = {
    "executive_summary": "Executive summary will be provided.",
    "scope_of_work": "Scope of work details will be provided.",
    "timeline": "Project timeline will be provided.",
    "payment_schedule": "Payment schedule will be provided.",
    "terms_and_conditions": "Terms and conditions will be provided.",
    "closing_statement": "Thank you for considering our proposal.",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_prompt(bid: Bid, company: CompanyInfo) -> str:
    return (
        "Create a professional, client-ready proposal based on this job bid:\n\n"
        f"Project: {bid.project_title}\n"
        f"Client: {bid.client_name}\n"
        f"Description: {bid.project_description}\n"
        f"Total Amount: {money(bid.total_bid_amount)}\n\n"
        f"Company Info: {company.company_name}\n\n"
        "Generate a comprehensive proposal that includes: an executive summary, a detailed scope of work, "
        "timeline estimates, terms and conditions, a payment schedule, and a professional closing statement. "
        "Structure it with clear headings."
    )


def fallback_sections(bid: Bid, company: CompanyInfo) -> ProposalSections:
    """Deterministic proposal prose used when generation keeps failing."""
    company_name = company.company_name or "our company"
    return ProposalSections(
        executive_summary=(
            f"Thank you for considering {company_name} for your {bid.project_title} project. "
            "We are excited to present this comprehensive proposal outlining our approach, "
            "timeline, and investment for your project."
        ),
        scope_of_work=(
            f"Project: {bid.project_title}\n\nDescription: {bid.project_description}\n\n"
            "We will provide all necessary materials, labor, and expertise to complete this project "
            "to your satisfaction. Our experienced team will ensure quality workmanship throughout "
            "the entire process."
        ),
        timeline=(
            f"The {bid.project_title} project is estimated to be completed within 3-5 business days, "
            "depending on weather conditions and project complexity. We will coordinate with you to "
            "schedule work at your convenience."
        ),
        terms_and_conditions=(
            "• All work will be completed according to local building codes and regulations\n"
            "• We carry full liability insurance and workers compensation\n"
            "• Any changes to the original scope will be discussed and approved before implementation\n"
            "• Final payment is due upon project completion and your satisfaction"
        ),
        payment_schedule=(
            f"Total Investment: {money(bid.total_bid_amount)}\n\n"
            "• 25% deposit due upon contract signing\n"
            "• 75% balance due upon project completion\n\n"
            "We accept cash, check, or major credit cards for your convenience."
        ),
        closing_statement=(
            "We appreciate the opportunity to work with you on this project. Our commitment to quality "
            "workmanship and customer satisfaction ensures you'll be pleased with the results. Please "
            "don't hesitate to contact us with any questions or concerns."
        ),
    )


def cost_breakdown(bid: Bid) -> list[tuple[str, float]]:
    """Labelled non-zero lines of the persisted totals."""
    return [(BREAKDOWN_LABELS[name], amount) for name, amount in billable_amounts(bid)]


def render_proposal_html(
    bid: Bid,
    company: CompanyInfo,
    sections: ProposalSections,
    *,
    generated_at: datetime,
) -> str:
    filled = ProposalSections(
        **{
            name: getattr(sections, name) or placeholder
            for name, placeholder in SECTION_PLACEHOLDERS.items()
        }
    )
    return render(
        "proposal.html",
        bid=bid,
        company=company,
        sections=filled,
        breakdown=cost_breakdown(bid),
        generated_at=generated_at,
    )


@dataclass
class ProposalResult:
    bid: Bid
    html: str
    sections: ProposalSections
    used_fallback: bool = False


class ProposalService:
    """Generates, edits and shares client proposals for saved bids.

    A proposal only counts as generated once its HTML has been written
    back to the bid.
    """

    def __init__(
        self,
        bids: BidRepository,
        generator: TextGenerator | None = None,
        *,
        attempts: int = GENERATION_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._bids = bids
        self._generator = generator
        self._attempts = attempts
        self._sleep = sleep
        self._now = now

    def generate(self, bid: Bid, company: CompanyInfo) -> ProposalResult:
        if self._generator is None:
            logger.info("No text generator configured, using fallback template", extra={"bid_id": bid.id})
            return self._store(bid, company, fallback_sections(bid, company), used_fallback=True)

        used_fallback = False
        try:
            sections = self._generate_sections(bid, company)
        except RetryError as exc:
            logger.warning(
                "Proposal generation failed, using fallback template",
                exc_info=exc.last_attempt.exception(),
                extra={"bid_id": bid.id, "attempts": self._attempts},
            )
            sections = fallback_sections(bid, company)
            used_fallback = True
        return self._store(bid, company, sections, used_fallback=used_fallback)

    def apply_edits(self, bid: Bid, company: CompanyInfo, sections: ProposalSections) -> ProposalResult:
        return self._store(bid, company, sections)

    def share(self, bid: Bid, base_url: str) -> tuple[Bid, str]:
        """Return the public link for a stored proposal, marking a draft bid as sent."""
        if not bid.id or not bid.proposal_html:
            raise ProposalLinkError("Generate and save the proposal before sharing it.")
        if bid.status is BidStatus.draft:
            bid = self._bids.update(bid.id, {"status": BidStatus.sent})
            logger.info("Marked bid as sent", extra={"bid_id": bid.id})
        return bid, proposal_link(base_url, bid.id)

    def _generate_sections(self, bid: Bid, company: CompanyInfo) -> ProposalSections:
        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_incrementing(start=1, increment=1),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        prompt = build_prompt(bid, company)
        schema = ProposalSections.json_schema_for_generation()
        generator = self._generator

        def attempt() -> ProposalSections:
            return ProposalSections.model_validate(generator.generate_json(prompt, schema=schema))

        return retrying(attempt)

    def _store(
        self,
        bid: Bid,
        company: CompanyInfo,
        sections: ProposalSections,
        *,
        used_fallback: bool = False,
    ) -> ProposalResult:
        html = render_proposal_html(bid, company, sections, generated_at=self._now())
        if not bid.id or bid.is_example:
            raise ProposalPersistError("Failed to save proposal content. Cannot create shareable link.")
        try:
            saved = self._bids.update(bid.id, {"proposal_html": html})
        except Exception as exc:
            logger.error("Failed to save proposal HTML", exc_info=True, extra={"bid_id": bid.id})
            raise ProposalPersistError(
                "Failed to save proposal content. Cannot create shareable link."
            ) from exc
        return ProposalResult(bid=saved, html=html, sections=sections, used_fallback=used_fallback)


def proposal_link(base_url: str, bid_id: str) -> str:
    return f"{base_url.rstrip('/')}/p/{bid_id}"


def proposal_candidates(bids: Sequence[Bid]) -> list[Bid]:
    return [bid for bid in bids if bid.status is not BidStatus.rejected]


_BLOCK_TAGS = {"p", "div", "section", "header", "footer", "h1", "h2", "h3", "h4", "h5", "h6"}


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []

    def handle_starttag(self, tag: str, attrs) -> None:
        if tag == "br":
            self.parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _BLOCK_TAGS:
            self.parts.append("\n\n")

    def handle_data(self, data: str) -> None:
        self.parts.append(data)


def html_to_text(html: str) -> str:
    extractor = _TextExtractor()
    extractor.feed(html)
    extractor.close()
    text = "".join(extractor.parts)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{2,}", "\n\n", text)
    return text.strip()


def proposal_email_text(bid: Bid, company: CompanyInfo) -> str:
    """Plain-text email (subject, greeting and proposal body) for copy and paste."""
    if not bid.proposal_html:
        raise ProposalLinkError("Generate the proposal before copying it.")
    greeting = (
        f"Hi {bid.client_name},\n\n"
        f"I'm excited to submit my proposal for your {bid.project_title} project. "
        "Please review it below and let me know if you have any questions.\n\n"
        "I look forward to working with you!\n\n"
        f"Best regards,\n{company.company_name or 'Your Business'}"
    )
    return (
        f"Subject: Proposal for {bid.project_title}\n\n"
        f"{greeting}\n\n"
        "-----------------------------------\n\n"
        f"{html_to_text(bid.proposal_html)}"
    )


__all__ = [
    "BREAKDOWN_LABELS",
    "GENERATION_ATTEMPTS",
    "ProposalResult",
    "ProposalService",
    "build_prompt",
    "cost_breakdown",
    "fallback_sections",
    "html_to_text",
    "proposal_candidates",
    "proposal_email_text",
    "proposal_link",
    "render_proposal_html",
]
