"""Multi-factor confidence scoring for noisy extracted text."""

import math
import re
from dataclasses import dataclass, replace

SECTION_PATTERNS = (
    re.compile(r"\b(experience|work\s+experience|employment)\b", re.IGNORECASE),
    re.compile(r"\b(education|academic|qualifications)\b", re.IGNORECASE),
    re.compile(r"\b(skills|technical\s+skills|competencies)\b", re.IGNORECASE),
    re.compile(r"\b(contact|personal\s+information)\b", re.IGNORECASE),
    re.compile(r"\b(summary|objective|profile)\b", re.IGNORECASE),
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b")
LINK_PATTERN = re.compile(r"\b(linkedin|github|portfolio)\b", re.IGNORECASE)

DATE_PATTERNS = (
    re.compile(r"\b(?:19|20)\d{2}\b"),
    re.compile(
        r"\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+(?:19|20)\d{2}\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:Present|Current|Now)\b", re.IGNORECASE),
)

ARTIFACT_PATTERNS = (
    re.compile(r"[|]{2,}"),
    re.compile(r"[0O]{3,}"),
    re.compile(r"[1l]{3,}"),
    re.compile(r"[@]{2,}"),
    re.compile(r"[^\x20-\x7E\n\r\t]"),
)

ARTIFACT_DENSITY_PATTERN = re.compile(r"[|@0O1l]{2,}")

COMMON_WORDS = frozenset(
    "the and to of a in for is on that by this with i you it not or be are".split()
)

WEIGHTS = {
    "engine": 0.30,
    "text_length": 0.15,
    "structured_content": 0.25,
    "format_consistency": 0.20,
    "language_model": 0.10,
}


@dataclass(frozen=True)
class ConfidenceFactors:
    engine_confidence: float
    text_length_score: int
    structured_content_score: int
    format_consistency_score: int
    language_model_score: int
    overall_score: float


@dataclass(frozen=True)
class ConfidenceAnalysis:
    confidence: int
    factors: ConfidenceFactors
    recommendations: tuple[str, ...]
    reliability: str  # high | medium | low


class ConfidenceScorer:
    """Scores how far extracted text can be trusted.

    All sub-scores are recomputed for every call; nothing is cached between
    texts.
    """

    def analyze_confidence(
        self, text: str, engine_confidence: float, processing_time_ms: float = 0.0
    ) -> ConfidenceAnalysis:
        """Score text against an engine's own confidence and processing time.

        Args:
            text: Extracted text, possibly noisy
            engine_confidence: The engine's raw confidence (clamped into 0-100)
            processing_time_ms: How long extraction took

        Returns:
            ConfidenceAnalysis with a confidence in [0, 100]
        """
        text = text or ""
        engine = _clamp(engine_confidence)
        factors = ConfidenceFactors(
            engine_confidence=engine,
            text_length_score=self.score_text_length(text),
            structured_content_score=self.score_structured_content(text),
            format_consistency_score=self.score_format_consistency(text),
            language_model_score=self.score_language_model(text),
            overall_score=0.0,
        )
        overall = self._overall_score(factors, processing_time_ms)
        factors = replace(factors, overall_score=overall)

        return ConfidenceAnalysis(
            confidence=int(round(overall)),
            factors=factors,
            recommendations=tuple(self._recommendations(factors, text)),
            reliability=reliability_tier(overall),
        )

    @staticmethod
    def score_text_length(text: str) -> int:
        length = len(text.strip())
        if length < 50:
            return 10
        if length < 200:
            return 40
        if length < 500:
            return 70
        if length < 1500:
            return 90
        if length < 3000:
            return 85
        # very long text tends to include noise
        return 70

    @staticmethod
    def score_structured_content(text: str) -> int:
        score = 15 * sum(1 for pattern in SECTION_PATTERNS if pattern.search(text))
        score += 8 * sum(
            1 for pattern in (EMAIL_PATTERN, PHONE_PATTERN, LINK_PATTERN) if pattern.search(text)
        )
        date_hits = sum(len(pattern.findall(text)) for pattern in DATE_PATTERNS)
        score += min(date_hits * 3, 15)
        return min(score, 100)

    @staticmethod
    def score_format_consistency(text: str) -> int:
        score = 80
        for pattern in ARTIFACT_PATTERNS:
            score -= 5 * len(pattern.findall(text))

        lines = [line for line in text.split("\n") if line.strip()]
        average_line = sum(len(line) for line in lines) / len(lines) if lines else 0.0
        if average_line < 10:
            score -= 20
        elif average_line > 200:
            score -= 10

        words = text.split()
        average_word = sum(len(word) for word in words) / len(words) if words else 0.0
        if average_word < 3 or average_word > 15:
            score -= 15

        return max(0, min(score, 100))

    @staticmethod
    def score_language_model(text: str) -> int:
        score = 50

        words = text.lower().split()
        if words:
            ratio = sum(1 for word in words if word in COMMON_WORDS) / len(words)
            if ratio > 0.1:
                score += 30
            elif ratio > 0.05:
                score += 15

        sentences = [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]
        if sentences:
            capitalized = sum(1 for sentence in sentences if sentence[0].isupper())
            ratio = capitalized / len(sentences)
            if ratio > 0.7:
                score += 20
            elif ratio > 0.4:
                score += 10

        return min(score, 100)

    @staticmethod
    def _overall_score(factors: ConfidenceFactors, processing_time_ms: float) -> float:
        score = (
            factors.engine_confidence * WEIGHTS["engine"]
            + factors.text_length_score * WEIGHTS["text_length"]
            + factors.structured_content_score * WEIGHTS["structured_content"]
            + factors.format_consistency_score * WEIGHTS["format_consistency"]
            + factors.language_model_score * WEIGHTS["language_model"]
        )

        # slow extraction usually means a hard, low-quality input
        if processing_time_ms > 60_000:
            score *= 0.90
        elif processing_time_ms > 30_000:
            score *= 0.95

        return _clamp(score)

    @staticmethod
    def _recommendations(factors: ConfidenceFactors, text: str) -> list[str]:
        recommendations = []

        if factors.engine_confidence < 50:
            recommendations.append("Low OCR engine confidence - consider improving image quality")
        if factors.text_length_score < 40:
            recommendations.append(
                "Very little text extracted - verify the document contains readable text"
            )
        if factors.structured_content_score < 30:
            recommendations.append("Limited resume structure detected - manual review recommended")
        if factors.format_consistency_score < 50:
            recommendations.append("Format inconsistencies detected - text may need manual cleanup")
        if factors.language_model_score < 40:
            recommendations.append("Unusual language patterns detected - verify text accuracy")

        if text:
            density = len(ARTIFACT_DENSITY_PATTERN.findall(text)) / len(text)
            if density > 0.01:
                recommendations.append(
                    "High OCR artifact density - consider using a different image or OCR settings"
                )
            if not EMAIL_PATTERN.search(text):
                recommendations.append(
                    "No email address detected - verify contact information extraction"
                )
            if not PHONE_PATTERN.search(text):
                recommendations.append(
                    "No phone number detected - verify contact information extraction"
                )

        if not recommendations:
            recommendations.append("OCR quality appears good - minimal manual review needed")
        return recommendations


def reliability_tier(score: float) -> str:
    if score >= 75:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


def _clamp(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(0.0, min(value, 100.0))
